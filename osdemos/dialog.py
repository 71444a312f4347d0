"""Building blocks for text-mode dialogs: colour themes, item lists and text layout."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Iterator, Optional

KEY_ESC = 27
TAB = 9
MAX_LEN = 2048
MAXITEMSTR = 200


class Color(IntEnum):
    """Terminal colours, numbered as curses numbers them."""

    BLACK = 0
    RED = 1
    GREEN = 2
    YELLOW = 3
    BLUE = 4
    MAGENTA = 5
    CYAN = 6
    WHITE = 7


class Attr(Enum):
    """Character attributes used by the themes."""

    NORMAL = "normal"
    BOLD = "bold"
    REVERSE = "reverse"
    DIM = "dim"


ELEMENTS = (
    "screen",
    "shadow",
    "dialog",
    "title",
    "border",
    "button_active",
    "button_inactive",
    "button_key_active",
    "button_key_inactive",
    "button_label_active",
    "button_label_inactive",
    "inputbox",
    "inputbox_border",
    "searchbox",
    "searchbox_title",
    "searchbox_border",
    "position_indicator",
    "menubox",
    "menubox_border",
    "item",
    "item_selected",
    "tag",
    "tag_selected",
    "tag_key",
    "tag_key_selected",
    "check",
    "check_selected",
    "uarrow",
    "darrow",
)


@dataclass
class DialogColor:
    """How one part of a dialog is drawn."""

    fg: Color = Color.BLACK
    bg: Color = Color.BLACK
    hl: bool = False
    attr: Attr = Attr.NORMAL


_B, _R, _G, _Y, _BL, _C, _W = (
    Color.BLACK,
    Color.RED,
    Color.GREEN,
    Color.YELLOW,
    Color.BLUE,
    Color.CYAN,
    Color.WHITE,
)

_CLASSIC = {
    "screen": (_C, _BL, True),
    "shadow": (_B, _B, True),
    "dialog": (_B, _W, False),
    "title": (_Y, _W, True),
    "border": (_W, _W, True),
    "button_active": (_W, _BL, True),
    "button_inactive": (_B, _W, False),
    "button_key_active": (_W, _BL, True),
    "button_key_inactive": (_R, _W, False),
    "button_label_active": (_Y, _BL, True),
    "button_label_inactive": (_B, _W, True),
    "inputbox": (_B, _W, False),
    "inputbox_border": (_B, _W, False),
    "searchbox": (_B, _W, False),
    "searchbox_title": (_Y, _W, True),
    "searchbox_border": (_W, _W, True),
    "position_indicator": (_Y, _W, True),
    "menubox": (_B, _W, False),
    "menubox_border": (_W, _W, True),
    "item": (_B, _W, False),
    "item_selected": (_W, _BL, True),
    "tag": (_Y, _W, True),
    "tag_selected": (_Y, _BL, True),
    "tag_key": (_Y, _W, True),
    "tag_key_selected": (_Y, _BL, True),
    "check": (_B, _W, False),
    "check_selected": (_W, _BL, True),
    "uarrow": (_G, _W, True),
    "darrow": (_G, _W, True),
}

_BLACKBG = {
    "screen": (_R, _B, True),
    "shadow": (_B, _B, False),
    "dialog": (_W, _B, False),
    "title": (_R, _B, False),
    "border": (_B, _B, True),
    "button_active": (_Y, _R, False),
    "button_inactive": (_Y, _B, False),
    "button_key_active": (_Y, _R, True),
    "button_key_inactive": (_R, _B, False),
    "button_label_active": (_W, _R, False),
    "button_label_inactive": (_B, _B, True),
    "inputbox": (_Y, _B, False),
    "inputbox_border": (_Y, _B, False),
    "searchbox": (_Y, _B, False),
    "searchbox_title": (_Y, _B, True),
    "searchbox_border": (_B, _B, True),
    "position_indicator": (_R, _B, False),
    "menubox": (_Y, _B, False),
    "menubox_border": (_B, _B, True),
    "item": (_W, _B, False),
    "item_selected": (_W, _R, False),
    "tag": (_R, _B, False),
    "tag_selected": (_Y, _R, True),
    "tag_key": (_R, _B, False),
    "tag_key_selected": (_Y, _R, True),
    "check": (_Y, _B, False),
    "check_selected": (_Y, _R, True),
    "uarrow": (_R, _B, False),
    "darrow": (_R, _B, False),
}

_BLUETITLE = {
    **_CLASSIC,
    "title": (_BL, _W, True),
    "button_key_active": (_Y, _BL, True),
    "button_label_active": (_W, _BL, True),
    "searchbox_title": (_BL, _W, True),
    "position_indicator": (_BL, _W, True),
    "tag": (_BL, _W, True),
    "tag_key": (_BL, _W, True),
}

_N, _BO, _RV, _D = Attr.NORMAL, Attr.BOLD, Attr.REVERSE, Attr.DIM

_MONO = {
    "screen": _N,
    "shadow": _N,
    "dialog": _N,
    "title": _BO,
    "border": _N,
    "button_active": _RV,
    "button_inactive": _D,
    "button_key_active": _RV,
    "button_key_inactive": _BO,
    "button_label_active": _RV,
    "button_label_inactive": _N,
    "inputbox": _N,
    "inputbox_border": _N,
    "searchbox": _N,
    "searchbox_title": _BO,
    "searchbox_border": _N,
    "position_indicator": _BO,
    "menubox": _N,
    "menubox_border": _N,
    "item": _N,
    "item_selected": _RV,
    "tag": _BO,
    "tag_selected": _RV,
    "tag_key": _BO,
    "tag_key_selected": _RV,
    "check": _BO,
    "check_selected": _RV,
    "uarrow": _BO,
    "darrow": _BO,
}

_THEMES = {"classic": _CLASSIC, "bluetitle": _BLUETITLE, "blackbg": _BLACKBG}


def theme_colors(theme: Optional[str] = None) -> dict[str, DialogColor]:
    """The colours of every dialog element under a named theme.

    No name selects ``bluetitle``; ``mono`` uses attributes only; an unknown
    name leaves every element black on black.
    """
    if theme == "mono":
        return {name: DialogColor(attr=_MONO[name]) for name in ELEMENTS}
    table = _BLUETITLE if theme is None else _THEMES.get(theme)
    result = {}
    for name in ELEMENTS:
        fg, bg, hl = table[name] if table is not None else (Color.BLACK, Color.BLACK, False)
        result[name] = DialogColor(fg, bg, hl, Attr.BOLD if hl else Attr.NORMAL)
    return result


@dataclass(eq=False)
class DialogItem:
    """One line of a menu or checklist."""

    text: str = ""
    tag: str = ""
    data: Any = None
    selected: bool = False


_ITEM_LIMIT = MAXITEMSTR - 1


class ItemList:
    """The items shown by a menu or checklist, with a current item."""

    def __init__(self) -> None:
        self.items: list[DialogItem] = []
        self.current: Optional[DialogItem] = None

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[DialogItem]:
        return iter(self.items)

    def __getitem__(self, index: int) -> DialogItem:
        return self.items[index]

    def _require_current(self) -> DialogItem:
        if self.current is None:
            raise LookupError("no current item")
        return self.current

    def make(self, text: str) -> DialogItem:
        """Append a new item and make it current."""
        item = DialogItem(text[:_ITEM_LIMIT])
        self.items.append(item)
        self.current = item
        return item

    def add_str(self, text: str) -> None:
        """Extend the current item's text, keeping it within the item limit."""
        item = self._require_current()
        item.text = (item.text + text)[:_ITEM_LIMIT]

    def set_selected(self, value: bool) -> None:
        self._require_current().selected = bool(value)

    def activate_selected(self) -> bool:
        """Make the first selected item current; report whether there was one."""
        for item in self.items:
            if item.selected:
                self.current = item
                return True
        self.current = None
        return False

    def index_of(self, item: Optional[DialogItem] = None) -> int:
        """Position of an item (the current one by default); 0 if it is not listed."""
        target = self.current if item is None else item
        for position, candidate in enumerate(self.items):
            if candidate is target:
                return position
        return 0


def first_alpha(string: str, exempt: str) -> int:
    """Index of the first letter outside brackets that is not in ``exempt``, else 0."""
    in_paren = 0
    for index, ch in enumerate(string):
        c = ch.lower()
        if c in "<[(":
            in_paren += 1
        if c in ">])" and in_paren > 0:
            in_paren -= 1
        if not in_paren and c.isascii() and c.isalpha() and c not in exempt:
            return index
    return 0


def _half(value: int) -> int:
    return int(value / 2)


def wrap_prompt(prompt: str, width: int, y: int, x: int) -> list[tuple[int, int, str]]:
    """Lay out a prompt as (row, column, text) pieces.

    A short prompt is centred on one line. A long one is wrapped word by word;
    a short first word of a sentence moves to a new line with the next word
    when that one would not fit.
    """
    if len(prompt) > MAX_LEN:
        raise ValueError(f"prompt longer than {MAX_LEN} characters")
    text = prompt.replace("\n", " ")
    if len(text) <= width - x * 2:
        return [(y, _half(width - len(text)), text)]

    placements: list[tuple[int, int, str]] = []
    cur_x, cur_y = x, y
    newl = True
    pos: Optional[int] = 0
    while pos is not None and pos < len(text):
        space = text.find(" ", pos)
        if space == -1:
            word, rest_start, rest = text[pos:], None, None
        else:
            word, rest_start = text[pos:space], space + 1
            rest = text[rest_start:]
        room = width - cur_x
        wlen = len(word)
        wrap = wlen > room
        if not wrap and newl and wlen < 4 and rest is not None and wlen + 1 + len(rest) > room:
            next_space = rest.find(" ")
            wrap = next_space == -1 or wlen + 1 + next_space > room
        if wrap:
            cur_y += 1
            cur_x = x
        placements.append((cur_y, cur_x, word))
        cur_x += wlen + 1
        if rest_start is not None and rest.startswith(" "):
            cur_x += 1
            pos = rest_start + 1
            while pos < len(text) and text[pos] == " ":
                pos += 1
            newl = True
        else:
            pos = rest_start
            newl = False
    return placements


def button_cells(label: str, selected: bool) -> list[tuple[str, str]]:
    """The (text, element) runs that draw a button such as ``< Help >``.

    Leading spaces of the label are kept as padding and the first visible
    character is drawn as the button's hot key.
    """
    state = "active" if selected else "inactive"
    stripped = label.lstrip(" ")
    padding = len(label) - len(stripped)
    return [
        ("<", f"button_{state}"),
        (" " * padding, f"button_label_{state}"),
        (stripped[:1], f"button_key_{state}"),
        (stripped[1:], f"button_label_{state}"),
        (">", f"button_{state}"),
    ]