"""Configuration dependency expressions: tristate logic, symbols and expression trees."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Optional, Union


class Tristate(IntEnum):
    """A configuration value: no, module or yes."""

    NO = 0
    MOD = 1
    YES = 2

    def either(self, other: Tristate) -> Tristate:
        """Logical or: the larger of the two values."""
        return Tristate(max(self, other))

    def both(self, other: Tristate) -> Tristate:
        """Logical and: the smaller of the two values."""
        return Tristate(min(self, other))

    def negate(self) -> Tristate:
        return Tristate(2 - self)


class ExprType(IntEnum):
    NONE = 0
    OR = 1
    AND = 2
    NOT = 3
    EQUAL = 4
    UNEQUAL = 5
    CHOICE = 6
    SYMBOL = 7
    RANGE = 8


class SymbolType(IntEnum):
    UNKNOWN = 0
    BOOLEAN = 1
    TRISTATE = 2
    INT = 3
    HEX = 4
    STRING = 5
    OTHER = 6


class SymbolFlag(IntFlag):
    CONST = 0x0001
    CHECK = 0x0008
    CHOICE = 0x0010
    CHOICEVAL = 0x0020
    PRINTED = 0x0040
    VALID = 0x0080
    OPTIONAL = 0x0100
    WRITE = 0x0200
    CHANGED = 0x0400
    AUTO = 0x1000
    CHECKED = 0x2000
    WARNED = 0x8000
    DEF_USER = 0x10000
    DEF_AUTO = 0x20000
    DEF3 = 0x40000
    DEF4 = 0x80000


@dataclass(eq=False)
class Symbol:
    """A named configuration symbol; symbols compare by identity."""

    name: Optional[str]
    type: SymbolType = SymbolType.UNKNOWN
    flags: int = 0


symbol_yes = Symbol("y", SymbolType.TRISTATE, SymbolFlag.CONST | SymbolFlag.VALID)
symbol_mod = Symbol("m", SymbolType.TRISTATE, SymbolFlag.CONST | SymbolFlag.VALID)
symbol_no = Symbol("n", SymbolType.TRISTATE, SymbolFlag.CONST | SymbolFlag.VALID)

Operand = Union["Expr", Symbol, None]


@dataclass
class _TransCounter:
    count: int = 0


# Number of rewrites performed by the current simplification pass.
transformations = _TransCounter()


@dataclass(eq=False)
class Expr:
    """A node of an expression tree.

    For SYMBOL, ``left`` is a symbol; for EQUAL, UNEQUAL and RANGE both sides
    are symbols; for NOT ``left`` is an expression; for AND and OR both sides
    are expressions; for CHOICE ``left`` is an expression and ``right`` a symbol.
    """

    type: ExprType
    left: Operand = None
    right: Operand = field(default=None)

    @classmethod
    def symbol(cls, sym: Symbol) -> Expr:
        return cls(ExprType.SYMBOL, sym)

    @classmethod
    def one(cls, type: ExprType, child: Optional[Expr]) -> Expr:
        return cls(type, child)

    @classmethod
    def two(cls, type: ExprType, left: Optional[Expr], right: Optional[Expr]) -> Expr:
        return cls(type, left, right)

    @classmethod
    def comp(cls, type: ExprType, s1: Symbol, s2: Symbol) -> Expr:
        return cls(type, s1, s2)

    def copy(self) -> Expr:
        """Deep copy; symbols are shared."""
        t = self.type
        if t is ExprType.SYMBOL:
            return Expr(t, self.left, self.right)
        if t is ExprType.NOT:
            return Expr(t, _copy(self.left), self.right)
        if t in (ExprType.EQUAL, ExprType.UNEQUAL):
            return Expr(t, self.left, self.right)
        if t in (ExprType.AND, ExprType.OR, ExprType.CHOICE):
            return Expr(t, _copy(self.left), _copy(self.right))
        raise ValueError(f"can't copy type {int(t)}")

    def _become(self, other: Expr) -> None:
        self.type, self.left, self.right = other.type, other.left, other.right

    def _become_symbol(self, sym: Symbol) -> None:
        self.type, self.left, self.right = ExprType.SYMBOL, sym, None


def _copy(e: Operand) -> Operand:
    return e.copy() if isinstance(e, Expr) else e


def alloc_and(e1: Optional[Expr], e2: Optional[Expr]) -> Optional[Expr]:
    if e1 is None:
        return e2
    return Expr.two(ExprType.AND, e1, e2) if e2 is not None else e1


def alloc_or(e1: Optional[Expr], e2: Optional[Expr]) -> Optional[Expr]:
    if e1 is None:
        return e2
    return Expr.two(ExprType.OR, e1, e2) if e2 is not None else e1


def is_yes(e: Optional[Expr]) -> bool:
    return e is None or (e.type is ExprType.SYMBOL and e.left is symbol_yes)


def is_no(e: Optional[Expr]) -> bool:
    return e is not None and e.type is ExprType.SYMBOL and e.left is symbol_no


def _eliminate_eq(type: ExprType, e1: Expr, e2: Expr) -> tuple[Expr, Expr]:
    if e1.type is type:
        e1.left, e2 = _eliminate_eq(type, e1.left, e2)
        e1.right, e2 = _eliminate_eq(type, e1.right, e2)
        return e1, e2
    if e2.type is type:
        e1, e2.left = _eliminate_eq(type, e1, e2.left)
        e1, e2.right = _eliminate_eq(type, e1, e2.right)
        return e1, e2
    if (
        e1.type is ExprType.SYMBOL
        and e2.type is ExprType.SYMBOL
        and e1.left is e2.left
        and (e1.left is symbol_yes or e1.left is symbol_no)
    ):
        return e1, e2
    if not expr_eq(e1, e2):
        return e1, e2
    transformations.count += 1
    if type is ExprType.OR:
        return Expr.symbol(symbol_no), Expr.symbol(symbol_no)
    if type is ExprType.AND:
        return Expr.symbol(symbol_yes), Expr.symbol(symbol_yes)
    return e1, e2


def eliminate_eq(
    e1: Optional[Expr], e2: Optional[Expr]
) -> tuple[Optional[Expr], Optional[Expr]]:
    """Remove operands common to both trees; return the rewritten pair."""
    if e1 is None or e2 is None:
        return e1, e2
    if e1.type in (ExprType.OR, ExprType.AND):
        e1, e2 = _eliminate_eq(e1.type, e1, e2)
    if e1.type is not e2.type and e2.type in (ExprType.OR, ExprType.AND):
        e1, e2 = _eliminate_eq(e2.type, e1, e2)
    return eliminate_yn(e1), eliminate_yn(e2)


def expr_eq(e1: Expr, e2: Expr) -> bool:
    """Structural equality, treating AND and OR as commutative and associative."""
    if e1.type is not e2.type:
        return False
    t = e1.type
    if t in (ExprType.EQUAL, ExprType.UNEQUAL):
        return e1.left is e2.left and e1.right is e2.right
    if t is ExprType.SYMBOL:
        return e1.left is e2.left
    if t is ExprType.NOT:
        return expr_eq(e1.left, e2.left)
    if t in (ExprType.AND, ExprType.OR):
        old_count = transformations.count
        c1, c2 = eliminate_eq(e1.copy(), e2.copy())
        transformations.count = old_count
        return (
            c1.type is ExprType.SYMBOL
            and c2.type is ExprType.SYMBOL
            and c1.left is c2.left
        )
    return False


def eliminate_yn(e: Optional[Expr]) -> Optional[Expr]:
    """Fold constant y and n operands of AND and OR, rewriting in place."""
    if e is None or e.type not in (ExprType.AND, ExprType.OR):
        return e
    e.left = eliminate_yn(e.left)
    e.right = eliminate_yn(e.right)
    if e.type is ExprType.AND:
        absorbing, neutral = symbol_no, symbol_yes
    else:
        absorbing, neutral = symbol_yes, symbol_no
    for child, other in ((e.left, e.right), (e.right, e.left)):
        if child.type is ExprType.SYMBOL:
            if child.left is absorbing:
                e._become_symbol(absorbing)
                return e
            if child.left is neutral:
                e._become(other)
                return e
    return e


def trans_bool(e: Optional[Expr]) -> Optional[Expr]:
    """Rewrite ``FOO!=n`` on tristate symbols to ``FOO``, in place."""
    if e is None:
        return None
    if e.type in (ExprType.AND, ExprType.OR, ExprType.NOT):
        e.left = trans_bool(e.left)
        e.right = trans_bool(e.right)
    elif e.type is ExprType.UNEQUAL:
        if e.left.type is SymbolType.TRISTATE and e.right is symbol_no:
            e.type = ExprType.SYMBOL
            e.right = None
    return e


def contains_symbol(dep: Optional[Expr], sym: Symbol) -> bool:
    if dep is None:
        return False
    t = dep.type
    if t in (ExprType.AND, ExprType.OR):
        return contains_symbol(dep.left, sym) or contains_symbol(dep.right, sym)
    if t is ExprType.SYMBOL:
        return dep.left is sym
    if t in (ExprType.EQUAL, ExprType.UNEQUAL):
        return dep.left is sym or dep.right is sym
    if t is ExprType.NOT:
        return contains_symbol(dep.left, sym)
    return False


def depends_symbol(dep: Optional[Expr], sym: Symbol) -> bool:
    """Whether ``dep`` can only be true when ``sym`` is set."""
    if dep is None:
        return False
    t = dep.type
    if t is ExprType.AND:
        return depends_symbol(dep.left, sym) or depends_symbol(dep.right, sym)
    if t is ExprType.SYMBOL:
        return dep.left is sym
    if t is ExprType.EQUAL:
        return dep.left is sym and (dep.right is symbol_yes or dep.right is symbol_mod)
    if t is ExprType.UNEQUAL:
        return dep.left is sym and dep.right is symbol_no
    return False


def extract_eq(
    type: ExprType, e1: Expr, e2: Expr
) -> tuple[Optional[Expr], Expr, Expr]:
    """Pull operands common to both trees out of them.

    Returns the extracted operands joined with ``type`` (or None) and the two
    remaining trees, whose extracted places now hold neutral constants.
    """
    extracted: Optional[Expr] = None

    def walk(a: Expr, b: Expr) -> tuple[Expr, Expr]:
        nonlocal extracted
        if a.type is type:
            a.left, b = walk(a.left, b)
            a.right, b = walk(a.right, b)
            return a, b
        if b.type is type:
            a, b.left = walk(a, b.left)
            a, b.right = walk(a, b.right)
            return a, b
        if expr_eq(a, b):
            extracted = Expr.two(type, extracted, a) if extracted is not None else a
            if type is ExprType.AND:
                return Expr.symbol(symbol_yes), Expr.symbol(symbol_yes)
            if type is ExprType.OR:
                return Expr.symbol(symbol_no), Expr.symbol(symbol_no)
        return a, b

    e1, e2 = walk(e1, e2)
    return extracted, e1, e2


def _extract_and_fold(type: ExprType, e1: Expr, e2: Expr) -> tuple[Optional[Expr], Expr, Expr]:
    extracted, e1, e2 = extract_eq(type, e1, e2)
    if extracted is not None:
        e1 = eliminate_yn(e1)
        e2 = eliminate_yn(e2)
    return extracted, e1, e2


def extract_eq_and(e1: Expr, e2: Expr) -> tuple[Optional[Expr], Expr, Expr]:
    return _extract_and_fold(ExprType.AND, e1, e2)


def extract_eq_or(e1: Expr, e2: Expr) -> tuple[Optional[Expr], Expr, Expr]:
    return _extract_and_fold(ExprType.OR, e1, e2)


def trans_compare(e: Optional[Expr], type: ExprType, sym: Symbol) -> Optional[Expr]:
    """Build the expression for ``e == sym`` (EQUAL) or ``e != sym`` (UNEQUAL)."""
    if e is None:
        result = Expr.symbol(sym)
        if type is ExprType.UNEQUAL:
            result = Expr.one(ExprType.NOT, result)
        return result
    t = e.type
    if t in (ExprType.AND, ExprType.OR):
        e1 = trans_compare(e.left, ExprType.EQUAL, sym)
        e2 = trans_compare(e.right, ExprType.EQUAL, sym)
        other = ExprType.OR if t is ExprType.AND else ExprType.AND
        result = e
        if sym is symbol_yes:
            result = Expr.two(t, e1, e2)
        if sym is symbol_no:
            result = Expr.two(other, e1, e2)
        if type is ExprType.UNEQUAL:
            result = Expr.one(ExprType.NOT, result)
        return result
    if t is ExprType.NOT:
        flipped = ExprType.UNEQUAL if type is ExprType.EQUAL else ExprType.EQUAL
        return trans_compare(e.left, flipped, sym)
    if t in (ExprType.EQUAL, ExprType.UNEQUAL):
        if type is ExprType.EQUAL:
            if sym is symbol_yes:
                return e.copy()
            if sym is symbol_mod:
                return Expr.symbol(symbol_no)
            if sym is symbol_no:
                return Expr.one(ExprType.NOT, e.copy())
        else:
            if sym is symbol_yes:
                return Expr.one(ExprType.NOT, e.copy())
            if sym is symbol_mod:
                return Expr.symbol(symbol_yes)
            if sym is symbol_no:
                return e.copy()
        return None
    if t is ExprType.SYMBOL:
        return Expr.comp(type, e.left, sym)
    return None


_PRECEDENCE = (
    ExprType.EQUAL,
    ExprType.NOT,
    ExprType.AND,
    ExprType.OR,
    ExprType.CHOICE,
    ExprType.NONE,
)


def compare_type(t1: ExprType, t2: ExprType) -> int:
    """0 if equal, 1 if ``t1`` binds tighter than ``t2``, -1 otherwise."""
    if t1 == t2:
        return 0
    position = _PRECEDENCE.index(ExprType.EQUAL if t1 == ExprType.UNEQUAL else t1) if (
        t1 == ExprType.UNEQUAL or t1 in _PRECEDENCE[:-1]
    ) else None
    if position is None:
        return -1
    if t2 in _PRECEDENCE[position + 1 :]:
        return 1
    return -1


def _name(sym: Optional[Symbol]) -> str:
    return sym.name if sym is not None and sym.name is not None else ""


def _render(e: Optional[Expr], prevtoken: ExprType) -> str:
    if e is None:
        return "y"
    t = e.type
    if t is ExprType.SYMBOL:
        body = e.left.name if e.left.name else "<choice>"
    elif t is ExprType.NOT:
        body = "!" + _render(e.left, ExprType.NOT)
    elif t is ExprType.EQUAL:
        body = f"{_name(e.left)}={_name(e.right)}"
    elif t is ExprType.UNEQUAL:
        body = f"{_name(e.left)}!={_name(e.right)}"
    elif t is ExprType.OR:
        body = _render(e.left, ExprType.OR) + " || " + _render(e.right, ExprType.OR)
    elif t is ExprType.AND:
        body = _render(e.left, ExprType.AND) + " && " + _render(e.right, ExprType.AND)
    elif t is ExprType.CHOICE:
        body = _name(e.right)
        if e.left is not None:
            body += " ^ " + _render(e.left, ExprType.CHOICE)
    elif t is ExprType.RANGE:
        body = f"[{_name(e.left)} {_name(e.right)}]"
    else:
        body = f"<unknown type {int(t)}>"
    if compare_type(prevtoken, t) > 0:
        return f"({body})"
    return body


def expr_to_string(e: Optional[Expr]) -> str:
    """Render an expression with the minimal parentheses."""
    return _render(e, ExprType.NONE)