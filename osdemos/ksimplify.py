"""Rewrites that simplify configuration dependency expressions."""

from __future__ import annotations

import logging
from typing import Optional

from osdemos.kexpr import (
    Expr,
    ExprType,
    Symbol,
    SymbolFlag,
    SymbolType,
    eliminate_yn,
    expr_eq,
    extract_eq_and,
    extract_eq_or,
    is_no,
    is_yes,
    symbol_mod,
    symbol_no,
    symbol_yes,
    transformations,
)

log = logging.getLogger(__name__)

_SIMPLE = (ExprType.EQUAL, ExprType.UNEQUAL, ExprType.SYMBOL, ExprType.NOT)
_JUNCTIONS = (ExprType.OR, ExprType.AND)


class _Ref:
    """A writable place holding an expression: an attribute of some owner."""

    __slots__ = ("owner", "attr")

    def __init__(self, owner: object, attr: str) -> None:
        self.owner = owner
        self.attr = attr

    def get(self) -> Expr:
        return getattr(self.owner, self.attr)

    def set(self, value: Expr) -> None:
        setattr(self.owner, self.attr, value)


class _Box:
    __slots__ = ("value",)

    def __init__(self, value: Expr) -> None:
        self.value = value


def _operand_symbols(e1: Expr, e2: Expr) -> Optional[Symbol]:
    """The symbol both simple operands test, or None if they cannot be joined."""
    if e1.type not in _SIMPLE or e2.type not in _SIMPLE:
        return None
    if e1.type is ExprType.NOT:
        inner = e1.left
        if inner.type not in (ExprType.EQUAL, ExprType.UNEQUAL, ExprType.SYMBOL):
            return None
        sym1 = inner.left
    else:
        sym1 = e1.left
    if e2.type is ExprType.NOT:
        if e2.left.type is not ExprType.SYMBOL:
            return None
        sym2 = e2.left.left
    else:
        sym2 = e2.left
    if sym1 is not sym2:
        return None
    if sym1.type not in (SymbolType.BOOLEAN, SymbolType.TRISTATE):
        return None
    return sym1


def _pair(e1: Expr, e2: Expr, type: ExprType, a: Symbol, b: Symbol) -> bool:
    """Both operands have ``type`` and their right symbols are ``{a, b}``."""
    return (
        e1.type is type
        and e2.type is type
        and ((e1.right is a and e2.right is b) or (e1.right is b and e2.right is a))
    )


def _sym_with(e1: Expr, e2: Expr, type: ExprType, value: Symbol) -> bool:
    """One operand is a plain symbol, the other a ``type`` test against ``value``."""
    return (e1.type is ExprType.SYMBOL and e2.type is type and e2.right is value) or (
        e2.type is ExprType.SYMBOL and e1.type is type and e1.right is value
    )


def join_or(e1: Expr, e2: Expr) -> Optional[Expr]:
    """A single expression equivalent to ``e1 || e2``, or None if none is known."""
    if expr_eq(e1, e2):
        return e1.copy()
    sym = _operand_symbols(e1, e2)
    if sym is None:
        return None
    if sym.type is SymbolType.TRISTATE:
        if _pair(e1, e2, ExprType.EQUAL, symbol_yes, symbol_mod):
            return Expr.comp(ExprType.UNEQUAL, sym, symbol_no)
        if _pair(e1, e2, ExprType.EQUAL, symbol_yes, symbol_no):
            return Expr.comp(ExprType.UNEQUAL, sym, symbol_mod)
        if _pair(e1, e2, ExprType.EQUAL, symbol_mod, symbol_no):
            return Expr.comp(ExprType.UNEQUAL, sym, symbol_yes)
    if sym.type is SymbolType.BOOLEAN:
        if (
            e1.type is ExprType.NOT
            and e1.left.type is ExprType.SYMBOL
            and e2.type is ExprType.SYMBOL
        ) or (
            e2.type is ExprType.NOT
            and e2.left.type is ExprType.SYMBOL
            and e1.type is ExprType.SYMBOL
        ):
            return Expr.symbol(symbol_yes)
    return None


def _is_const(sym: Symbol) -> bool:
    return bool(sym.flags & SymbolFlag.CONST)


def join_and(e1: Expr, e2: Expr) -> Optional[Expr]:
    """A single expression equivalent to ``e1 && e2``, or None if none is known."""
    if expr_eq(e1, e2):
        return e1.copy()
    sym = _operand_symbols(e1, e2)
    if sym is None:
        return None
    if _sym_with(e1, e2, ExprType.EQUAL, symbol_yes):
        return Expr.comp(ExprType.EQUAL, sym, symbol_yes)
    if _sym_with(e1, e2, ExprType.UNEQUAL, symbol_no):
        return Expr.symbol(sym)
    if _sym_with(e1, e2, ExprType.UNEQUAL, symbol_mod):
        return Expr.comp(ExprType.EQUAL, sym, symbol_yes)
    if sym.type is SymbolType.TRISTATE:
        if e1.type is ExprType.EQUAL and e2.type is ExprType.UNEQUAL:
            value, excluded = e1.right, e2.right
            if _is_const(excluded) and _is_const(value):
                if value is not excluded:
                    return Expr.comp(ExprType.EQUAL, sym, value)
                return Expr.symbol(symbol_no)
        if e1.type is ExprType.UNEQUAL and e2.type is ExprType.EQUAL:
            value, excluded = e2.right, e1.right
            if _is_const(excluded) and _is_const(value):
                if value is not excluded:
                    return Expr.comp(ExprType.EQUAL, sym, value)
                return Expr.symbol(symbol_no)
        if _pair(e1, e2, ExprType.UNEQUAL, symbol_yes, symbol_no):
            return Expr.comp(ExprType.EQUAL, sym, symbol_mod)
        if _pair(e1, e2, ExprType.UNEQUAL, symbol_yes, symbol_mod):
            return Expr.comp(ExprType.EQUAL, sym, symbol_no)
        if _pair(e1, e2, ExprType.UNEQUAL, symbol_mod, symbol_no):
            return Expr.comp(ExprType.EQUAL, sym, symbol_yes)
    return None


def _transform_operand(x):
    return transform(x) if isinstance(x, Expr) else x


def transform(e: Optional[Expr]) -> Optional[Expr]:
    """Normalise an expression: push negations inward and fold boolean comparisons."""
    if e is None:
        return None
    if e.type not in (ExprType.EQUAL, ExprType.UNEQUAL, ExprType.SYMBOL, ExprType.CHOICE):
        e.left = _transform_operand(e.left)
        e.right = _transform_operand(e.right)

    if e.type in (ExprType.EQUAL, ExprType.UNEQUAL):
        if e.left.type is not SymbolType.BOOLEAN:
            return e
        equal = e.type is ExprType.EQUAL
        negated_value = symbol_no if equal else symbol_yes
        plain_value = symbol_yes if equal else symbol_no
        if e.right is negated_value:
            e.type = ExprType.NOT
            e.left = Expr.symbol(e.left)
            e.right = None
        elif e.right is symbol_mod:
            forced = symbol_no if equal else symbol_yes
            log.warning(
                "boolean symbol %s tested for 'm'? test forced to '%s'",
                e.left.name,
                forced.name,
            )
            e._become_symbol(forced)
        elif e.right is plain_value:
            e.type = ExprType.SYMBOL
            e.right = None
        return e

    if e.type is not ExprType.NOT:
        return e

    child = e.left
    if child.type is ExprType.NOT:
        return transform(child.left)
    if child.type in (ExprType.EQUAL, ExprType.UNEQUAL):
        child.type = ExprType.UNEQUAL if child.type is ExprType.EQUAL else ExprType.EQUAL
        return child
    if child.type in _JUNCTIONS:
        e.type = ExprType.AND if child.type is ExprType.OR else ExprType.OR
        e.right = Expr.one(ExprType.NOT, child.right)
        child.type = ExprType.NOT
        child.right = None
        return transform(e)
    if child.type is ExprType.SYMBOL:
        negation = {symbol_yes: symbol_no, symbol_mod: symbol_mod, symbol_no: symbol_yes}
        for constant, result in negation.items():
            if child.left is constant:
                child._become_symbol(result)
                return child
    return e


def _dups1(type: ExprType, r1: _Ref, r2: _Ref) -> None:
    e1, e2 = r1.get(), r2.get()
    if e1.type is type:
        _dups1(type, _Ref(e1, "left"), r2)
        _dups1(type, _Ref(e1, "right"), r2)
        return
    if e2.type is type:
        _dups1(type, r1, _Ref(e2, "left"))
        _dups1(type, r1, _Ref(e2, "right"))
        return
    if e1 is e2:
        return
    if e1.type in _JUNCTIONS:
        _dups1(e1.type, r1, r1)
    e1, e2 = r1.get(), r2.get()
    if type is ExprType.OR:
        joined, neutral = join_or(e1, e2), symbol_no
    elif type is ExprType.AND:
        joined, neutral = join_and(e1, e2), symbol_yes
    else:
        return
    if joined is not None:
        r1.set(Expr.symbol(neutral))
        r2.set(joined)
        transformations.count += 1


def _dups2(type: ExprType, r1: _Ref, r2: _Ref) -> None:
    e1, e2 = r1.get(), r2.get()
    if e1.type is type:
        _dups2(type, _Ref(e1, "left"), r2)
        _dups2(type, _Ref(e1, "right"), r2)
        return
    if e2.type is type:
        _dups2(type, r1, _Ref(e2, "left"))
        _dups2(type, r1, _Ref(e2, "right"))
    e1, e2 = r1.get(), r2.get()
    if e1 is e2:
        return
    if e1.type is ExprType.OR:
        # (FOO || BAR) && (!FOO && !BAR) -> n
        _dups2(e1.type, r1, r1)
        negated = transform(Expr.one(ExprType.NOT, r1.get().copy()))
        _, rest, _ = extract_eq_and(negated, r2.get().copy())
        if is_yes(rest):
            r1.set(Expr.symbol(symbol_no))
            transformations.count += 1
    elif e1.type is ExprType.AND:
        # (FOO && BAR) || (!FOO || !BAR) -> y
        _dups2(e1.type, r1, r1)
        negated = transform(Expr.one(ExprType.NOT, r1.get().copy()))
        _, rest, _ = extract_eq_or(negated, r2.get().copy())
        if is_no(rest):
            r1.set(Expr.symbol(symbol_yes))
            transformations.count += 1


def eliminate_dups(e: Optional[Expr]) -> Optional[Expr]:
    """Merge and drop redundant operands of AND and OR until nothing changes."""
    if e is None:
        return None
    old_count = transformations.count
    box = _Box(e)
    root = _Ref(box, "value")
    try:
        while True:
            transformations.count = 0
            if box.value.type in _JUNCTIONS:
                _dups1(box.value.type, root, root)
                _dups2(box.value.type, root, root)
            if not transformations.count:
                break
            box.value = eliminate_yn(box.value)
    finally:
        transformations.count = old_count
    return box.value