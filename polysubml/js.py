"""A small JavaScript expression tree: builders, printing and dead-code removal."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Union


class Op(Enum):
    ADD = "+"
    SUB = "- "
    MULT = "*"
    DIV = "/"
    REM = "%"
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    EQ = "==="
    NEQ = "!=="


class _Token(Enum):
    OTHER = 0
    BRACE = 1
    PAREN = 2


class _Prec(IntEnum):
    PRIMARY = 0
    MEMBER = 1
    CALL = 2
    LHS = 3
    UNARY = 4
    EXPONENT = 5
    MULTIPLICATIVE = 6
    ADDITIVE = 7
    SHIFT = 8
    RELATIONAL = 9
    EQUALITY = 10
    LOR = 11
    CONDITIONAL = 12
    ASSIGN = 13
    EXPR = 14


# Nodes are immutable so that subtrees can be shared freely between expressions.


@dataclass(frozen=True)
class _Paren:
    expr: "_Node"


@dataclass(frozen=True)
class _Literal:
    code: str


@dataclass(frozen=True)
class _Obj:
    fields: tuple[tuple[str, "_Node"], ...]


@dataclass(frozen=True)
class _Var:
    name: str


@dataclass(frozen=True)
class _Field:
    lhs: "_Node"
    name: str


@dataclass(frozen=True)
class _ScopeField:
    scope: str
    name: str


@dataclass(frozen=True)
class _Call:
    lhs: "_Node"
    rhs: "_Node"


@dataclass(frozen=True)
class _Minus:
    expr: "_Node"


@dataclass(frozen=True)
class _Void:
    pass


@dataclass(frozen=True)
class _BinOp:
    lhs: "_Node"
    rhs: "_Node"
    op: Op


@dataclass(frozen=True)
class _Ternary:
    cond: "_Node"
    then: "_Node"
    other: "_Node"


@dataclass(frozen=True)
class _Assignment:
    lhs: "_Node"
    rhs: "_Node"
    # Keep even when the target is never read (used for mutually recursive bindings).
    keep_if_unused: bool


@dataclass(frozen=True)
class _ArrowFunc:
    arg: "_Node"
    scope: str
    body: "_Node"


@dataclass(frozen=True)
class _Comma:
    exprs: tuple["_Node", ...]


@dataclass(frozen=True)
class _Print:
    exprs: tuple["_Node", ...]


_Node = Union[
    _Paren,
    _Literal,
    _Obj,
    _Var,
    _Field,
    _ScopeField,
    _Call,
    _Minus,
    _Void,
    _BinOp,
    _Ternary,
    _Assignment,
    _ArrowFunc,
    _Comma,
    _Print,
]

_VOID = _Void()

_MULTIPLICATIVE_OPS = (Op.MULT, Op.DIV, Op.REM)
_ADDITIVE_OPS = (Op.ADD, Op.SUB)
_RELATIONAL_OPS = (Op.LT, Op.LTE, Op.GT, Op.GTE)


def _binop_operand_precs(op: Op) -> tuple[_Prec, _Prec]:
    if op in _MULTIPLICATIVE_OPS:
        return _Prec.MULTIPLICATIVE, _Prec.EXPONENT
    if op in _ADDITIVE_OPS:
        return _Prec.ADDITIVE, _Prec.MULTIPLICATIVE
    if op in _RELATIONAL_OPS:
        return _Prec.RELATIONAL, _Prec.SHIFT
    return _Prec.EQUALITY, _Prec.RELATIONAL


def _precedence(node: _Node) -> _Prec:
    if isinstance(node, (_Paren, _Literal, _Obj, _Var)):
        return _Prec.PRIMARY
    if isinstance(node, (_Field, _ScopeField)):
        return _Prec.MEMBER
    if isinstance(node, (_Call, _Print)):
        return _Prec.CALL
    if isinstance(node, (_Minus, _Void)):
        return _Prec.UNARY
    if isinstance(node, _BinOp):
        return _binop_operand_precs(node.op)[0]
    if isinstance(node, _Ternary):
        return _Prec.CONDITIONAL
    if isinstance(node, (_Assignment, _ArrowFunc)):
        return _Prec.ASSIGN
    return _Prec.EXPR


def _first(node: _Node) -> _Token:
    """The kind of token the printed expression starts with."""
    if isinstance(node, (_Paren, _ArrowFunc)):
        return _Token.PAREN
    if isinstance(node, _Obj):
        return _Token.BRACE
    if isinstance(node, (_Field, _Call, _BinOp, _Assignment)):
        return _first(node.lhs)
    if isinstance(node, _Ternary):
        return _first(node.cond)
    if isinstance(node, _Comma):
        return _first(node.exprs[0]) if node.exprs else _Token.OTHER
    return _Token.OTHER


def _ensure(node: _Node, required: _Prec) -> _Node:
    """Wrap the node in parentheses if it binds more loosely than required."""
    return _Paren(node) if _precedence(node) > required else node


def _add_parens(node: _Node) -> _Node:
    """Return a copy of the tree with parentheses inserted where needed."""
    if isinstance(node, _Paren):
        return _Paren(_add_parens(node.expr))
    if isinstance(node, _Obj):
        return _Obj(tuple((name, _ensure(_add_parens(v), _Prec.ASSIGN)) for name, v in node.fields))
    if isinstance(node, _Field):
        return _Field(_ensure(_add_parens(node.lhs), _Prec.MEMBER), node.name)
    if isinstance(node, _Call):
        return _Call(
            _ensure(_add_parens(node.lhs), _Prec.MEMBER),
            _ensure(_add_parens(node.rhs), _Prec.ASSIGN),
        )
    if isinstance(node, _Minus):
        return _Minus(_ensure(_add_parens(node.expr), _Prec.UNARY))
    if isinstance(node, _BinOp):
        lreq, rreq = _binop_operand_precs(node.op)
        return _BinOp(_ensure(_add_parens(node.lhs), lreq), _ensure(_add_parens(node.rhs), rreq), node.op)
    if isinstance(node, _Ternary):
        return _Ternary(
            _add_parens(node.cond),
            _ensure(_add_parens(node.then), _Prec.ASSIGN),
            _ensure(_add_parens(node.other), _Prec.ASSIGN),
        )
    if isinstance(node, _Assignment):
        return _Assignment(
            _ensure(_add_parens(node.lhs), _Prec.LHS),
            _ensure(_add_parens(node.rhs), _Prec.ASSIGN),
            node.keep_if_unused,
        )
    if isinstance(node, _ArrowFunc):
        body = _ensure(_add_parens(node.body), _Prec.ASSIGN)
        # An arrow function body must not start with "{".
        if _first(body) == _Token.BRACE:
            body = _Paren(body)
        return _ArrowFunc(_add_parens(node.arg), node.scope, body)
    if isinstance(node, _Comma):
        exprs = [_add_parens(e) for e in node.exprs]
        return _Comma(tuple(exprs[:1] + [_ensure(e, _Prec.ASSIGN) for e in exprs[1:]]))
    if isinstance(node, _Print):
        return _Print(tuple(_ensure(_add_parens(e), _Prec.PRIMARY) for e in node.exprs))
    return node


def _write(node: _Node, out: list[str]) -> None:
    if isinstance(node, _Paren):
        out.append("(")
        _write(node.expr, out)
        out.append(")")
    elif isinstance(node, _Literal):
        out.append(node.code)
    elif isinstance(node, _Obj):
        out.append("{")
        for i, (name, val) in enumerate(node.fields):
            if i:
                out.append(", ")
            out.append(f"'{name}': ")
            _write(val, out)
        out.append("}")
    elif isinstance(node, _Var):
        out.append(node.name)
    elif isinstance(node, _Field):
        _write(node.lhs, out)
        out.append("." + node.name)
    elif isinstance(node, _ScopeField):
        out.append(f"{node.scope}.{node.name}")
    elif isinstance(node, _Call):
        _write(node.lhs, out)
        out.append("(")
        _write(node.rhs, out)
        out.append(")")
    elif isinstance(node, _Minus):
        out.append("-")
        _write(node.expr, out)
    elif isinstance(node, _Void):
        out.append("void 0")
    elif isinstance(node, _BinOp):
        _write(node.lhs, out)
        out.append(node.op.value)
        _write(node.rhs, out)
    elif isinstance(node, _Ternary):
        _write(node.cond, out)
        out.append(" ? ")
        _write(node.then, out)
        out.append(" : ")
        _write(node.other, out)
    elif isinstance(node, _Assignment):
        _write(node.lhs, out)
        out.append(" = ")
        _write(node.rhs, out)
    elif isinstance(node, _ArrowFunc):
        out.append("(")
        _write(node.arg, out)
        out.append(f", {node.scope}={{}}) => ")
        _write(node.body, out)
    elif isinstance(node, _Comma):
        _write_list(node.exprs, out)
    elif isinstance(node, _Print):
        out.append("p.println(")
        _write_list(node.exprs, out)
        out.append(")")


def _write_list(nodes: tuple[_Node, ...], out: list[str]) -> None:
    for i, node in enumerate(nodes):
        if i:
            out.append(", ")
        _write(node, out)


def _should_inline(node: _Node) -> bool:
    if isinstance(node, _Literal):
        return len(node.code) <= 10
    if isinstance(node, _Minus):
        return _should_inline(node.expr)
    return isinstance(node, (_ScopeField, _Var))


class Expr:
    """An immutable JavaScript expression."""

    __slots__ = ("_node",)

    def __init__(self, node: _Node) -> None:
        self._node = node

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Expr):
            return NotImplemented
        return self._node == other._node

    def __hash__(self) -> int:
        return hash(self._node)

    def __repr__(self) -> str:
        return f"Expr({self.to_source()!r})"

    def to_source(self) -> str:
        """Print the expression as JavaScript source, with needed parentheses."""
        out: list[str] = []
        _write(_add_parens(self._node), out)
        return "".join(out)

    def should_inline(self) -> bool:
        """Whether the expression is cheap enough to duplicate instead of binding it."""
        return _should_inline(self._node)


# ---------------------------------------------------------------- builders


def assign(lhs: Expr, rhs: Expr, keep_if_unused: bool) -> Expr:
    return Expr(_Assignment(lhs._node, rhs._node, keep_if_unused))


def binop(lhs: Expr, rhs: Expr, op: Op) -> Expr:
    return Expr(_BinOp(lhs._node, rhs._node, op))


def call(lhs: Expr, rhs: Expr) -> Expr:
    return Expr(_Call(lhs._node, rhs._node))


def unary_minus(rhs: Expr) -> Expr:
    return Expr(_Minus(rhs._node))


def void() -> Expr:
    return Expr(_VOID)


def eqop(lhs: Expr, rhs: Expr) -> Expr:
    return Expr(_BinOp(lhs._node, rhs._node, Op.EQ))


def field(lhs: Expr, rhs: str) -> Expr:
    return Expr(_Field(lhs._node, rhs))


def scope_field(scope_var: str, name: str) -> Expr:
    return Expr(_ScopeField(scope_var, name))


def lit(code: str) -> Expr:
    return Expr(_Literal(code))


def ternary(cond: Expr, e1: Expr, e2: Expr) -> Expr:
    return Expr(_Ternary(cond._node, e1._node, e2._node))


def var(name: str) -> Expr:
    return Expr(_Var(name))


def _comma_list_sub(nodes: list[_Node]) -> _Node:
    if not nodes:
        return _VOID
    if len(nodes) == 1:
        return nodes[0]
    return _Comma(tuple(nodes))


def comma_list(exprs: list[Expr]) -> Expr:
    """Join expressions with the comma operator, flattening nested comma lists."""
    flattened: list[_Node] = []
    for expr in exprs:
        if isinstance(expr._node, _Comma):
            flattened.extend(expr._node.exprs)
        else:
            flattened.append(expr._node)
    return Expr(_comma_list_sub(flattened))


def println(exprs: list[Expr]) -> Expr:
    return Expr(_Print(tuple(e._node for e in exprs)))


def func(arg: Expr, scope: str, body: Expr) -> Expr:
    """An arrow function taking ``arg`` and a fresh scope object named ``scope``."""
    return Expr(_ArrowFunc(arg._node, scope, body._node))


def obj(fields: list[tuple[str, Expr]]) -> Expr:
    return Expr(_Obj(tuple((name, v._node) for name, v in fields)))


# ------------------------------------------------------- dead code removal


class _DeadCodeRemover:
    """Drops assignments to scope variables that are never read.

    Walks expressions backwards, tracking for each scope in the current stack
    the variables read so far.
    """

    def __init__(self) -> None:
        self.used: dict[str, set[str]] = {}

    def add_var(self, scope: str, name: str) -> None:
        self.used[scope].add(name)

    def _drop_unused_assign(self, node: _Node) -> _Node:
        if (
            isinstance(node, _Assignment)
            and not node.keep_if_unused
            and isinstance(node.lhs, _ScopeField)
            and node.lhs.name not in self.used[node.lhs.scope]
        ):
            return node.rhs
        return node

    def used_expr(self, node: _Node) -> _Node:
        """Process an expression whose value is used."""
        node = self._drop_unused_assign(node)

        if isinstance(node, _Paren):
            return _Paren(self.used_expr(node.expr))
        if isinstance(node, _Obj):
            vals = [self.used_expr(v) for _, v in reversed(node.fields)]
            vals.reverse()
            return _Obj(tuple((name, v) for (name, _), v in zip(node.fields, vals)))
        if isinstance(node, _Field):
            return _Field(self.used_expr(node.lhs), node.name)
        if isinstance(node, _ScopeField):
            self.add_var(node.scope, node.name)
            return node
        if isinstance(node, _Call):
            rhs = self.used_expr(node.rhs)
            return _Call(self.used_expr(node.lhs), rhs)
        if isinstance(node, _Minus):
            return _Minus(self.used_expr(node.expr))
        if isinstance(node, _BinOp):
            rhs = self.used_expr(node.rhs)
            return _BinOp(self.used_expr(node.lhs), rhs, node.op)
        if isinstance(node, _Ternary):
            other = self.used_expr(node.other)
            then = self.used_expr(node.then)
            return _Ternary(self.used_expr(node.cond), then, other)
        if isinstance(node, _Assignment):
            rhs = self.used_expr(node.rhs)
            return _Assignment(self.used_expr(node.lhs), rhs, node.keep_if_unused)
        if isinstance(node, _ArrowFunc):
            self.used[node.scope] = set()
            body = self.used_expr(node.body)
            del self.used[node.scope]
            return _ArrowFunc(node.arg, node.scope, body)
        if isinstance(node, _Comma):
            # Only the last value of a comma expression is used.
            *rest, last = node.exprs
            out = [self.used_expr(last)]
            for expr in reversed(rest):
                self.unused_expr(expr, out)
            out.reverse()
            return _comma_list_sub(out)
        if isinstance(node, _Print):
            vals = [self.used_expr(e) for e in reversed(node.exprs)]
            vals.reverse()
            return _Print(tuple(vals))
        return node

    def unused_expr(self, node: _Node, out: list[_Node]) -> None:
        """Process an expression whose value is discarded, keeping only side effects.

        Kept expressions are appended to ``out`` in reverse order.
        """
        node = self._drop_unused_assign(node)

        if isinstance(node, _Paren):
            self.unused_expr(node.expr, out)
        elif isinstance(node, _Obj):
            for _, val in reversed(node.fields):
                self.unused_expr(val, out)
        elif isinstance(node, _Field):
            self.unused_expr(node.lhs, out)
        elif isinstance(node, _Minus):
            self.unused_expr(node.expr, out)
        elif isinstance(node, _BinOp):
            self.unused_expr(node.rhs, out)
            self.unused_expr(node.lhs, out)
        elif isinstance(node, _Comma):
            for expr in reversed(node.exprs):
                self.unused_expr(expr, out)
        elif isinstance(node, (_Call, _Ternary, _Assignment, _Print)):
            # These may have side effects, so they stay.
            out.append(self.used_expr(node))


def optimize(expr: Expr, main_scope_name: str, bindings: Mapping[object, Expr]) -> None:
    """Remove dead assignments from ``expr`` in place.

    Variables of the main scope that appear among ``bindings`` count as read.
    """
    remover = _DeadCodeRemover()
    remover.used[main_scope_name] = set()
    for bound in bindings.values():
        if isinstance(bound._node, _ScopeField):
            remover.add_var(bound._node.scope, bound._node.name)
    expr._node = remover.used_expr(expr._node)