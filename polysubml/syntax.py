"""Syntax tree for the language: patterns, type expressions, statements and expressions.

Identifiers are plain strings. A "spanned" value is a tuple ``(value, span)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from polysubml.spans import Span


class Literal(Enum):
    BOOL = "Bool"
    FLOAT = "Float"
    INT = "Int"
    STR = "Str"


class Op(Enum):
    ADD = "Add"
    SUB = "Sub"
    MULT = "Mult"
    DIV = "Div"
    REM = "Rem"
    LT = "Lt"
    LTE = "Lte"
    GT = "Gt"
    GTE = "Gte"
    EQ = "Eq"
    NEQ = "Neq"


# Operand type (None means any) and result type of an operator.
OpType = tuple[Optional[Literal], Literal]
INT_OP: OpType = (Literal.INT, Literal.INT)
FLOAT_OP: OpType = (Literal.FLOAT, Literal.FLOAT)
STR_OP: OpType = (Literal.STR, Literal.STR)
INT_CMP: OpType = (Literal.INT, Literal.BOOL)
FLOAT_CMP: OpType = (Literal.FLOAT, Literal.BOOL)
ANY_CMP: OpType = (None, Literal.BOOL)


class PolyKind(Enum):
    UNIVERSAL = "Universal"
    EXISTENTIAL = "Existential"


class JoinKind(Enum):
    UNION = "Union"
    INTERSECT = "Intersect"


@dataclass(frozen=True)
class InstantiateSourceKind:
    """Origin of an instantiation; ``flag`` only matters for explicit parameters."""

    tag: str
    flag: bool = False

    @classmethod
    def implicit_call(cls) -> InstantiateSourceKind:
        return cls("ImplicitCall")

    @classmethod
    def implicit_record(cls) -> InstantiateSourceKind:
        return cls("ImplicitRecord")

    @classmethod
    def explicit_params(cls, flag: bool) -> InstantiateSourceKind:
        return cls("ExplicitParams", flag)


@dataclass(frozen=True)
class TypeParam:
    """A type parameter; the alias is the local name and defaults to the name."""

    name: tuple[str, Span]
    alias: Optional[tuple[str, Span]] = None

    def __post_init__(self) -> None:
        if self.alias is None:
            object.__setattr__(self, "alias", self.name)


# ---------------------------------------------------------------- patterns


@dataclass
class CasePattern:
    tag: tuple[str, Span]
    pattern: LetPattern


@dataclass
class RecordPattern:
    type_params: list[TypeParam]
    fields: list[tuple[tuple[str, Span], LetPattern]]
    span: Span


@dataclass
class VarPattern:
    name: Optional[str]
    span: Span
    type_expr: Optional[STypeExpr] = None


LetPattern = Union[CasePattern, RecordPattern, VarPattern]

# ------------------------------------------------------------ field types


@dataclass
class ImmField:
    ty: STypeExpr


@dataclass
class RWSameField:
    ty: STypeExpr


@dataclass
class RWPairField:
    read: STypeExpr
    write: STypeExpr


FieldTypeDecl = Union[ImmField, RWSameField, RWPairField]

# -------------------------------------------------------- type expressions


@dataclass
class BotType:
    pass


@dataclass
class CaseType:
    cases: list[tuple[tuple[str, Span], STypeExpr]]


@dataclass
class FuncType:
    arg: STypeExpr
    ret: STypeExpr


@dataclass
class HoleType:
    pass


@dataclass
class IdentType:
    name: str


@dataclass
class PolyType:
    params: list[TypeParam]
    body: STypeExpr
    kind: PolyKind


@dataclass
class RecordType:
    fields: list[tuple[tuple[str, Span], FieldTypeDecl]]


@dataclass
class RecursiveDefType:
    name: str
    body: STypeExpr


@dataclass
class TopType:
    pass


@dataclass
class VarJoinType:
    kind: JoinKind
    children: list[STypeExpr]


@dataclass
class TypeRefType:
    name: tuple[str, Span]
    args: list[STypeExpr]
    span: Span


@dataclass
class ContainerType:
    name: str
    args: list[STypeExpr]


TypeExpr = Union[
    BotType,
    CaseType,
    FuncType,
    HoleType,
    IdentType,
    PolyType,
    RecordType,
    RecursiveDefType,
    TopType,
    VarJoinType,
    TypeRefType,
    ContainerType,
]
STypeExpr = tuple[TypeExpr, Span]

# -------------------------------------------------------------- statements


@dataclass
class EmptyStatement:
    pass


@dataclass
class ExprStatement:
    expr: SExpr


@dataclass
class LetDefStatement:
    pattern: LetPattern
    expr: SExpr


@dataclass
class LetRecDefStatement:
    defs: list[tuple[str, SExpr]]


@dataclass
class PrintlnStatement:
    args: list[SExpr]


@dataclass
class ImportStatement:
    path: tuple[str, Span]


@dataclass
class TypeDefStatement:
    params: list[tuple[str, Span]]
    type_expr: TypeExpr
    span: Span


Statement = Union[
    EmptyStatement,
    ExprStatement,
    LetDefStatement,
    LetRecDefStatement,
    PrintlnStatement,
    ImportStatement,
    TypeDefStatement,
]

# ------------------------------------------------------------- expressions


@dataclass
class BinOpExpr:
    lhs: SExpr
    rhs: SExpr
    op_type: OpType
    op: Op


@dataclass
class BlockExpr:
    statements: list[Statement]
    expr: SExpr


@dataclass
class CallExpr:
    func: SExpr
    arg: SExpr
    eval_arg_first: bool


@dataclass
class CaseExpr:
    tag: tuple[str, Span]
    expr: SExpr


@dataclass
class FieldAccessExpr:
    expr: SExpr
    field: tuple[str, Span]


@dataclass
class FieldSetExpr:
    expr: SExpr
    field: tuple[str, Span]
    value: SExpr


@dataclass
class FuncDefExpr:
    type_params: Optional[list[TypeParam]]
    param: tuple[LetPattern, Span]
    return_type: Optional[STypeExpr]
    body: SExpr


@dataclass
class IfExpr:
    cond: tuple[SExpr, Span]
    then_expr: SExpr
    else_expr: SExpr


@dataclass
class InstantiateExistExpr:
    expr: SExpr
    types: tuple[list[tuple[str, STypeExpr]], Span]
    source: InstantiateSourceKind


@dataclass
class InstantiateUniExpr:
    expr: SExpr
    types: tuple[list[tuple[str, STypeExpr]], Span]
    source: InstantiateSourceKind


@dataclass
class LiteralExpr:
    lit_type: Literal
    value: tuple[str, Span]


@dataclass
class LoopExpr:
    body: SExpr


@dataclass
class MatchExpr:
    expr: tuple[SExpr, Span]
    cases: list[tuple[tuple[LetPattern, Span], SExpr]]


# A record field: (name, value, is_mutable, optional type annotation).
KeyPair = tuple[tuple[str, Span], "SExpr", bool, Optional[STypeExpr]]


@dataclass
class RecordExpr:
    fields: list[KeyPair]


@dataclass
class TypedExpr:
    expr: SExpr
    type_expr: STypeExpr


@dataclass
class VariableExpr:
    name: str


@dataclass
class ArrayExpr:
    kind: str
    items: list[SExpr]


@dataclass
class DictExpr:
    kind: str
    items: list[tuple[SExpr, SExpr]]


Expr = Union[
    BinOpExpr,
    BlockExpr,
    CallExpr,
    CaseExpr,
    FieldAccessExpr,
    FieldSetExpr,
    FuncDefExpr,
    IfExpr,
    InstantiateExistExpr,
    InstantiateUniExpr,
    LiteralExpr,
    LoopExpr,
    MatchExpr,
    RecordExpr,
    TypedExpr,
    VariableExpr,
    ArrayExpr,
    DictExpr,
]
SExpr = tuple[Expr, Span]

# --------------------------------------------------------------- builders


def _tuple_field_name(i: int) -> str:
    return f"_{i}"


def _require_nonempty(vals: list, what: str) -> None:
    if not vals:
        raise ValueError(f"{what} needs at least one element")


def make_tuple_expr(vals: list[SExpr]) -> Expr:
    """Build a tuple expression; a single element stands for itself."""
    _require_nonempty(vals, "tuple expression")
    if len(vals) == 1:
        return vals[0][0]
    fields = [
        ((_tuple_field_name(i), span), (expr, span), False, None)
        for i, (expr, span) in enumerate(vals)
    ]
    return RecordExpr(fields)


def make_tuple_pattern(vals: list[tuple[LetPattern, Span]], full_span: Span) -> LetPattern:
    """Build a tuple pattern; a single element stands for itself."""
    _require_nonempty(vals, "tuple pattern")
    if len(vals) == 1:
        return vals[0][0]
    fields = [((_tuple_field_name(i), span), pat) for i, (pat, span) in enumerate(vals)]
    return RecordPattern([], fields, full_span)


def make_tuple_type(vals: list[STypeExpr]) -> TypeExpr:
    """Build a tuple type as a record of immutable fields."""
    _require_nonempty(vals, "tuple type")
    if len(vals) == 1:
        return vals[0][0]
    fields = [
        ((_tuple_field_name(i), span), ImmField((ty, span)))
        for i, (ty, span) in enumerate(vals)
    ]
    return RecordType(fields)


def make_join_ast(kind: JoinKind, children: list[STypeExpr]) -> TypeExpr:
    """Build a union or intersection type; a single child stands for itself."""
    _require_nonempty(children, "join type")
    if len(children) == 1:
        return children[0][0]
    return VarJoinType(kind, children)


def make_call(func: SExpr, arg: SExpr, eval_arg_first: bool) -> CallExpr:
    """Build a call, wrapping the callee in an implicit universal instantiation."""
    if not isinstance(func[0], InstantiateUniExpr):
        span = func[1]
        func = (
            InstantiateUniExpr(func, ([], span), InstantiateSourceKind.implicit_call()),
            span,
        )
    return CallExpr(func, arg, eval_arg_first)