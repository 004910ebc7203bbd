"""Luau IR - the target tree produced by lowering and consumed by the writer.

Architecture:
    Source -> tokens -> source AST -> Lowering -> [IR] -> Writer -> Luau text

Every node is frozen. Lowering builds a fresh IR graph and never reuses a
source node. Each category (types, statements, expressions) is a closed set;
the union aliases at the end of each section list its members.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


# ============================================================
# SOURCE LOCATIONS
# ============================================================


@dataclass(frozen=True)
class Loc:
    """Source location carried over from the source node.

    Invariants:
    - line >= 1 for valid locations (0 indicates synthesized code)
    - col is 1-indexed
    """

    line: int
    col: int


def loc_unknown() -> Loc:
    """Factory for synthesized nodes with no source counterpart."""
    return Loc(0, 0)


# ============================================================
# TYPES
#
# Luau type annotations. Lowering maps source type names through the
# binding tables; unmapped names are carried over verbatim.
# ============================================================


@dataclass(frozen=True)
class TypeRef:
    """Named type with optional generic arguments: number, Foo<T>."""

    name: str
    args: list[LuauType] = field(default_factory=list)


@dataclass(frozen=True)
class ArrayType:
    """{T}"""

    element: LuauType


@dataclass(frozen=True)
class MapType:
    """{[K]: V}"""

    key: LuauType
    value: LuauType


@dataclass(frozen=True)
class OptionalType:
    """T?"""

    inner: LuauType


@dataclass(frozen=True)
class TupleType:
    """(A, B). Zero elements is the empty pack ()."""

    elements: list[LuauType]


LuauType = Union[TypeRef, ArrayType, MapType, OptionalType, TupleType]


# ============================================================
# LOCALS
# ============================================================


@dataclass(frozen=True)
class VarDef:
    """name[: typ] in a local declaration or parameter list."""

    name: str
    typ: LuauType | None = None


@dataclass(frozen=True)
class FuncDef:
    """Function signature: name(params): return_type."""

    name: str
    params: list[VarDef]
    return_type: LuauType | None = None


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass(frozen=True, kw_only=True)
class Expr:
    """Base for all expressions. Abstract."""

    loc: Loc = field(default_factory=loc_unknown)


@dataclass(frozen=True)
class Number(Expr):
    """Numeric literal, text already valid Luau."""

    value: str


@dataclass(frozen=True)
class Nil(Expr):
    """nil"""


@dataclass(frozen=True)
class String(Expr):
    """String literal. value is the body between quotes, escapes untouched."""

    value: str
    quote: str = '"'


@dataclass(frozen=True)
class Name(Expr):
    """Identifier reference."""

    name: str


@dataclass(frozen=True)
class BinaryOp(Expr):
    """left op right.

    op is Luau spelling except for '!=', which the writer renders as '~='.
    Logical operators are 'and'/'or'; bitwise operators never appear here.
    """

    left: Expr
    op: str
    right: Expr


@dataclass(frozen=True)
class UnaryOp(Expr):
    """op operand. op is '-' or 'not'.

    '&' and '*' are rejected by validation and by the writer.
    """

    op: str
    operand: Expr


@dataclass(frozen=True)
class Call(Expr):
    """callee(args)"""

    callee: Expr
    args: list[Expr]


@dataclass(frozen=True)
class NameCall(Expr):
    """receiver:method(args), Luau's native method dispatch."""

    receiver: Expr
    method: str
    args: list[Expr]


@dataclass(frozen=True)
class Closure(Expr):
    """function(params) body end"""

    params: list[VarDef]
    body: list[Stmt]


@dataclass(frozen=True)
class Member(Expr):
    """object.property"""

    object: Expr
    property: str


@dataclass(frozen=True)
class Index(Expr):
    """object[index]"""

    object: Expr
    index: Expr


@dataclass(frozen=True)
class DictEntry:
    key: str
    value: Expr


@dataclass(frozen=True)
class Dictionary(Expr):
    """{key = value, ...} in declaration order."""

    entries: list[DictEntry]


@dataclass(frozen=True)
class Table(Expr):
    """Array-style table constructor: {a, b, c}."""

    elements: list[Expr]


@dataclass(frozen=True)
class Grouped(Expr):
    """(inner), kept so source parentheses survive into the output."""

    inner: Expr


Expression = Union[
    Number,
    Nil,
    String,
    Name,
    BinaryOp,
    UnaryOp,
    Call,
    NameCall,
    Closure,
    Member,
    Index,
    Dictionary,
    Table,
    Grouped,
]


# ============================================================
# STATEMENTS
# ============================================================


@dataclass(frozen=True, kw_only=True)
class Stmt:
    """Base for all statements. Abstract."""

    loc: Loc = field(default_factory=loc_unknown)


@dataclass(frozen=True)
class LocalAssign(Stmt):
    """local a: T, b = x, y"""

    names: list[VarDef]
    values: list[Expr]


@dataclass(frozen=True)
class Assign(Stmt):
    """a.b, c[i] = x, y. Targets are Name, Member or Index."""

    targets: list[Expr]
    values: list[Expr]


@dataclass(frozen=True)
class If(Stmt):
    """if cond then body [elseif ...] [else ...] end

    At most one of else_if and else_body is set. The writer flattens the
    else_if chain into elseif clauses.
    """

    condition: Expr
    body: list[Stmt]
    else_if: If | None = None
    else_body: list[Stmt] | None = None


@dataclass(frozen=True)
class ExprStmt(Stmt):
    """Expression evaluated for effect. Luau accepts only calls here."""

    expr: Expr


@dataclass(frozen=True)
class Return(Stmt):
    values: list[Expr]


@dataclass(frozen=True)
class FunctionDecl(Stmt):
    """[local] function name(params): T body end"""

    func_def: FuncDef
    body: list[Stmt]
    is_local: bool = False


@dataclass(frozen=True)
class Comment(Stmt):
    """-- text. Multi-line text is written as a block comment."""

    text: str


Statement = Union[LocalAssign, Assign, If, ExprStmt, Return, FunctionDecl, Comment]


@dataclass(frozen=True)
class Module:
    """A lowered compilation unit."""

    statements: list[Stmt]
