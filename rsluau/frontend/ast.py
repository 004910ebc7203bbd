"""Source AST: parse-time node definitions for the Rust-like dialect.

Nodes are frozen and hold their children in tuples. The union aliases at
the end of each section are the closed variant sets that lowering
dispatches over.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


# ============================================================
# POSITION
# ============================================================


@dataclass(frozen=True)
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


# ============================================================
# TYPES
# ============================================================


@dataclass(frozen=True)
class NamedType:
    """Name<Args...>. generic_args is empty for a bare name."""

    pos: Pos
    name: Identifier
    generic_args: tuple[TypeDef, ...]


@dataclass(frozen=True)
class TupleType:
    """(T, U, ...). Zero elements is the unit type ()."""

    pos: Pos
    tuple_args: tuple[TypeDef, ...]


TypeDef = Union[NamedType, TupleType]


# ============================================================
# LOCALS
# ============================================================


@dataclass(frozen=True)
class VarDef:
    """name: Type. typ is None when the annotation is omitted."""

    pos: Pos
    name: str
    typ: TypeDef | None


@dataclass(frozen=True)
class FuncDef:
    """fn name(params) -> ret."""

    pos: Pos
    name: str
    params: tuple[VarDef, ...]
    return_type: TypeDef | None


Local = Union[VarDef, FuncDef]


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass(frozen=True)
class Number:
    """Numeric literal, raw text as scanned (suffixes included)."""

    pos: Pos
    value: str


@dataclass(frozen=True)
class String:
    """String literal. value is the raw body between the quotes."""

    pos: Pos
    value: str
    quote: str


@dataclass(frozen=True)
class Identifier:
    pos: Pos
    name: str


@dataclass(frozen=True)
class BinaryExpression:
    """left op right. op is the assembled operator text ("&&", "<<", "..")."""

    pos: Pos
    left: Expression
    op: str
    right: Expression


@dataclass(frozen=True)
class UnaryExpression:
    """Prefix op: -, !, +, & (borrow), * (dereference)."""

    pos: Pos
    op: str
    operand: Expression


@dataclass(frozen=True)
class Grouping:
    """(inner)."""

    pos: Pos
    inner: Expression


@dataclass(frozen=True)
class FunctionCall:
    pos: Pos
    callee: Expression
    args: tuple[Expression, ...]


@dataclass(frozen=True)
class ArrayLiteral:
    pos: Pos
    elements: tuple[Expression, ...]


@dataclass(frozen=True)
class MatchCase:
    """pattern => body. The pattern is an ordinary expression; `_` is the wildcard."""

    pos: Pos
    pattern: Expression
    body: tuple[Statement, ...]


@dataclass(frozen=True)
class MatchExpression:
    pos: Pos
    scrutinee: Expression
    cases: tuple[MatchCase, ...]


@dataclass(frozen=True)
class MemberExpression:
    """object.property."""

    pos: Pos
    object: Expression
    property: str


@dataclass(frozen=True)
class FieldExpression:
    """object[index]."""

    pos: Pos
    object: Expression
    index: Expression


@dataclass(frozen=True)
class PathExpression:
    """object::property."""

    pos: Pos
    object: Expression
    property: str


@dataclass(frozen=True)
class ClosureExpression:
    """|params| { body }."""

    pos: Pos
    params: tuple[VarDef, ...]
    body: tuple[Statement, ...]


@dataclass(frozen=True)
class Unknown:
    """Placeholder for an expression that failed to parse.

    The parser raises instead of recovering, so only hand-built trees carry
    one. Lowering rejects it.
    """

    pos: Pos


Expression = Union[
    Number,
    String,
    Identifier,
    BinaryExpression,
    UnaryExpression,
    Grouping,
    FunctionCall,
    ArrayLiteral,
    MatchExpression,
    MemberExpression,
    FieldExpression,
    PathExpression,
    ClosureExpression,
    Unknown,
]


# ============================================================
# STATEMENTS
# ============================================================


@dataclass(frozen=True)
class Assignment:
    """let [mut] name[: Type] = value;"""

    pos: Pos
    locals: tuple[VarDef, ...]
    values: tuple[Expression, ...]
    mutable: bool


@dataclass(frozen=True)
class ReAssignment:
    """target = value; target is an identifier or another place expression."""

    pos: Pos
    local: Expression
    value: Expression


@dataclass(frozen=True)
class IfStatement:
    """if cond { } [else if ...] [else { }].

    At most one of else_if and else_body is set.
    """

    pos: Pos
    condition: Expression
    true_body: tuple[Statement, ...]
    else_if: IfStatement | None
    else_body: tuple[Statement, ...] | None


@dataclass(frozen=True)
class ReturnStatement:
    """return values; implicit marks a tail expression without ';'."""

    pos: Pos
    implicit: bool
    values: tuple[Expression, ...]


@dataclass(frozen=True)
class ExpressionStatement:
    pos: Pos
    expr: Expression


@dataclass(frozen=True)
class FunctionDeclaration:
    pos: Pos
    func_def: FuncDef
    body: tuple[Statement, ...]


@dataclass(frozen=True)
class EnumDeclaration:
    """enum Name { A, B, C }."""

    pos: Pos
    name: str
    members: tuple[str, ...]


@dataclass(frozen=True)
class CommentStatement:
    """A comment found at statement position. text excludes the markers."""

    pos: Pos
    text: str


Statement = Union[
    Assignment,
    ReAssignment,
    IfStatement,
    ReturnStatement,
    ExpressionStatement,
    FunctionDeclaration,
    EnumDeclaration,
    CommentStatement,
]

# A brace-delimited statement list.
Chunk = tuple[Statement, ...]


@dataclass(frozen=True)
class Program:
    """Top-level statement list."""

    statements: tuple[Statement, ...]
