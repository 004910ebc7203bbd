"""Luau writer: IR -> Luau source text.

Conventions:
- four-space indentation, no statement terminators
- a ';' guard before a statement that starts with '(' (call ambiguity)
- binary operands parenthesised from the Luau precedence table
- a return that is not last in its block is wrapped in do ... end
- helper functions are prepended only when used
"""

from __future__ import annotations

from ..errors import SemanticError
from ..ir import (
    ArrayType,
    Assign,
    BinaryOp,
    Call,
    Closure,
    Comment,
    Dictionary,
    Expr,
    ExprStmt,
    FunctionDecl,
    Grouped,
    If,
    Index,
    LocalAssign,
    LuauType,
    MapType,
    Member,
    Module,
    Name,
    NameCall,
    Nil,
    Number,
    OptionalType,
    Return,
    Stmt,
    String,
    Table,
    TupleType,
    TypeRef,
    UnaryOp,
    VarDef,
)
from .util import Emitter

_LUAU_KEYWORDS = frozenset(
    {
        "and",
        "break",
        "do",
        "else",
        "elseif",
        "end",
        "false",
        "for",
        "function",
        "if",
        "in",
        "local",
        "nil",
        "not",
        "or",
        "repeat",
        "return",
        "then",
        "true",
        "until",
        "while",
    }
)

# Names that keep their meaning when used as identifiers.
_LITERAL_NAMES = frozenset({"true", "false", "nil"})


def _range_helper(name: str) -> list[str]:
    """Half-open integer range as an array: name(first, last) -> {first..last-1}."""
    return [
        "local function " + name + "(first, last)",
        "    local result = {}",
        "    for i = first, last - 1 do",
        "        result[#result + 1] = i",
        "    end",
        "    return result",
        "end",
        "",
    ]


def _safe_name(name: str) -> str:
    """Rename identifiers that collide with Luau reserved words."""
    if name in _LUAU_KEYWORDS and name not in _LITERAL_NAMES:
        return name + "_"
    return name


def _is_prefix_expr(expr: Expr) -> bool:
    """Luau prefixexp: can be called, indexed or method-called without parens."""
    return isinstance(expr, (Name, Member, Index, Call, NameCall, Grouped))


class LuauWriter(Emitter):
    """Emit Luau source from an IR Module."""

    def __init__(self, range_helper: str = "_range") -> None:
        super().__init__("    ")
        self.range_helper: str = range_helper
        self._needed_helpers: set[str] = set()
        self._needs_paren_guard = False

    def write(self, module: Module) -> str:
        self.indent = 0
        self.lines = []
        self._needed_helpers = set()
        self._needs_paren_guard = False
        prev: Stmt | None = None
        last = len(module.statements) - 1
        for i, stmt in enumerate(module.statements):
            if prev is not None and (
                isinstance(prev, FunctionDecl) or isinstance(stmt, FunctionDecl)
            ):
                self.line()
            self._emit_stmt(stmt, i == last)
            prev = stmt
        self.lines = self._build_preamble() + self.lines
        if not self.lines:
            return ""
        return self.output() + "\n"

    def _build_preamble(self) -> list[str]:
        lines: list[str] = []
        if self.range_helper in self._needed_helpers:
            lines.extend(_range_helper(self.range_helper))
        return lines

    # ── Statements ───────────────────────────────────────────

    def _emit_block(self, stmts: list[Stmt]) -> None:
        self.indent += 1
        self._needs_paren_guard = False
        last = len(stmts) - 1
        for i, stmt in enumerate(stmts):
            self._emit_stmt(stmt, i == last)
        self.indent -= 1

    def _emit_simple(self, text: str) -> None:
        if text.startswith("(") and self._needs_paren_guard:
            text = ";" + text
        self.line(text)
        self._needs_paren_guard = True

    def _emit_stmt(self, stmt: Stmt, is_last: bool = True) -> None:
        match stmt:
            case LocalAssign(names=names, values=values):
                targets = ", ".join(self._var_def(n) for n in names)
                if values:
                    self._emit_simple("local " + targets + " = " + self._exprs(values))
                else:
                    self._emit_simple("local " + targets)
            case Assign(targets=targets, values=values):
                self._emit_simple(self._exprs(targets) + " = " + self._exprs(values))
            case If():
                self._emit_if(stmt)
            case ExprStmt(expr=expr):
                self._emit_simple(self._expr(expr))
            case Return(values=values):
                text = "return " + self._exprs(values) if values else "return"
                if not is_last:
                    # return must close its block; dead code may follow
                    text = "do " + text + " end"
                self._emit_simple(text)
            case FunctionDecl(func_def=func_def, body=body, is_local=is_local):
                keyword = "local function " if is_local else "function "
                sig = keyword + _safe_name(func_def.name) + self._signature(
                    func_def.params, func_def.return_type
                )
                self.line(sig)
                self._emit_block(body)
                self.line("end")
                self._needs_paren_guard = True
            case Comment(text=text):
                self._emit_comment(text)
            case _:
                raise NotImplementedError("unknown statement: " + type(stmt).__name__)

    def _emit_if(self, stmt: If) -> None:
        self.line("if " + self._expr(stmt.condition) + " then")
        self._emit_block(stmt.body)
        current = stmt.else_if
        final_else = stmt.else_body
        while current is not None:
            self.line("elseif " + self._expr(current.condition) + " then")
            self._emit_block(current.body)
            final_else = current.else_body
            current = current.else_if
        if final_else is not None:
            self.line("else")
            self._emit_block(final_else)
        self.line("end")
        self._needs_paren_guard = True

    def _emit_comment(self, text: str) -> None:
        if "\n" not in text:
            self.line("--" + text)
            return
        level = ""
        while "]" + level + "]" in text:
            level += "="
        self.line("--[" + level + "[" + text + "]" + level + "]")

    def _signature(self, params: list[VarDef], return_type: LuauType | None) -> str:
        text = "(" + ", ".join(self._var_def(p) for p in params) + ")"
        if return_type is not None:
            text += ": " + self._type(return_type)
        return text

    def _var_def(self, var: VarDef) -> str:
        if var.typ is None:
            return _safe_name(var.name)
        return _safe_name(var.name) + ": " + self._type(var.typ)

    # ── Types ────────────────────────────────────────────────

    def _type(self, typ: LuauType) -> str:
        match typ:
            case TypeRef(name=name, args=args):
                if args:
                    return name + "<" + ", ".join(self._type(a) for a in args) + ">"
                return name
            case ArrayType(element=element):
                return "{" + self._type(element) + "}"
            case MapType(key=key, value=value):
                return "{[" + self._type(key) + "]: " + self._type(value) + "}"
            case OptionalType(inner=inner):
                return self._type(inner) + "?"
            case TupleType(elements=elements):
                return "(" + ", ".join(self._type(e) for e in elements) + ")"
        raise NotImplementedError("unknown type: " + type(typ).__name__)

    # ── Expressions ──────────────────────────────────────────

    def _exprs(self, exprs: list[Expr]) -> str:
        return ", ".join(self._expr(e) for e in exprs)

    def _prefix(self, expr: Expr) -> str:
        """Render expr in a position that requires a Luau prefixexp."""
        text = self._expr(expr)
        if _is_prefix_expr(expr):
            return text
        return "(" + text + ")"

    def _expr(self, expr: Expr) -> str:
        match expr:
            case Number(value=value):
                return value
            case Nil():
                return "nil"
            case String(value=value, quote=quote):
                return quote + value.replace("\r", "\\r").replace("\n", "\\n") + quote
            case Name(name=name):
                return _safe_name(name)
            case BinaryOp(left=left, op=op, right=right):
                lua_op = _binary_op(op)
                return (
                    self._maybe_paren(left, lua_op, True)
                    + " "
                    + lua_op
                    + " "
                    + self._maybe_paren(right, lua_op, False)
                )
            case UnaryOp(op=op, operand=operand):
                if op == "&" or op == "*":
                    raise SemanticError(
                        "cannot reference or dereference values",
                        expr.loc.line,
                        expr.loc.col,
                    )
                inner = self._expr(operand)
                if isinstance(operand, BinaryOp) or inner.startswith("-"):
                    inner = "(" + inner + ")"
                return _unary_op(op) + inner
            case Call(callee=callee, args=args):
                if isinstance(callee, Name) and callee.name == self.range_helper:
                    self._needed_helpers.add(self.range_helper)
                return self._prefix(callee) + "(" + self._exprs(args) + ")"
            case NameCall(receiver=receiver, method=method, args=args):
                return (
                    self._prefix(receiver) + ":" + method + "(" + self._exprs(args) + ")"
                )
            case Closure(params=params, body=body):
                return self._closure(params, body)
            case Member(object=obj, property=prop):
                if prop in _LUAU_KEYWORDS:
                    return self._prefix(obj) + '["' + prop + '"]'
                return self._prefix(obj) + "." + prop
            case Index(object=obj, index=index):
                return self._prefix(obj) + "[" + self._expr(index) + "]"
            case Dictionary(entries=entries):
                parts = []
                for entry in entries:
                    key = entry.key
                    if key in _LUAU_KEYWORDS:
                        key = '["' + key + '"]'
                    parts.append(key + " = " + self._expr(entry.value))
                return "{" + ", ".join(parts) + "}"
            case Table(elements=elements):
                return "{" + self._exprs(elements) + "}"
            case Grouped(inner=inner):
                return "(" + self._expr(inner) + ")"
        raise NotImplementedError("unknown expression: " + type(expr).__name__)

    def _closure(self, params: list[VarDef], body: list[Stmt]) -> str:
        head = "function" + self._signature(params, None)
        if not body:
            return head + " end"
        guard = self._needs_paren_guard
        saved = self.capture_start()
        self._emit_block(body)
        captured = self.capture_end(saved)
        self._needs_paren_guard = guard
        return head + "\n" + "\n".join(captured) + "\n" + self.prefix() + "end"

    def _maybe_paren(self, expr: Expr, parent_op: str, is_left: bool) -> str:
        """Wrap expression in parens if needed for operator precedence."""
        match expr:
            case BinaryOp(op=child_op):
                if _needs_parens(_binary_op(child_op), parent_op, is_left):
                    return "(" + self._expr(expr) + ")"
            case UnaryOp():
                # unary binds looser than ^ only
                if parent_op == "^" and is_left:
                    return "(" + self._expr(expr) + ")"
        return self._expr(expr)


def _binary_op(op: str) -> str:
    match op:
        case "&&":
            return "and"
        case "||":
            return "or"
        case "!=":
            return "~="
        case _:
            return op


def _unary_op(op: str) -> str:
    match op:
        case "not" | "!":
            return "not "
        case _:
            return op


_PRECEDENCE = {
    "or": 1,
    "and": 2,
    "==": 3,
    "~=": 3,
    "<": 3,
    ">": 3,
    "<=": 3,
    ">=": 3,
    "..": 4,
    "+": 5,
    "-": 5,
    "*": 6,
    "/": 6,
    "//": 6,
    "%": 6,
    "^": 8,
}


def _needs_parens(child_op: str, parent_op: str, is_left: bool) -> bool:
    """Determine if a child binary op needs parens inside a parent binary op."""
    child_prec = _PRECEDENCE.get(child_op, 0)
    parent_prec = _PRECEDENCE.get(parent_op, 0)
    if child_prec < parent_prec:
        return True
    if child_prec == parent_prec and not is_left:
        return not (child_op == parent_op and child_op in ("and", "or"))
    return False


def write(module: Module, range_helper: str = "_range") -> str:
    """Render a lowered Module as Luau source text."""
    return LuauWriter(range_helper).write(module)
