"""Lowering: source AST -> Luau IR, followed by a validation pass.

lower() is a pure function of (program, config, tables). The Lowerer
instance it creates lives for a single call.
"""

from __future__ import annotations

import re

import structlog

from .. import ir
from ..config import DEFAULT_CONFIG, Config
from ..errors import MissingMainError, SemanticError
from . import ast
from .bindings import DEFAULT_BINDINGS, BindingTables

logger = structlog.get_logger()

BORROW_ERROR = "cannot reference or dereference values"

# Local that holds a non-trivial match scrutinee inside the synthetic closure.
MATCH_SUBJECT = "__match"

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INT_SUFFIX_RE = re.compile(r"[iu](?:8|16|32|64|128|size)$")
_FLOAT_SUFFIX_RE = re.compile(r"f(?:32|64)$")


def loc_from_pos(pos: ast.Pos) -> ir.Loc:
    return ir.Loc(pos.line, pos.col)


def lower_number_literal(text: str) -> str:
    """Rewrite a numeric literal into Luau syntax.

    Type suffixes are stripped and 0o octal becomes decimal. Hex, binary,
    underscores and exponents are valid Luau and kept as written. A run the
    lexer flagged as malformed is passed through unchanged.
    """
    is_hex = text[:2] in ("0x", "0X")
    stripped = _INT_SUFFIX_RE.sub("", text)
    if not is_hex and stripped == text:
        stripped = _FLOAT_SUFFIX_RE.sub("", text)
    if stripped == "":
        return text
    if stripped.startswith("0o"):
        digits = stripped[2:].replace("_", "")
        if digits != "" and all(c in "01234567" for c in digits):
            return str(int(digits, 8))
    return stripped


def _dotted(name: str, loc: ir.Loc) -> ir.Expr:
    """bit32.band -> Member(Name(bit32), band)."""
    parts = name.split(".")
    expr: ir.Expr = ir.Name(parts[0], loc=loc)
    for part in parts[1:]:
        expr = ir.Member(expr, part, loc=loc)
    return expr


def _is_wildcard(pattern: ast.Expression) -> bool:
    return isinstance(pattern, ast.Identifier) and pattern.name == "_"


def _is_atomic(expr: ir.Expr) -> bool:
    """True when expr never needs parentheses as an operand."""
    return isinstance(
        expr,
        (
            ir.Name,
            ir.Number,
            ir.String,
            ir.Nil,
            ir.Member,
            ir.Index,
            ir.Call,
            ir.NameCall,
            ir.Grouped,
        ),
    )


class Lowerer:
    """Translates one Program. Holds only per-call state."""

    def __init__(self, config: Config, tables: BindingTables):
        self.config: Config = config
        self.tables: BindingTables = tables
        # function/closure nesting depth; nested fn declarations become local
        self.depth: int = 0

    def lower_program(self, program: ast.Program) -> ir.Module:
        if self.config.use_roblox_bindings:
            logger.debug("inert_flag", flag="use_roblox_bindings")
        if self.config.fold_constants:
            logger.debug("inert_flag", flag="fold_constants")
        statements = self.lower_block(program.statements)
        if self.config.use_main_func_export:
            call = self._main_call(statements)
            # a chunk-level return must stay the last statement
            if statements and isinstance(statements[-1], ir.Return):
                statements.insert(len(statements) - 1, call)
            else:
                statements.append(call)
        return ir.Module(statements)

    def _main_call(self, statements: list[ir.Stmt]) -> ir.Stmt:
        for stmt in statements:
            if isinstance(stmt, ir.FunctionDecl) and stmt.func_def.name == "main":
                return ir.ExprStmt(ir.Call(ir.Name("main"), []))
        raise MissingMainError(
            "main export requested but no function named 'main' is declared"
        )

    # ── Statements ───────────────────────────────────────────

    def lower_block(self, stmts: ast.Chunk) -> list[ir.Stmt]:
        return [self.lower_stmt(stmt) for stmt in stmts]

    def lower_stmt(self, stmt: ast.Statement) -> ir.Stmt:
        loc = loc_from_pos(stmt.pos)
        match stmt:
            case ast.Assignment(locals=names, values=values):
                return ir.LocalAssign(
                    [self.lower_var_def(v) for v in names],
                    [self.lower_expr(v) for v in values],
                    loc=loc,
                )
            case ast.ReAssignment(local=target, value=value):
                return ir.Assign(
                    [self.lower_place(target)], [self.lower_expr(value)], loc=loc
                )
            case ast.IfStatement():
                return self.lower_stmt_If(stmt)
            case ast.ReturnStatement(values=values):
                return ir.Return([self.lower_expr(v) for v in values], loc=loc)
            case ast.ExpressionStatement(expr=expr):
                value = self.lower_expr(expr)
                if isinstance(value, (ir.Call, ir.NameCall)):
                    return ir.ExprStmt(value, loc=loc)
                # Luau only accepts calls in statement position
                return ir.LocalAssign([ir.VarDef("_")], [value], loc=loc)
            case ast.FunctionDeclaration():
                return self.lower_stmt_Function(stmt)
            case ast.EnumDeclaration():
                return self.lower_stmt_Enum(stmt)
            case ast.CommentStatement(text=text):
                return ir.Comment(text, loc=loc)
        raise SemanticError(
            "cannot lower " + type(stmt).__name__, stmt.pos.line, stmt.pos.col
        )

    def lower_place(self, target: ast.Expression) -> ir.Expr:
        value = self.lower_expr(target)
        if isinstance(value, (ir.Name, ir.Member, ir.Index)):
            return value
        if isinstance(value, ir.UnaryOp) and value.op in ("&", "*"):
            raise SemanticError(BORROW_ERROR, target.pos.line, target.pos.col)
        raise SemanticError(
            "invalid assignment target", target.pos.line, target.pos.col
        )

    def lower_stmt_If(self, stmt: ast.IfStatement) -> ir.If:
        condition = self.lower_expr(stmt.condition)
        body = self.lower_block(stmt.true_body)
        else_if: ir.If | None = None
        if stmt.else_if is not None:
            else_if = self.lower_stmt_If(stmt.else_if)
        else_body: list[ir.Stmt] | None = None
        if stmt.else_body is not None:
            else_body = self.lower_block(stmt.else_body)
        return ir.If(condition, body, else_if, else_body, loc=loc_from_pos(stmt.pos))

    def lower_stmt_Function(self, stmt: ast.FunctionDeclaration) -> ir.FunctionDecl:
        func_def = stmt.func_def
        params = [self.lower_var_def(p) for p in func_def.params]
        return_type: ir.LuauType | None = None
        if func_def.return_type is not None:
            return_type = self.lower_type(func_def.return_type)
            # -> () says nothing in Luau
            if isinstance(return_type, ir.TupleType) and not return_type.elements:
                return_type = None
        is_local = self.depth > 0
        self.depth += 1
        body = self.lower_block(stmt.body)
        self.depth -= 1
        return ir.FunctionDecl(
            ir.FuncDef(func_def.name, params, return_type),
            body,
            is_local,
            loc=loc_from_pos(stmt.pos),
        )

    def lower_stmt_Enum(self, stmt: ast.EnumDeclaration) -> ir.Assign:
        """enum Color { Red, Green } -> Color = {Red = 0, Green = 1}"""
        loc = loc_from_pos(stmt.pos)
        entries = [
            ir.DictEntry(member, ir.Number(str(i), loc=loc))
            for i, member in enumerate(stmt.members)
        ]
        return ir.Assign(
            [ir.Name(stmt.name, loc=loc)], [ir.Dictionary(entries, loc=loc)], loc=loc
        )

    # ── Locals and Types ─────────────────────────────────────

    def lower_var_def(self, var: ast.VarDef) -> ir.VarDef:
        if var.typ is None:
            return ir.VarDef(var.name)
        return ir.VarDef(var.name, self.lower_type(var.typ))

    def lower_type(self, typ: ast.TypeDef) -> ir.LuauType:
        if isinstance(typ, ast.TupleType):
            return ir.TupleType([self.lower_type(t) for t in typ.tuple_args])
        name = typ.name.name
        args = [self.lower_type(a) for a in typ.generic_args]
        if not self.config.use_luau_bindings:
            return ir.TypeRef(name, args)
        if not args and name in self.tables.types:
            return ir.TypeRef(self.tables.types[name])
        shape = self.tables.generic_types.get(name, "")
        if shape == "array" and len(args) == 1:
            return ir.ArrayType(args[0])
        if shape == "map" and len(args) == 2:
            return ir.MapType(args[0], args[1])
        if shape == "set" and len(args) == 1:
            return ir.MapType(args[0], ir.TypeRef("boolean"))
        if shape == "optional" and len(args) == 1:
            if isinstance(args[0], ir.OptionalType):
                return args[0]
            return ir.OptionalType(args[0])
        if shape == "wrapper" and len(args) == 1:
            return args[0]
        return ir.TypeRef(name, args)

    # ── Expressions ──────────────────────────────────────────

    def lower_expr(self, expr: ast.Expression) -> ir.Expr:
        loc = loc_from_pos(expr.pos)
        match expr:
            case ast.Number(value=value):
                return ir.Number(lower_number_literal(value), loc=loc)
            case ast.String(value=value, quote=quote):
                return ir.String(value, quote, loc=loc)
            case ast.Identifier(name=name):
                if name == "None" and self.config.use_luau_bindings:
                    return ir.Nil(loc=loc)
                return ir.Name(name, loc=loc)
            case ast.Grouping(inner=inner):
                return ir.Grouped(self.lower_expr(inner), loc=loc)
            case ast.BinaryExpression():
                return self.lower_expr_Binary(expr)
            case ast.UnaryExpression(op=op, operand=operand):
                value = self.lower_expr(operand)
                if op == "!":
                    return ir.UnaryOp("not", value, loc=loc)
                if op == "+":
                    return value
                # '-' passes through; '&' and '*' are caught by validate()
                return ir.UnaryOp(op, value, loc=loc)
            case ast.FunctionCall():
                return self.lower_expr_Call(expr)
            case ast.ArrayLiteral(elements=elements):
                return ir.Table([self.lower_expr(e) for e in elements], loc=loc)
            case ast.MatchExpression():
                return self.lower_expr_Match(expr)
            case ast.MemberExpression(object=obj, property=prop):
                return ir.Member(self.lower_expr(obj), prop, loc=loc)
            case ast.PathExpression(object=obj, property=prop):
                return ir.Member(self.lower_expr(obj), prop, loc=loc)
            case ast.FieldExpression(object=obj, index=index):
                return ir.Index(self.lower_expr(obj), self.lower_expr(index), loc=loc)
            case ast.ClosureExpression(params=params, body=body):
                lowered_params = [self.lower_var_def(p) for p in params]
                self.depth += 1
                lowered_body = self.lower_block(body)
                self.depth -= 1
                return ir.Closure(lowered_params, lowered_body, loc=loc)
        raise SemanticError(
            "cannot lower " + type(expr).__name__ + " expression",
            expr.pos.line,
            expr.pos.col,
        )

    def lower_expr_Binary(self, expr: ast.BinaryExpression) -> ir.Expr:
        loc = loc_from_pos(expr.pos)
        left = self.lower_expr(expr.left)
        right = self.lower_expr(expr.right)
        op = expr.op
        if op in self.tables.bitwise:
            return ir.Call(_dotted(self.tables.bitwise[op], loc), [left, right], loc=loc)
        if op == "..":
            return ir.Call(
                ir.Name(self.tables.range_constructor, loc=loc), [left, right], loc=loc
            )
        if op == "&&":
            return ir.BinaryOp(left, "and", right, loc=loc)
        if op == "||":
            return ir.BinaryOp(left, "or", right, loc=loc)
        return ir.BinaryOp(left, op, right, loc=loc)

    def lower_expr_Call(self, expr: ast.FunctionCall) -> ir.Expr:
        loc = loc_from_pos(expr.pos)
        callee = expr.callee
        if self.config.use_luau_bindings:
            if isinstance(callee, ast.Identifier):
                if callee.name == self.tables.method_call_sentinel:
                    return self.lower_name_call(expr)
                target = self.tables.functions.get(callee.name)
                if target is not None:
                    args = [self.lower_expr(a) for a in expr.args]
                    return ir.Call(_dotted(target, loc), args, loc=loc)
            if (
                isinstance(callee, ast.MemberExpression)
                and isinstance(callee.object, ast.String)
                and callee.property in self.tables.string_methods
            ):
                target = self.tables.string_methods[callee.property]
                receiver = self.lower_expr(callee.object)
                args = [self.lower_expr(a) for a in expr.args]
                return ir.Call(_dotted(target, loc), [receiver] + args, loc=loc)
        args = [self.lower_expr(a) for a in expr.args]
        return ir.Call(self.lower_expr(callee), args, loc=loc)

    def lower_name_call(self, expr: ast.FunctionCall) -> ir.NameCall:
        """__namecall(receiver, "method", args...) -> receiver:method(args...)"""
        sentinel = self.tables.method_call_sentinel
        if len(expr.args) < 2:
            raise SemanticError(
                sentinel + " expects a receiver and a method name",
                expr.pos.line,
                expr.pos.col,
            )
        method_arg = expr.args[1]
        if isinstance(method_arg, ast.String):
            method = method_arg.value
        elif isinstance(method_arg, ast.Identifier):
            method = method_arg.name
        else:
            raise SemanticError(
                sentinel + " method name must be a string or identifier",
                method_arg.pos.line,
                method_arg.pos.col,
            )
        if _IDENT_RE.fullmatch(method) is None:
            raise SemanticError(
                "invalid method name '" + method + "'",
                method_arg.pos.line,
                method_arg.pos.col,
            )
        receiver = self.lower_expr(expr.args[0])
        args = [self.lower_expr(a) for a in expr.args[2:]]
        return ir.NameCall(receiver, method, args, loc=loc_from_pos(expr.pos))

    def lower_expr_Match(self, expr: ast.MatchExpression) -> ir.Call:
        """match x { 1 => a, _ => b } -> (function() if x == 1 then ... end)()

        Arms are tested in source order. The wildcard arm becomes the final
        else; arms after it can never run and are dropped.

        Arm bodies run inside the synthetic closure, so `return v` in an arm
        yields v as the value of the match. It does not return from the
        enclosing function.
        """
        loc = loc_from_pos(expr.pos)
        self.depth += 1
        body: list[ir.Stmt] = []
        subject = self.lower_expr(expr.scrutinee)
        if not isinstance(expr.scrutinee, (ast.Identifier, ast.Number, ast.String)):
            body.append(ir.LocalAssign([ir.VarDef(MATCH_SUBJECT)], [subject], loc=loc))
            subject = ir.Name(MATCH_SUBJECT, loc=loc)
        arms: list[tuple[ir.Expr, list[ir.Stmt], ir.Loc]] = []
        default: list[ir.Stmt] | None = None
        for i, case in enumerate(expr.cases):
            if _is_wildcard(case.pattern):
                default = self.lower_block(case.body)
                dropped = len(expr.cases) - i - 1
                if dropped > 0:
                    logger.warning(
                        "unreachable_match_arms",
                        line=case.pos.line,
                        col=case.pos.col,
                        dropped=dropped,
                    )
                break
            test = self.lower_pattern(subject, case.pattern)
            arms.append((test, self.lower_block(case.body), loc_from_pos(case.pos)))
        self.depth -= 1
        chain: ir.If | None = None
        for test, stmts, arm_loc in reversed(arms):
            if chain is None:
                chain = ir.If(test, stmts, None, default, loc=arm_loc)
            else:
                chain = ir.If(test, stmts, chain, None, loc=arm_loc)
        if chain is not None:
            body.append(chain)
        elif default is not None:
            body.extend(default)
        return ir.Call(ir.Closure([], body, loc=loc), [], loc=loc)

    def lower_pattern(self, subject: ir.Expr, pattern: ast.Expression) -> ir.Expr:
        """Equality test of subject against a pattern expression.

        A top-level '|' lists alternatives, a top-level '..' is a half-open range.
        """
        loc = loc_from_pos(pattern.pos)
        if isinstance(pattern, ast.BinaryExpression) and pattern.op == "|":
            left = self.lower_pattern(subject, pattern.left)
            right = self.lower_pattern(subject, pattern.right)
            return ir.BinaryOp(left, "or", right, loc=loc)
        if isinstance(pattern, ast.BinaryExpression) and pattern.op == "..":
            low = ir.BinaryOp(subject, ">=", self.lower_expr(pattern.left), loc=loc)
            high = ir.BinaryOp(subject, "<", self.lower_expr(pattern.right), loc=loc)
            return ir.BinaryOp(low, "and", high, loc=loc)
        value = self.lower_expr(pattern)
        if not _is_atomic(value):
            value = ir.Grouped(value, loc=loc)
        return ir.BinaryOp(subject, "==", value, loc=loc)


# ============================================================
# VALIDATION
# ============================================================


def validate(module: ir.Module) -> None:
    """Reject borrow and dereference operators anywhere in the lowered tree."""
    for stmt in module.statements:
        _validate_stmt(stmt)


def _validate_block(stmts: list[ir.Stmt]) -> None:
    for stmt in stmts:
        _validate_stmt(stmt)


def _validate_stmt(stmt: ir.Stmt) -> None:
    match stmt:
        case ir.LocalAssign(values=values):
            for value in values:
                _validate_expr(value)
        case ir.Assign(targets=targets, values=values):
            for target in targets:
                _validate_expr(target)
            for value in values:
                _validate_expr(value)
        case ir.If(condition=condition, body=body, else_if=else_if, else_body=else_body):
            _validate_expr(condition)
            _validate_block(body)
            if else_if is not None:
                _validate_stmt(else_if)
            if else_body is not None:
                _validate_block(else_body)
        case ir.ExprStmt(expr=expr):
            _validate_expr(expr)
        case ir.Return(values=values):
            for value in values:
                _validate_expr(value)
        case ir.FunctionDecl(body=body):
            _validate_block(body)


def _validate_expr(expr: ir.Expr) -> None:
    match expr:
        case ir.UnaryOp(op=op, operand=operand):
            if op == "&" or op == "*":
                raise SemanticError(BORROW_ERROR, expr.loc.line, expr.loc.col)
            _validate_expr(operand)
        case ir.BinaryOp(left=left, right=right):
            _validate_expr(left)
            _validate_expr(right)
        case ir.Call(callee=callee, args=args):
            _validate_expr(callee)
            for arg in args:
                _validate_expr(arg)
        case ir.NameCall(receiver=receiver, args=args):
            _validate_expr(receiver)
            for arg in args:
                _validate_expr(arg)
        case ir.Closure(body=body):
            _validate_block(body)
        case ir.Member(object=obj):
            _validate_expr(obj)
        case ir.Index(object=obj, index=index):
            _validate_expr(obj)
            _validate_expr(index)
        case ir.Dictionary(entries=entries):
            for entry in entries:
                _validate_expr(entry.value)
        case ir.Table(elements=elements):
            for element in elements:
                _validate_expr(element)
        case ir.Grouped(inner=inner):
            _validate_expr(inner)


def lower(
    program: ast.Program,
    config: Config | None = None,
    tables: BindingTables = DEFAULT_BINDINGS,
) -> ir.Module:
    """Lower a source Program to a Luau Module.

    Raises SemanticError (or MissingMainError) on constructs the target
    cannot express. Never returns a partial module.
    """
    if config is None:
        config = DEFAULT_CONFIG
    module = Lowerer(config, tables).lower_program(program)
    validate(module)
    return module
