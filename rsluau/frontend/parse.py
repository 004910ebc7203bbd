"""Parser: recursive descent, one method per grammar production.

The lexer emits single-character operator tokens. Compound operators are
recognised here by looking one or two tokens ahead and requiring the
characters to be joined (no whitespace between them). There is no
backtracking.
"""

from __future__ import annotations

import structlog

from ..config import Config
from ..errors import ParseError, ProgressError
from .ast import (
    ArrayLiteral,
    Assignment,
    BinaryExpression,
    ClosureExpression,
    CommentStatement,
    EnumDeclaration,
    Expression,
    ExpressionStatement,
    FieldExpression,
    FuncDef,
    FunctionCall,
    FunctionDeclaration,
    Grouping,
    Identifier,
    IfStatement,
    MatchCase,
    MatchExpression,
    MemberExpression,
    NamedType,
    Number,
    PathExpression,
    Pos,
    Program,
    ReAssignment,
    ReturnStatement,
    Statement,
    String,
    TupleType,
    TypeDef,
    UnaryExpression,
    VarDef,
)
from .tokens import (
    TK_ADD,
    TK_AMP,
    TK_BANG,
    TK_CARET,
    TK_COLON,
    TK_COMMA,
    TK_COMMENT,
    TK_DOT,
    TK_EOF,
    TK_EQUAL,
    TK_GT,
    TK_IDENT,
    TK_KEYWORD,
    TK_LBRACE,
    TK_LBRACKET,
    TK_LPAREN,
    TK_LT,
    TK_MODULO,
    TK_MUL,
    TK_NUMBER,
    TK_PIPE,
    TK_RBRACE,
    TK_RBRACKET,
    TK_RPAREN,
    TK_SEMICOLON,
    TK_SLASH,
    TK_STRING,
    TK_SUB,
    Token,
    is_joined,
)

logger = structlog.get_logger()

# Operators that may precede '=' in a compound assignment (a += 1).
COMPOUND_ASSIGN_KINDS: set[str] = {
    TK_ADD,
    TK_SUB,
    TK_MUL,
    TK_SLASH,
    TK_MODULO,
    TK_AMP,
    TK_PIPE,
    TK_CARET,
}

UNARY_KINDS: set[str] = {TK_SUB, TK_AMP, TK_MUL, TK_ADD, TK_BANG}


def _describe(tok: Token) -> str:
    if tok.lexeme == "":
        return tok.kind
    return tok.kind + " '" + tok.lexeme + "'"


class Parser:
    """Recursive descent parser over a token list ending in EndOfStream."""

    def __init__(self, tokens: list[Token]):
        if len(tokens) == 0 or tokens[-1].kind != TK_EOF:
            line = tokens[-1].line if tokens else 1
            col = tokens[-1].end_col if tokens else 1
            tokens = tokens + [Token(TK_EOF, "", line, col, col)]
        self.tokens: list[Token] = tokens
        self.pos: int = 0

    # ── Helpers ──────────────────────────────────────────────

    def _index(self, offset: int) -> int:
        """Index of the offset-th significant token at or after the cursor.

        Comment tokens are not significant. Never runs past EndOfStream.
        """
        last = len(self.tokens) - 1
        idx = self.pos
        while idx < last and self.tokens[idx].kind == TK_COMMENT:
            idx += 1
        n = 0
        while n < offset and idx < last:
            idx += 1
            while idx < last and self.tokens[idx].kind == TK_COMMENT:
                idx += 1
            n += 1
        return idx

    def current(self) -> Token:
        return self.tokens[self._index(0)]

    def peek(self, offset: int) -> Token:
        return self.tokens[self._index(offset)]

    def advance(self) -> Token:
        idx = self._index(0)
        tok = self.tokens[idx]
        if tok.kind != TK_EOF:
            idx += 1
        self.pos = idx
        return tok

    def at(self, kind: str) -> bool:
        return self.current().kind == kind

    def at_keyword(self, word: str) -> bool:
        tok = self.current()
        return tok.kind == TK_KEYWORD and tok.lexeme == word

    def _joined(self, offset: int) -> bool:
        """True when the token after `offset` touches the token at `offset`."""
        return is_joined(self.peek(offset), self.peek(offset + 1))

    def at_pair(self, first: str, second: str) -> bool:
        """Current token is `first`, immediately followed by `second`."""
        return self.at(first) and self.peek(1).kind == second and self._joined(0)

    def _at_double(self, kind: str) -> bool:
        return self.at_pair(kind, kind)

    def _at_op(self, kind: str) -> bool:
        """A one-character binary operator that is not the start of `op=`."""
        return self.at(kind) and not self.at_pair(kind, TK_EQUAL)

    def _at_single(self, kind: str) -> bool:
        """Like _at_op, and additionally not doubled (`&` but not `&&`)."""
        return self._at_op(kind) and not self._at_double(kind)

    def expect(self, kind: str) -> Token:
        tok = self.current()
        if tok.kind != kind:
            raise ParseError(
                "expected " + kind + ", got " + _describe(tok),
                tok.line,
                tok.start_col,
                kind,
                tok.kind,
            )
        return self.advance()

    def expect_keyword(self, word: str) -> Token:
        tok = self.current()
        if tok.kind != TK_KEYWORD or tok.lexeme != word:
            raise ParseError(
                "expected '" + word + "', got " + _describe(tok),
                tok.line,
                tok.start_col,
                TK_KEYWORD,
                tok.kind,
            )
        return self.advance()

    def _expect_pair(self, first: str, second: str, text: str) -> None:
        """Expect a two-character operator such as '=>' or '->'."""
        if not self.at(first):
            self.expect(first)
        nxt = self.peek(1)
        if nxt.kind != second or not self._joined(0):
            raise ParseError(
                "expected '" + text + "', got " + _describe(nxt),
                nxt.line,
                nxt.start_col,
                second,
                nxt.kind,
            )
        self.advance()
        self.advance()

    def _pos(self) -> Pos:
        tok = self.current()
        return Pos(tok.line, tok.start_col)

    def _check_progress(self, start: int) -> None:
        if self.pos == start:
            tok = self.current()
            raise ProgressError("parser did not advance", tok.line, tok.start_col)

    def _at_chunk_end(self) -> bool:
        return self.at(TK_RBRACE) or self.at(TK_EOF)

    # ── Top Level ────────────────────────────────────────────

    def parse_program(self) -> Program:
        statements = self._parse_statements(TK_EOF)
        self.expect(TK_EOF)
        logger.debug("parsed_program", statements=len(statements))
        return Program(statements)

    def parse_chunk(self) -> tuple[Statement, ...]:
        """Chunk = '{' Statement* '}'"""
        self.expect(TK_LBRACE)
        statements = self._parse_statements(TK_RBRACE)
        self.expect(TK_RBRACE)
        return statements

    def _parse_statements(self, terminator: str) -> tuple[Statement, ...]:
        statements: list[Statement] = []
        while True:
            start = self.pos
            if self.tokens[self.pos].kind == TK_COMMENT:
                statements.append(self._parse_comment())
            elif self.at(terminator) or self.at(TK_EOF):
                break
            else:
                statements.append(self.parse_statement())
            self._check_progress(start)
        return tuple(statements)

    def _parse_comment(self) -> CommentStatement:
        tok = self.tokens[self.pos]
        self.pos += 1
        text = tok.lexeme
        if text.startswith("/*"):
            text = text[2:]
            if text.endswith("*/"):
                text = text[:-2]
        else:
            text = text[2:]
            # doc comments: /// and //!
            if text.startswith("/") or text.startswith("!"):
                text = text[1:]
        return CommentStatement(Pos(tok.line, tok.start_col), text)

    # ── Statements ───────────────────────────────────────────

    def parse_statement(self) -> Statement:
        tok = self.current()
        if tok.kind == TK_KEYWORD:
            if tok.lexeme == "let":
                return self.parse_assignment()
            if tok.lexeme == "if":
                return self.parse_if_statement()
            if tok.lexeme == "return":
                return self.parse_return_statement()
            if tok.lexeme == "enum":
                return self.parse_enum_declaration()
            if tok.lexeme == "fn":
                return self.parse_function_declaration()
        if (
            tok.kind == TK_IDENT
            and self.peek(1).kind == TK_EQUAL
            and not (self.peek(2).kind in (TK_EQUAL, TK_GT) and self._joined(1))
        ):
            return self.parse_reassignment()
        return self.parse_expression_statement()

    def parse_assignment(self) -> Assignment:
        """Assignment = 'let' 'mut'? IDENT ( ':' Type )? '=' Expr ';'"""
        pos = self._pos()
        self.expect_keyword("let")
        mutable = False
        if self.at_keyword("mut"):
            self.advance()
            mutable = True
        name_pos = self._pos()
        name_tok = self.expect(TK_IDENT)
        typ: TypeDef | None = None
        if self.at(TK_COLON):
            self.advance()
            typ = self.parse_type()
        self.expect(TK_EQUAL)
        value = self.parse_expression()
        self.expect(TK_SEMICOLON)
        return Assignment(pos, (VarDef(name_pos, name_tok.lexeme, typ),), (value,), mutable)

    def parse_reassignment(self) -> ReAssignment:
        """ReAssignment = IDENT '=' Expr ';'"""
        pos = self._pos()
        name_tok = self.expect(TK_IDENT)
        self.expect(TK_EQUAL)
        value = self.parse_expression()
        self.expect(TK_SEMICOLON)
        return ReAssignment(pos, Identifier(pos, name_tok.lexeme), value)

    def parse_if_statement(self) -> IfStatement:
        """If = 'if' Expr Chunk ( 'else' ( If | Chunk ) )?"""
        pos = self._pos()
        self.expect_keyword("if")
        condition = self.parse_expression()
        true_body = self.parse_chunk()
        else_if: IfStatement | None = None
        else_body: tuple[Statement, ...] | None = None
        if self.at_keyword("else"):
            nxt = self.peek(1)
            self.advance()
            if nxt.kind == TK_KEYWORD and nxt.lexeme == "if":
                else_if = self.parse_if_statement()
            else:
                else_body = self.parse_chunk()
        return IfStatement(pos, condition, true_body, else_if, else_body)

    def parse_return_statement(self) -> ReturnStatement:
        """Return = 'return' Expr? ';' (the ';' may be omitted before '}')"""
        pos = self._pos()
        self.expect_keyword("return")
        values = self._parse_return_values()
        if self.at(TK_SEMICOLON):
            self.advance()
        elif not self._at_chunk_end():
            self.expect(TK_SEMICOLON)
        return ReturnStatement(pos, False, values)

    def _parse_return_values(self) -> tuple[Expression, ...]:
        if (
            self.at(TK_SEMICOLON)
            or self.at(TK_COMMA)
            or self._at_chunk_end()
        ):
            return ()
        return (self.parse_expression(),)

    def parse_enum_declaration(self) -> EnumDeclaration:
        """Enum = 'enum' IDENT '{' ( IDENT ( ',' IDENT )* ','? )? '}'"""
        pos = self._pos()
        self.expect_keyword("enum")
        name_tok = self.expect(TK_IDENT)
        self.expect(TK_LBRACE)
        members: list[str] = []
        while not self.at(TK_RBRACE):
            start = self.pos
            member_tok = self.expect(TK_IDENT)
            if member_tok.lexeme in members:
                raise ParseError(
                    "duplicate enum member '" + member_tok.lexeme + "'",
                    member_tok.line,
                    member_tok.start_col,
                )
            members.append(member_tok.lexeme)
            if not self.at(TK_RBRACE):
                self.expect(TK_COMMA)
            self._check_progress(start)
        self.expect(TK_RBRACE)
        return EnumDeclaration(pos, name_tok.lexeme, tuple(members))

    def parse_function_declaration(self) -> FunctionDeclaration:
        """Fn = 'fn' IDENT GenericParams? '(' Params ')' ( '->' Type )? Chunk"""
        pos = self._pos()
        self.expect_keyword("fn")
        name_tok = self.expect(TK_IDENT)
        if self.at(TK_LT):
            self._parse_generic_params()
        self.expect(TK_LPAREN)
        params = self.parse_params()
        self.expect(TK_RPAREN)
        return_type: TypeDef | None = None
        if self.at(TK_SUB):
            self._expect_pair(TK_SUB, TK_GT, "->")
            return_type = self.parse_type()
        body = self.parse_chunk()
        func_def = FuncDef(pos, name_tok.lexeme, params, return_type)
        return FunctionDeclaration(pos, func_def, body)

    def _parse_generic_params(self) -> list[str]:
        """<T, U: Bound + Other>. Bounds are parsed and dropped."""
        self.expect(TK_LT)
        names: list[str] = []
        while not self.at(TK_GT):
            start = self.pos
            names.append(self.expect(TK_IDENT).lexeme)
            if self.at(TK_COLON):
                self.advance()
                self.parse_type()
                while self.at(TK_ADD):
                    self.advance()
                    self.parse_type()
            if not self.at(TK_GT):
                self.expect(TK_COMMA)
            self._check_progress(start)
        self.expect(TK_GT)
        return names

    def parse_params(self) -> tuple[VarDef, ...]:
        params: list[VarDef] = []
        while not self.at(TK_RPAREN):
            start = self.pos
            params.append(self.parse_param())
            if not self.at(TK_RPAREN):
                self.expect(TK_COMMA)
            self._check_progress(start)
        return tuple(params)

    def parse_param(self) -> VarDef:
        """Param = 'mut'? IDENT ':' Type | '&' 'mut'? 'self' | 'self'"""
        pos = self._pos()
        if self.at(TK_AMP):
            self.advance()
            if self.at_keyword("mut"):
                self.advance()
            self_tok = self.expect(TK_IDENT)
            if self_tok.lexeme != "self":
                raise ParseError(
                    "expected 'self' after '&' in parameter list",
                    self_tok.line,
                    self_tok.start_col,
                )
            return VarDef(pos, "self", None)
        if self.at_keyword("mut"):
            self.advance()
        name_tok = self.expect(TK_IDENT)
        if name_tok.lexeme == "self" and not self.at(TK_COLON):
            return VarDef(pos, "self", None)
        self.expect(TK_COLON)
        typ = self.parse_type()
        return VarDef(pos, name_tok.lexeme, typ)

    def parse_expression_statement(self) -> Statement:
        """ExprStmt = Expr ( AssignTail | ';' | <end of chunk> )"""
        pos = self._pos()
        expr = self.parse_expression()
        if self.at(TK_EQUAL):
            # place assignment: a.b = v, a[i] = v, *r = v
            self.advance()
            value = self.parse_expression()
            self.expect(TK_SEMICOLON)
            return ReAssignment(pos, expr, value)
        op = self._compound_assign_op()
        if op != "":
            for _ in range(len(op)):
                self.advance()
            self.expect(TK_EQUAL)
            value = self.parse_expression()
            self.expect(TK_SEMICOLON)
            if isinstance(value, BinaryExpression):
                value = Grouping(value.pos, value)
            return ReAssignment(pos, expr, BinaryExpression(pos, expr, op, value))
        if self.at(TK_SEMICOLON):
            self.advance()
            return ExpressionStatement(pos, expr)
        if self._at_chunk_end():
            return ReturnStatement(pos, True, (expr,))
        if isinstance(expr, MatchExpression):
            return ExpressionStatement(pos, expr)
        self.expect(TK_SEMICOLON)
        raise AssertionError("unreachable")

    def _compound_assign_op(self) -> str:
        """Return the operator of `op=` at the cursor, or ''."""
        tok = self.current()
        if tok.kind in COMPOUND_ASSIGN_KINDS:
            if self.peek(1).kind == TK_EQUAL and self._joined(0):
                return tok.lexeme
            return ""
        if (tok.kind == TK_LT or tok.kind == TK_GT) and self._at_double(tok.kind):
            if self.peek(2).kind == TK_EQUAL and self._joined(1):
                return tok.lexeme + tok.lexeme
        return ""

    # ── Types ────────────────────────────────────────────────

    def parse_type(self) -> TypeDef:
        """Type = '&' 'mut'? Type | '(' ( Type ( ',' Type )* )? ')' | Path TypeArgs?"""
        pos = self._pos()
        if self.at(TK_AMP):
            self.advance()
            if self.at_keyword("mut"):
                self.advance()
            return self.parse_type()
        if self.at(TK_LPAREN):
            self.advance()
            elements: list[TypeDef] = []
            while not self.at(TK_RPAREN):
                start = self.pos
                elements.append(self.parse_type())
                if not self.at(TK_RPAREN):
                    self.expect(TK_COMMA)
                self._check_progress(start)
            self.expect(TK_RPAREN)
            return TupleType(pos, tuple(elements))
        name_tok = self.expect(TK_IDENT)
        name = Identifier(pos, name_tok.lexeme)
        # std::collections::HashMap keeps only the last segment
        while self._at_double(TK_COLON):
            self.advance()
            self.advance()
            seg_tok = self.expect(TK_IDENT)
            name = Identifier(Pos(seg_tok.line, seg_tok.start_col), seg_tok.lexeme)
        generic_args: tuple[TypeDef, ...] = ()
        if self.at(TK_LT):
            generic_args = self.parse_type_arguments()
        return NamedType(pos, name, generic_args)

    def parse_type_arguments(self) -> tuple[TypeDef, ...]:
        """TypeArgs = '<' Type ( ',' Type )* '>'

        In type position '<' always opens an argument list and every '>'
        closes exactly one, so Vec<Vec<u8>> needs no special casing.
        """
        self.expect(TK_LT)
        args: list[TypeDef] = []
        while not self.at(TK_GT):
            start = self.pos
            args.append(self.parse_type())
            if not self.at(TK_GT):
                self.expect(TK_COMMA)
            self._check_progress(start)
        self.expect(TK_GT)
        return tuple(args)

    # ── Expressions ──────────────────────────────────────────

    def parse_expression(self) -> Expression:
        return self.parse_range()

    def parse_range(self) -> Expression:
        """Range = Or ( '..' Or )?"""
        left = self.parse_or()
        if self._at_double(TK_DOT):
            self.advance()
            self.advance()
            right = self.parse_or()
            return BinaryExpression(left.pos, left, "..", right)
        return left

    def parse_or(self) -> Expression:
        """Or = And ( '||' And )*"""
        left = self.parse_and()
        while self._at_double(TK_PIPE):
            self.advance()
            self.advance()
            right = self.parse_and()
            left = BinaryExpression(left.pos, left, "||", right)
        return left

    def parse_and(self) -> Expression:
        """And = Equality ( '&&' Equality )*"""
        left = self.parse_equality()
        while self._at_double(TK_AMP):
            self.advance()
            self.advance()
            right = self.parse_equality()
            left = BinaryExpression(left.pos, left, "&&", right)
        return left

    def parse_equality(self) -> Expression:
        """Equality = BitOr ( CompareOp BitOr )?"""
        left = self.parse_bit_or()
        op = self._compare_op()
        if op == "":
            return left
        for _ in range(len(op)):
            self.advance()
        right = self.parse_bit_or()
        return BinaryExpression(left.pos, left, op, right)

    def _compare_op(self) -> str:
        """==, !=, <, <=, >, >= at the cursor, or ''. Doubled < and > are shifts."""
        tok = self.current()
        nxt = self.peek(1)
        joined = self._joined(0)
        if tok.kind == TK_EQUAL:
            if nxt.kind == TK_EQUAL and joined:
                return "=="
            return ""
        if tok.kind == TK_BANG:
            if nxt.kind == TK_EQUAL and joined:
                return "!="
            return ""
        if tok.kind == TK_LT or tok.kind == TK_GT:
            if joined and nxt.kind == TK_EQUAL:
                return tok.lexeme + "="
            if joined and nxt.kind == tok.kind:
                return ""
            return tok.lexeme
        return ""

    def parse_bit_or(self) -> Expression:
        """BitOr = BitXor ( '|' BitXor )*"""
        left = self.parse_bit_xor()
        while self._at_single(TK_PIPE):
            self.advance()
            right = self.parse_bit_xor()
            left = BinaryExpression(left.pos, left, "|", right)
        return left

    def parse_bit_xor(self) -> Expression:
        """BitXor = BitAnd ( '^' BitAnd )*"""
        left = self.parse_bit_and()
        while self._at_op(TK_CARET):
            self.advance()
            right = self.parse_bit_and()
            left = BinaryExpression(left.pos, left, "^", right)
        return left

    def parse_bit_and(self) -> Expression:
        """BitAnd = Shift ( '&' Shift )*"""
        left = self.parse_shift()
        while self._at_single(TK_AMP):
            self.advance()
            right = self.parse_shift()
            left = BinaryExpression(left.pos, left, "&", right)
        return left

    def _at_shift(self, kind: str) -> bool:
        return self._at_double(kind) and not (
            self.peek(2).kind == TK_EQUAL and self._joined(1)
        )

    def parse_shift(self) -> Expression:
        """Shift = Sum ( ( '<<' | '>>' ) Sum )*"""
        left = self.parse_sum()
        while self._at_shift(TK_LT) or self._at_shift(TK_GT):
            op = self.current().lexeme * 2
            self.advance()
            self.advance()
            right = self.parse_sum()
            left = BinaryExpression(left.pos, left, op, right)
        return left

    def parse_sum(self) -> Expression:
        """Sum = Product ( ( '+' | '-' ) Product )*"""
        left = self.parse_product()
        while self._at_op(TK_ADD) or self._at_op(TK_SUB):
            op = self.advance().lexeme
            right = self.parse_product()
            left = BinaryExpression(left.pos, left, op, right)
        return left

    def parse_product(self) -> Expression:
        """Product = Unary ( ( '*' | '/' | '%' ) Unary )*"""
        left = self.parse_unary()
        while self._at_op(TK_MUL) or self._at_op(TK_SLASH) or self._at_op(TK_MODULO):
            op = self.advance().lexeme
            right = self.parse_unary()
            left = BinaryExpression(left.pos, left, op, right)
        return left

    def parse_unary(self) -> Expression:
        """Unary = ( '-' | '&' 'mut'? | '*' | '+' | '!' ) Unary | Postfix"""
        tok = self.current()
        if tok.kind in UNARY_KINDS:
            pos = self._pos()
            self.advance()
            if tok.kind == TK_AMP and self.at_keyword("mut"):
                self.advance()
            operand = self.parse_unary()
            return UnaryExpression(pos, tok.lexeme, operand)
        return self.parse_postfix()

    def parse_postfix(self) -> Expression:
        """Postfix = Primary ( '.' IDENT | '::' IDENT | '[' Expr ']' | '!'? '(' Args ')' )*"""
        expr = self.parse_primary()
        while True:
            if self.at(TK_DOT) and not self._at_double(TK_DOT):
                self.advance()
                name_tok = self.expect(TK_IDENT)
                expr = MemberExpression(expr.pos, expr, name_tok.lexeme)
            elif self._at_double(TK_COLON):
                self.advance()
                self.advance()
                name_tok = self.expect(TK_IDENT)
                expr = PathExpression(expr.pos, expr, name_tok.lexeme)
            elif self.at(TK_LBRACKET):
                self.advance()
                index = self.parse_expression()
                self.expect(TK_RBRACKET)
                expr = FieldExpression(expr.pos, expr, index)
            elif self.at(TK_LPAREN):
                self.advance()
                args = self.parse_args()
                self.expect(TK_RPAREN)
                expr = FunctionCall(expr.pos, expr, args)
            elif self.at(TK_BANG) and self.peek(1).kind == TK_LPAREN:
                # macro marker: println!(...)
                self.advance()
            else:
                break
        return expr

    def parse_args(self) -> tuple[Expression, ...]:
        """Args = ( Expr ( ',' Expr )* ','? )?"""
        args: list[Expression] = []
        while not self.at(TK_RPAREN):
            start = self.pos
            args.append(self.parse_expression())
            if not self.at(TK_RPAREN):
                self.expect(TK_COMMA)
            self._check_progress(start)
        return tuple(args)

    def parse_primary(self) -> Expression:
        tok = self.current()
        pos = self._pos()

        if tok.kind == TK_NUMBER:
            self.advance()
            return Number(pos, tok.lexeme)
        if tok.kind == TK_STRING:
            self.advance()
            quote = tok.lexeme[0]
            body = tok.lexeme[1:]
            if len(tok.lexeme) >= 2 and body.endswith(quote):
                body = body[:-1]
            return String(pos, body, quote)
        if tok.kind == TK_IDENT:
            self.advance()
            return Identifier(pos, tok.lexeme)

        # ( grouping
        if tok.kind == TK_LPAREN:
            self.advance()
            inner = self.parse_expression()
            self.expect(TK_RPAREN)
            return Grouping(pos, inner)

        # [ array literal
        if tok.kind == TK_LBRACKET:
            self.advance()
            elements: list[Expression] = []
            while not self.at(TK_RBRACKET):
                start = self.pos
                elements.append(self.parse_expression())
                if not self.at(TK_RBRACKET):
                    self.expect(TK_COMMA)
                self._check_progress(start)
            self.expect(TK_RBRACKET)
            return ArrayLiteral(pos, tuple(elements))

        if tok.kind == TK_KEYWORD and tok.lexeme == "match":
            return self.parse_match_expression()

        # | closure
        if tok.kind == TK_PIPE:
            return self.parse_closure()

        raise ParseError(
            "expected expression, got " + _describe(tok),
            tok.line,
            tok.start_col,
            "",
            tok.kind,
        )

    def parse_match_expression(self) -> MatchExpression:
        """Match = 'match' Expr '{' MatchCase* '}'"""
        pos = self._pos()
        self.expect_keyword("match")
        scrutinee = self.parse_expression()
        self.expect(TK_LBRACE)
        cases: list[MatchCase] = []
        while not self.at(TK_RBRACE):
            start = self.pos
            cases.append(self.parse_match_case())
            self._check_progress(start)
        self.expect(TK_RBRACE)
        return MatchExpression(pos, scrutinee, tuple(cases))

    def parse_match_case(self) -> MatchCase:
        """MatchCase = Expr '=>' ( Chunk | 'return' Expr? | Expr ) ','?"""
        pos = self._pos()
        pattern = self.parse_expression()
        self._expect_pair(TK_EQUAL, TK_GT, "=>")
        body: tuple[Statement, ...]
        is_chunk = False
        if self.at(TK_LBRACE):
            body = self.parse_chunk()
            is_chunk = True
        elif self.at_keyword("return"):
            ret_pos = self._pos()
            self.advance()
            body = (ReturnStatement(ret_pos, False, self._parse_return_values()),)
        else:
            value_pos = self._pos()
            value = self.parse_expression()
            body = (ReturnStatement(value_pos, True, (value,)),)
        if self.at(TK_COMMA):
            self.advance()
        elif not is_chunk and not self.at(TK_RBRACE):
            self.expect(TK_COMMA)
        return MatchCase(pos, pattern, body)

    def parse_closure(self) -> ClosureExpression:
        """Closure = ( '||' | '|' Params '|' ) ( Chunk | Expr )"""
        pos = self._pos()
        params: list[VarDef] = []
        if self._at_double(TK_PIPE):
            self.advance()
            self.advance()
        else:
            self.expect(TK_PIPE)
            while not self.at(TK_PIPE):
                start = self.pos
                params.append(self.parse_closure_param())
                if not self.at(TK_PIPE):
                    self.expect(TK_COMMA)
                self._check_progress(start)
            self.expect(TK_PIPE)
        if self.at(TK_LBRACE):
            body = self.parse_chunk()
        else:
            value_pos = self._pos()
            value = self.parse_expression()
            body = (ReturnStatement(value_pos, True, (value,)),)
        return ClosureExpression(pos, tuple(params), body)

    def parse_closure_param(self) -> VarDef:
        pos = self._pos()
        if self.at_keyword("mut"):
            self.advance()
        name_tok = self.expect(TK_IDENT)
        typ: TypeDef | None = None
        if self.at(TK_COLON):
            self.advance()
            typ = self.parse_type()
        return VarDef(pos, name_tok.lexeme, typ)


def parse(tokens: list[Token], config: Config | None = None) -> Program:
    """Parse a token list into a Program.

    Raises ParseError on malformed input and ProgressError if a loop stalls.
    """
    return Parser(tokens).parse_program()
