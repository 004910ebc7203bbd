"""Lexer: source text into a flat token list.

Operators are emitted one character at a time. Compound operators such as
`&&`, `::` or `=>` are assembled by the parser from joined tokens.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from ..config import Config
from ..errors import LexError

logger = structlog.get_logger()


# Token kinds
TK_UNKNOWN = "Unknown"
TK_IDENT = "Identifier"
TK_KEYWORD = "Keyword"
TK_NUMBER = "Number"
TK_STRING = "String"
TK_COMMENT = "Comment"
TK_EOF = "EndOfStream"

TK_LPAREN = "OpeningParens"
TK_RPAREN = "ClosingParens"
TK_LBRACKET = "OpeningBracket"
TK_RBRACKET = "ClosingBracket"
TK_LBRACE = "OpeningCurlyBracket"
TK_RBRACE = "ClosingCurlyBracket"
TK_LT = "OpeningAngledBracket"
TK_GT = "ClosingAngledBracket"
TK_SEMICOLON = "Semicolon"
TK_COLON = "Colon"
TK_COMMA = "Comma"
TK_DOT = "Dot"
TK_EQUAL = "Equal"
TK_BANG = "Exclamation"
TK_AMP = "Ampersand"
TK_PIPE = "Pipe"
TK_CARET = "Caret"
TK_ADD = "Add"
TK_SUB = "Sub"
TK_MUL = "Mul"
TK_SLASH = "Slash"
TK_BACKSLASH = "Backslash"
TK_MODULO = "Modulo"
TK_QUESTION = "Question"
TK_HASH = "Hash"
TK_AT = "At"

KEYWORDS: set[str] = {
    "else",
    "enum",
    "fn",
    "for",
    "if",
    "impl",
    "let",
    "match",
    "mut",
    "return",
    "struct",
    "where",
}

PUNCTUATION: dict[str, str] = {
    "(": TK_LPAREN,
    ")": TK_RPAREN,
    "[": TK_LBRACKET,
    "]": TK_RBRACKET,
    "{": TK_LBRACE,
    "}": TK_RBRACE,
    "<": TK_LT,
    ">": TK_GT,
    ";": TK_SEMICOLON,
    ":": TK_COLON,
    ",": TK_COMMA,
    ".": TK_DOT,
    "=": TK_EQUAL,
    "!": TK_BANG,
    "&": TK_AMP,
    "|": TK_PIPE,
    "^": TK_CARET,
    "+": TK_ADD,
    "-": TK_SUB,
    "*": TK_MUL,
    "/": TK_SLASH,
    "\\": TK_BACKSLASH,
    "%": TK_MODULO,
    "?": TK_QUESTION,
    "#": TK_HASH,
    "@": TK_AT,
}

_INT_SUFFIX = r"(?:[iu](?:8|16|32|64|128|size))"
_NUMBER_RE = re.compile(
    r"0[xX][0-9a-fA-F_]+" + _INT_SUFFIX + r"?"
    r"|0o[0-7_]+" + _INT_SUFFIX + r"?"
    r"|0b[01_]+" + _INT_SUFFIX + r"?"
    r"|[0-9][0-9_]*(?:\.[0-9][0-9_]*)?(?:[eE][+-]?[0-9_]+)?"
    r"(?:" + _INT_SUFFIX + r"|f32|f64)?"
)


@dataclass(frozen=True)
class Token:
    """A token with kind, raw text and position.

    line/start_col point at the first character (1-indexed); end_col is
    start_col + len(lexeme).
    """

    kind: str
    lexeme: str
    line: int
    start_col: int
    end_col: int


def is_joined(first: Token, second: Token) -> bool:
    """True when second starts exactly where first ends, on the same line."""
    return first.line == second.line and first.end_col == second.start_col


def is_valid_number(lexeme: str) -> bool:
    return _NUMBER_RE.fullmatch(lexeme) is not None


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z") or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


def _scan_number(source: str, pos: int) -> int:
    """Return the end of the numeric run starting at pos.

    Letters, digits and underscores are taken greedily. A '.' is taken only
    when a digit follows, so ranges (0..10) and method calls stay separate.
    A sign directly after a decimal exponent marker is part of the run.
    """
    start = pos
    length = len(source)
    is_hex = source[pos : pos + 2] in ("0x", "0X")
    while pos < length:
        c = source[pos]
        if _is_alnum(c):
            pos += 1
        elif c == "." and pos + 1 < length and _is_digit(source[pos + 1]):
            pos += 1
        elif (
            (c == "+" or c == "-")
            and not is_hex
            and pos > start
            and source[pos - 1] in "eE"
            and pos + 1 < length
            and _is_digit(source[pos + 1])
        ):
            pos += 1
        else:
            break
    return pos


def _report(
    msg: str,
    lexeme: str,
    line: int,
    col: int,
    diagnostics: list[LexError] | None,
) -> None:
    err = LexError(msg, line, col)
    logger.warning("lex_error", error=msg, lexeme=lexeme, line=line, col=col)
    if diagnostics is not None:
        diagnostics.append(err)


def tokenize(
    source: str,
    config: Config | None = None,
    diagnostics: list[LexError] | None = None,
) -> list[Token]:
    """Tokenize source into a flat list ending with an EndOfStream token.

    Never raises. Malformed input is logged (and appended to diagnostics when
    given) and scanning continues with the next character.
    """
    tokens: list[Token] = []
    pos = 0
    line = 1
    line_start = 0
    length = len(source)

    while pos < length:
        c = source[pos]

        # Newlines
        if c == "\n":
            pos += 1
            line += 1
            line_start = pos
            continue

        # Whitespace
        if c.isspace():
            pos += 1
            continue

        start = pos
        start_line = line
        col = pos - line_start + 1
        nxt = source[pos + 1] if pos + 1 < length else ""

        # Line comment: //
        if c == "/" and nxt == "/":
            while pos < length and source[pos] != "\n":
                pos += 1
            text = source[start:pos]
            tokens.append(Token(TK_COMMENT, text, start_line, col, col + len(text)))
            continue

        # Block comment: /* ... */
        if c == "/" and nxt == "*":
            end = source.find("*/", pos + 2)
            if end == -1:
                _report(
                    "unterminated block comment", "/*", start_line, col, diagnostics
                )
                end = length
            else:
                end += 2
            text = source[start:end]
            newlines = text.count("\n")
            if newlines > 0:
                line += newlines
                line_start = start + text.rfind("\n") + 1
            pos = end
            tokens.append(Token(TK_COMMENT, text, start_line, col, col + len(text)))
            continue

        # Number, preferred over identifiers so a leading digit never starts a name
        if _is_digit(c):
            pos = _scan_number(source, pos)
            lexeme = source[start:pos]
            if not is_valid_number(lexeme):
                _report("malformed number", lexeme, start_line, col, diagnostics)
            tokens.append(Token(TK_NUMBER, lexeme, start_line, col, col + len(lexeme)))
            continue

        # Identifier or keyword
        if _is_alpha(c):
            while pos < length and _is_alnum(source[pos]):
                pos += 1
            word = source[start:pos]
            kind = TK_KEYWORD if word in KEYWORDS else TK_IDENT
            tokens.append(Token(kind, word, start_line, col, col + len(word)))
            continue

        # String literal: "..." or '...', escapes are kept verbatim
        if c == '"' or c == "'":
            pos += 1
            terminated = False
            escaped = False
            while pos < length:
                ch = source[pos]
                pos += 1
                if ch == "\n":
                    line += 1
                    line_start = pos
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == c:
                    terminated = True
                    break
            lexeme = source[start:pos]
            if not terminated:
                _report(
                    "unterminated string literal", lexeme, start_line, col, diagnostics
                )
            tokens.append(Token(TK_STRING, lexeme, start_line, col, col + len(lexeme)))
            continue

        # Single-character operators and punctuation
        pos += 1
        kind = PUNCTUATION.get(c, TK_UNKNOWN)
        if kind == TK_UNKNOWN:
            _report("unexpected character", c, start_line, col, diagnostics)
        tokens.append(Token(kind, c, start_line, col, col + 1))

    col = pos - line_start + 1
    tokens.append(Token(TK_EOF, "", line, col, col))
    return tokens
