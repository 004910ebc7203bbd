"""Compiler errors, one class per failure category."""

from __future__ import annotations


class CompileError(Exception):
    """Base for every error the pipeline reports. line/col are 0 when unknown."""

    def __init__(self, msg: str, line: int = 0, col: int = 0):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        if line > 0:
            super().__init__(msg + " at line " + str(line) + " col " + str(col))
        else:
            super().__init__(msg)


class LexError(CompileError):
    """Malformed input noticed by the lexer. Logged, never raised by tokenize."""


class ParseError(CompileError):
    """Unexpected or missing token.

    expected/actual hold token kinds when the failure is a kind mismatch,
    and are empty for errors detected another way.
    """

    def __init__(
        self,
        msg: str,
        line: int,
        col: int,
        expected: str = "",
        actual: str = "",
    ):
        self.expected: str = expected
        self.actual: str = actual
        super().__init__(msg, line, col)


class ProgressError(CompileError):
    """A parsing loop failed to move the cursor. Indicates a grammar bug."""


class SemanticError(CompileError):
    """Valid syntax that cannot be lowered to the target."""


class MissingMainError(SemanticError):
    """Main export was requested but the program declares no main function."""
