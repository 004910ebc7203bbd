"""rsluau - Rust-like source to Luau transpiler, public API."""

from __future__ import annotations

from .backend.luau import write
from .config import DEFAULT_CONFIG, Config
from .errors import (
    CompileError,
    LexError,
    MissingMainError,
    ParseError,
    ProgressError,
    SemanticError,
)
from .frontend.bindings import DEFAULT_BINDINGS, BindingTables
from .frontend.lowering import lower
from .frontend.parse import parse
from .frontend.tokens import tokenize


def transpile(
    source: str,
    config: Config | None = None,
    tables: BindingTables = DEFAULT_BINDINGS,
) -> str:
    """Compile source text to Luau text. Raises CompileError on failure."""
    tokens = tokenize(source, config)
    program = parse(tokens, config)
    module = lower(program, config, tables)
    return write(module, tables.range_constructor)
