"""Frontend package - converts Rust-like source to Luau IR."""

from .bindings import DEFAULT_BINDINGS, BindingTables
from .lowering import lower, validate
from .parse import Parser, parse
from .tokens import Token, tokenize
