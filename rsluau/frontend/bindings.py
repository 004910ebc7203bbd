"""Binding tables: source call and type names mapped to Luau primitives.

Tables are immutable values handed to lowering. DEFAULT_BINDINGS is the
set used unless a caller injects another.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


def _frozen(entries: dict[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(entries))


@dataclass(frozen=True)
class BindingTables:
    """Lookup data consumed by lowering.

    functions:       free-call substitution, println(...) -> print(...)
    string_methods:  "lit".method(args) -> target(lit, args)
    bitwise:         bitwise operator -> dotted library function
    types:           scalar type names -> Luau type names
    generic_types:   generic type name -> shape: "array" ({T}), "map"
                     ({[K]: V}), "set" ({[T]: boolean}), "optional" (T?)
                     or "wrapper" (collapses to T)
    range_constructor:    function called for a..b
    method_call_sentinel: callee name of the native method-call form,
                          __namecall(receiver, "method", args...)
    """

    functions: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    string_methods: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    bitwise: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    types: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    generic_types: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    range_constructor: str = "_range"
    method_call_sentinel: str = "__namecall"


DEFAULT_BINDINGS = BindingTables(
    functions=_frozen(
        {
            "println": "print",
            "print": "print",
            "dbg": "print",
            "eprintln": "warn",
            "eprint": "warn",
            "panic": "error",
            "unreachable": "error",
            "todo": "error",
            "assert": "assert",
        }
    ),
    string_methods=_frozen(
        {
            "to_string": "tostring",
            "to_owned": "tostring",
            "len": "string.len",
            "to_uppercase": "string.upper",
            "to_lowercase": "string.lower",
            "repeat": "string.rep",
        }
    ),
    bitwise=_frozen(
        {
            "&": "bit32.band",
            "|": "bit32.bor",
            "^": "bit32.bxor",
            "<<": "bit32.lshift",
            ">>": "bit32.rshift",
        }
    ),
    types=_frozen(
        {
            "i8": "number",
            "i16": "number",
            "i32": "number",
            "i64": "number",
            "i128": "number",
            "isize": "number",
            "u8": "number",
            "u16": "number",
            "u32": "number",
            "u64": "number",
            "u128": "number",
            "usize": "number",
            "f32": "number",
            "f64": "number",
            "bool": "boolean",
            "String": "string",
            "str": "string",
            "char": "string",
        }
    ),
    generic_types=_frozen(
        {
            "Vec": "array",
            "VecDeque": "array",
            "HashMap": "map",
            "BTreeMap": "map",
            "HashSet": "set",
            "BTreeSet": "set",
            "Option": "optional",
            # no runtime meaning under a garbage collector: Box<T> is T
            "Box": "wrapper",
            "Rc": "wrapper",
            "Arc": "wrapper",
            "RefCell": "wrapper",
            "Cell": "wrapper",
            "Mutex": "wrapper",
        }
    ),
)
