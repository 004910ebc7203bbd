"""Backends - render IR as target source text."""

from .luau import LuauWriter, write
