"""Compilation flags."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Config:
    """Flags consumed by lowering.

    use_roblox_bindings and fold_constants are reserved and have no effect.
    """

    use_roblox_bindings: bool = False
    fold_constants: bool = False
    use_luau_bindings: bool = True
    use_main_func_export: bool = False


DEFAULT_CONFIG = Config()
