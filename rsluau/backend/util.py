"""Shared utilities for backend code emitters."""

from __future__ import annotations


class Emitter:
    """Base class for code emitters with indentation tracking."""

    def __init__(self, indent_str: str = "    ") -> None:
        self.indent: int = 0
        self.lines: list[str] = []
        self._indent_str = indent_str

    def line(self, text: str = "") -> None:
        """Emit a line with current indentation."""
        if text:
            self.lines.append(self._indent_str * self.indent + text)
        else:
            self.lines.append("")

    def prefix(self) -> str:
        """Indentation string for the current level."""
        return self._indent_str * self.indent

    def capture_start(self) -> list[str]:
        """Redirect emitted lines into a fresh buffer; returns the saved one."""
        saved = self.lines
        self.lines = []
        return saved

    def capture_end(self, saved: list[str]) -> list[str]:
        """Restore the buffer saved by capture_start; returns captured lines."""
        captured = self.lines
        self.lines = saved
        return captured

    def output(self) -> str:
        """Return the accumulated output as a string."""
        return "\n".join(self.lines)
