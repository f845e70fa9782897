"""Source spans and the surface syntax error type."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Span:
    start: int
    end: int

    def extract(self, source: str) -> str:
        return source[self.start : self.end]

    def line_col(self, source: str) -> tuple[int, int]:
        """One-based line and column of ``start`` in ``source``."""
        line = source.count("\n", 0, self.start) + 1
        col = self.start - (source.rfind("\n", 0, self.start) + 1) + 1
        return line, col


@dataclass
class SurfaceError(Exception):
    message: str
    span: Span
    source: str | None = None

    def __str__(self) -> str:
        if self.source is None:
            return f"{self.message} @ {self.span.start}:{self.span.end}"
        line, col = self.span.line_col(self.source)
        snippet = self.span.extract(self.source)
        return f"{self.message} @ {line}:{col}: {snippet!r}"


__all__ = ["Span", "SurfaceError"]
