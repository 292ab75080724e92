"""
Error types and source position tracking for the mlang analyzer.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True, order=True)
class Position:
    """
    A point in a document.

    Attributes:
        line: 0-indexed line number
        character: 0-indexed column within the line
    """

    line: int
    character: int

    def __str__(self) -> str:
        return f"{self.line + 1}:{self.character + 1}"


@dataclass(frozen=True, slots=True)
class Range:
    """
    A half-open span of source text, from ``start`` up to but not including ``end``.
    """

    start: Position
    end: Position

    @classmethod
    def from_points(
        cls, start_line: int, start_char: int, end_line: int, end_char: int
    ) -> "Range":
        """Build a range from four integers."""
        return cls(Position(start_line, start_char), Position(end_line, end_char))

    def contains(self, position: Position) -> bool:
        """Check whether a position falls inside this range (end inclusive for cursors)."""
        return self.start <= position <= self.end

    def merge(self, other: "Range") -> "Range":
        """Return the smallest range covering both ranges."""
        return Range(min(self.start, other.start), max(self.end, other.end))

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class MlangError(Exception):
    """Base exception for all mlang analyzer errors."""

    def __init__(self, message: str, location: Optional[Position] = None) -> None:
        self.message = message
        self.location = location
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.location:
            return f"[{self.location}] {self.message}"
        return self.message


class TokenizerError(MlangError):
    """Raised when the tokenizer exceeds its token ceiling."""

    pass
