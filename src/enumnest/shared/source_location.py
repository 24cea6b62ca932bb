"""
Source Location (Span)

Rust Pattern: rustc_span::Span
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class SourceLocation:
    """
    Source location (Rust Span pattern).

    Line and column are 1-based; ``start``/``end`` are absolute character
    offsets into the file the location belongs to.
    """
    file: str
    line: int
    column: int
    start: int = 0
    end: int = 0
    end_line: int = 0
    end_column: int = 0

    def contains_line(self, line: int) -> bool:
        last = self.end_line or self.line
        return self.line <= line <= last

    def __str__(self) -> str:
        """Format as file:line:column (Rust pattern)"""
        return f"{self.file}:{self.line}:{self.column}"


class LineIndex:
    """
    Maps character offsets of a source text to line/column pairs.

    ``base_offset`` shifts every offset handed to :meth:`location`, which
    lets a parse of a substring (the body of a macro invocation) report
    locations in terms of the enclosing file.
    """

    def __init__(self, text: str, file: str, base_offset: int = 0):
        self.text = text
        self.file = file
        self.base_offset = base_offset
        self._line_starts: List[int] = [0]
        for i, ch in enumerate(text):
            if ch == "\n":
                self._line_starts.append(i + 1)

    def line_col(self, offset: int):
        line = bisect_right(self._line_starts, offset)
        column = offset - self._line_starts[line - 1] + 1
        return line, column

    def location(self, start: int, end: int) -> SourceLocation:
        abs_start = start + self.base_offset
        abs_end = end + self.base_offset
        line, column = self.line_col(abs_start)
        end_line, end_column = self.line_col(abs_end)
        return SourceLocation(
            file=self.file,
            line=line,
            column=column,
            start=abs_start,
            end=abs_end,
            end_line=end_line,
            end_column=end_column,
        )
