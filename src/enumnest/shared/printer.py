"""
Source printer

Splices rewritten text into source and lays out generated items.
Everything outside an edit is emitted verbatim.
"""

from typing import List, Sequence, Tuple

from ..utils.config import INDENT

Edit = Tuple[int, int, str]


def apply_edits(text: str, edits: Sequence[Edit], base: int = 0) -> str:
    """
    Replace ``(start, end, replacement)`` ranges of ``text``.

    Offsets are relative to ``base`` (the offset of ``text[0]`` in whatever
    coordinate system the edits use). Edits must not overlap.
    """
    out: List[str] = []
    cursor = 0
    for start, end, replacement in sorted(edits, key=lambda e: e[0]):
        start -= base
        end -= base
        if start < cursor:
            raise ValueError(f"overlapping edit at offset {start + base}")
        out.append(text[cursor:start])
        out.append(replacement)
        cursor = end
    out.append(text[cursor:])
    return "".join(out)


def indent_block(lines: Sequence[str], indent: str) -> str:
    """Join generated lines, indenting every line after the first."""
    if not lines:
        return ""
    rest = [f"{indent}{line}" if line else line for line in lines[1:]]
    return "\n".join([lines[0], *rest])


def nested_block(header: str, body: Sequence[str], depth: int = 0) -> List[str]:
    """``header {`` + indented body + ``}`` as a list of lines"""
    pad = INDENT * depth
    lines = [f"{pad}{header} {{"]
    lines.extend(f"{pad}{INDENT}{line}" if line else line for line in body)
    lines.append(f"{pad}}}")
    return lines
