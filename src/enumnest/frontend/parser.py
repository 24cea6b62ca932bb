"""
Parser

Rust Pattern: rustc_parse
"""

from pathlib import Path
from typing import Optional
import logging

from lark import Lark
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from .transformers.base import NestTransformer
from ..shared.errors import SourceSyntaxError
from ..shared.nodes import MatchExpression, SourceFile
from ..shared.source_location import LineIndex, SourceLocation
from ..utils.config import DEFAULT_PARSER_CACHE_FILE, GRAMMAR_FILE_NAME

logger = logging.getLogger(__name__)


class Parser:
    """
    Parser (Rust naming: rustc_parse).

    One grammar, two entry points: whole source files (``file``) and the
    body of a match macro invocation (``match_expr``). The Lark instance is
    built once per Parser and reused; the grammar tables are cached on disk.
    """

    def __init__(self, cache_file: Optional[str] = DEFAULT_PARSER_CACHE_FILE):
        grammar_path = Path(__file__).parent / GRAMMAR_FILE_NAME
        self.parser = Lark.open(
            str(grammar_path),
            start=['file', 'match_expr'],
            parser='lalr',
            cache=cache_file if cache_file else False,
            propagate_positions=True,
            maybe_placeholders=False,
        )
        self.transformer = NestTransformer()

    def parse_file(self, source: str, source_file: str) -> SourceFile:
        """Parse a whole source file."""
        return self._parse(source, source_file, 'file', LineIndex(source, source_file))

    def parse_match(self, source: str, source_file: str, full_text: Optional[str] = None,
                    base_offset: int = 0) -> MatchExpression:
        """
        Parse the body of a match macro.

        ``source`` is the text between the macro delimiters. When it was cut
        from a larger file, pass that file's ``full_text`` and the offset of
        ``source[0]`` so locations point into the file.
        """
        index = LineIndex(full_text if full_text is not None else source, source_file, base_offset)
        return self._parse(source, source_file, 'match_expr', index)

    def _parse(self, source: str, source_file: str, start: str, index: LineIndex):
        self.transformer.current_file = source_file
        self.transformer.source = source
        self.transformer.line_index = index
        try:
            tree = self.parser.parse(source, start=start)
        except UnexpectedInput as e:
            raise self._syntax_error(e, source, source_file, index) from e
        logger.debug(f"Parsed {source_file} ({start}, {len(source)} chars)")
        return self.transformer.transform(tree)

    @staticmethod
    def _syntax_error(e: UnexpectedInput, source: str, source_file: str,
                      index: LineIndex) -> SourceSyntaxError:
        """Convert Lark parse errors to SourceSyntaxError"""
        pos = getattr(e, 'pos_in_stream', None)
        if pos is None or pos < 0:
            pos = len(source)
        location: SourceLocation = index.location(pos, pos + 1)

        if isinstance(e, UnexpectedToken):
            found = "end of input" if e.token.type == '$END' else f"`{e.token}`"
            message = f"expected one of {_describe(e.expected)}, found {found}"
        elif isinstance(e, UnexpectedCharacters):
            message = f"unexpected character `{source[pos:pos + 1]}`"
        elif isinstance(e, UnexpectedEOF):
            message = "unexpected end of input"
        else:
            message = str(e)
        return SourceSyntaxError(f"failed to parse {source_file}: {message}", location)


def _describe(expected) -> str:
    names = sorted(expected)
    if len(names) > 6:
        names = names[:6] + ["..."]
    return ", ".join(names)
