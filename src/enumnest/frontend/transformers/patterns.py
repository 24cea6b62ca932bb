"""
Pattern Parser - Extracted from NestTransformer
Builds the pattern nodes of match arms
"""

from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from lark.lexer import Token

from ...shared.nodes import (
    FieldPattern, IdentPattern, LiteralPattern, OrPattern, PathPattern, Pattern,
    PatternPath, RangePattern, RefPattern, RestPattern, SlicePattern,
    StructPattern, TuplePattern, TupleStructPattern, WildcardPattern,
)


class PatternParser:
    """Dedicated builder for pattern nodes; every node keeps its source text"""

    def __init__(self, node_info: Callable[[Any], Dict[str, Any]]):
        self._node_info = node_info

    def parse_alternatives(self, meta: Any, alternatives: Sequence[Pattern]) -> Pattern:
        # `| A` and `A` are the same pattern
        if len(alternatives) == 1:
            return alternatives[0]
        return OrPattern(alternatives=tuple(alternatives), **self._node_info(meta))

    @staticmethod
    def parse_path(children: Sequence[Any], root_sep: str) -> PatternPath:
        return PatternPath(
            segments=tuple(str(c) for c in children if isinstance(c, Token)),
            leading_colon=any(c == root_sep and not isinstance(c, Token) for c in children),
        )

    def path(self, meta: Any, path: PatternPath) -> PathPattern:
        return PathPattern(path=path, **self._node_info(meta))

    def tuple_struct(self, meta: Any, path: PatternPath, elements: Tuple[Pattern, ...]) -> TupleStructPattern:
        return TupleStructPattern(path=path, elements=tuple(elements), **self._node_info(meta))

    def struct(self, meta: Any, path: PatternPath, fields: Tuple[Pattern, ...]) -> StructPattern:
        return StructPattern(
            path=path,
            fields=tuple(f for f in fields if isinstance(f, FieldPattern)),
            has_rest=any(isinstance(f, RestPattern) for f in fields),
            **self._node_info(meta),
        )

    def field(self, meta: Any, name: str, pattern: Optional[Pattern]) -> FieldPattern:
        return FieldPattern(name=name, pattern=pattern, **self._node_info(meta))

    def binding(self, meta: Any, name: str, subpattern: Pattern) -> IdentPattern:
        return IdentPattern(name=name, subpattern=subpattern, **self._node_info(meta))

    def reference(self, meta: Any, pattern: Pattern) -> RefPattern:
        return RefPattern(pattern=pattern, **self._node_info(meta))

    def tuple(self, meta: Any, elements: Tuple[Pattern, ...]) -> TuplePattern:
        return TuplePattern(elements=tuple(elements), **self._node_info(meta))

    def slice(self, meta: Any, elements: Tuple[Pattern, ...]) -> SlicePattern:
        return SlicePattern(elements=tuple(elements), **self._node_info(meta))

    def wildcard(self, meta: Any) -> WildcardPattern:
        return WildcardPattern(**self._node_info(meta))

    def rest(self, meta: Any) -> RestPattern:
        return RestPattern(**self._node_info(meta))

    def literal(self, meta: Any) -> LiteralPattern:
        return LiteralPattern(**self._node_info(meta))

    def range(self, meta: Any) -> RangePattern:
        return RangePattern(**self._node_info(meta))
