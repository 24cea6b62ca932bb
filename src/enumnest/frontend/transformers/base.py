"""
enumnest AST Transformer
Converts the Lark parse tree into the immutable nodes of shared/nodes.py
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union
import logging

from lark import Transformer, v_args
from lark.lexer import Token
from typing_extensions import TypeAlias

from ...shared.nodes import (
    Attribute, CaseField, CaseShape, CodeFragment, EnumCase, EnumDeclaration,
    InlineModule, MatchArm, MatchExpression, ModuleDeclaration, OpaqueItem,
    Pattern, SourceFile, Span, TokenElement, TokenLeaf, TokenTree, TypeRef,
)
from ...shared.source_location import LineIndex, SourceLocation
from .patterns import PatternParser
from .types import TypeRefParser

# Lark Meta object carries start_pos/end_pos (propagate_positions=True)
LarkMeta: TypeAlias = Any
Child: TypeAlias = Union[Token, TokenTree, Attribute, TypeRef, Pattern, Any]

logger: logging.Logger = logging.getLogger(__name__)


# Intermediate results that only live until the enclosing rule is built
@dataclass(frozen=True)
class _Visibility:
    text: str
    span: Span


@dataclass(frozen=True)
class _Generics:
    text: str


@dataclass(frozen=True)
class _WhereClause:
    text: str


@dataclass(frozen=True)
class _AttrValue:
    text: str


@dataclass(frozen=True)
class _Fields:
    shape: CaseShape
    fields: Tuple[CaseField, ...]


@dataclass(frozen=True)
class _Discriminant:
    text: str


@dataclass(frozen=True)
class _EnumParts:
    name: str
    start: int
    generics: str
    where_clause: str
    cases: Tuple[EnumCase, ...]


@dataclass(frozen=True)
class _OpaqueParts:
    tokens: Tuple[TokenElement, ...]


@dataclass(frozen=True)
class _Guard:
    fragment: CodeFragment


@v_args(inline=True, meta=True)
class NestTransformer(Transformer):
    """
    Builds items, attributes, token trees and match expressions.

    ``source`` is the text that was handed to Lark; ``line_index`` maps its
    offsets to file locations (shifted by the base offset when the text is a
    slice of a larger file).
    """

    def __init__(self) -> None:
        super().__init__()
        self.current_file: str = ""  # Must be set by parser before use
        self.source: str = ""
        self.line_index: Optional[LineIndex] = None
        self.type_parser: TypeRefParser = TypeRefParser(self._node_info)
        self.pattern_parser: PatternParser = PatternParser(self._node_info)

    def _span(self, meta: LarkMeta) -> Span:
        if meta is None or meta.empty:
            return (0, 0)
        return (meta.start_pos, meta.end_pos)

    def _text(self, meta: LarkMeta) -> str:
        start, end = self._span(meta)
        return self.source[start:end]

    def _extract_location(self, meta: LarkMeta) -> SourceLocation:
        """Extract location from Lark meta object"""
        if self.line_index is None:
            raise RuntimeError(
                "Parser bug: line index not set. "
                "Parser must set line_index before transforming."
            )
        start, end = self._span(meta)
        return self.line_index.location(start, end)

    def _node_info(self, meta: LarkMeta) -> Dict[str, Any]:
        """Keyword arguments shared by every pattern node"""
        return {
            "text": self._text(meta),
            "span": self._span(meta),
            "location": self._extract_location(meta),
        }

    def _fragment(self, meta: LarkMeta, children: Tuple[Child, ...]) -> CodeFragment:
        return CodeFragment(
            text=self._text(meta),
            span=self._span(meta),
            tokens=self._elements(children),
            location=self._extract_location(meta),
        )

    @staticmethod
    def _elements(children: Tuple[Child, ...]) -> Tuple[TokenElement, ...]:
        elements = []
        for child in children:
            if isinstance(child, Token):
                elements.append(TokenLeaf(child.type, str(child), child.start_pos, child.end_pos))
            elif isinstance(child, TokenTree):
                elements.append(child)
        return tuple(elements)

    # =========================================================================
    # FILE STRUCTURE
    # =========================================================================

    def file(self, meta: LarkMeta, *items) -> SourceFile:
        return SourceFile(
            file=self.current_file,
            text=self.source,
            items=tuple(i for i in items if i is not None),
        )

    def inner_attr(self, meta: LarkMeta, *_) -> None:
        return None

    def item(self, meta: LarkMeta, *children: Child):
        attributes = tuple(c for c in children if isinstance(c, Attribute))
        visibility = next((c for c in children if isinstance(c, _Visibility)), None)
        kind = children[-1]
        span = self._span(meta)
        location = self._extract_location(meta)

        if isinstance(kind, _EnumParts):
            return EnumDeclaration(
                name=kind.name,
                cases=kind.cases,
                attributes=attributes,
                visibility=visibility.text if visibility else "",
                generics=kind.generics,
                where_clause=kind.where_clause,
                text=self._text(meta),
                span=span,
                location=location,
                visibility_span=visibility.span if visibility else (kind.start, kind.start),
            )
        if isinstance(kind, _OpaqueParts):
            return OpaqueItem(tokens=kind.tokens, span=span, location=location, attributes=attributes)
        # Module items keep the span of the `mod` keyword onwards
        return kind

    def visibility(self, meta: LarkMeta, *_) -> _Visibility:
        return _Visibility(self._text(meta), self._span(meta))

    def enum_def(self, meta: LarkMeta, name: Token, *rest: Child) -> _EnumParts:
        generics = next((c.text for c in rest if isinstance(c, _Generics)), "")
        where_clause = next((c.text for c in rest if isinstance(c, _WhereClause)), "")
        cases = tuple(c for c in rest if isinstance(c, EnumCase))
        return _EnumParts(str(name), meta.start_pos, generics, where_clause, cases)

    def mod_decl(self, meta: LarkMeta, name: Token) -> ModuleDeclaration:
        return ModuleDeclaration(name=str(name), location=self._extract_location(meta))

    def inline_mod(self, meta: LarkMeta, name: Token, *items) -> InlineModule:
        return InlineModule(
            name=str(name),
            items=tuple(i for i in items if i is not None),
            span=self._span(meta),
            location=self._extract_location(meta),
        )

    def other_item(self, meta: LarkMeta, *children: Child) -> _OpaqueParts:
        return _OpaqueParts(self._elements(children))

    def macro_item(self, meta: LarkMeta, *children: Child) -> _OpaqueParts:
        return _OpaqueParts(self._elements(children))

    # =========================================================================
    # ATTRIBUTES
    # =========================================================================

    def outer_attr(self, meta: LarkMeta, path: Tuple[str, ...], *rest: Child) -> Attribute:
        args = next((c for c in rest if isinstance(c, TokenTree)), None)
        value = next((c.text for c in rest if isinstance(c, _AttrValue)), None)
        return Attribute(
            path=path,
            args=args,
            value=value,
            text=self._text(meta),
            span=self._span(meta),
            location=self._extract_location(meta),
        )

    def attr_path(self, meta: LarkMeta, *names: Token) -> Tuple[str, ...]:
        return tuple(str(n) for n in names)

    def attr_value(self, meta: LarkMeta, *_) -> _AttrValue:
        # Drop the leading `=`
        return _AttrValue(self._text(meta)[1:].strip())

    # =========================================================================
    # ENUM BODY
    # =========================================================================

    def variant(self, meta: LarkMeta, *children: Child) -> EnumCase:
        attributes = tuple(c for c in children if isinstance(c, Attribute))
        name = next(c for c in children if isinstance(c, Token))
        fields = next((c for c in children if isinstance(c, _Fields)), None)
        discriminant = next((c.text for c in children if isinstance(c, _Discriminant)), None)
        return EnumCase(
            name=str(name),
            shape=fields.shape if fields else CaseShape.UNIT,
            fields=fields.fields if fields else (),
            attributes=attributes,
            discriminant=discriminant,
            text=self.source[name.start_pos:meta.end_pos],
            location=self._extract_location(meta),
        )

    def tuple_fields(self, meta: LarkMeta, *fields: CaseField) -> _Fields:
        return _Fields(CaseShape.TUPLE, tuple(fields))

    def record_fields(self, meta: LarkMeta, *fields: CaseField) -> _Fields:
        return _Fields(CaseShape.RECORD, tuple(fields))

    def tuple_field(self, meta: LarkMeta, *children: Child) -> CaseField:
        return CaseField(name=None, type=children[-1], location=self._extract_location(meta))

    def record_field(self, meta: LarkMeta, *children: Child) -> CaseField:
        name = next(c for c in children if isinstance(c, Token))
        return CaseField(name=str(name), type=children[-1], location=self._extract_location(meta))

    def discriminant(self, meta: LarkMeta, *_) -> _Discriminant:
        return _Discriminant(self._text(meta)[1:].strip())

    def generics(self, meta: LarkMeta, *_) -> _Generics:
        return _Generics(self._text(meta))

    def where_clause(self, meta: LarkMeta, *_) -> _WhereClause:
        return _WhereClause(self._text(meta))

    # =========================================================================
    # TYPES
    # =========================================================================

    def path_type(self, meta: LarkMeta, *children: Child) -> TypeRef:
        return self.type_parser.parse_path_type(meta, children)

    def path_segment(self, meta: LarkMeta, name: Token, *args: Child) -> Tuple[str, bool]:
        return (str(name), bool(args))

    def generic_args(self, meta: LarkMeta, *_) -> bool:
        return True

    def paren_args(self, meta: LarkMeta, *_) -> bool:
        return True

    def root_sep(self, meta: LarkMeta) -> str:
        return self.type_parser.ROOT_SEP

    def assoc_binding(self, meta: LarkMeta, *_) -> TypeRef:
        return self.type_parser.parse_opaque_type(meta)

    ref_type = tuple_type = array_type = ptr_type = assoc_binding
    trait_type = fn_type = never_type = infer_type = assoc_binding

    # =========================================================================
    # TOKEN TREES
    # =========================================================================

    def _tree(self, delimiter: str, meta: LarkMeta, children: Tuple[Child, ...]) -> TokenTree:
        start, end = self._span(meta)
        return TokenTree(delimiter=delimiter, children=self._elements(children), start=start, end=end)

    def paren_tree(self, meta: LarkMeta, *children: Child) -> TokenTree:
        return self._tree("(", meta, children)

    def bracket_tree(self, meta: LarkMeta, *children: Child) -> TokenTree:
        return self._tree("[", meta, children)

    def brace_tree(self, meta: LarkMeta, *children: Child) -> TokenTree:
        return self._tree("{", meta, children)

    # =========================================================================
    # MATCH
    # =========================================================================

    def match_expr(self, meta: LarkMeta, scrutinee: CodeFragment, *arms: MatchArm) -> MatchExpression:
        return MatchExpression(
            scrutinee=scrutinee,
            arms=arms,
            text=self._text(meta),
            span=self._span(meta),
            location=self._extract_location(meta),
        )

    def scrutinee(self, meta: LarkMeta, *children: Child) -> CodeFragment:
        return self._fragment(meta, children)

    def arm_expr(self, meta: LarkMeta, *children: Child) -> CodeFragment:
        return self._fragment(meta, children)

    def guard(self, meta: LarkMeta, *children: Child) -> _Guard:
        return _Guard(self._fragment(meta, children))

    def _arm(self, meta: LarkMeta, pattern: Pattern, rest: Tuple[Child, ...]) -> MatchArm:
        guard = next((c.fragment for c in rest if isinstance(c, _Guard)), None)
        body = rest[-1]
        if isinstance(body, TokenTree):
            body = CodeFragment(
                text=self.source[body.start:body.end],
                span=(body.start, body.end),
                tokens=(body,),
                location=self.line_index.location(body.start, body.end),
            )
        return MatchArm(pattern=pattern, guard=guard, body=body, location=self._extract_location(meta))

    def block_arm(self, meta: LarkMeta, pattern: Pattern, *rest: Child) -> MatchArm:
        return self._arm(meta, pattern, rest)

    def expr_arm(self, meta: LarkMeta, pattern: Pattern, *rest: Child) -> MatchArm:
        return self._arm(meta, pattern, rest)

    def tail_arm(self, meta: LarkMeta, pattern: Pattern, *rest: Child) -> MatchArm:
        return self._arm(meta, pattern, rest)

    # =========================================================================
    # PATTERNS
    # =========================================================================

    def pattern(self, meta: LarkMeta, *alternatives: Pattern) -> Pattern:
        return self.pattern_parser.parse_alternatives(meta, alternatives)

    def pat_path(self, meta: LarkMeta, *children: Child):
        return self.pattern_parser.parse_path(children, self.type_parser.ROOT_SEP)

    def path_pat(self, meta: LarkMeta, path) -> Pattern:
        return self.pattern_parser.path(meta, path)

    def tuple_struct_pat(self, meta: LarkMeta, path, *elements: Pattern) -> Pattern:
        return self.pattern_parser.tuple_struct(meta, path, elements)

    def struct_pat(self, meta: LarkMeta, path, *fields: Pattern) -> Pattern:
        return self.pattern_parser.struct(meta, path, fields)

    def field_pat_full(self, meta: LarkMeta, name: Token, pattern: Pattern) -> Pattern:
        return self.pattern_parser.field(meta, str(name), pattern)

    def field_pat_short(self, meta: LarkMeta, *tokens: Token) -> Pattern:
        return self.pattern_parser.field(meta, str(tokens[-1]), None)

    def binding_pat(self, meta: LarkMeta, *children: Child) -> Pattern:
        name = str(children[0]) if isinstance(children[0], Token) else ""
        return self.pattern_parser.binding(meta, name, children[-1])

    def ref_pat(self, meta: LarkMeta, pattern: Pattern) -> Pattern:
        return self.pattern_parser.reference(meta, pattern)

    def tuple_pat(self, meta: LarkMeta, *elements: Pattern) -> Pattern:
        return self.pattern_parser.tuple(meta, elements)

    def slice_pat(self, meta: LarkMeta, *elements: Pattern) -> Pattern:
        return self.pattern_parser.slice(meta, elements)

    def wildcard_pat(self, meta: LarkMeta) -> Pattern:
        return self.pattern_parser.wildcard(meta)

    def rest_pat(self, meta: LarkMeta) -> Pattern:
        return self.pattern_parser.rest(meta)

    def literal_pat(self, meta: LarkMeta, *_) -> Pattern:
        return self.pattern_parser.literal(meta)

    def range_pat(self, meta: LarkMeta, *_) -> Pattern:
        return self.pattern_parser.range(meta)
