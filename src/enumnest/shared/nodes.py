"""
enumnest AST (Abstract Syntax Tree) Definitions

Only the syntax the expander and the pattern rewriter look at is modelled
structurally: enum declarations, module blocks, attributes, field types and
match patterns. Everything else (function bodies, impls, expressions) is kept
as balanced token trees so it can be copied through unchanged.

Every node remembers the exact source text it was parsed from. Offsets in
``span`` are relative to the text handed to the parser; ``location`` is
always file-absolute.

Visitor Pattern Support:
- Pattern nodes have accept() methods for polymorphic dispatch
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Optional, Tuple, TypeVar, Union

from typing_extensions import Final, TypeAlias

from .source_location import SourceLocation
from ..utils.config import FLATTEN_ATTRIBUTE, MODULE_SEPARATOR, ROOT_MODULE_MARKER

if TYPE_CHECKING:
    from .pattern_visitor import PatternVisitor

T = TypeVar('T')

ModulePath: TypeAlias = Tuple[str, ...]
Span: TypeAlias = Tuple[int, int]

ROOT_MODULE: Final[ModulePath] = ()


def format_module_path(path: ModulePath) -> str:
    """Canonical string form; the root prints as ``crate``."""
    if not path:
        return ROOT_MODULE_MARKER
    return MODULE_SEPARATOR.join(path)


class NodeType(Enum):
    """AST node types"""
    SOURCE_FILE = "source_file"
    ENUM_DECL = "enum_decl"
    INLINE_MODULE = "inline_module"
    MODULE_DECL = "module_decl"
    OPAQUE_ITEM = "opaque_item"
    MATCH_EXPR = "match_expr"
    PATH_PATTERN = "path_pattern"
    TUPLE_STRUCT_PATTERN = "tuple_struct_pattern"
    STRUCT_PATTERN = "struct_pattern"
    FIELD_PATTERN = "field_pattern"
    OR_PATTERN = "or_pattern"
    IDENT_PATTERN = "ident_pattern"
    REF_PATTERN = "ref_pattern"
    TUPLE_PATTERN = "tuple_pattern"
    SLICE_PATTERN = "slice_pattern"
    WILDCARD_PATTERN = "wildcard_pattern"
    REST_PATTERN = "rest_pattern"
    LITERAL_PATTERN = "literal_pattern"
    RANGE_PATTERN = "range_pattern"


class FlattenMark(Enum):
    """State of the ``#[nest]`` annotation on a declaration"""
    NONE = "none"
    MARKED = "marked"
    WITH_ARGS = "with_args"


class CaseShape(Enum):
    """Payload shape of an enum case"""
    UNIT = "unit"
    TUPLE = "tuple"
    RECORD = "record"


# ==================== TOKEN TREES ====================

@dataclass(frozen=True)
class TokenLeaf:
    """A single token kept from an opaque region (kind is the terminal name)"""
    kind: str
    value: str
    start: int
    end: int


@dataclass(frozen=True)
class TokenTree:
    """A delimited group: ``(...)``, ``[...]`` or ``{...}``"""
    delimiter: str
    children: Tuple[TokenElement, ...]
    start: int
    end: int

    @property
    def inner_span(self) -> Span:
        return (self.start + 1, self.end - 1)

    def leaves(self) -> Iterator[TokenLeaf]:
        for child in self.children:
            if isinstance(child, TokenTree):
                yield from child.leaves()
            else:
                yield child


TokenElement: TypeAlias = Union[TokenLeaf, TokenTree]


# ==================== ITEMS ====================

@dataclass(frozen=True)
class Attribute:
    """Outer attribute ``#[path]``, ``#[path(...)]`` or ``#[path = value]``"""
    path: Tuple[str, ...]
    args: Optional[TokenTree]
    value: Optional[str]
    text: str
    span: Span
    location: Optional[SourceLocation]

    @property
    def name(self) -> str:
        return MODULE_SEPARATOR.join(self.path)

    @property
    def is_flatten(self) -> bool:
        return self.path == (FLATTEN_ATTRIBUTE,)

    @property
    def has_arguments(self) -> bool:
        if self.value is not None:
            return True
        return self.args is not None and len(self.args.children) > 0


@dataclass(frozen=True)
class TypeRef:
    """
    Field type as written. ``path`` is filled in for path types only
    (``a::b::Inner<T>`` -> ``("a", "b", "Inner")``).
    """
    text: str
    path: Tuple[str, ...] = ()
    has_generics: bool = False
    location: Optional[SourceLocation] = None
    span: Span = (0, 0)

    @property
    def is_path(self) -> bool:
        return bool(self.path)

    @property
    def name(self) -> Optional[str]:
        return self.path[-1] if self.path else None

    @property
    def is_simple(self) -> bool:
        return len(self.path) == 1 and not self.has_generics


@dataclass(frozen=True)
class CaseField:
    name: Optional[str]
    type: TypeRef
    location: Optional[SourceLocation] = None


@dataclass(frozen=True)
class EnumCase:
    """
    One case of an enum. ``text`` is the case without its attributes
    (name, payload and discriminant exactly as written).
    """
    name: str
    shape: CaseShape
    fields: Tuple[CaseField, ...]
    attributes: Tuple[Attribute, ...]
    discriminant: Optional[str]
    text: str
    location: Optional[SourceLocation]

    @property
    def flatten_attributes(self) -> Tuple[Attribute, ...]:
        return tuple(a for a in self.attributes if a.is_flatten)

    @property
    def single_field_type(self) -> Optional[TypeRef]:
        """The payload type of a single-field tuple case, else None"""
        if self.shape is CaseShape.TUPLE and len(self.fields) == 1:
            return self.fields[0].type
        return None


@dataclass(frozen=True)
class EnumDeclaration:
    """
    An ``enum`` item. ``module_path`` is filled in by the registry once the
    file's place in the module tree is known; the parser leaves it empty.
    ``span`` runs from the first attribute to the closing brace;
    ``visibility_span`` is empty (at the ``enum`` keyword) for private enums.
    """
    name: str
    cases: Tuple[EnumCase, ...]
    attributes: Tuple[Attribute, ...]
    visibility: str
    generics: str
    where_clause: str
    text: str
    span: Span
    location: Optional[SourceLocation]
    module_path: ModulePath = ROOT_MODULE
    visibility_span: Span = (0, 0)

    node_type = NodeType.ENUM_DECL

    @property
    def flatten_mark(self) -> FlattenMark:
        marks = [a for a in self.attributes if a.is_flatten]
        if not marks:
            return FlattenMark.NONE
        if any(a.has_arguments for a in marks):
            return FlattenMark.WITH_ARGS
        return FlattenMark.MARKED

    @property
    def is_flatten_marked(self) -> bool:
        return self.flatten_mark is not FlattenMark.NONE

    def case(self, name: str) -> Optional[EnumCase]:
        for c in self.cases:
            if c.name == name:
                return c
        return None

    @property
    def case_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.cases)


@dataclass(frozen=True)
class InlineModule:
    """``mod name { ... }``"""
    name: str
    items: Tuple[Item, ...]
    span: Span
    location: Optional[SourceLocation]

    node_type = NodeType.INLINE_MODULE


@dataclass(frozen=True)
class ModuleDeclaration:
    """``mod name;`` (file-backed module)"""
    name: str
    location: Optional[SourceLocation]

    node_type = NodeType.MODULE_DECL


@dataclass(frozen=True)
class OpaqueItem:
    """Any other item; only its tokens are kept"""
    tokens: Tuple[TokenElement, ...]
    span: Span
    location: Optional[SourceLocation]
    attributes: Tuple[Attribute, ...] = ()

    node_type = NodeType.OPAQUE_ITEM


Item: TypeAlias = Union[EnumDeclaration, InlineModule, ModuleDeclaration, OpaqueItem]


@dataclass(frozen=True)
class SourceFile:
    file: str
    text: str
    items: Tuple[Item, ...]

    node_type = NodeType.SOURCE_FILE


@dataclass(frozen=True)
class ExternalPath:
    """Target of ``#[nest(external = "...")]``"""
    segments: Tuple[str, ...]
    root_qualified: bool
    text: str

    @property
    def name(self) -> str:
        return self.segments[-1]

    @property
    def module_segments(self) -> Tuple[str, ...]:
        return self.segments[:-1]


# ==================== PATTERNS ====================

@dataclass(frozen=True)
class PatternPath:
    segments: Tuple[str, ...]
    leading_colon: bool = False

    def __str__(self) -> str:
        joined = MODULE_SEPARATOR.join(self.segments)
        return f"{MODULE_SEPARATOR}{joined}" if self.leading_colon else joined


@dataclass(frozen=True)
class Pattern:
    """
    Base class for patterns. ``text`` is the original source text; nodes
    synthesized by the rewriter carry an empty ``text`` and are printed.
    """
    text: str
    span: Span
    location: Optional[SourceLocation]

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        raise NotImplementedError

    def children(self) -> Tuple[Pattern, ...]:
        return ()


@dataclass(frozen=True)
class PathPattern(Pattern):
    """``A::B::C`` (also plain bindings such as ``x``)"""
    path: PatternPath

    node_type = NodeType.PATH_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_path_pattern(self)


@dataclass(frozen=True)
class TupleStructPattern(Pattern):
    """``A::B(p, q)``"""
    path: PatternPath
    elements: Tuple[Pattern, ...]

    node_type = NodeType.TUPLE_STRUCT_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_tuple_struct_pattern(self)

    def children(self) -> Tuple[Pattern, ...]:
        return self.elements


@dataclass(frozen=True)
class FieldPattern(Pattern):
    """``name: pattern`` or shorthand ``ref mut name`` inside a struct pattern"""
    name: str
    pattern: Optional[Pattern]

    node_type = NodeType.FIELD_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_field_pattern(self)

    def children(self) -> Tuple[Pattern, ...]:
        return (self.pattern,) if self.pattern is not None else ()


@dataclass(frozen=True)
class StructPattern(Pattern):
    """``A::B { x, y: p, .. }``"""
    path: PatternPath
    fields: Tuple[FieldPattern, ...]
    has_rest: bool

    node_type = NodeType.STRUCT_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_struct_pattern(self)

    def children(self) -> Tuple[Pattern, ...]:
        return self.fields


@dataclass(frozen=True)
class OrPattern(Pattern):
    alternatives: Tuple[Pattern, ...]

    node_type = NodeType.OR_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_or_pattern(self)

    def children(self) -> Tuple[Pattern, ...]:
        return self.alternatives


@dataclass(frozen=True)
class IdentPattern(Pattern):
    """``ref mut name @ subpattern``; a bare name parses as PathPattern"""
    name: str
    subpattern: Optional[Pattern]

    node_type = NodeType.IDENT_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_ident_pattern(self)

    def children(self) -> Tuple[Pattern, ...]:
        return (self.subpattern,) if self.subpattern is not None else ()


@dataclass(frozen=True)
class RefPattern(Pattern):
    pattern: Pattern

    node_type = NodeType.REF_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_ref_pattern(self)

    def children(self) -> Tuple[Pattern, ...]:
        return (self.pattern,)


@dataclass(frozen=True)
class TuplePattern(Pattern):
    elements: Tuple[Pattern, ...]

    node_type = NodeType.TUPLE_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_tuple_pattern(self)

    def children(self) -> Tuple[Pattern, ...]:
        return self.elements


@dataclass(frozen=True)
class SlicePattern(Pattern):
    elements: Tuple[Pattern, ...]

    node_type = NodeType.SLICE_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_slice_pattern(self)

    def children(self) -> Tuple[Pattern, ...]:
        return self.elements


@dataclass(frozen=True)
class WildcardPattern(Pattern):
    node_type = NodeType.WILDCARD_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_leaf_pattern(self)


@dataclass(frozen=True)
class RestPattern(Pattern):
    node_type = NodeType.REST_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_leaf_pattern(self)


@dataclass(frozen=True)
class LiteralPattern(Pattern):
    node_type = NodeType.LITERAL_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_leaf_pattern(self)


@dataclass(frozen=True)
class RangePattern(Pattern):
    node_type = NodeType.RANGE_PATTERN

    def accept(self, visitor: 'PatternVisitor[T]') -> 'T':
        return visitor.visit_leaf_pattern(self)


# ==================== MATCH ====================

@dataclass(frozen=True)
class CodeFragment:
    """Opaque expression code (scrutinee, guard, arm body)"""
    text: str
    span: Span
    tokens: Tuple[TokenElement, ...]
    location: Optional[SourceLocation] = None


@dataclass(frozen=True)
class MatchArm:
    pattern: Pattern
    guard: Optional[CodeFragment]
    body: CodeFragment
    location: Optional[SourceLocation] = None


@dataclass(frozen=True)
class MatchExpression:
    """``match scrutinee { arms }`` as found inside a match macro"""
    scrutinee: CodeFragment
    arms: Tuple[MatchArm, ...]
    text: str
    span: Span
    location: Optional[SourceLocation] = None

    node_type = NodeType.MATCH_EXPR


__all__ = [
    'ModulePath', 'Span', 'ROOT_MODULE', 'format_module_path',
    'NodeType', 'FlattenMark', 'CaseShape',
    'TokenLeaf', 'TokenTree', 'TokenElement',
    'Attribute', 'TypeRef', 'CaseField', 'EnumCase', 'EnumDeclaration',
    'InlineModule', 'ModuleDeclaration', 'OpaqueItem', 'Item', 'SourceFile',
    'ExternalPath', 'PatternPath',
    'Pattern', 'PathPattern', 'TupleStructPattern', 'FieldPattern', 'StructPattern',
    'OrPattern', 'IdentPattern', 'RefPattern', 'TuplePattern', 'SlicePattern',
    'WildcardPattern', 'RestPattern', 'LiteralPattern', 'RangePattern',
    'CodeFragment', 'MatchArm', 'MatchExpression',
]
