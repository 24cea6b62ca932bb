"""
Shared components: AST nodes, source locations, diagnostics, printing.

Rust Pattern: Shared foundational types and utilities
"""

from .source_location import LineIndex, SourceLocation
from .errors import Error, ErrorReporter, NestError, NestImplementationError
from .nodes import (
    ModulePath, ROOT_MODULE, format_module_path,
    NodeType, FlattenMark, CaseShape,
    TokenLeaf, TokenTree,
    Attribute, TypeRef, CaseField, EnumCase, EnumDeclaration,
    InlineModule, ModuleDeclaration, OpaqueItem, SourceFile, ExternalPath,
    Pattern, PatternPath, PathPattern, TupleStructPattern, StructPattern, FieldPattern,
    OrPattern, IdentPattern, RefPattern, TuplePattern, SlicePattern,
    WildcardPattern, RestPattern, LiteralPattern, RangePattern,
    CodeFragment, MatchArm, MatchExpression,
)
from .pattern_visitor import PatternVisitor
