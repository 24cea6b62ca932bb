"""
Pattern Rewrite Pass

Turns flattened dotted paths in match patterns into nested patterns:

    Outer::Wrap::A            →  Outer::Outer::Wrap(Inner::Inner::A)
    Outer::Wrap::B(n)         →  Outer::Outer::Wrap(Inner::Inner::B(n))
    Outer::Wrap::C { x, .. }  →  Outer::Outer::Wrap(Inner::Inner::C { x, .. })

Every #[nest] enum lives in a module of its own name, hence the doubled
names. A rewritten path reads ``Outer::Outer::Wrap``, which names no case,
so a second pass leaves it alone.

Rust Pattern: rustc_resolve late resolution over patterns (PatKind walk)

Every path/tuple-struct/struct pattern with at least three segments is a
candidate; the last three segments are (outer enum, outer case, inner case)
and anything before them is a module prefix. Candidates that do not name a
known enum or case are left alone so ordinary deep paths keep working.

The visitor returns ``Result`` values: ``ok(pattern)`` (the same object when
nothing changed) or ``err(NestError)``. Rewritten nodes keep their original
span, and their text is the original text with the rewritten children
spliced in, so everything that was not rewritten stays byte for byte.
"""

import dataclasses
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..analysis.module_system.registry import DeclarationRegistry
from ..analysis.module_system.symbol_resolver import SymbolResolver, parse_external_attribute
from ..shared.errors import (
    InnerNotFlattenMarked, InnerNotFound, NestError, OuterNotFlattenMarked, UnknownInnerCase,
)
from ..shared.nodes import (
    EnumDeclaration, FieldPattern, IdentPattern, MatchExpression, ModulePath, OrPattern,
    PathPattern, Pattern, PatternPath, RefPattern, SlicePattern, StructPattern,
    TuplePattern, TupleStructPattern,
)
from ..shared.pattern_visitor import PatternVisitor
from ..shared.printer import Edit, apply_edits
from ..utils.base import Result
from ..utils.config import (
    EXTERNAL_ARGUMENT, FLATTEN_ATTRIBUTE, MIN_CANDIDATE_SEGMENTS, MODULE_SEPARATOR,
    ROOT_MODULE_MARKER,
)

logger = logging.getLogger(__name__)

PatternResult = Result[Pattern, NestError]


def relative_prefix(target: ModulePath, current: ModulePath) -> str:
    """
    How code in ``current`` spells ``target`` as a path prefix.

    Examples:
        relative_prefix(('a',), ('a',)) → ''
        relative_prefix(('a', 'b'), ('a',)) → 'b::'
        relative_prefix(('x',), ('a',)) → 'crate::x::'
    """
    if target == current:
        return ""
    if target[:len(current)] == current:
        rest = target[len(current):]
    else:
        rest = (ROOT_MODULE_MARKER,) + target
    return MODULE_SEPARATOR.join(rest) + MODULE_SEPARATOR


class PatternRewriter(PatternVisitor[PatternResult]):
    """
    Rewrites the patterns of one match construct.

    The current module and file are set per call; the instance itself can
    be reused for any number of constructs.
    """

    def __init__(self, registry: DeclarationRegistry, resolver: Optional[SymbolResolver] = None):
        self.registry = registry
        self.resolver = resolver if resolver is not None else SymbolResolver(registry)
        self.current: ModulePath = ()
        self.from_file: Optional[Path] = None

    # =========================================================================
    # Entry points
    # =========================================================================

    def rewrite_match(self, match: MatchExpression, module_path: ModulePath,
                      from_file: Optional[Path] = None) -> Result[List[Edit], NestError]:
        """
        Edits (relative to the parsed text) replacing every rewritten arm pattern.

        The first error aborts the whole construct.
        """
        edits: List[Edit] = []
        for arm in match.arms:
            result = self.rewrite_pattern(arm.pattern, module_path, from_file)
            if result.is_err():
                return Result.err(result.unwrap_err())
            rewritten = result.unwrap()
            if rewritten is not arm.pattern:
                start, end = arm.pattern.span
                edits.append((start, end, rewritten.text))
                logger.debug(f"Rewrote arm `{arm.pattern.text}` → `{rewritten.text}`")
        return Result.ok(edits)

    def rewrite_pattern(self, pattern: Pattern, module_path: ModulePath,
                        from_file: Optional[Path] = None) -> PatternResult:
        self.current = module_path
        self.from_file = from_file
        return pattern.accept(self)

    # =========================================================================
    # Visitor
    # =========================================================================

    def visit_path_pattern(self, node: PathPattern) -> PatternResult:
        return self._candidate(node, "")

    def visit_tuple_struct_pattern(self, node: TupleStructPattern) -> PatternResult:
        children = self._rewrite_all(node.elements)
        if children.is_err():
            return children
        node = self._rebuilt(node, node.elements, children.unwrap(), "elements")
        # The field list starts at the first parenthesis; path segments never contain one
        return self._candidate(node, node.text[node.text.index("("):])

    def visit_struct_pattern(self, node: StructPattern) -> PatternResult:
        children = self._rewrite_all(node.fields)
        if children.is_err():
            return children
        node = self._rebuilt(node, node.fields, children.unwrap(), "fields")
        return self._candidate(node, " " + node.text[node.text.index("{"):])

    def visit_field_pattern(self, node: FieldPattern) -> PatternResult:
        if node.pattern is None:
            return Result.ok(node)
        return self._single_child(node, node.pattern, "pattern")

    def visit_or_pattern(self, node: OrPattern) -> PatternResult:
        children = self._rewrite_all(node.alternatives)
        if children.is_err():
            return children
        return Result.ok(self._rebuilt(node, node.alternatives, children.unwrap(), "alternatives"))

    def visit_ident_pattern(self, node: IdentPattern) -> PatternResult:
        if node.subpattern is None:
            return Result.ok(node)
        return self._single_child(node, node.subpattern, "subpattern")

    def visit_ref_pattern(self, node: RefPattern) -> PatternResult:
        return self._single_child(node, node.pattern, "pattern")

    def visit_tuple_pattern(self, node: TuplePattern) -> PatternResult:
        children = self._rewrite_all(node.elements)
        if children.is_err():
            return children
        return Result.ok(self._rebuilt(node, node.elements, children.unwrap(), "elements"))

    def visit_slice_pattern(self, node: SlicePattern) -> PatternResult:
        children = self._rewrite_all(node.elements)
        if children.is_err():
            return children
        return Result.ok(self._rebuilt(node, node.elements, children.unwrap(), "elements"))

    def visit_leaf_pattern(self, node: Pattern) -> PatternResult:
        return Result.ok(node)

    # =========================================================================
    # Child splicing
    # =========================================================================

    def _rewrite_all(self, children: Sequence[Pattern]) -> Result[Tuple[Pattern, ...], NestError]:
        rewritten = []
        for child in children:
            result = child.accept(self)
            if result.is_err():
                return Result.err(result.unwrap_err())
            rewritten.append(result.unwrap())
        return Result.ok(tuple(rewritten))

    def _single_child(self, node: Pattern, child: Pattern, attr: str) -> PatternResult:
        result = child.accept(self)
        if result.is_err():
            return result
        new_child = result.unwrap()
        if new_child is child:
            return Result.ok(node)
        text = apply_edits(node.text, [(child.span[0], child.span[1], new_child.text)], node.span[0])
        return Result.ok(dataclasses.replace(node, text=text, **{attr: new_child}))

    @staticmethod
    def _rebuilt(node: Pattern, old: Sequence[Pattern], new: Sequence[Pattern], attr: str) -> Pattern:
        """``node`` with changed children spliced into its text (``node`` itself if none changed)"""
        edits = [(o.span[0], o.span[1], n.text) for o, n in zip(old, new) if n is not o]
        if not edits:
            return node
        text = apply_edits(node.text, edits, node.span[0])
        return dataclasses.replace(node, text=text, **{attr: tuple(new)})

    # =========================================================================
    # Candidates
    # =========================================================================

    def _candidate(self, node: Pattern, fields_text: str) -> PatternResult:
        """
        Rewrite a path-shaped pattern if it names a flattened case.

        ``fields_text`` is everything after the path (``(..)``, `` {..}`` or
        nothing) and is carried into the inner pattern unchanged.
        """
        path: PatternPath = node.path
        if len(path.segments) < MIN_CANDIDATE_SEGMENTS or path.leading_colon:
            return Result.ok(node)
        try:
            inner_path = self._resolve(path, node)
        except NestError as e:
            return Result.err(e)
        if inner_path is None:
            return Result.ok(node)

        prefix = path.segments[:-MIN_CANDIDATE_SEGMENTS]
        outer_name, case_name = path.segments[-MIN_CANDIDATE_SEGMENTS:-1]
        outer = PatternPath(prefix + (outer_name, outer_name, case_name))
        inner = PathPattern(
            text=f"{inner_path}{fields_text}",
            span=node.span,
            location=node.location,
            path=PatternPath(tuple(inner_path.split(MODULE_SEPARATOR))),
        )
        rewritten = TupleStructPattern(
            text=f"{outer}({inner.text})",
            span=node.span,
            location=node.location,
            path=outer,
            elements=(inner,),
        )
        logger.debug(f"Rewrote pattern {path} → {rewritten.text}")
        return Result.ok(rewritten)

    def _resolve(self, path: PatternPath, node: Pattern) -> Optional[str]:
        """
        The inner path (``prefix::Inner::Inner::Case``) a candidate stands for, or
        None when the candidate is not a flattening reference.
        """
        segments = path.segments
        prefix = segments[:-MIN_CANDIDATE_SEGMENTS]
        outer_name, case_name, inner_case = segments[-MIN_CANDIDATE_SEGMENTS:]
        location = node.location

        found = self.resolver.lookup(prefix, self.current, outer_name, self.from_file, location)
        if found is None:
            return None
        outer_module, outer = found
        if not outer.is_flatten_marked:
            raise OuterNotFlattenMarked(
                f"enum {outer_name} is not marked with #[{FLATTEN_ATTRIBUTE}]; "
                f"only #[{FLATTEN_ATTRIBUTE}] enums support nested match patterns",
                location,
                note=f"{outer_name} is declared at {outer.location}" if outer.location else None,
            )

        case = outer.case(case_name)
        if case is None:
            return None

        attrs = case.flatten_attributes
        if attrs:
            external = parse_external_attribute(attrs[0])
            inner_module, inner = self.resolver.resolve_external(
                external, outer_module, self.from_file, location)
            inner_prefix = relative_prefix(inner_module, self.current)
        else:
            field_type = case.single_field_type
            if field_type is None or not field_type.is_simple:
                return None
            inner = self.registry.get(outer_module, field_type.name)
            if inner is None:
                raise InnerNotFound(
                    f"inner enum {field_type.name} not found for {outer_name}::{case_name}; "
                    f"ensure it is declared in the same module or use "
                    f"#[{FLATTEN_ATTRIBUTE}({EXTERNAL_ARGUMENT} = \"path::to::{field_type.name}\")]",
                    location,
                )
            inner_prefix = "".join(f"{s}{MODULE_SEPARATOR}" for s in prefix)

        self._check_inner(inner, inner_case, outer_name, case_name, location)
        return MODULE_SEPARATOR.join((f"{inner_prefix}{inner.name}", inner.name, inner_case))

    @staticmethod
    def _check_inner(inner: EnumDeclaration, inner_case: str, outer_name: str, case_name: str,
                     location) -> None:
        if not inner.is_flatten_marked:
            raise InnerNotFlattenMarked(
                f"inner enum {inner.name} is not marked with #[{FLATTEN_ATTRIBUTE}]; "
                f"only #[{FLATTEN_ATTRIBUTE}] enums support nested match patterns",
                location,
                note=f"{outer_name}::{case_name} wraps {inner.name}",
            )
        if inner.case(inner_case) is None:
            raise UnknownInnerCase(
                f"variant {inner_case} not found on inner enum {inner.name} "
                f"(wrapped by {outer_name}::{case_name})",
                location,
                help=f"{inner.name} has variants: {', '.join(inner.case_names) or '(none)'}",
            )
