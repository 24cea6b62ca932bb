"""
Declaration Expansion Pass

Expands one ``#[nest]`` enum into a module of the same name holding the
enum itself (nest annotations stripped) and, for every case that wraps
another ``#[nest]`` enum, a module of forwarding constructors.

Rust Pattern: proc-macro attribute expansion (item in, items out)

Given

    #[nest]
    enum Outer { Wrap(Inner), Other }

with ``#[nest] enum Inner { A, B(u8) }`` in the same module, the output is

    #[allow(non_snake_case, non_upper_case_globals)]
    mod Outer {
        #[allow(unused_imports)]
        use super::*;
        pub enum Outer { Wrap(super::Inner::Inner), Other }
        pub mod Wrap {
            #[allow(unused_imports)]
            use super::*;
            pub const A: super::Outer = super::Outer::Wrap(super::super::Inner::Inner::A);
            pub fn B(v0: u8) -> super::Outer { super::Outer::Wrap(super::super::Inner::Inner::B(v0)) }
        }
    }

so values are built as ``Outer::Wrap::A`` and the type is ``Outer::Outer``.
Only one level is flattened: Inner's own nested cases are not exposed
through Outer.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..analysis.module_system.registry import DeclarationRegistry
from ..analysis.module_system.symbol_resolver import SymbolResolver, parse_external_attribute
from ..shared.errors import (
    AmbiguousName, AnnotationArgsNotAllowed, CrossModuleNotDeclared, InnerNotFlattenMarked,
    InvalidAttribute, NestImplementationError, PathMismatch, ShapeMismatch,
)
from ..shared.nodes import (
    Attribute, CaseShape, EnumCase, EnumDeclaration, ExternalPath, FlattenMark, ModulePath, TypeRef,
    format_module_path,
)
from ..shared.printer import Edit, apply_edits, indent_block, nested_block
from ..utils.config import (
    EXTERNAL_ARGUMENT, FLATTEN_ATTRIBUTE, GLOB_IMPORT, MODULE_SEPARATOR, POSITIONAL_ARG_PREFIX,
    ROOT_MODULE_MARKER, SUPER_MODULE_MARKER, WRAPPER_LINTS,
)

logger = logging.getLogger(__name__)

_TRAILING_WS = re.compile(r"[ \t]*(?:\r?\n[ \t]*)?")


@dataclass(frozen=True)
class NestedCase:
    """
    A case of the outer enum that wraps a flattened inner enum.

    ``inner_path`` names the inner enum from the forwarder module;
    ``field_type`` names it from inside the outer wrapper module.
    """
    case: EnumCase
    inner: EnumDeclaration
    inner_path: str
    field_type: str
    forwarders: Tuple[str, ...]


@dataclass(frozen=True)
class ExpandedDeclaration:
    """
    Result of expanding one enum.

    ``text`` is the enum as it sits inside its wrapper module; ``nested``
    lists the flattened cases in declaration order.
    """
    declaration: EnumDeclaration
    text: str
    nested: Tuple[NestedCase, ...]

    @property
    def forwarder_count(self) -> int:
        return sum(len(n.forwarders) for n in self.nested)

    def module_lines(self, indent: str = "") -> List[str]:
        """
        Lines of the wrapper module. ``indent`` is removed from the enum's
        continuation lines, which still carry the source indentation.
        """
        decl = self.declaration
        first, *rest = self.text.split("\n")
        body = [*GLOB_IMPORT, first]
        body.extend(line[len(indent):] if line.startswith(indent) else line for line in rest)
        for nested in self.nested:
            body.extend(nested_block(f"pub mod {nested.case.name}", [*GLOB_IMPORT, *nested.forwarders]))
        header = " ".join(part for part in (decl.visibility, "mod", decl.name) if part)
        return [WRAPPER_LINTS, *nested_block(header, body)]

    def render(self, indent: str = "") -> str:
        """
        Replacement text for the declaration's span.

        ``indent`` is the indentation of the line the declaration starts on;
        every generated line after the first gets it.
        """
        return indent_block(self.module_lines(indent), indent)


def wrapped_type_path(name: str, target: ModulePath, current: ModulePath, depth: int) -> str:
    """
    How code ``depth`` wrapper modules below ``current`` names the wrapped
    enum ``name`` declared in ``target``.

    Examples:
        wrapped_type_path('Inner', ('a',), ('a',), 2) → 'super::super::Inner::Inner'
        wrapped_type_path('Inner', ('x',), ('a',), 1) → 'crate::x::Inner::Inner'
    """
    if target == current:
        segments = (SUPER_MODULE_MARKER,) * depth + (name, name)
    else:
        segments = (ROOT_MODULE_MARKER,) + target + (name, name)
    return MODULE_SEPARATOR.join(segments)


def inner_enum_text(decl: EnumDeclaration, payload_types: Sequence[Tuple[TypeRef, str]] = ()) -> str:
    """
    The declaration as it appears inside its wrapper module: every
    ``#[nest...]`` attribute removed (enum or case level), visibility made
    ``pub`` and each listed payload type replaced.
    """
    base = decl.span[0]
    attrs: List[Attribute] = [a for a in decl.attributes if a.is_flatten]
    for case in decl.cases:
        attrs.extend(case.flatten_attributes)

    edits: List[Edit] = []
    for attr in attrs:
        start, end = attr.span
        # Swallow the rest of the line so the item keeps its own indentation
        trailing = _TRAILING_WS.match(decl.text, end - base)
        edits.append((start, base + trailing.end(), ""))
    start, end = decl.visibility_span
    edits.append((start, end, "pub" if decl.visibility else "pub "))
    edits.extend((t.span[0], t.span[1], replacement) for t, replacement in payload_types)
    return apply_edits(decl.text, edits, base)


def forwarder_lines(outer: str, case: str, inner_path: str, inner: EnumDeclaration,
                    renames: Optional[Mapping[str, str]] = None) -> Tuple[str, ...]:
    """
    One forwarder per case of ``inner``, each equal to ``outer::case(inner_path::ic(...))``.

    Forwarders live one module below the wrapper of ``outer``. ``renames``
    maps payload type names to the paths they need there.
    """
    renames = renames or {}
    owner = f"{SUPER_MODULE_MARKER}{MODULE_SEPARATOR}{outer}"
    lines = []
    for ic in inner.cases:
        target = f"{inner_path}{MODULE_SEPARATOR}{ic.name}"
        types = [renames.get(f.type.text, f.type.text) for f in ic.fields]
        if ic.shape is CaseShape.UNIT:
            lines.append(f"pub const {ic.name}: {owner} = {owner}::{case}({target});")
        elif ic.shape is CaseShape.TUPLE:
            names = [f"{POSITIONAL_ARG_PREFIX}{i}" for i in range(len(ic.fields))]
            params = ", ".join(f"{n}: {t}" for n, t in zip(names, types))
            lines.append(
                f"pub fn {ic.name}({params}) -> {owner} {{ {owner}::{case}({target}({', '.join(names)})) }}"
            )
        else:
            params = ", ".join(f"{f.name}: {t}" for f, t in zip(ic.fields, types))
            names = ", ".join(f.name for f in ic.fields)
            init = f"{target} {{ {names} }}" if names else f"{target} {{}}"
            lines.append(f"pub fn {ic.name}({params}) -> {owner} {{ {owner}::{case}({init}) }}")
    return tuple(lines)


class DeclarationExpander:
    """
    Expands ``#[nest]`` enums against a declaration registry.

    The registry must already hold the declaring module; external modules
    are loaded on demand.
    """

    def __init__(self, registry: DeclarationRegistry, resolver: Optional[SymbolResolver] = None):
        self.registry = registry
        self.resolver = resolver if resolver is not None else SymbolResolver(registry)

    def expand(self, decl: EnumDeclaration, module_path: ModulePath,
               from_file: Optional[Path] = None) -> ExpandedDeclaration:
        """
        Expand one declaration declared in ``module_path``.

        Raises:
            NestError subclasses for invalid annotations or unresolvable nesting
        """
        if not decl.is_flatten_marked:
            raise NestImplementationError(f"enum {decl.name} is not marked with #[{FLATTEN_ATTRIBUTE}]")

        self._check_annotation_args(decl)
        self._check_module_annotations(decl, module_path)

        nested: List[NestedCase] = []
        for case in decl.cases:
            found = self._nested_case(decl, case, module_path, from_file)
            if found is not None:
                nested.append(found)
                logger.debug(
                    f"{decl.name}::{case.name} flattens {found.inner_path} "
                    f"({len(found.forwarders)} forwarder(s))"
                )

        return ExpandedDeclaration(
            declaration=decl,
            text=inner_enum_text(decl, self._payload_types(decl, module_path, nested)),
            nested=tuple(nested),
        )

    def _payload_types(self, decl: EnumDeclaration, module_path: ModulePath,
                       nested: Sequence[NestedCase]) -> List[Tuple[TypeRef, str]]:
        """Field types naming wrapped enums, as code inside the wrapper module spells them"""
        flattened = {n.case.name: n.field_type for n in nested}
        renames = self._wrapped_names(module_path, module_path, depth=1)
        payloads = []
        for case in decl.cases:
            if case.name in flattened:
                payloads.append((case.single_field_type, flattened[case.name]))
                continue
            payloads.extend((f.type, renames[f.type.name]) for f in case.fields
                            if f.type.is_simple and f.type.name in renames)
        return payloads

    def _wrapped_names(self, target: ModulePath, current: ModulePath, depth: int) -> Dict[str, str]:
        entry = self.registry.module(target) or {}
        return {
            name: wrapped_type_path(name, target, current, depth)
            for name, decl in entry.items() if decl.is_flatten_marked
        }

    # =========================================================================
    # Declaration-level checks
    # =========================================================================

    @staticmethod
    def _check_annotation_args(decl: EnumDeclaration) -> None:
        if decl.flatten_mark is not FlattenMark.WITH_ARGS:
            return
        attr = next(a for a in decl.attributes if a.is_flatten and a.has_arguments)
        raise AnnotationArgsNotAllowed(
            f"invalid #[{FLATTEN_ATTRIBUTE}(...)] on enum {decl.name}; "
            f"{FLATTEN_ATTRIBUTE} does not accept arguments. Use #[{FLATTEN_ATTRIBUTE}] on enums only",
            attr.location,
        )

    def _check_module_annotations(self, decl: EnumDeclaration, module_path: ModulePath) -> None:
        """The whole module is validated once per expansion"""
        entry = self.registry.module(module_path)
        if entry is None:
            return
        for other in entry.values():
            if other.name != decl.name:
                self._check_annotation_args(other)

    # =========================================================================
    # Case analysis
    # =========================================================================

    def _nested_case(self, decl: EnumDeclaration, case: EnumCase, module_path: ModulePath,
                     from_file: Optional[Path]) -> Optional[NestedCase]:
        attrs = case.flatten_attributes
        if len(attrs) > 1:
            raise InvalidAttribute(
                f"variant {decl.name}::{case.name} has more than one #[{FLATTEN_ATTRIBUTE}(...)] attribute",
                attrs[1].location,
            )
        if attrs:
            return self._external_case(decl, case, attrs[0], module_path, from_file)

        field_type = case.single_field_type
        if field_type is None or not field_type.is_simple:
            return None

        inner = self.registry.get(module_path, field_type.name)
        if inner is None:
            self._check_cross_module(field_type.name, module_path, field_type.location)
            return None
        if not inner.is_flatten_marked:
            # Not every nested enum is meant to be flattened
            return None
        return self._nested(decl, case, inner, module_path, module_path)

    def _external_case(self, decl: EnumDeclaration, case: EnumCase, attr: Attribute,
                       module_path: ModulePath, from_file: Optional[Path]) -> NestedCase:
        external: ExternalPath = parse_external_attribute(attr)

        field_type = case.single_field_type
        if field_type is None:
            raise ShapeMismatch(
                f"variant {decl.name}::{case.name} uses "
                f"#[{FLATTEN_ATTRIBUTE}({EXTERNAL_ARGUMENT} = \"...\")], but is not a single-field tuple variant",
                case.location,
            )
        if not field_type.is_path:
            raise PathMismatch("nested enum type must be a simple path ident", field_type.location)
        if field_type.name != external.name:
            raise PathMismatch(
                f"field type {field_type.name} does not match external enum path {external.text}; "
                f"use the enum ident as the field type",
                field_type.location,
            )

        inner_module, inner = self.resolver.resolve_external(external, module_path, from_file, attr.location)
        if not inner.is_flatten_marked:
            raise InnerNotFlattenMarked(
                f"external enum {external.text} is not marked with #[{FLATTEN_ATTRIBUTE}]; "
                f"only #[{FLATTEN_ATTRIBUTE}] enums can be flattened",
                attr.location,
                note=f"{inner.name} is declared at {inner.location}" if inner.location else None,
            )
        return self._nested(decl, case, inner, inner_module, module_path)

    def _check_cross_module(self, name: str, module_path: ModulePath, location) -> None:
        """A marked enum of that name elsewhere needs an explicit external reference"""
        others = [m for m in self.registry.all_modules_containing(name) if m != module_path]
        marked = []
        for other in others:
            decl = self.registry.get(other, name)
            self._check_annotation_args(decl)
            if decl.is_flatten_marked:
                marked.append(other)
        if not marked:
            return

        if len(marked) == 1:
            qualified = MODULE_SEPARATOR.join((ROOT_MODULE_MARKER,) + marked[0] + (name,))
            raise CrossModuleNotDeclared(
                f"nested enum type {name} is marked with #[{FLATTEN_ATTRIBUTE}] in a different module "
                f"({format_module_path(marked[0])}); "
                f"use #[{FLATTEN_ATTRIBUTE}({EXTERNAL_ARGUMENT} = \"path::to::{name}\")], "
                f"or move the enum into the same module",
                location,
                help=f"add #[{FLATTEN_ATTRIBUTE}({EXTERNAL_ARGUMENT} = \"{qualified}\")] to the variant",
            )
        places = ", ".join(self.resolver.describe(m, name) for m in marked)
        raise AmbiguousName(
            f"nested enum type {name} is marked with #[{FLATTEN_ATTRIBUTE}] in several modules ({places})",
            location,
            help=f"pick one with #[{FLATTEN_ATTRIBUTE}({EXTERNAL_ARGUMENT} = \"path::to::{name}\")]",
        )

    def _nested(self, decl: EnumDeclaration, case: EnumCase, inner: EnumDeclaration,
                inner_module: ModulePath, module_path: ModulePath) -> NestedCase:
        """Forwarders sit two modules below ``module_path`` (wrapper, then case module)"""
        inner_path = wrapped_type_path(inner.name, inner_module, module_path, depth=2)
        renames = self._wrapped_names(inner_module, module_path, depth=2)
        return NestedCase(
            case=case,
            inner=inner,
            inner_path=inner_path,
            field_type=wrapped_type_path(inner.name, inner_module, module_path, depth=1),
            forwarders=forwarder_lines(decl.name, case.name, inner_path, inner, renames),
        )
