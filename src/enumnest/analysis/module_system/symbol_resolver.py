"""
Enum Name Resolution

Resolves written paths (pattern prefixes and ``external = "..."`` targets)
to enum declarations in the registry, loading modules on demand.

Rust Pattern: rustc_resolve path resolution (relative first, then crate root)

Shared by the declaration expander and the pattern rewriter so both apply
the same candidate order and the same ambiguity rule.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .path_resolver import ModuleLocator
from .registry import DeclarationRegistry
from ...shared.errors import (
    AmbiguousName, ExternalNotFound, InvalidAttribute, ModuleNotFoundError, NestImplementationError,
)
from ...shared.nodes import (
    Attribute, EnumDeclaration, ExternalPath, ModulePath, TokenLeaf, format_module_path,
)
from ...shared.source_location import SourceLocation
from ...utils.config import (
    EXTERNAL_ARGUMENT, FLATTEN_ATTRIBUTE, MODULE_SEPARATOR, ROOT_MODULE_MARKER,
)

logger = logging.getLogger(__name__)

Resolved = Tuple[ModulePath, EnumDeclaration]

_EXTERNAL_HINT = f'#[{FLATTEN_ATTRIBUTE}({EXTERNAL_ARGUMENT} = "path::to::Enum")]'


def parse_external_attribute(attr: Attribute) -> ExternalPath:
    """
    Read ``#[nest(external = "a::b::Enum")]`` on a case.

    Raises:
        InvalidAttribute: no arguments, unknown arguments, a non-string value
            or a string that is not a path
    """
    leaves = list(attr.args.children) if attr.args is not None else []
    if attr.value is not None or not leaves:
        raise InvalidAttribute(
            f"invalid #[{FLATTEN_ATTRIBUTE}] on variant; use {_EXTERNAL_HINT}",
            attr.location,
        )

    if not (len(leaves) >= 2
            and isinstance(leaves[0], TokenLeaf) and leaves[0].value == EXTERNAL_ARGUMENT
            and isinstance(leaves[1], TokenLeaf) and leaves[1].value == "="):
        raise InvalidAttribute(
            f"invalid #[{FLATTEN_ATTRIBUTE}(...)] on variant; expected {EXTERNAL_ARGUMENT} = \"path::to::Enum\"",
            attr.location,
        )

    value = leaves[2:]
    if len(value) != 1 or not isinstance(value[0], TokenLeaf) or value[0].kind != "STRING" \
            or value[0].value.startswith("b"):
        raise InvalidAttribute(f"{EXTERNAL_ARGUMENT} must be a string literal", attr.location)

    text = value[0].value[1:-1].strip()
    return parse_external_path(text, attr.location)


def parse_external_path(text: str, location: Optional[SourceLocation] = None) -> ExternalPath:
    """``crate::a::Enum`` → ExternalPath(('a', 'Enum'), root_qualified=True)"""
    invalid = InvalidAttribute(
        f"{EXTERNAL_ARGUMENT} must be a valid Rust path, e.g. \"crate::foo::Enum\"",
        location,
    )
    body = text[len(MODULE_SEPARATOR):] if text.startswith(MODULE_SEPARATOR) else text
    segments = tuple(s.strip() for s in body.split(MODULE_SEPARATOR))
    if not segments or not all(_is_identifier(s) for s in segments):
        raise invalid

    root_qualified = segments[0] == ROOT_MODULE_MARKER
    if root_qualified:
        segments = segments[1:]
    if not segments or ROOT_MODULE_MARKER in segments:
        raise invalid
    return ExternalPath(segments=segments, root_qualified=root_qualified, text=text)


def _is_identifier(segment: str) -> bool:
    name = segment[2:] if segment.startswith("r#") else segment
    return bool(name) and (name[0].isalpha() or name[0] == "_") \
        and all(ch.isalnum() or ch == "_" for ch in name) and name != "_"


class SymbolResolver:
    """
    Looks enum names up through candidate module paths.

    Stateless apart from the registry it loads into.
    """

    def __init__(self, registry: DeclarationRegistry):
        self.registry = registry

    @property
    def locator(self) -> ModuleLocator:
        return self.registry.locator

    def lookup(
        self,
        prefix: Sequence[str],
        current: ModulePath,
        name: str,
        from_file: Optional[Path],
        location: Optional[SourceLocation] = None,
    ) -> Optional[Resolved]:
        """
        Find the declaration a written ``prefix::name`` refers to.

        An empty prefix means the current module. Anchored prefixes
        (``crate::``, ``self::``, ``super::``) name exactly one module and a
        missing module is an error; other prefixes are tried relative to the
        current module and then from the root, skipping modules that do not
        exist.

        Returns:
            (module path, declaration), or None when nothing declares ``name``

        Raises:
            ModuleNotFoundError: an anchored prefix names no module
            AmbiguousName: several candidate modules declare ``name``
        """
        definite = not prefix or self.locator.is_definite(prefix)
        try:
            candidates = self.locator.resolve_relative(prefix, current)
        except ModuleNotFoundError as e:
            raise e.with_location(location)

        hits = self._collect(candidates, name, from_file, location, definite)
        if not hits:
            return None
        if len(hits) > 1:
            raise self._ambiguous(name, [m for m, _ in hits], location)
        return hits[0]

    def resolve_external(
        self,
        external: ExternalPath,
        declaring_module: ModulePath,
        from_file: Optional[Path],
        location: Optional[SourceLocation] = None,
    ) -> Resolved:
        """
        Resolve ``#[nest(external = "...")]`` relative to the declaring module.

        Raises:
            ModuleNotFoundError: the module part cannot be located
            ExternalNotFound: the module exists but does not declare the enum
            AmbiguousName: a relative path matches below the current module and from the root
        """
        if external.root_qualified:
            candidates = [external.module_segments]
        else:
            candidates = self.locator.resolve_relative(external.module_segments, declaring_module)

        definite = external.root_qualified or len(candidates) == 1
        loaded = []
        first_error: Optional[ModuleNotFoundError] = None
        for candidate in candidates:
            try:
                self.registry.ensure_loaded(candidate, from_file)
            except ModuleNotFoundError as e:
                logger.debug(f"External candidate {format_module_path(candidate)} not found")
                first_error = first_error or e
                continue
            loaded.append(candidate)

        if not loaded:
            if first_error is None:
                raise NestImplementationError(f"no candidate modules for external path {external.text}")
            raise first_error.with_location(location)

        hits = self.registry.lookup(loaded, external.name)
        if not hits:
            raise ExternalNotFound(
                f"external enum {external.text} not found; "
                f"ensure the module path exists and the enum is declared in that module",
                location,
                note=f"searched module(s): {', '.join(format_module_path(m) for m in loaded)}"
                if not definite else None,
                help="the enum must be declared in a regular module file, not generated or include!d",
            )
        if len(hits) > 1:
            raise self._ambiguous(external.name, [m for m, _ in hits], location)
        return hits[0]

    def _collect(
        self,
        candidates: List[ModulePath],
        name: str,
        from_file: Optional[Path],
        location: Optional[SourceLocation],
        definite: bool,
    ) -> List[Resolved]:
        hits: List[Resolved] = []
        for candidate in candidates:
            try:
                self.registry.ensure_loaded(candidate, from_file)
            except ModuleNotFoundError as e:
                if definite:
                    raise e.with_location(location)
                logger.debug(f"Skipping candidate module {format_module_path(candidate)}: not found")
                continue
            decl = self.registry.get(candidate, name)
            if decl is not None:
                hits.append((candidate, decl))
        return hits

    def _ambiguous(self, name: str, modules: List[ModulePath], location: Optional[SourceLocation]) -> AmbiguousName:
        places = ", ".join(self.describe(m, name) for m in modules)
        return AmbiguousName(
            f"`{name}` is ambiguous; it is declared in {places}",
            location,
            help="qualify the path with `crate::` to pick one",
        )

    def describe(self, module_path: ModulePath, name: str) -> str:
        """``crate::a::Enum (src/a.rs:3:1)``"""
        decl = self.registry.get(module_path, name)
        qualified = MODULE_SEPARATOR.join((ROOT_MODULE_MARKER,) + module_path + (name,))
        if decl is not None and decl.location is not None:
            return f"{qualified} ({decl.location})"
        return qualified
