"""
Declaration Registry

Per-session cache of enum declarations keyed by module path.

Rust Pattern: rustc_resolve::ModuleData (lazily populated per module)

Loading a module parses the file that backs it and records every module
found in that file at once: the file's own module and all inline modules,
including the ones that declare no enums. Entries are never mutated after
insertion and never invalidated during a session.
"""

import dataclasses
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .path_resolver import ModuleLocator
from ...frontend.parser import Parser
from ...shared.errors import ModuleNotFoundError, SourceIOError
from ...shared.nodes import (
    EnumDeclaration, InlineModule, Item, ModulePath, SourceFile, format_module_path,
)
from ...utils.io_utils import read_source_file

logger = logging.getLogger(__name__)

RegistryEntry = Mapping[str, EnumDeclaration]


def collect_declarations(ast: SourceFile, base: ModulePath) -> Dict[ModulePath, Dict[str, EnumDeclaration]]:
    """
    Group the enum declarations of a parsed file by module path.

    ``base`` is the module path of the file itself; inline modules extend it.
    Every module encountered gets an entry, even an empty one.
    """
    collected: Dict[ModulePath, Dict[str, EnumDeclaration]] = {}

    def walk(items: Iterable[Item], module_path: ModulePath) -> None:
        entry = collected.setdefault(module_path, {})
        for item in items:
            if isinstance(item, EnumDeclaration):
                if item.name in entry:
                    logger.debug(
                        f"Duplicate enum {item.name} in {format_module_path(module_path)}; keeping the first"
                    )
                    continue
                entry[item.name] = dataclasses.replace(item, module_path=module_path)
            elif isinstance(item, InlineModule):
                walk(item.items, module_path + (item.name,))

    walk(ast.items, base)
    return collected


class DeclarationRegistry:
    """
    Lazy module-path → declarations map.

    Lookups never load; ``ensure_loaded`` / ``load_file`` do, and a failed
    load leaves the registry exactly as it was.
    """

    def __init__(self, locator: ModuleLocator, parser: Optional[Parser] = None):
        self.locator = locator
        self.parser = parser if parser is not None else locator.parser
        self._entries: Dict[ModulePath, RegistryEntry] = {}
        self._sources: Dict[ModulePath, Path] = {}
        self._loaded_files: Dict[Path, ModulePath] = {}

    # =========================================================================
    # Loading
    # =========================================================================

    def is_loaded(self, module_path: ModulePath) -> bool:
        return module_path in self._entries

    def ensure_loaded(self, module_path: ModulePath, from_file: Optional[Path] = None) -> RegistryEntry:
        """
        Make sure ``module_path`` has an entry, loading its file if needed.

        Inline modules live in an ancestor's file, so when no file backs the
        path itself the nearest ancestor with a file is loaded instead.

        Raises:
            ModuleNotFoundError: No file provides the module
            SourceIOError / SourceSyntaxError: The file could not be read or parsed
        """
        if module_path in self._entries:
            return self._entries[module_path]

        try:
            file = self.locator.resolve(module_path, from_file)
        except ModuleNotFoundError as not_found:
            file = self._ancestor_file(module_path, from_file)
            if file is None:
                raise
            self.load_file(file)
            if module_path not in self._entries:
                raise not_found
            return self._entries[module_path]

        self.load_file(file, module_path)
        return self._entries[module_path]

    def _ancestor_file(self, module_path: ModulePath, from_file: Optional[Path]) -> Optional[Path]:
        for depth in range(len(module_path) - 1, -1, -1):
            ancestor = module_path[:depth]
            if ancestor in self._entries:
                # Already parsed; it did not contain the module
                return None
            try:
                return self.locator.resolve(ancestor, from_file)
            except ModuleNotFoundError:
                continue
        return None

    def load_file(self, file: Path, module_path: Optional[ModulePath] = None) -> ModulePath:
        """
        Parse one file and insert every module it contains.

        Returns the module path of the file itself.
        """
        file = Path(file).resolve()
        if file in self._loaded_files:
            return self._loaded_files[file]

        base = module_path if module_path is not None else self.locator.file_module_path(file)
        try:
            source = read_source_file(file)
        except (OSError, UnicodeDecodeError) as e:
            raise SourceIOError(f"failed to read {file}: {getattr(e, 'strerror', None) or e}") from e

        ast = self.parser.parse_file(source, str(file))
        collected = collect_declarations(ast, base)
        self._insert_all(collected, file)
        self._loaded_files[file] = base
        logger.debug(
            f"Loaded {file} as {format_module_path(base)}: "
            f"{sum(len(e) for e in collected.values())} enum(s) in {len(collected)} module(s)"
        )
        return base

    def load_source(self, source: str, file: Path, module_path: ModulePath) -> None:
        """Insert the modules of already-read source text (the file being expanded)."""
        file = Path(file).resolve()
        if file in self._loaded_files:
            return
        ast = self.parser.parse_file(source, str(file))
        self._insert_all(collect_declarations(ast, module_path), file)
        self._loaded_files[file] = module_path

    def _insert_all(self, collected: Dict[ModulePath, Dict[str, EnumDeclaration]], file: Path) -> None:
        for module_path, entry in collected.items():
            if module_path in self._entries:
                continue
            self._entries[module_path] = MappingProxyType(dict(entry))
            self._sources[module_path] = file

    # =========================================================================
    # Queries (never load)
    # =========================================================================

    def get(self, module_path: ModulePath, name: str) -> Optional[EnumDeclaration]:
        entry = self._entries.get(module_path)
        if entry is None:
            return None
        return entry.get(name)

    def module(self, module_path: ModulePath) -> Optional[RegistryEntry]:
        return self._entries.get(module_path)

    def source_of(self, module_path: ModulePath) -> Optional[Path]:
        return self._sources.get(module_path)

    def modules(self) -> List[ModulePath]:
        return sorted(self._entries)

    def all_modules_containing(self, name: str, marked_only: bool = False) -> List[ModulePath]:
        """Sorted module paths whose entry declares ``name``"""
        found = []
        for module_path, entry in self._entries.items():
            decl = entry.get(name)
            if decl is None:
                continue
            if marked_only and not decl.is_flatten_marked:
                continue
            found.append(module_path)
        return sorted(found)

    def lookup(self, candidates: Iterable[ModulePath], name: str) -> List[Tuple[ModulePath, EnumDeclaration]]:
        """Declarations named ``name`` in the given (already loaded) modules, in order"""
        hits = []
        for module_path in candidates:
            decl = self.get(module_path, name)
            if decl is not None:
                hits.append((module_path, decl))
        return hits
