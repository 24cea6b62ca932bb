"""
Module Path Resolution

Maps source positions to module paths and module paths to files,
following Rust's module file rules.

Rust Pattern: rustc_expand::module::mod_file_path

The locator is stateless apart from its configured root and can be
shared/reused; every answer reflects the filesystem at call time.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ...frontend.parser import Parser
from ...shared.errors import LocationError, ModuleNotFoundError, SourceIOError
from ...shared.nodes import InlineModule, ModulePath, format_module_path
from ...utils.config import (
    MANIFEST_FILE_NAME, MODULE_FILE_EXTENSION, MODULE_INDEX_FILE, MODULE_SEPARATOR,
    ROOT_FILE_NAMES, ROOT_MODULE_MARKER, SELF_MODULE_MARKER, SOURCE_DIR_NAME,
    SUPER_MODULE_MARKER,
)
from ...utils.io_utils import read_source_file

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrateRoot:
    """
    Where module paths are anchored.

    ``root_file`` is set when a single file acts as the crate root (a
    standalone file outside any crate); otherwise ``lib.rs``/``main.rs`` in
    ``directory`` play that role.
    """
    directory: Path
    root_file: Optional[Path] = None


class ModuleLocator:
    """
    Module path <-> file resolution.

    Resolves module paths to filesystem paths following Rust's rules:
    - ()         → <root>/lib.rs or <root>/main.rs
    - a          → <root>/a.rs or <root>/a/mod.rs
    - a::b       → <root>/a/b.rs or <root>/a/b/mod.rs

    Rust Pattern: rustc_expand::module::mod_file_path
    """

    def __init__(self, root: Optional[Path] = None, root_file: Optional[Path] = None,
                 parser: Optional[Parser] = None):
        """
        Args:
            root: Module root directory (discovered per file if None)
            root_file: File acting as the root module (defaults to lib.rs/main.rs)
            parser: Parser used to read module blocks (created lazily if None)
        """
        self.root = Path(root).resolve() if root is not None else None
        self.root_file = Path(root_file).resolve() if root_file is not None else None
        self._parser = parser

    @property
    def parser(self) -> Parser:
        if self._parser is None:
            self._parser = Parser()
        return self._parser

    # =========================================================================
    # Root discovery
    # =========================================================================

    @staticmethod
    def discover_root(file: Path) -> CrateRoot:
        """
        Find the crate root for a file.

        The nearest ancestor holding Cargo.toml contributes ``<dir>/src``
        when the file lives under it; otherwise the file's own directory is
        the root and the file itself is the root module.
        """
        file = Path(file).resolve()
        for ancestor in file.parents:
            if (ancestor / MANIFEST_FILE_NAME).is_file():
                src = ancestor / SOURCE_DIR_NAME
                if src in file.parents:
                    logger.debug(f"Discovered crate root {src} for {file}")
                    return CrateRoot(directory=src)
                break
        logger.debug(f"No crate manifest above {file}; using it as a standalone root")
        return CrateRoot(directory=file.parent, root_file=file)

    def crate_root(self, from_file: Optional[Path] = None) -> CrateRoot:
        if self.root is not None:
            return CrateRoot(directory=self.root, root_file=self.root_file)
        if self.root_file is not None:
            return CrateRoot(directory=self.root_file.parent, root_file=self.root_file)
        if from_file is None:
            raise LocationError("no module root configured and no file to discover it from")
        return self.discover_root(from_file)

    def pinned_to(self, file: Path) -> "ModuleLocator":
        """A locator whose root is fixed to the one discovered for ``file``."""
        if self.root is not None or self.root_file is not None:
            return self
        root = self.discover_root(file)
        return ModuleLocator(root.directory, root.root_file, parser=self._parser)

    # =========================================================================
    # File <-> module path
    # =========================================================================

    def file_module_path(self, file: Path) -> ModulePath:
        """
        Module path declared by a file on its own.

        a/b.rs and a/b/mod.rs → ('a', 'b'); root files → ()
        """
        file = Path(file).resolve()
        if file.suffix != MODULE_FILE_EXTENSION:
            raise LocationError(
                f"{file} is not a module file; expected a `{MODULE_FILE_EXTENSION}` file"
            )
        root = self.crate_root(file)
        if root.root_file is not None and file == root.root_file:
            return ()
        try:
            rel = file.relative_to(root.directory)
        except ValueError:
            raise LocationError(
                f"{file} is not under the module root {root.directory}"
            ) from None

        parts = rel.parts
        if len(parts) == 1 and root.root_file is None and parts[0] in ROOT_FILE_NAMES:
            return ()
        if parts[-1] == MODULE_INDEX_FILE:
            return tuple(parts[:-1])
        return tuple(parts[:-1]) + (Path(parts[-1]).stem,)

    def candidate_files(self, module_path: ModulePath, from_file: Optional[Path] = None) -> List[Path]:
        """Files that could back a module path, in search order"""
        root = self.crate_root(from_file)
        if not module_path:
            if root.root_file is not None:
                return [root.root_file]
            return [root.directory / name for name in ROOT_FILE_NAMES]

        base = root.directory.joinpath(*module_path[:-1])
        last = module_path[-1]
        return [
            base / f"{last}{MODULE_FILE_EXTENSION}",
            base / last / MODULE_INDEX_FILE,
        ]

    def resolve(self, module_path: ModulePath, from_file: Optional[Path] = None) -> Path:
        """
        Resolve a module path to the file that declares it.

        Raises:
            ModuleNotFoundError: If no candidate file exists
        """
        candidates = self.candidate_files(module_path, from_file)
        for candidate in candidates:
            if candidate.is_file():
                logger.debug(f"Resolved module {format_module_path(module_path)} to {candidate}")
                return candidate

        if module_path:
            last = module_path[-1]
            message = (
                f"unable to locate module file for {format_module_path(module_path)}; "
                f"expected {last}{MODULE_FILE_EXTENSION} or {last}/{MODULE_INDEX_FILE} "
                f"under the module root"
            )
        else:
            message = f"unable to locate the root module file ({' or '.join(ROOT_FILE_NAMES)})"
        raise ModuleNotFoundError(message, searched=[str(c) for c in candidates])

    # =========================================================================
    # Position → module path
    # =========================================================================

    def locate(self, file: Path, line: int, column: Optional[int] = None) -> ModulePath:
        """
        Module path in effect at a position of a file.

        Starts from the file's own module path and descends into every inline
        ``mod name { ... }`` block enclosing the position. Macros are not
        expanded, so modules produced by macros are invisible.
        """
        file = Path(file).resolve()
        module_path = self.file_module_path(file)
        try:
            source = read_source_file(file)
        except OSError as e:
            raise SourceIOError(f"failed to read {file}: {e.strerror or e}") from e

        ast = self.parser.parse_file(source, str(file))
        items = ast.items
        while True:
            enclosing = next(
                (item for item in items
                 if isinstance(item, InlineModule) and _encloses(item, line, column)),
                None,
            )
            if enclosing is None:
                break
            module_path = module_path + (enclosing.name,)
            items = enclosing.items

        logger.debug(f"Located {file}:{line} in module {format_module_path(module_path)}")
        return module_path

    # =========================================================================
    # Prefix resolution
    # =========================================================================

    @staticmethod
    def is_definite(prefix: Sequence[str]) -> bool:
        """True for prefixes anchored with crate::, self:: or super::"""
        return bool(prefix) and prefix[0] in (ROOT_MODULE_MARKER, SELF_MODULE_MARKER, SUPER_MODULE_MARKER)

    @staticmethod
    def resolve_relative(prefix: Sequence[str], current: ModulePath) -> List[ModulePath]:
        """
        Candidate module paths for a written prefix, most specific first.

        Rust Pattern: rustc_resolve::path resolution with prefixes.

        Examples:
            resolve_relative(('crate', 'a'), ('m',)) → [('a',)]
            resolve_relative(('self', 'a'), ('m',)) → [('m', 'a')]
            resolve_relative(('super', 'a'), ('m', 'n')) → [('m', 'a')]
            resolve_relative(('a',), ('m',)) → [('m', 'a'), ('a',)]
        """
        prefix = tuple(prefix)
        if not prefix:
            return [current]

        if prefix[0] == ROOT_MODULE_MARKER:
            return [prefix[1:]]

        if prefix[0] == SELF_MODULE_MARKER:
            return [current + prefix[1:]]

        if prefix[0] == SUPER_MODULE_MARKER:
            base = current
            rest = prefix
            while rest and rest[0] == SUPER_MODULE_MARKER:
                if not base:
                    raise ModuleNotFoundError(
                        f"`{MODULE_SEPARATOR.join(prefix)}` used at the crate root (no parent module)"
                    )
                base = base[:-1]
                rest = rest[1:]
            return [base + rest]

        candidates = [current + prefix, prefix]
        unique: List[ModulePath] = []
        for candidate in candidates:
            if candidate not in unique:
                unique.append(candidate)
        return unique


def _encloses(module: InlineModule, line: int, column: Optional[int]) -> bool:
    loc = module.location
    if loc is None or not loc.contains_line(line):
        return False
    if column is None:
        return True
    if line == loc.line and column < loc.column:
        return False
    if line == loc.end_line and column >= loc.end_column:
        return False
    return True
