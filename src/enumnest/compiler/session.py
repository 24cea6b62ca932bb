"""
Expansion Session

Rust Pattern: rustc_session::Session

One session per compilation unit: it owns the module locator, the
declaration registry and the error reporter. Sessions share no mutable
state, so separate sessions can run on separate threads without locks.
"""

import logging
from pathlib import Path
from typing import Optional

from ..analysis.module_system import DeclarationRegistry, ModuleLocator, SymbolResolver
from ..frontend.parser import Parser
from ..passes.declaration_expansion import DeclarationExpander
from ..passes.pattern_rewrite import PatternRewriter
from ..shared.errors import ErrorReporter
from ..utils.config import DEFAULT_PARSER_CACHE_FILE

logger = logging.getLogger(__name__)


class Session:
    """
    Per-compilation context (Rust naming: rustc_session::Session).

    ``root`` / ``root_file`` pin the module root; when both are omitted the
    root is discovered from the first file the session sees and then kept
    for the rest of the session.
    """

    def __init__(
        self,
        root: Optional[Path] = None,
        root_file: Optional[Path] = None,
        parser: Optional[Parser] = None,
        cache_file: Optional[str] = DEFAULT_PARSER_CACHE_FILE,
    ):
        self.parser = parser if parser is not None else Parser(cache_file)
        self.reporter = ErrorReporter()
        self._configured = root is not None or root_file is not None
        self._install(ModuleLocator(root, root_file, parser=self.parser))

    def _install(self, locator: ModuleLocator) -> None:
        self.locator = locator
        self.registry = DeclarationRegistry(locator, self.parser)
        self.resolver = SymbolResolver(self.registry)
        self.expander = DeclarationExpander(self.registry, self.resolver)
        self.rewriter = PatternRewriter(self.registry, self.resolver)

    def pin_root(self, file: Path) -> None:
        """Fix the module root to the one discovered for ``file`` (first call wins)."""
        if self._configured:
            return
        self._install(self.locator.pinned_to(file))
        self._configured = True
        root = self.locator.crate_root(file)
        logger.debug(f"Session root pinned to {root.directory} (root file: {root.root_file})")

    def add_source(self, file: Path, text: str) -> None:
        self.reporter.add_source(str(file), text)

    def has_errors(self) -> bool:
        return self.reporter.has_errors()
