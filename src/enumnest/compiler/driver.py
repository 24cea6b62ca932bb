"""
Expansion Driver

Rust Pattern: rustc_driver::driver

Front door of the tool. Finds every ``#[nest]`` enum and every
``nested!`` / ``nest_match!`` invocation of a file, hands them to the
declaration expander and the pattern rewriter, and splices the results back
into the source text. A failing item is reported and keeps its original
text; the other items of the file are still expanded.
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .session import Session
from ..frontend.macros import MacroCall, find_in_items, find_macro_calls
from ..passes.declaration_expansion import ExpandedDeclaration
from ..shared.errors import Error, InvalidAttribute, LocationError, NestError, SourceIOError
from ..shared.nodes import (
    EnumDeclaration, InlineModule, Item, ModulePath, OpaqueItem, format_module_path,
)
from ..shared.printer import Edit, apply_edits
from ..utils.config import FLATTEN_ATTRIBUTE
from ..utils.io_utils import read_source_file

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_thread_state = threading.local()


@dataclass
class ExpansionResult:
    """Expanded text of one file plus the diagnostics raised while expanding it"""
    file: Path
    source: str
    text: str
    errors: List[Error] = field(default_factory=list)
    expanded_declarations: int = 0
    rewritten_matches: int = 0

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def changed(self) -> bool:
        return self.text != self.source


class ExpansionDriver:
    """
    Expansion driver (Rust naming: rustc_driver::driver).

    Rust Pattern: rustc_driver::driver

    Holds one ``Session``; every file expanded through the same driver
    shares its registry, so modules are parsed at most once.
    """

    def __init__(self, session: Optional[Session] = None):
        self.session = session if session is not None else Session()

    @staticmethod
    def session_for_thread(root: Optional[PathLike] = None) -> Session:
        """
        The calling thread's session, created on first use.

        For callers that cannot pass a session around; each thread gets its
        own registry, so no locking is needed. ``root`` is fixed by the call
        that creates the session; later calls may omit it or repeat it.

        Raises:
            ValueError: ``root`` differs from the root the session was created with
        """
        requested = Path(root).resolve() if root is not None else None
        session = getattr(_thread_state, "session", None)
        if session is None:
            session = Session(requested)
            _thread_state.session = session
            _thread_state.root = requested
            logger.debug(f"Created session for thread {threading.current_thread().name}")
        elif requested is not None and requested != _thread_state.root:
            raise ValueError(
                f"the session of thread {threading.current_thread().name} was created with root "
                f"{_thread_state.root or '(discovered)'}; it cannot switch to {requested}"
            )
        return session

    @classmethod
    def for_thread(cls) -> "ExpansionDriver":
        return cls(cls.session_for_thread())

    # =========================================================================
    # Single requests (raise NestError)
    # =========================================================================

    def expand_declaration(self, file: PathLike, line: int) -> ExpandedDeclaration:
        """
        Expand the ``#[nest]`` enum declared at ``line`` of ``file``.

        Raises:
            LocationError: no enum declaration covers that line
            NestError: the declaration cannot be expanded
        """
        path = self._prepare(file)
        module_path = self.session.locator.locate(path, line)
        self.session.registry.load_file(path)

        entry = self.session.registry.module(module_path) or {}
        decl = next(
            (d for d in entry.values() if d.location is not None and d.location.contains_line(line)),
            None,
        )
        if decl is None:
            raise LocationError(
                f"no enum declaration at {path}:{line} (module {format_module_path(module_path)})"
            )
        return self.session.expander.expand(decl, module_path, path)

    def expand_match(self, file: PathLike, line: int, text: str) -> str:
        """
        Rewrite the patterns of a ``match`` construct found at ``line`` of ``file``.

        ``text`` is the construct itself (``match x { ... }``), the body of a
        match macro. Returns the rewritten construct.

        Raises:
            NestError: the construct does not parse or a pattern cannot be rewritten
        """
        path = self._prepare(file)
        module_path = self.session.locator.locate(path, line)
        self.session.registry.load_file(path)

        match = self.session.parser.parse_match(text, str(path))
        edits = self.session.rewriter.rewrite_match(match, module_path, path).unwrap()
        return apply_edits(text, edits)

    # =========================================================================
    # Whole files (report NestError, keep going)
    # =========================================================================

    def expand_file(self, file: PathLike) -> ExpansionResult:
        """Expand a file on disk; read failures are reported, not raised."""
        path = Path(file).resolve()
        try:
            source = read_source_file(path)
        except (OSError, UnicodeDecodeError) as e:
            first = len(self.session.reporter.errors)
            self._report(SourceIOError(f"failed to read {path}: {getattr(e, 'strerror', None) or e}"))
            return ExpansionResult(path, "", "", errors=self.session.reporter.errors[first:])
        return self.expand_source(source, path)

    def expand_source(self, source: str, file: PathLike) -> ExpansionResult:
        """
        Expand ``source`` as the contents of ``file``.

        The file's position under the module root decides its module path;
        the text on disk is not read for the file itself.
        """
        path = self._prepare(file)
        self.session.add_source(path, source)
        first = len(self.session.reporter.errors)
        result = ExpansionResult(path, source, source)

        try:
            module_path = self.session.locator.file_module_path(path)
            ast = self.session.parser.parse_file(source, str(path))
            self.session.registry.load_source(source, path, module_path)
        except NestError as e:
            self._report(e)
            result.errors = self.session.reporter.errors[first:]
            return result

        edits: List[Edit] = []
        self._expand_items(source, ast.items, module_path, path, edits, result)
        for call in find_in_items(source, ast.items, module_path):
            try:
                edits.append((call.start, call.end, self._expand_call(source, call, path)))
                result.rewritten_matches += 1
            except NestError as e:
                self._report(e)

        result.text = apply_edits(source, edits)
        result.errors = self.session.reporter.errors[first:]
        logger.debug(
            f"Expanded {path}: {result.expanded_declarations} declaration(s), "
            f"{result.rewritten_matches} match construct(s), {len(result.errors)} error(s)"
        )
        return result

    def _expand_items(self, source: str, items: Sequence[Item], module_path: ModulePath,
                      path: Path, edits: List[Edit], result: ExpansionResult) -> None:
        for item in items:
            if isinstance(item, EnumDeclaration):
                if not item.is_flatten_marked:
                    continue
                try:
                    expanded = self.session.expander.expand(item, module_path, path)
                except NestError as e:
                    self._report(e)
                    continue
                start, end = item.span
                edits.append((start, end, expanded.render(_line_indent(source, start))))
                result.expanded_declarations += 1
            elif isinstance(item, InlineModule):
                self._expand_items(source, item.items, module_path + (item.name,), path, edits, result)
            elif isinstance(item, OpaqueItem):
                for attr in item.attributes:
                    if attr.is_flatten:
                        self._report(InvalidAttribute(
                            f"#[{FLATTEN_ATTRIBUTE}] can only be applied to enums", attr.location,
                        ))

    def _expand_call(self, source: str, call: MacroCall, path: Path) -> str:
        """
        Replacement text for one macro invocation: the inner ``match`` with
        its patterns rewritten. Invocations nested in the arms are expanded
        too; a failing nested one is reported and left as written.
        """
        body_start, body_end = call.inner_span
        body = source[body_start:body_end]
        match = self.session.parser.parse_match(body, str(path), full_text=source, base_offset=body_start)
        edits = self.session.rewriter.rewrite_match(match, call.module_path, path).unwrap()

        for inner in find_macro_calls(source, call.body.children, call.module_path):
            try:
                replacement = self._expand_call(source, inner, path)
            except NestError as e:
                self._report(e)
                continue
            edits.append((inner.start - body_start, inner.end - body_start, replacement))

        logger.debug(f"Expanded {call.name}! in {format_module_path(call.module_path)}")
        return apply_edits(body, edits).strip()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _prepare(self, file: PathLike) -> Path:
        path = Path(file).resolve()
        self.session.pin_root(path)
        return path

    def _report(self, error: NestError) -> None:
        """Record a diagnostic once; a module-wide check can fail for several items"""
        recorded = error.to_error()
        if recorded in self.session.reporter.errors:
            return
        logger.debug(f"Reporting {error.error_code}: {error.message}")
        self.session.reporter.report_exception(error)


def _line_indent(source: str, offset: int) -> str:
    line_start = source.rfind("\n", 0, offset) + 1
    prefix = source[line_start:offset]
    return prefix[:len(prefix) - len(prefix.lstrip())]
