"""
Error Reporting

Rust Pattern: rustc_errors::Diagnostic
"""

import os
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, TextIO

from .source_location import SourceLocation
from ..utils.config import COLOR_ENV_VAR


# ---------------------------------------------------------------------------
# ANSI color helpers (disabled when NO_COLOR is set)
# ---------------------------------------------------------------------------

def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    explicit = os.environ.get(COLOR_ENV_VAR, "").lower()
    if explicit in ("0", "false", "no", "never"):
        return False
    return True

_BOLD   = "\033[1m"
_RED    = "\033[31m"
_BLUE   = "\033[34m"
_CYAN   = "\033[36m"
_RESET  = "\033[0m"

def _style(text: str, *codes: str, color: bool = True) -> str:
    if not color:
        return text
    prefix = "".join(codes)
    return f"{prefix}{text}{_RESET}" if prefix else text


# ---------------------------------------------------------------------------
# Error dataclass
# ---------------------------------------------------------------------------

@dataclass
class Error:
    """
    A recorded diagnostic.

    Rust Pattern: rustc_errors::Diagnostic
    """
    message: str
    location: Optional[SourceLocation]
    code: Optional[str] = None
    help: Optional[str] = None
    note: Optional[str] = None
    label: Optional[str] = None


# ---------------------------------------------------------------------------
# Formatting engine
# ---------------------------------------------------------------------------

def _format_diagnostic(
    error: Error,
    source_files: Dict[str, str],
    color: bool = False,
) -> str:
    """
    Render a single diagnostic in rustc style.

    Example output (plain, no color)::

        error[N0203]: variant Missing not found on inner enum Inner
         --> src/lib.rs:14:9
          |
        14 |         Outer::Wrap::Missing => 0,
          |         ^^^^^^^^^^^^^^^^^^^^
          |
          = help: Inner has variants A, B
    """
    out: List[str] = []

    code_str = f"[{error.code}]" if error.code else ""
    out.append(
        _style(f"error{code_str}", _BOLD, _RED, color=color)
        + _style(f": {error.message}", _BOLD, color=color)
    )

    if error.location is None:
        _append_annotations(out, error, 1, color)
        return "\n".join(out)

    loc = error.location
    source = source_files.get(loc.file)
    if source is None:
        out.append(_style(" --> ", _BOLD, _BLUE, color=color) + str(loc))
        _append_annotations(out, error, 1, color)
        return "\n".join(out)

    src_lines = source.split("\n")
    idx = loc.line - 1
    code_line = src_lines[idx] if 0 <= idx < len(src_lines) else ""
    gw = max(len(str(loc.line)), 1)

    out.append(_style(" " * gw + "--> ", _BOLD, _BLUE, color=color) + str(loc))
    out.append(_style(" " * (gw + 1) + "|", _BOLD, _BLUE, color=color))
    out.append(_style(str(loc.line).rjust(gw) + " | ", _BOLD, _BLUE, color=color) + code_line)

    # Multi-line spans are underlined up to the end of the first line
    col_start = max(loc.column, 1) - 1
    if loc.end_line == loc.line and loc.end_column > loc.column:
        span_len = loc.end_column - loc.column
    else:
        span_len = len(code_line.rstrip()) - col_start
    carets = " " * col_start + "^" * max(1, span_len)
    if error.label:
        carets += f" {error.label}"
    out.append(
        _style(" " * (gw + 1) + "| ", _BOLD, _BLUE, color=color)
        + _style(carets, _BOLD, _RED, color=color)
    )

    _append_annotations(out, error, gw, color)
    return "\n".join(out)


def _append_annotations(out: List[str], error: Error, gw: int, color: bool) -> None:
    if not (error.help or error.note):
        return
    out.append(_style(" " * (gw + 1) + "|", _BOLD, _BLUE, color=color))
    pad = " " * (gw + 1)
    for kind, text in (("help", error.help), ("note", error.note)):
        if text:
            out.append(
                _style(f"{pad}= ", _BOLD, _CYAN, color=color)
                + _style(f"{kind}: ", _BOLD, color=color)
                + text
            )


def _summary(count: int, color: bool) -> str:
    summary = f"aborting due to {count} previous error{'s' if count != 1 else ''}"
    return _style("error", _BOLD, _RED, color=color) + _style(f": {summary}", _BOLD, color=color)


# ---------------------------------------------------------------------------
# ErrorReporter
# ---------------------------------------------------------------------------

class ErrorReporter:
    """
    Collects diagnostics for one session and renders them rustc-style.

    Rust Pattern: rustc_errors::Emitter
    """

    def __init__(self, source_files: Optional[Dict[str, str]] = None):
        self.source_files: Dict[str, str] = source_files if source_files is not None else {}
        self.errors: List[Error] = []

    def add_source(self, file: str, text: str) -> None:
        self.source_files[file] = text

    def report_error(
        self,
        message: str,
        location: Optional[SourceLocation],
        code: Optional[str] = None,
        help: Optional[str] = None,
        note: Optional[str] = None,
        label: Optional[str] = None,
    ) -> None:
        self.errors.append(Error(
            message=message,
            location=location,
            code=code,
            help=help,
            note=note,
            label=label,
        ))

    def report_exception(self, exc: "NestError") -> None:
        self.errors.append(exc.to_error())

    def format_error(self, error: Error, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else _use_color()
        return _format_diagnostic(error, self.source_files, color=use_color)

    def format_all_errors(self, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else _use_color()
        parts = [self.format_error(e, color=use_color) for e in self.errors]
        parts.append(_summary(len(self.errors), use_color))
        return "\n\n".join(parts)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def error_codes(self) -> List[str]:
        return [e.code for e in self.errors if e.code]

    def print_errors(self, stream: Optional[TextIO] = None, color: Optional[bool] = None) -> None:
        stream = stream if stream is not None else sys.stderr
        use_color = color if color is not None else _use_color()
        for error in self.errors:
            print(self.format_error(error, color=use_color), file=stream)
            print(file=stream)
        if self.errors:
            print(_summary(len(self.errors), use_color), file=stream)


# ============================================================================
# Exception Classes
# ============================================================================

class NestError(Exception):
    """
    Base exception for every diagnostic enumnest produces.

    Subclasses only pick an error code; the message, location and the
    optional ``help``/``note`` lines are supplied where the error is raised.
    """
    error_code = "N0000"

    def __init__(self,
                 message: str,
                 location: Optional[SourceLocation] = None,
                 help: Optional[str] = None,
                 note: Optional[str] = None,
                 label: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.location = location
        self.help_text = help
        self.note_text = note
        self.label_text = label

    def with_location(self, location: Optional[SourceLocation]) -> "NestError":
        """Attach a location if the error does not carry one yet."""
        if self.location is None:
            self.location = location
        return self

    def to_error(self) -> Error:
        return Error(
            message=self.message,
            location=self.location,
            code=self.error_code,
            help=self.help_text,
            note=self.note_text,
            label=self.label_text,
        )

    def __str__(self):
        if self.location:
            return f"error[{self.error_code}]: {self.message}\n --> {self.location}"
        return f"error[{self.error_code}]: {self.message}"


# --- module system ----------------------------------------------------------

class LocationError(NestError):
    """The position cannot be mapped to a module path."""
    error_code = "N0001"


class ModuleNotFoundError(NestError):
    """No file backs a module path (shadows the builtin inside this package)."""
    error_code = "N0002"

    def __init__(self, message: str, location: Optional[SourceLocation] = None,
                 searched: Sequence[str] = (), **kwargs):
        if searched and "note" not in kwargs:
            kwargs["note"] = "searched: " + ", ".join(searched)
        super().__init__(message, location, **kwargs)
        self.searched = tuple(searched)


class SourceIOError(NestError):
    error_code = "N0003"


class SourceSyntaxError(NestError):
    error_code = "N0004"


# --- declaration expansion --------------------------------------------------

class AnnotationArgsNotAllowed(NestError):
    error_code = "N0101"


class ShapeMismatch(NestError):
    error_code = "N0102"


class PathMismatch(NestError):
    error_code = "N0103"


class CrossModuleNotDeclared(NestError):
    error_code = "N0104"


class AmbiguousName(NestError):
    error_code = "N0105"


class InvalidAttribute(NestError):
    error_code = "N0106"


class ExternalNotFound(NestError):
    error_code = "N0107"


# --- pattern rewriting ------------------------------------------------------

class OuterNotFlattenMarked(NestError):
    error_code = "N0201"


class InnerNotFlattenMarked(NestError):
    error_code = "N0202"


class UnknownInnerCase(NestError):
    error_code = "N0203"


class InnerNotFound(NestError):
    error_code = "N0204"


class NestImplementationError(Exception):
    """
    Error in enumnest itself, never in the user's source.
    """
    def __init__(self, message: str, error_code: str = "N9999"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __str__(self):
        return f"[{self.error_code}] {self.message}"
