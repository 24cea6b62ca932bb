"""
Test utilities for the enumnest test suite.

Fixture crates are written into pytest's ``tmp_path`` as a Cargo layout
(``Cargo.toml`` + ``src/``) so module discovery behaves as it does on a
real crate.
"""

import sys
import textwrap
from pathlib import Path
from typing import Dict, List, Optional

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
from enumnest.compiler.driver import ExpansionDriver, ExpansionResult

CARGO_MANIFEST = '[package]\nname = "fixture"\nversion = "0.1.0"\nedition = "2021"\n'


def source(text: str) -> str:
    """Dedent a triple-quoted source snippet and drop the leading newline."""
    return textwrap.dedent(text).lstrip("\n")


def write_crate(root: Path, files: Dict[str, str]) -> Path:
    """
    Write a fixture crate; ``files`` maps paths relative to ``src/`` to
    their (dedented) contents. Returns the ``src`` directory.
    """
    (root / "Cargo.toml").write_text(CARGO_MANIFEST, encoding="utf-8")
    src = root / "src"
    for rel, text in files.items():
        path = src / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source(text), encoding="utf-8")
    return src


def expand_crate(
    driver: ExpansionDriver,
    root: Path,
    files: Dict[str, str],
    target: str = "lib.rs",
) -> ExpansionResult:
    """Write a crate and expand one of its files."""
    src = write_crate(root, files)
    return driver.expand_file(src / target)


def error_codes(result: ExpansionResult) -> List[str]:
    return [e.code for e in result.errors if e.code]


def line_of(text: str, needle: str) -> int:
    """1-based line number of the first line containing ``needle``."""
    for number, line in enumerate(text.splitlines(), start=1):
        if needle in line:
            return number
    raise AssertionError(f"{needle!r} not found")


def only_error(result: ExpansionResult, code: Optional[str] = None):
    assert len(result.errors) == 1, [e.message for e in result.errors]
    error = result.errors[0]
    if code is not None:
        assert error.code == code, f"{error.code}: {error.message}"
    return error
