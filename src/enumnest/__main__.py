"""CLI entry point: run `enumnest file.rs` or `python -m enumnest file.rs`."""

import logging
import sys
from pathlib import Path


def main(argv=None) -> int:
    import argparse
    from .compiler.driver import ExpansionDriver
    from .compiler.session import Session
    from .utils.io_utils import write_source_file

    parser = argparse.ArgumentParser(
        prog="enumnest",
        description="Expand #[nest] enums and nested!/nest_match! patterns in a Rust source file.",
    )
    parser.add_argument("file", type=Path, help="Path to a .rs source file")
    parser.add_argument("--root", type=Path, default=None,
                        help="Module root directory (default: <crate>/src, or the file's directory)")
    parser.add_argument("-o", "--output", type=Path, default=None,
                        help="Write the expanded source here instead of stdout")
    parser.add_argument("--check", action="store_true",
                        help="Only report diagnostics; do not print the expanded source")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors in diagnostics")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    path = args.file.resolve()
    if not path.exists():
        sys.stderr.write(f"enumnest: error: file not found: {path}\n")
        return 1
    if not path.is_file():
        sys.stderr.write(f"enumnest: error: not a file: {path}\n")
        return 1

    driver = ExpansionDriver(Session(root=args.root))
    result = driver.expand_file(path)

    if not result.success:
        driver.session.reporter.print_errors(sys.stderr, color=False if args.no_color else None)
        return 1

    if args.check:
        return 0
    if args.output is not None:
        try:
            write_source_file(args.output, result.text)
        except OSError as e:
            sys.stderr.write(f"enumnest: error: could not write {args.output}: {e}\n")
            return 1
        return 0

    sys.stdout.write(result.text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
