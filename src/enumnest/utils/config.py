"""
Configuration constants for enumnest
"""

import os
import tempfile

from typing_extensions import Final

# Parser configuration constants (cache under temp dir to avoid cluttering project root)
DEFAULT_PARSER_CACHE_FILE: Final = os.path.join(tempfile.gettempdir(), "enumnest_parser.cache")
GRAMMAR_FILE_NAME: Final = "grammar.lark"

# Module resolution constants
MODULE_SEPARATOR: Final = "::"
ROOT_MODULE_MARKER: Final = "crate"
SELF_MODULE_MARKER: Final = "self"
SUPER_MODULE_MARKER: Final = "super"
MODULE_FILE_EXTENSION: Final = ".rs"
MODULE_INDEX_FILE: Final = "mod.rs"
ROOT_FILE_NAMES: Final = ("lib.rs", "main.rs")
MANIFEST_FILE_NAME: Final = "Cargo.toml"
SOURCE_DIR_NAME: Final = "src"

# Annotation and macro names
FLATTEN_ATTRIBUTE: Final = "nest"
EXTERNAL_ARGUMENT: Final = "external"
MATCH_MACRO_NAMES: Final = ("nested", "nest_match")

# Generated code layout
INDENT: Final = "    "
POSITIONAL_ARG_PREFIX: Final = "v"
WRAPPER_LINTS: Final = "#[allow(non_snake_case, non_upper_case_globals)]"
GLOB_IMPORT: Final = ("#[allow(unused_imports)]", "use super::*;")

# Candidate patterns need at least OuterType::OuterCase::InnerCase
MIN_CANDIDATE_SEGMENTS: Final = 3

# File encoding constants
DEFAULT_FILE_ENCODING: Final = "utf-8"

# Environment variables
COLOR_ENV_VAR: Final = "ENUMNEST_COLOR"
