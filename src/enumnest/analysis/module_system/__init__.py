"""Module system: path resolution, declaration registry, enum name resolution."""

from .path_resolver import CrateRoot, ModuleLocator
from .registry import DeclarationRegistry, collect_declarations
from .symbol_resolver import SymbolResolver, parse_external_attribute, parse_external_path
from ...shared.errors import ModuleNotFoundError

__all__ = [
    'CrateRoot',
    'ModuleLocator',
    'ModuleNotFoundError',
    'DeclarationRegistry',
    'collect_declarations',
    'SymbolResolver',
    'parse_external_attribute',
    'parse_external_path',
]
