"""
enumnest AST Transformers
=========================

Specialized transformers for different AST node types.
"""

from .base import NestTransformer
from .patterns import PatternParser
from .types import TypeRefParser

__all__ = [
    'NestTransformer',
    'PatternParser',
    'TypeRefParser',
]
