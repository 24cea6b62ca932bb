"""
enumnest utilities package
"""

from .io_utils import read_source_file, write_source_file
from .base import Result, ResultTag

__all__ = ["read_source_file", "write_source_file", "Result", "ResultTag"]
