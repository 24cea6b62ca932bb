"""
Pattern Visitor

Abstract visitor over the pattern nodes of shared/nodes.py. Patterns call
back into the visitor through their accept() methods.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from .nodes import (
        FieldPattern, IdentPattern, OrPattern, PathPattern, Pattern, RefPattern,
        SlicePattern, StructPattern, TuplePattern, TupleStructPattern,
    )

T = TypeVar('T')


class PatternVisitor(ABC, Generic[T]):
    """Visitor with one method per structural pattern kind"""

    @abstractmethod
    def visit_path_pattern(self, node: 'PathPattern') -> T:
        ...

    @abstractmethod
    def visit_tuple_struct_pattern(self, node: 'TupleStructPattern') -> T:
        ...

    @abstractmethod
    def visit_struct_pattern(self, node: 'StructPattern') -> T:
        ...

    @abstractmethod
    def visit_field_pattern(self, node: 'FieldPattern') -> T:
        ...

    @abstractmethod
    def visit_or_pattern(self, node: 'OrPattern') -> T:
        ...

    @abstractmethod
    def visit_ident_pattern(self, node: 'IdentPattern') -> T:
        ...

    @abstractmethod
    def visit_ref_pattern(self, node: 'RefPattern') -> T:
        ...

    @abstractmethod
    def visit_tuple_pattern(self, node: 'TuplePattern') -> T:
        ...

    @abstractmethod
    def visit_slice_pattern(self, node: 'SlicePattern') -> T:
        ...

    @abstractmethod
    def visit_leaf_pattern(self, node: 'Pattern') -> T:
        """Wildcards, rest markers, literals and ranges"""
        ...
