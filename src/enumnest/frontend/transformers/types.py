"""
Type Parser - field types of enum cases

Only path types are resolved structurally (the last segment names the
wrapped enum); every other type form is kept as text.
"""

from typing import Any, Callable, Dict, Tuple

from ...shared.nodes import TypeRef


class TypeRefParser:
    """Builds TypeRef nodes for the type rules of the grammar"""

    ROOT_SEP = "::"

    def __init__(self, node_info: Callable[[Any], Dict[str, Any]]):
        self._node_info = node_info

    def parse_path_type(self, meta: Any, children: Tuple[Any, ...]) -> TypeRef:
        info = self._node_info(meta)
        segments = [c for c in children if isinstance(c, tuple)]
        return TypeRef(
            text=info["text"],
            path=tuple(name for name, _ in segments),
            has_generics=any(generic for _, generic in segments),
            location=info["location"],
            span=info["span"],
        )

    def parse_opaque_type(self, meta: Any) -> TypeRef:
        info = self._node_info(meta)
        return TypeRef(text=info["text"], location=info["location"], span=info["span"])
