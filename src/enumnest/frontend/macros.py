"""
Match macro discovery

Finds ``nested! { ... }`` / ``nest_match! { ... }`` invocations inside the
token trees of opaque items (function bodies, impls, consts...).

Rust Pattern: rustc_expand::expand (collecting macro invocations)
"""

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Sequence

from ..shared.nodes import (
    InlineModule, Item, ModulePath, OpaqueItem, TokenElement, TokenLeaf, TokenTree,
)
from ..utils.config import MATCH_MACRO_NAMES

# `name::` or a bare `::` directly before the macro name
_PATH_SEGMENT_BEFORE = re.compile(r"(?:(?:r#)?[A-Za-z_][A-Za-z0-9_]*\s*)?::\s*$")
_LOOKBEHIND = 256


@dataclass(frozen=True)
class MacroCall:
    """
    One invocation. ``start`` covers any path prefix (``enumnest::nested!``);
    ``body`` is the delimited token tree.
    """
    name: str
    start: int
    body: TokenTree
    module_path: ModulePath

    @property
    def end(self) -> int:
        return self.body.end

    @property
    def inner_span(self):
        return self.body.inner_span


def find_macro_calls(source: str, elements: Sequence[TokenElement], module_path: ModulePath) -> List[MacroCall]:
    """
    Outermost match macro invocations among ``elements``.

    Invocations nested inside another invocation's body are not returned;
    the caller handles them when it expands the outer one.
    """
    return list(_scan(source, elements, module_path))


def find_in_items(source: str, items: Iterable[Item], module_path: ModulePath) -> List[MacroCall]:
    """Every outermost invocation in a file's items, inline modules included"""
    calls: List[MacroCall] = []
    for item in items:
        if isinstance(item, OpaqueItem):
            calls.extend(_scan(source, item.tokens, module_path))
        elif isinstance(item, InlineModule):
            calls.extend(find_in_items(source, item.items, module_path + (item.name,)))
    return calls


def _scan(source: str, elements: Sequence[TokenElement], module_path: ModulePath) -> Iterator[MacroCall]:
    index = 0
    while index < len(elements):
        element = elements[index]
        if isinstance(element, TokenTree):
            yield from _scan(source, element.children, module_path)
            index += 1
            continue

        call = _call_at(source, elements, index, module_path)
        if call is None:
            index += 1
            continue
        yield call
        # Skip past the body; its contents belong to this call
        index = elements.index(call.body, index) + 1


def _call_at(source: str, elements: Sequence[TokenElement], index: int, module_path: ModulePath):
    leaf = elements[index]
    if not isinstance(leaf, TokenLeaf) or leaf.kind != "NAME" or leaf.value not in MATCH_MACRO_NAMES:
        return None

    body = next((e for e in elements[index + 1:index + 3] if isinstance(e, TokenTree)), None)
    # `!` may or may not survive as a token, so check the text between name and body
    if body is None or source[leaf.end:body.start].strip() != "!":
        return None

    start = leaf.start
    while True:
        match = _PATH_SEGMENT_BEFORE.search(source, max(0, start - _LOOKBEHIND), start)
        if match is None:
            break
        start = match.start()
    return MacroCall(name=leaf.value, start=start, body=body, module_path=module_path)
