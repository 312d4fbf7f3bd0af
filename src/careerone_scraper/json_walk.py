"""
Depth-first traversal over parsed JSON values (dicts, lists, scalars).

Structured-data blocks wrap the node we want in arbitrary layers
(`@graph` arrays, lists of blocks, nested `mainEntity` objects), so the
walk visits every container node and lets the caller decide what matches.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, Optional, Sequence, Union

JSONPath = Sequence[Union[str, int]]


def walk(value: Any, max_depth: int = 32) -> Iterator[Any]:
    """Yield every dict and list inside `value`, parents before children."""
    stack = [(value, 0)]
    while stack:
        node, depth = stack.pop()
        if not isinstance(node, (dict, list)):
            continue
        yield node
        if depth >= max_depth:
            continue
        children = node.values() if isinstance(node, dict) else node
        # reversed so siblings come out in document order
        for child in reversed(list(children)):
            if isinstance(child, (dict, list)):
                stack.append((child, depth + 1))


def find_all(value: Any, predicate: Callable[[Any], bool], max_depth: int = 32) -> list:
    return [node for node in walk(value, max_depth) if predicate(node)]


def find_first(value: Any, predicate: Callable[[Any], bool], max_depth: int = 32) -> Optional[Any]:
    for node in walk(value, max_depth):
        if predicate(node):
            return node
    return None


def get_path(value: Any, path: JSONPath, default: Any = None) -> Any:
    """Follow dict keys / list indexes; return `default` on the first miss."""
    current = value
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return default
            current = current[key]
        else:
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
    return current
