# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
JSON Tree Navigation for the Social Presence Scraper

Parsed payloads are untyped and nest records under arbitrary wrappers. Nodes
are classified into a small tagged variant (JsonKind) so lookups can demand a
kind, dotted paths resolve through mappings and list indices alike, and a
recursive walker finds typed records at any depth.
"""

from enum import Enum
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

MAX_WALK_DEPTH = 64


class JsonKind(Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


def kind_of(value: Any) -> JsonKind:
    """Classify a parsed JSON value. Anything unrecognized is NULL."""
    if value is None:
        return JsonKind.NULL
    # bool before number, bool is an int subclass
    if isinstance(value, bool):
        return JsonKind.BOOL
    if isinstance(value, (int, float)):
        return JsonKind.NUMBER
    if isinstance(value, str):
        return JsonKind.STRING
    if isinstance(value, (list, tuple)):
        return JsonKind.ARRAY
    if isinstance(value, dict):
        return JsonKind.OBJECT
    return JsonKind.NULL


def resolve_path(value: Any, path: str) -> Any:
    """
    Follow a dotted path ("feedback.reactors.count", "edges.0.node").

    Numeric segments index into arrays. Returns None when any hop is missing.
    """
    current = value
    for segment in path.split("."):
        kind = kind_of(current)
        if kind is JsonKind.OBJECT:
            if segment not in current:
                return None
            current = current[segment]
        elif kind is JsonKind.ARRAY and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current


def resolve_typed(value: Any, path: str, kind: JsonKind) -> Any:
    """Value at `path` if it is of the requested kind, else None."""
    found = resolve_path(value, path)
    return found if kind_of(found) is kind else None


def first_some(functions: Iterable[Callable[[Any], Any]], value: Any) -> Any:
    """Result of the first function returning something other than None."""
    for func in functions:
        result = func(value)
        if result is not None:
            return result
    return None


def first_typed(value: Any, paths: Iterable[str], kind: JsonKind) -> Any:
    """First candidate path whose value exists and is of `kind`."""
    return first_some(
        (lambda node, p=path: resolve_typed(node, p, kind) for path in paths),
        value,
    )


def walk(node: Any, max_depth: int = MAX_WALK_DEPTH) -> Iterator[Tuple[Any, int]]:
    """Pre-order traversal over every object and array node, with depth."""
    stack: List[Tuple[Any, int]] = [(node, 0)]
    while stack:
        current, depth = stack.pop()
        kind = kind_of(current)
        if kind is JsonKind.OBJECT:
            yield current, depth
            if depth < max_depth:
                children = list(current.values())
                stack.extend((child, depth + 1) for child in reversed(children))
        elif kind is JsonKind.ARRAY:
            yield current, depth
            if depth < max_depth:
                stack.extend((child, depth + 1) for child in reversed(current))


def find_records(node: Any, predicate: Callable[[dict], bool],
                 max_depth: int = MAX_WALK_DEPTH) -> List[dict]:
    """All mapping nodes satisfying `predicate`, in document order."""
    return [
        current for current, _ in walk(node, max_depth)
        if kind_of(current) is JsonKind.OBJECT and predicate(current)
    ]


def has_typename(typenames: Iterable[str]) -> Callable[[dict], bool]:
    """Predicate matching records whose __typename is one of `typenames`."""
    accepted = frozenset(typenames)
    return lambda record: record.get("__typename") in accepted


def find_string(node: Any, keys: Iterable[str], min_length: int = 1,
                max_depth: int = 6) -> Optional[str]:
    """
    First string value under any of `keys`, searched breadth-first.

    Nested objects named by a key are also searched for a `text` child.
    """
    wanted = tuple(keys)
    queue: List[Tuple[Any, int]] = [(node, 0)]
    while queue:
        current, depth = queue.pop(0)
        kind = kind_of(current)
        if kind is JsonKind.OBJECT:
            for key in wanted:
                candidate = current.get(key)
                if kind_of(candidate) is JsonKind.OBJECT:
                    candidate = candidate.get("text")
                if kind_of(candidate) is JsonKind.STRING and len(candidate.strip()) >= min_length:
                    return candidate
            if depth < max_depth:
                queue.extend((child, depth + 1) for child in current.values())
        elif kind is JsonKind.ARRAY and depth < max_depth:
            queue.extend((child, depth + 1) for child in current)
    return None
