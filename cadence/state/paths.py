"""Dot-path helpers over nested dict trees."""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from typing import Any

from ..errors import InvalidPath

_MISSING = object()


def parse_path(path: Any) -> list[str]:
    """Split ``"a.b.c"`` into segments. Empty paths and empty segments are malformed."""
    if not isinstance(path, str) or not path:
        raise InvalidPath(path)
    segments = path.split(".")
    if any(not s for s in segments):
        raise InvalidPath(path)
    return segments


def get_path(tree: Mapping[str, Any], path: Any, default: Any = None) -> Any:
    try:
        segments = parse_path(path)
    except InvalidPath:
        return default
    node: Any = tree
    for segment in segments:
        if isinstance(node, Mapping) and segment in node:
            node = node[segment]
        else:
            return default
    return node


def has_path(tree: Mapping[str, Any], path: str) -> bool:
    return get_path(tree, path, _MISSING) is not _MISSING


def path_to_object(segments: list[str], value: Any) -> dict[str, Any]:
    """``(["a", "b"], 1)`` -> ``{"a": {"b": 1}}``"""
    result: dict[str, Any] = {}
    node = result
    for segment in segments[:-1]:
        node[segment] = {}
        node = node[segment]
    node[segments[-1]] = value
    return result


def deep_merge(target: Mapping[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """
    New tree with ``source`` merged into ``target``.

    Objects merge key by key; scalars and lists replace. Neither input is mutated.
    """
    result = dict(target)
    for key, value in source.items():
        if isinstance(value, Mapping):
            existing = result.get(key)
            base = existing if isinstance(existing, Mapping) else {}
            result[key] = deep_merge(base, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def validate_updates(updates: Mapping[str, Any], prefix: str = "") -> None:
    for key, value in updates.items():
        if not isinstance(key, str) or not key or "." in key:
            raise InvalidPath(f"{prefix}{key}")
        if isinstance(value, Mapping):
            validate_updates(value, f"{prefix}{key}.")


def leaf_paths(tree: Mapping[str, Any], prefix: str = "") -> Iterator[str]:
    """Every path written by an update tree. An empty object counts as a leaf."""
    for key, value in tree.items():
        path = f"{prefix}{key}"
        if isinstance(value, Mapping) and value:
            yield from leaf_paths(value, f"{path}.")
        else:
            yield path


def changed_paths(before: Any, after: Any, prefix: str = "") -> list[str]:
    """Leaf paths whose value differs between two trees, in sorted key order."""
    if isinstance(before, Mapping) and isinstance(after, Mapping):
        paths: list[str] = []
        for key in sorted(set(before) | set(after), key=str):
            path = f"{prefix}{key}"
            old = before.get(key, _MISSING)
            new = after.get(key, _MISSING)
            if old is _MISSING or new is _MISSING:
                if old is _MISSING and isinstance(new, Mapping) and new:
                    paths.extend(changed_paths({}, new, f"{path}."))
                elif new is _MISSING and isinstance(old, Mapping) and old:
                    paths.extend(changed_paths(old, {}, f"{path}."))
                else:
                    paths.append(path)
            elif isinstance(old, Mapping) and isinstance(new, Mapping):
                paths.extend(changed_paths(old, new, f"{path}."))
            elif old != new or type(old) is not type(new):
                paths.append(path)
        return paths
    if before != after:
        return [prefix.rstrip(".")] if prefix else []
    return []


def paths_overlap(a: str, b: str) -> bool:
    """True when one path is the other or a segment-wise ancestor of it."""
    if a == b:
        return True
    return a.startswith(f"{b}.") or b.startswith(f"{a}.")


def is_kind_change(old: Any, new: Any) -> bool:
    """True when a write swaps an object for a scalar or the reverse."""
    if old is _MISSING or old is None or new is None:
        return False
    return isinstance(old, Mapping) != isinstance(new, Mapping)


MISSING = _MISSING
