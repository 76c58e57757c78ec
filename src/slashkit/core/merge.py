"""Structural merge of settings trees."""

from __future__ import annotations

from typing import Any


def _is_mapping(value: Any) -> bool:
    return isinstance(value, dict)


def deep_merge(target: dict[str, Any] | None, source: dict[str, Any] | None) -> dict[str, Any]:
    """Merge *source* over *target* and return a new dict.

    Nested dicts merge recursively. Lists and scalars from *source* replace
    the *target* value wholesale. Neither input is mutated.

    Three-way merges are not associative when list and dict values alternate
    for the same key, so layers are always folded pairwise in the order
    defaults -> user -> session.
    """
    result: dict[str, Any] = {}
    for layer in (target, source):
        if not layer:
            continue
        for key, value in layer.items():
            current = result.get(key)
            if _is_mapping(current) and _is_mapping(value):
                result[key] = deep_merge(current, value)
            elif _is_mapping(value):
                result[key] = deep_merge(None, value)
            elif isinstance(value, list):
                result[key] = list(value)
            else:
                result[key] = value
    return result


def merge_layers(*layers: dict[str, Any] | None) -> dict[str, Any]:
    """Fold *layers* left to right with :func:`deep_merge`."""
    result: dict[str, Any] = {}
    for layer in layers:
        result = deep_merge(result, layer)
    return result
