"""Pure merge of configuration layers.

Layers are plain mappings (as read from YAML) ordered from lowest to highest
priority.  Merging never mutates its inputs:

* lists are concatenated in layer order,
* mappings are merged recursively, later keys overriding earlier ones,
* any other value (scalars, ``None``, or a type mismatch) is replaced by the
  later layer's value.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any


def merge_layers(*layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge *layers* into a single new mapping.

    ``None`` layers (e.g. an optional file that does not exist) are ignored.
    """
    result: dict[str, Any] = {}
    for layer in layers:
        if layer is None:
            continue
        result = _merge_mappings(result, layer)
    return result


def _merge_mappings(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {key: copy.deepcopy(value) for key, value in base.items()}
    for key, value in override.items():
        if key in merged:
            merged[key] = _merge_values(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _merge_values(base: Any, override: Any) -> Any:
    if isinstance(base, list) and isinstance(override, list):
        return [*base, *copy.deepcopy(override)]
    if isinstance(base, Mapping) and isinstance(override, Mapping):
        return _merge_mappings(base, override)
    return copy.deepcopy(override)
