"""
Path and patch utilities shared by the reconciler and the document store.

Patches are nested dicts. A key prefixed with `-=` deletes that key from the
target instead of setting it; everything else deep-merges.
"""

import copy
from typing import Any, Dict

from token_states.constants import DELETE_PREFIX


def get_path(data: Any, path: str, default: Any = None) -> Any:
    """
    Navigate a dot-path into nested dicts (or attribute-bearing objects).

    Returns `default` when any segment is missing.
    """
    if not path:
        return data

    current = data
    for key in path.split("."):
        if isinstance(current, dict):
            if key not in current:
                return default
            current = current[key]
        elif hasattr(current, key):
            current = getattr(current, key)
        else:
            return default
    return default if current is None else current


def set_path(data: Dict, path: str, value: Any) -> Dict:
    """Set a value at a dot-path, creating intermediate dicts. Returns `data`."""
    keys = path.split(".")
    current = data
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value
    return data


def build_patch(path: str, value: Any) -> Dict:
    """Nested patch setting a single dot-path."""
    return set_path({}, path, value)


def delete_patch(path: str) -> Dict:
    """Nested patch deleting the last segment of a dot-path."""
    parent, _, key = path.rpartition(".")
    marker = f"{DELETE_PREFIX}{key}"
    return build_patch(f"{parent}.{marker}" if parent else marker, None)


def merge_patch(target: Dict, patch: Dict) -> Dict:
    """
    Field-level deep merge of two patches, in place on `target`.

    Setting a key cancels a pending deletion of it and vice versa, so the
    later patch always wins for a given field.
    """
    for key, value in patch.items():
        if key.startswith(DELETE_PREFIX):
            target.pop(key[len(DELETE_PREFIX):], None)
            target[key] = value
            continue

        target.pop(f"{DELETE_PREFIX}{key}", None)
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            merge_patch(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def apply_patch(document: Dict, patch: Dict) -> Dict:
    """
    Apply a patch to a stored document, in place.

    Unlike `merge_patch`, deletion markers are resolved against the document
    and never stored.
    """
    for key, value in patch.items():
        if key.startswith(DELETE_PREFIX):
            document.pop(key[len(DELETE_PREFIX):], None)
        elif isinstance(value, dict) and isinstance(document.get(key), dict):
            apply_patch(document[key], value)
        elif isinstance(value, dict):
            document[key] = apply_patch({}, value)
        else:
            document[key] = copy.deepcopy(value)
    return document
