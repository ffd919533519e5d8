"""
Canonical JSON for compiled promotion rules.

Two compilations of the same graph with the clock held fixed must serialize
byte-for-byte identically. Canonical form is also what goes over the wire,
so a rule's request body is stable across runs.
"""

import json
from typing import Any

from pydantic import BaseModel


def canonicalize_json(obj: Any) -> Any:
    """
    Produce a canonical representation of a JSON-like object.

    - Pydantic models are dumped with their API field names first
    - Dictionary keys are sorted at every level
    - List (and tuple) order is preserved; insertion order of nodes and
      connections is stable, not semantic

    Example:
        >>> canonicalize_json({"z": 1, "a": {"c": 2, "b": 3}})
        {'a': {'b': 3, 'c': 2}, 'z': 1}
    """
    if isinstance(obj, BaseModel):
        obj = obj.model_dump(mode="json", by_alias=True)

    if isinstance(obj, dict):
        return {k: canonicalize_json(v) for k, v in sorted(obj.items())}

    if isinstance(obj, (list, tuple)):
        return [canonicalize_json(item) for item in obj]

    return obj


def to_canonical_json_string(obj: Any) -> str:
    """
    Compact canonical JSON string (sorted keys, no extra whitespace).

    Example:
        >>> to_canonical_json_string({"salience": 10, "name": "Spring Sale"})
        '{"name":"Spring Sale","salience":10}'
    """
    return json.dumps(
        canonicalize_json(obj), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def to_canonical_json_pretty(obj: Any) -> str:
    """Indented canonical JSON string, for logs and debugging output."""
    return json.dumps(canonicalize_json(obj), sort_keys=True, indent=2, ensure_ascii=False)
