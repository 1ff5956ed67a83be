import copy
import hashlib
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import mmh3
from benedict import benedict


def now() -> str:
    return datetime.now(timezone.utc).isoformat()


def safe_cast(val, to_type, default=None):
    try:
        return to_type(val)
    except (ValueError, TypeError):
        return default


def compute_hash(data: str) -> str:
    """Compute a murmur3 hash folded through sha256.

    Returns the first 16 hex characters so the value stays usable in
    object names, labels and ConfigMap keys.
    """
    if not isinstance(data, str):
        raise ValueError(f"Hash of {type(data)} is not supported.")
    mumur_str = str(mmh3.hash128(data.encode()))
    full_hash = hashlib.sha256(mumur_str.encode("utf-8")).hexdigest()
    return full_hash[:16]


def upsert_condition(conds, newc, at: str = None):
    """In-memory merge by .type. Only bump lastTransitionTime when status flips."""
    at = at or now()
    conds = list(conds or [])
    for i, c in enumerate(conds):
        if c.get("type") == newc["type"]:
            ltt = c.get("lastTransitionTime") or at
            if c.get("status") != newc["status"]:
                ltt = at
            merged = {**c, **newc, "lastTransitionTime": ltt}
            conds[i] = merged
            break
    else:
        conds.append({**newc, "lastTransitionTime": at})
    return conds


def keylist_dict(obj: Dict) -> benedict:
    """Wrap `obj` for access by key lists, e.g. `d[["spec", "selector"]]`.

    Object keys such as label names may contain dots, so no keypath
    separator is used. Writes go through to `obj`.
    """
    return benedict(obj, keypath_separator=None)


def merge_layers(*layers: Optional[Mapping]) -> Dict[str, Any]:
    """Deep merge `layers` into a new dict, later layers win. Inputs are not modified."""
    merged: Dict[str, Any] = {}
    benedict(merged, keypath_separator=None).merge(
        *(copy.deepcopy(dict(layer or {})) for layer in layers)
    )
    return merged
