from __future__ import annotations

from typing import Any, Dict, List, Sequence

from .operations import PatchOperation


def json_diff(a: Any, b: Any, prefix: str = "") -> Dict[str, List[str]]:
    changes: Dict[str, List[str]] = {"added": [], "removed": [], "modified": []}

    if isinstance(a, dict) and isinstance(b, dict):
        a_keys = set(a.keys())
        b_keys = set(b.keys())
        for k in sorted(b_keys - a_keys):
            changes["added"].append(prefix + k)
        for k in sorted(a_keys - b_keys):
            changes["removed"].append(prefix + k)
        for k in sorted(a_keys & b_keys):
            sub = json_diff(a[k], b[k], prefix + k + ".")
            for typ in ("added", "removed", "modified"):
                changes[typ].extend(sub[typ])
        return changes

    # lists are compared whole
    if a != b:
        changes["modified"].append(prefix.rstrip(".") or "$")
    return changes


def diff_summary(before: Any, after: Any, ops: Sequence[PatchOperation]) -> Dict[str, Any]:
    return {
        "operations": [op.describe() for op in ops],
        **json_diff(before, after),
    }
