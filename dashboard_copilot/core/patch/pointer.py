"""JSON Pointer (RFC 6901) helpers and the patch path deny-list."""

from __future__ import annotations

from typing import Any, List, Optional

from ..errors import PatchApplyError

DENIED_PREFIXES = (
    "/data_source_id",
    "/dataset_id",
    "/dataset_ref",
    "/tenant_id",
    "/credentials",
    "/secrets",
    "/api_keys",
    "/datasource",
)
_DENIED_ROOTS = frozenset(p[1:] for p in DENIED_PREFIXES)


def parse_pointer(path: str) -> List[str]:
    if path == "":
        return []
    if not isinstance(path, str) or not path.startswith("/"):
        raise PatchApplyError(f"Invalid JSON pointer: {path!r}", details={"path": path})
    return [tok.replace("~1", "/").replace("~0", "~") for tok in path[1:].split("/")]


def escape_token(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def is_denied(path: Optional[str]) -> bool:
    if not isinstance(path, str) or not path.startswith("/"):
        return False
    first = path[1:].split("/", 1)[0].replace("~1", "/").replace("~0", "~")
    return first.strip().lower() in _DENIED_ROOTS


def denied_keys(value: Any) -> List[str]:
    """Top-level keys of a whole-document value that fall under the deny-list."""
    if not isinstance(value, dict):
        return []
    return [k for k in value if isinstance(k, str) and k.strip().lower() in _DENIED_ROOTS]


def array_index(token: str, length: int, *, allow_end: bool) -> int:
    """Index for ``token`` in a list of ``length`` items; ``-`` means append."""
    if token == "-":
        if allow_end:
            return length
        raise PatchApplyError("'-' is only valid when adding to an array", details={"token": token})
    if not token.isdigit() or (len(token) > 1 and token.startswith("0")):
        raise PatchApplyError(f"Invalid array index {token!r}", details={"token": token})
    idx = int(token)
    upper = length if allow_end else length - 1
    if idx > upper:
        raise PatchApplyError(f"Array index {idx} out of range", details={"index": idx, "length": length})
    return idx


def resolve(doc: Any, tokens: List[str]) -> Any:
    node = doc
    for i, tok in enumerate(tokens):
        where = "/" + "/".join(escape_token(t) for t in tokens[: i + 1])
        if isinstance(node, dict):
            if tok not in node:
                raise PatchApplyError(f"Path not found: {where}", details={"path": where})
            node = node[tok]
        elif isinstance(node, list):
            node = node[array_index(tok, len(node), allow_end=False)]
        else:
            raise PatchApplyError(f"Cannot descend into a scalar at {where}", details={"path": where})
    return node
