"""
Patch operations as a closed set of immutable values.

Each variant knows how to apply itself to a document. ``apply`` never touches
its input: it works on a deep copy and returns the result.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, ClassVar, List, Sequence, Union

from ..errors import PatchApplyError, PatchTestFailedError, SpecValidationError
from .pointer import array_index, parse_pointer, resolve

_MISSING = object()


def _json_equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_json_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_json_equal(x, y) for x, y in zip(a, b))
    return a == b


def _parent(doc: Any, tokens: List[str]) -> Any:
    return resolve(doc, tokens[:-1])


def _add(doc: Any, path: str, value: Any) -> Any:
    tokens = parse_pointer(path)
    if not tokens:
        return value
    parent = _parent(doc, tokens)
    key = tokens[-1]
    if isinstance(parent, list):
        parent.insert(array_index(key, len(parent), allow_end=True), value)
    elif isinstance(parent, dict):
        parent[key] = value
    else:
        raise PatchApplyError(f"Cannot add under a scalar at {path}", details={"path": path})
    return doc


def _remove(doc: Any, path: str) -> Any:
    tokens = parse_pointer(path)
    if not tokens:
        raise PatchApplyError("Cannot remove the document root", details={"path": path})
    parent = _parent(doc, tokens)
    key = tokens[-1]
    if isinstance(parent, list):
        del parent[array_index(key, len(parent), allow_end=False)]
    elif isinstance(parent, dict):
        if key not in parent:
            raise PatchApplyError(f"Path not found: {path}", details={"path": path})
        del parent[key]
    else:
        raise PatchApplyError(f"Cannot remove from a scalar at {path}", details={"path": path})
    return doc


def _replace(doc: Any, path: str, value: Any) -> Any:
    tokens = parse_pointer(path)
    if not tokens:
        return value
    parent = _parent(doc, tokens)
    key = tokens[-1]
    if isinstance(parent, list):
        parent[array_index(key, len(parent), allow_end=False)] = value
    elif isinstance(parent, dict):
        if key not in parent:
            raise PatchApplyError(f"Path not found: {path}", details={"path": path})
        parent[key] = value
    else:
        raise PatchApplyError(f"Cannot replace inside a scalar at {path}", details={"path": path})
    return doc


@dataclass(frozen=True)
class AddOp:
    path: str
    value: Any
    op: ClassVar[str] = "add"

    def apply(self, doc: Any) -> Any:
        return _add(copy.deepcopy(doc), self.path, copy.deepcopy(self.value))

    def describe(self) -> str:
        return f"add {self.path}"


@dataclass(frozen=True)
class RemoveOp:
    path: str
    op: ClassVar[str] = "remove"

    def apply(self, doc: Any) -> Any:
        return _remove(copy.deepcopy(doc), self.path)

    def describe(self) -> str:
        return f"remove {self.path}"


@dataclass(frozen=True)
class ReplaceOp:
    path: str
    value: Any
    op: ClassVar[str] = "replace"

    def apply(self, doc: Any) -> Any:
        return _replace(copy.deepcopy(doc), self.path, copy.deepcopy(self.value))

    def describe(self) -> str:
        return f"replace {self.path}"


@dataclass(frozen=True)
class MoveOp:
    from_path: str
    path: str
    op: ClassVar[str] = "move"

    def apply(self, doc: Any) -> Any:
        if self.path == self.from_path:
            return copy.deepcopy(doc)
        if self.path.startswith(self.from_path + "/"):
            raise PatchApplyError(
                f"Cannot move {self.from_path} into its own child {self.path}",
                details={"from": self.from_path, "path": self.path},
            )
        out = copy.deepcopy(doc)
        value = resolve(out, parse_pointer(self.from_path))
        out = _remove(out, self.from_path)
        return _add(out, self.path, value)

    def describe(self) -> str:
        return f"move {self.from_path} -> {self.path}"


@dataclass(frozen=True)
class CopyOp:
    from_path: str
    path: str
    op: ClassVar[str] = "copy"

    def apply(self, doc: Any) -> Any:
        out = copy.deepcopy(doc)
        value = copy.deepcopy(resolve(out, parse_pointer(self.from_path)))
        return _add(out, self.path, value)

    def describe(self) -> str:
        return f"copy {self.from_path} -> {self.path}"


@dataclass(frozen=True)
class TestOp:
    path: str
    value: Any
    op: ClassVar[str] = "test"

    __test__ = False  # not a pytest class

    def apply(self, doc: Any) -> Any:
        actual = resolve(doc, parse_pointer(self.path))
        if not _json_equal(actual, self.value):
            raise PatchTestFailedError(self.path, expected=self.value, actual=actual)
        return copy.deepcopy(doc)

    def describe(self) -> str:
        return f"test {self.path}"


PatchOperation = Union[AddOp, RemoveOp, ReplaceOp, MoveOp, CopyOp, TestOp]

_VALUE_OPS = {"add": AddOp, "replace": ReplaceOp, "test": TestOp}
_FROM_OPS = {"move": MoveOp, "copy": CopyOp}


def parse_operation(raw: Any, index: int = 0) -> PatchOperation:
    if not isinstance(raw, dict):
        raise SpecValidationError(f"Patch operation #{index} must be an object", details={"index": index})
    op = raw.get("op")
    path = raw.get("path")
    if not isinstance(path, str) or (path and not path.startswith("/")):
        raise SpecValidationError(f"Patch operation #{index} has an invalid path", details={"index": index, "path": path})

    if op in _VALUE_OPS:
        value = raw.get("value", _MISSING)
        if value is _MISSING:
            raise SpecValidationError(f"Patch operation #{index} ({op}) requires 'value'", details={"index": index})
        return _VALUE_OPS[op](path=path, value=value)
    if op == "remove":
        return RemoveOp(path=path)
    if op in _FROM_OPS:
        src = raw.get("from")
        if not isinstance(src, str) or (src and not src.startswith("/")):
            raise SpecValidationError(f"Patch operation #{index} ({op}) requires a valid 'from'", details={"index": index})
        return _FROM_OPS[op](from_path=src, path=path)
    raise SpecValidationError(f"Patch operation #{index} has unknown op {op!r}", details={"index": index, "op": op})


def parse_operations(raws: Sequence[Any]) -> List[PatchOperation]:
    if not isinstance(raws, (list, tuple)):
        raise SpecValidationError("Patch must be a list of operations")
    return [parse_operation(r, i) for i, r in enumerate(raws)]


def apply_operations(doc: Any, ops: Sequence[PatchOperation]) -> Any:
    out = doc
    for op in ops:
        out = op.apply(out)
    return out

