"""
Append-only spec version store.

One JSON file per dashboard under ``<data_dir>/dashboards/``, named by a
readable slug plus a digest of the exact id so distinct ids never share a file::

    {
      "dashboard_id": "...",
      "columns": [...authoritative DatasetColumn dicts...],
      "versions": [{"version": 1, "spec": {...}, "author": ..., "notes": ..., "created_ts": ...}, ...]
    }

Writes happen under an exclusive flock held only for the read-check-append.
"""
from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
import re
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Sequence

from ..errors import DashboardNotFoundError, VersionConflictError
from ..spec.columns import DatasetColumn

try:
    import fcntl as _fcntl
    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False
    logging.getLogger("copilot.locking").warning(
        "fcntl not available (non-POSIX). File locking is disabled. "
        "Do not run concurrent version writes in production on this platform."
    )

log = logging.getLogger("copilot.store")

_SAFE_ID_RE = re.compile(r"[^A-Za-z0-9_.-]+")


@contextmanager
def _locked_file(path: Path, mode: str) -> Generator:
    """Open a file and apply an exclusive flock (POSIX only). No-op on Windows."""
    with open(path, mode, encoding="utf-8") as fh:
        if _HAS_FCNTL:
            _fcntl.flock(fh, _fcntl.LOCK_EX)
        try:
            yield fh
        finally:
            if _HAS_FCNTL:
                _fcntl.flock(fh, _fcntl.LOCK_UN)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class SpecVersion:
    dashboard_id: str
    version: int
    spec: Dict[str, Any]
    author: Optional[str]
    notes: Optional[str]
    created_ts: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dashboard_id": self.dashboard_id,
            "version": self.version,
            "spec": copy.deepcopy(self.spec),
            "author": self.author,
            "notes": self.notes,
            "created_ts": self.created_ts,
        }

    @staticmethod
    def from_dict(dashboard_id: str, d: Dict[str, Any]) -> "SpecVersion":
        return SpecVersion(
            dashboard_id=dashboard_id,
            version=int(d["version"]),
            spec=dict(d.get("spec") or {}),
            author=d.get("author"),
            notes=d.get("notes"),
            created_ts=str(d.get("created_ts") or ""),
        )


class SpecVersionStore:
    def __init__(self, *, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _root(self) -> Path:
        root = self.data_dir / "dashboards"
        root.mkdir(parents=True, exist_ok=True)
        return root

    def _path(self, dashboard_id: str) -> Path:
        slug = _SAFE_ID_RE.sub("_", dashboard_id.strip())[:48] or "_"
        digest = hashlib.sha256(dashboard_id.encode("utf-8")).hexdigest()[:24]
        return self._root() / f"{slug}-{digest}.json"

    def _load(self, dashboard_id: str) -> Optional[Dict[str, Any]]:
        p = self._path(dashboard_id)
        if not p.exists():
            return None
        with _locked_file(p, "r") as fh:
            raw = fh.read()
        if not raw.strip():
            return None
        doc = json.loads(raw)
        if doc.get("dashboard_id") != dashboard_id:
            log.warning("version file %s belongs to %r, not %r", p.name, doc.get("dashboard_id"), dashboard_id)
            return None
        return doc

    def _require(self, dashboard_id: str) -> Dict[str, Any]:
        doc = self._load(dashboard_id)
        if not doc or not doc.get("versions"):
            raise DashboardNotFoundError(dashboard_id)
        return doc

    # ----------------------------
    # Reads
    # ----------------------------
    def exists(self, dashboard_id: str) -> bool:
        doc = self._load(dashboard_id)
        return bool(doc and doc.get("versions"))

    def list_versions(self, dashboard_id: str) -> List[SpecVersion]:
        doc = self._require(dashboard_id)
        return [SpecVersion.from_dict(dashboard_id, v) for v in doc["versions"]]

    def latest(self, dashboard_id: str) -> SpecVersion:
        versions = self.list_versions(dashboard_id)
        return max(versions, key=lambda v: v.version)

    def get(self, dashboard_id: str, version: int) -> SpecVersion:
        for v in self.list_versions(dashboard_id):
            if v.version == int(version):
                return v
        raise DashboardNotFoundError(dashboard_id, version=int(version))

    def columns(self, dashboard_id: str) -> List[DatasetColumn]:
        doc = self._require(dashboard_id)
        return [DatasetColumn.from_dict(c) for c in doc.get("columns") or []]

    def list_dashboards(self) -> List[str]:
        out: List[str] = []
        for p in sorted(self._root().glob("*.json")):
            try:
                doc = json.loads(p.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                log.warning("Skipping unreadable version file %s", p)
                continue
            if isinstance(doc, dict) and doc.get("dashboard_id"):
                out.append(str(doc["dashboard_id"]))
        return out

    # ----------------------------
    # Writes
    # ----------------------------
    def append(
        self,
        dashboard_id: str,
        spec: Dict[str, Any],
        *,
        expected_version: int,
        author: Optional[str] = None,
        notes: Optional[str] = None,
        columns: Optional[Sequence[DatasetColumn]] = None,
    ) -> SpecVersion:
        """
        Compare-and-append: succeeds only if the current highest version equals
        ``expected_version`` (0 for a dashboard with no history yet).
        """
        p = self._path(dashboard_id)
        p.touch(exist_ok=True)

        with _locked_file(p, "r+") as fh:
            raw = fh.read()
            doc = json.loads(raw) if raw.strip() else {"dashboard_id": dashboard_id, "columns": [], "versions": []}
            if doc.get("dashboard_id") != dashboard_id:
                raise DashboardNotFoundError(dashboard_id)
            versions = doc.get("versions") or []
            current = max((int(v["version"]) for v in versions), default=0)
            if current != int(expected_version):
                raise VersionConflictError(
                    dashboard_id=dashboard_id,
                    expected_version=expected_version,
                    current_version=current,
                )

            record = SpecVersion(
                dashboard_id=dashboard_id,
                version=current + 1,
                spec=copy.deepcopy(spec),
                author=author,
                notes=notes,
                created_ts=_utc_now_iso(),
            )
            entry = record.to_dict()
            entry.pop("dashboard_id")
            versions.append(entry)
            doc["versions"] = versions
            doc["dashboard_id"] = dashboard_id
            if columns is not None:
                doc["columns"] = [c.to_dict() for c in columns]

            payload = json.dumps(doc, indent=2, sort_keys=True, allow_nan=False, ensure_ascii=False)
            fh.seek(0)
            fh.truncate()
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())

        log.info("spec version appended dashboard=%s version=%d author=%s", dashboard_id, record.version, author)
        return record
