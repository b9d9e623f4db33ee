"""
Patch engine: constrained, versioned mutation of a stored dashboard spec.

Flow per request: load live version, optimistic version check, deny-list
check, pure transform, validation against the dataset's columns, then
compare-and-append. Any failure leaves the store untouched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..errors import CopilotError, PatchPathForbiddenError, SpecValidationError, VersionConflictError
from ..observability.metrics import PATCHES_TOTAL
from ..spec.validator import validate_spec
from ..store.versions import SpecVersionStore
from .diff import diff_summary
from .operations import PatchOperation, ReplaceOp, apply_operations, parse_operations
from .pointer import denied_keys, escape_token, is_denied
from .state_machine import PatchSession, PatchState

log = logging.getLogger("copilot.patch")


@dataclass
class PatchResult:
    dashboard_id: str
    version: int
    previous_version: int
    new_spec: Dict[str, Any]
    diff_summary: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dashboard_id": self.dashboard_id,
            "version": self.version,
            "previous_version": self.previous_version,
            "diff_summary": self.diff_summary,
            "new_spec": self.new_spec,
            "warnings": list(self.warnings),
            "dry_run": self.dry_run,
        }


def check_paths(raw_ops: Sequence[Any]) -> None:
    """
    Raise on the first operation whose ``path`` or ``from`` is denied, or
    that writes a whole document carrying a denied top-level key.
    """
    if not isinstance(raw_ops, (list, tuple)):
        return
    for raw in raw_ops:
        if not isinstance(raw, dict):
            continue
        for key in ("path", "from"):
            if is_denied(raw.get(key)):
                raise PatchPathForbiddenError(str(raw.get(key)))
        if raw.get("path") == "" and raw.get("op") in ("add", "replace"):
            keys = denied_keys(raw.get("value"))
            if keys:
                raise PatchPathForbiddenError("/" + escape_token(keys[0]))


class PatchEngine:
    def __init__(self, store: SpecVersionStore):
        self.store = store

    def _run(
        self,
        dashboard_id: str,
        raw_ops: Sequence[Any],
        *,
        expected_version: Optional[int],
        author: Optional[str],
        change_reason: Optional[str],
        commit: bool,
        parsed: Optional[List[PatchOperation]] = None,
    ) -> PatchResult:
        session = PatchSession()
        current = self.store.latest(dashboard_id)

        if expected_version is not None and int(expected_version) != current.version:
            PATCHES_TOTAL.labels(outcome="conflict").inc()
            raise VersionConflictError(
                dashboard_id=dashboard_id,
                expected_version=expected_version,
                current_version=current.version,
            )

        try:
            check_paths(raw_ops)
            ops = parsed if parsed is not None else parse_operations(raw_ops)
            session.advance(PatchState.PATH_VALIDATED)

            candidate = apply_operations(current.spec, ops)
            session.advance(PatchState.TRANSFORMED)

            columns = self.store.columns(dashboard_id)
            result = validate_spec(candidate, columns, regenerate=False)
            if result.errors:
                raise SpecValidationError(
                    "Patched spec is invalid",
                    details={"errors": result.errors, "warnings": result.warnings},
                )
            session.advance(PatchState.VALIDATED)

            summary = diff_summary(current.spec, result.spec, ops)
            if not commit:
                session.abort()
                PATCHES_TOTAL.labels(outcome="dry_run").inc()
                return PatchResult(
                    dashboard_id=dashboard_id,
                    version=current.version,
                    previous_version=current.version,
                    new_spec=result.spec,
                    diff_summary=summary,
                    warnings=result.warnings,
                    dry_run=True,
                )

            record = self.store.append(
                dashboard_id,
                result.spec,
                expected_version=current.version,
                author=author,
                notes=change_reason,
            )
            session.advance(PatchState.COMMITTED)
        except CopilotError as exc:
            session.abort()
            outcome = "conflict" if isinstance(exc, VersionConflictError) else "rejected"
            PATCHES_TOTAL.labels(outcome=outcome).inc()
            log.info("patch rejected dashboard=%s code=%s message=%s", dashboard_id, exc.code, exc.message)
            raise

        PATCHES_TOTAL.labels(outcome="applied").inc()
        log.info(
            "patch applied dashboard=%s version=%d->%d ops=%d",
            dashboard_id,
            current.version,
            record.version,
            len(ops),
        )
        return PatchResult(
            dashboard_id=dashboard_id,
            version=record.version,
            previous_version=current.version,
            new_spec=record.spec,
            diff_summary=summary,
            warnings=result.warnings,
        )

    def apply(
        self,
        dashboard_id: str,
        operations: Sequence[Any],
        *,
        expected_version: Optional[int] = None,
        author: Optional[str] = None,
        change_reason: Optional[str] = None,
    ) -> PatchResult:
        return self._run(
            dashboard_id,
            operations,
            expected_version=expected_version,
            author=author,
            change_reason=change_reason,
            commit=True,
        )

    def simulate(
        self,
        dashboard_id: str,
        operations: Sequence[Any],
        *,
        expected_version: Optional[int] = None,
    ) -> PatchResult:
        return self._run(
            dashboard_id,
            operations,
            expected_version=expected_version,
            author=None,
            change_reason=None,
            commit=False,
        )

    def rollback(
        self,
        dashboard_id: str,
        target_version: int,
        *,
        expected_version: Optional[int] = None,
        author: Optional[str] = None,
    ) -> PatchResult:
        """Append the snapshot of ``target_version`` as a new version."""
        target = self.store.get(dashboard_id, int(target_version))
        op = ReplaceOp(path="", value=target.spec)
        return self._run(
            dashboard_id,
            [{"op": "replace", "path": "", "value": target.spec}],
            expected_version=expected_version,
            author=author,
            change_reason=f"rollback to version {target.version}",
            commit=True,
            parsed=[op],
        )
