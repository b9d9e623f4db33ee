"""Domain exceptions.

Every error that can reach a caller carries a stable ``code`` and maps to an
HTTP status. The API layer renders them as::

    {"ok": false, "error": {"code": ..., "message": ..., "details": ...}}
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CopilotError(Exception):
    code = "INTERNAL_ERROR"
    http_status = 500

    def __init__(self, message: str, *, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_envelope(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "error": {"code": self.code, "message": self.message, "details": self.details},
        }


class SpecValidationError(CopilotError):
    code = "VALIDATION_ERROR"
    http_status = 422


class PatchPathForbiddenError(CopilotError):
    code = "PATCH_PATH_FORBIDDEN"
    http_status = 403

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Patch path is not allowed: {path}", details={"path": path})


class VersionConflictError(CopilotError):
    code = "VERSION_CONFLICT"
    http_status = 409

    def __init__(self, *, dashboard_id: str, expected_version: Optional[int], current_version: int):
        self.dashboard_id = dashboard_id
        self.expected_version = expected_version
        self.current_version = int(current_version)
        super().__init__(
            f"Version conflict for dashboard={dashboard_id}: expected {expected_version}, current {current_version}",
            details={"expected_version": expected_version, "current_version": current_version},
        )


class DashboardNotFoundError(CopilotError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, dashboard_id: str, *, version: Optional[int] = None):
        self.dashboard_id = dashboard_id
        self.version = version
        what = f"dashboard={dashboard_id}" if version is None else f"dashboard={dashboard_id} version={version}"
        super().__init__(f"Not found: {what}", details={"dashboard_id": dashboard_id, "version": version})


class NoColumnsError(CopilotError):
    code = "NO_COLUMNS"
    http_status = 400


class PatchTestFailedError(CopilotError):
    code = "PATCH_TEST_FAILED"
    http_status = 409

    def __init__(self, path: str, *, expected: Any, actual: Any):
        self.path = path
        super().__init__(f"Test operation failed at {path}", details={"path": path, "expected": expected, "actual": actual})


class PatchApplyError(CopilotError):
    code = "PATCH_ERROR"
    http_status = 400
