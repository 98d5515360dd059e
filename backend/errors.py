"""
Startup Dashboard - Error Taxonomy

Every error surfaced to a caller is a DashboardError carrying a kind and
an HTTP status. main.py registers a handler that renders them as
{"error": message, "kind": kind, ...extra}.
"""
from typing import Any, Dict, List, Optional


class DashboardError(Exception):
    kind = "internal"
    status_code = 500

    def __init__(self, message: str = "", extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message or self.kind
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "kind": self.kind}
        body.update(self.extra)
        return body


class InvalidInput(DashboardError):
    kind = "invalid_input"
    status_code = 400


class Unauthorized(DashboardError):
    kind = "unauthorized"
    status_code = 401


class Forbidden(DashboardError):
    kind = "forbidden"
    status_code = 403


class NotFound(DashboardError):
    kind = "not_found"
    status_code = 404


class Conflict(DashboardError):
    kind = "conflict"
    status_code = 409


class InternalError(DashboardError):
    kind = "internal"
    status_code = 500


class VersionConflict(Conflict):
    """Another writer already committed this (company, quarter, version)."""

    def __init__(self, section: str, version: int):
        super().__init__(f"version {version} of {section} already exists")
        self.section = section
        self.version = version


class EditNotPermitted(Unauthorized):
    """A write touched fields whose editability bit is off."""

    def __init__(self, fields: List[str]):
        super().__init__(
            "fields not editable: " + ", ".join(fields),
            extra={"fields": list(fields)},
        )
        self.fields = list(fields)
