"""Error kinds raised by the planning core.

Every error carries a machine-readable ``kind`` and enough structured detail
(offending field, expected and actual values) for the API layer to render a
precise message.
"""

from __future__ import annotations

from typing import Any, Optional


class CoachError(Exception):
    """Base class for all planning-core errors."""

    kind = "error"

    def __init__(self, message: str, *, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.kind.upper(), "message": self.message}
        if self.field is not None:
            payload["field"] = self.field
        if self.value is not None:
            payload["value"] = self.value
        return payload


class FormatError(CoachError):
    """Malformed pace or time string. User-correctable."""

    kind = "format_error"


class SchemaViolation(CoachError):
    """Generated plan does not match the required structure."""

    kind = "schema_violation"

    def __init__(self, field: str, expected: Any, actual: Any, message: Optional[str] = None):
        super().__init__(message or f"{field}: expected {expected!r}, got {actual!r}", field=field)
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["expected"] = self.expected
        payload["actual"] = self.actual
        return payload


class OrderError(SchemaViolation):
    """Phases are missing, repeated or out of base/build/peak/taper order."""

    kind = "order_error"


class PrerequisiteError(CoachError):
    """An operation was requested before its inputs exist."""

    kind = "prerequisite_error"

    def __init__(self, message: str, missing: list[str]):
        super().__init__(message)
        self.missing = list(missing)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["missing"] = self.missing
        return payload


class ConflictError(CoachError):
    """A unique natural key is already taken by a different row."""

    kind = "conflict"


class NotFoundError(CoachError):
    kind = "not_found"


class GenerationError(CoachError):
    """The generative collaborator failed to return any content."""

    kind = "generation_error"
