"""
Typed exceptions for the foundry record store.

Every failure a store can report maps to one subclass of FoundryError.
Errors carry a machine-readable ``code`` and the ids involved, so any
interface (CLI, API) can turn them into a structured result with
``to_dict()`` instead of parsing messages.
"""

from __future__ import annotations

from typing import Any


class FoundryError(Exception):
    """Base exception for all record store errors."""

    code = "error"

    def __init__(self, message: str, **details: Any) -> None:
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Structured form of the error, safe to return to callers."""
        return {"error": self.code, "message": str(self), **self.details}


class ValidationError(FoundryError):
    """A request value is malformed (empty title, bad dates, bad tree)."""

    code = "validation_error"


class AuthenticationError(FoundryError):
    """The caller could not be resolved to a principal."""

    code = "authentication_required"


class NotAuthorizedError(FoundryError):
    """The caller is authenticated but not allowed to run an admin operation."""

    code = "not_authorized"


class NotFoundError(FoundryError):
    """An id does not resolve in the target store (or is hidden from the caller).

    Private records owned by another principal are reported as not found so
    their existence is never revealed.
    """

    code = "not_found"

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} not found: {record_id}", kind=kind, id=record_id)


class NotOwnerError(FoundryError):
    """The record is visible to the caller (a public template) but not mutable."""

    code = "not_owner"

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(
            f"Unauthorized: you do not own this {kind}", kind=kind, id=record_id
        )


class InvalidFieldError(FoundryError):
    """A dynamic field value fails the schema for the capture's type."""

    code = "invalid_field"

    def __init__(self, field: str, capture_type: str, reason: str) -> None:
        self.field = field
        self.capture_type = capture_type
        self.reason = reason
        super().__init__(
            f"Invalid field '{field}' for {capture_type}: {reason}",
            field=field,
            capture_type=capture_type,
        )


class CyclicRelationshipError(FoundryError):
    """A parent link would make a record its own ancestor."""

    code = "cyclic_relationship"

    def __init__(self, kind: str, record_id: str, parent_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        self.parent_id = parent_id
        super().__init__(
            f"Cannot attach {kind} {record_id} under {parent_id}: would create a cycle",
            kind=kind,
            id=record_id,
            parent_id=parent_id,
        )


class DanglingReferenceError(FoundryError):
    """A referenced record does not exist or is not owned by the caller."""

    code = "dangling_reference"

    def __init__(self, kind: str, record_id: str, reason: str | None = None) -> None:
        self.kind = kind
        self.record_id = record_id
        message = f"Referenced {kind} does not exist: {record_id}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, kind=kind, id=record_id)


class CapacityExceededError(FoundryError):
    """Assigning a capture would push a sprint past its capacity."""

    code = "capacity_exceeded"

    def __init__(self, sprint_id: str, load: float, capacity: float) -> None:
        self.sprint_id = sprint_id
        self.load = load
        self.capacity = capacity
        super().__init__(
            f"Sprint {sprint_id} would exceed capacity ({load:g} > {capacity:g})",
            sprint_id=sprint_id,
            load=load,
            capacity=capacity,
        )


class IntegrityError(FoundryError):
    """Restored state violates invariants and was not repaired."""

    code = "integrity_error"

    def __init__(self, findings: list[Any]) -> None:
        self.findings = findings
        summary = "; ".join(str(f) for f in findings[:3])
        if len(findings) > 3:
            summary += f" (+{len(findings) - 3} more)"
        super().__init__(
            f"State failed integrity audit with {len(findings)} finding(s): {summary}",
            count=len(findings),
        )
