"""Error taxonomy and the formatter that turns failures into JSON:API error documents.

Invariants:
    - Every error carries an HTTP status, a title, and a detail message
    - ValidationFailed expands to one error object per offending field,
      each with a ``source.pointer`` into the request document
    - Query-parameter failures point at the parameter (``source.parameter``)
    - Anything that is not a TaskboardError formats as a generic 500 that
      leaks no internal detail
"""

from __future__ import annotations

from dataclasses import dataclass

from taskboard.schemas.jsonapi import JSONAPIError, JSONAPIErrorResponse


@dataclass(frozen=True)
class FieldError:
    """One field-level validation failure located by a JSON pointer."""

    pointer: str
    detail: str


class TaskboardError(Exception):
    """Base exception for all failures the API reports to clients."""

    status: int = 500
    title: str = "Server Error"
    code: str = "SERVER_ERROR"

    def __init__(
        self,
        detail: str,
        *,
        pointer: str | None = None,
        parameter: str | None = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.pointer = pointer
        self.parameter = parameter

    def _source(self) -> dict[str, str] | None:
        if self.pointer is not None:
            return {"pointer": self.pointer}
        if self.parameter is not None:
            return {"parameter": self.parameter}
        return None

    def to_error_objects(self) -> list[JSONAPIError]:
        """Convert to the list of JSON:API error objects for a response."""
        return [
            JSONAPIError(
                status=str(self.status),
                title=self.title,
                detail=self.detail,
                code=self.code,
                source=self._source(),
            )
        ]


# ─── Client errors ──────────────────────────────────────────────


class ValidationFailed(TaskboardError):
    """One or more field-level violations in a request document."""

    status = 422
    title = "Validation Error"
    code = "VALIDATION_ERROR"

    def __init__(self, errors: list[FieldError]) -> None:
        super().__init__(
            "; ".join(e.detail for e in errors) or "The given data was invalid.",
        )
        self.errors = list(errors)

    def to_error_objects(self) -> list[JSONAPIError]:
        return [
            JSONAPIError(
                status=str(self.status),
                title=self.title,
                detail=error.detail,
                code=self.code,
                source={"pointer": error.pointer},
            )
            for error in self.errors
        ]


class UnknownResourceType(TaskboardError):
    status = 404
    title = "Unknown Resource Type"
    code = "UNKNOWN_RESOURCE_TYPE"

    def __init__(self, type_name: str) -> None:
        super().__init__(f"Resource type '{type_name}' is not registered.")
        self.type_name = type_name


class IncludeNotAllowed(TaskboardError):
    status = 400
    title = "Include Not Allowed"
    code = "INCLUDE_NOT_ALLOWED"

    def __init__(self, type_name: str, relationship: str) -> None:
        super().__init__(
            f"Including '{relationship}' is not allowed for {type_name}.",
            parameter="include",
        )
        self.relationship = relationship


class InvalidSortField(TaskboardError):
    status = 400
    title = "Invalid Sort Field"
    code = "INVALID_SORT_FIELD"

    def __init__(self, type_name: str, field: str) -> None:
        super().__init__(
            f"Sorting by '{field}' is not allowed for {type_name}.",
            parameter="sort",
        )
        self.field = field


class InvalidPagination(TaskboardError):
    status = 400
    title = "Invalid Pagination"
    code = "INVALID_PAGINATION"

    def __init__(self, parameter: str, value: object) -> None:
        super().__init__(
            f"The {parameter} parameter must be a positive integer, got {value!r}.",
            parameter=parameter,
        )


class Conflict(TaskboardError):
    """The write violates a store constraint (duplicate or dangling reference)."""

    status = 409
    title = "Conflict"
    code = "CONFLICT"


class ResourceIdConflict(Conflict):
    """The ``data.id`` of an update document does not match the URL."""

    code = "RESOURCE_ID_CONFLICT"

    def __init__(self, expected: str, given: str) -> None:
        super().__init__(
            f"The id '{given}' does not match the resource id '{expected}'.",
            pointer="/data/id",
        )


class RelationshipNotMutable(TaskboardError):
    status = 403
    title = "Forbidden"
    code = "RELATIONSHIP_NOT_MUTABLE"

    def __init__(self, type_name: str, relationship: str) -> None:
        super().__init__(
            f"The {relationship} relationship of {type_name} cannot be replaced.",
        )


# ─── Not found ──────────────────────────────────────────────────


class NotFound(TaskboardError):
    """The primary resource addressed by the request does not exist."""

    status = 404
    title = "Not Found"
    code = "NOT_FOUND"

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(detail)


class RelationshipNotFound(NotFound):
    code = "RELATIONSHIP_NOT_FOUND"

    def __init__(self, type_name: str, relationship: str) -> None:
        super().__init__(f"{type_name} has no relationship named '{relationship}'.")


class RelationshipTargetNotFound(NotFound):
    """One or more requested relationship targets do not exist."""

    code = "RELATIONSHIP_TARGET_NOT_FOUND"

    def __init__(self, missing: list) -> None:
        names = ", ".join(str(m) for m in missing)
        super().__init__(f"Resource not found: {names}")
        self.missing = list(missing)


# ─── Server errors ──────────────────────────────────────────────


class CollaboratorFailure(TaskboardError):
    """A store or notifier collaborator is unavailable."""

    status = 500
    title = "Server Error"
    code = "COLLABORATOR_FAILURE"

    def __init__(self, collaborator: str) -> None:
        super().__init__(f"The {collaborator} is currently unavailable.")
        self.collaborator = collaborator


# ─── Formatter ──────────────────────────────────────────────────


def format_error(exc: Exception) -> tuple[int, JSONAPIErrorResponse]:
    """Map any failure to an HTTP status and a JSON:API error document."""
    if isinstance(exc, TaskboardError):
        return exc.status, JSONAPIErrorResponse(errors=exc.to_error_objects())
    return 500, JSONAPIErrorResponse(
        errors=[
            JSONAPIError(
                status="500",
                title="Server Error",
                detail="An unexpected error occurred",
                code="INTERNAL_ERROR",
            )
        ]
    )
