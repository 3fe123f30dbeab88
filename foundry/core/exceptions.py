"""Error taxonomy for the processing pipeline.

The HTTP layer maps these onto status codes; services and engines raise
them without knowing about HTTP.
"""

from __future__ import annotations

from typing import Any


class FoundryError(Exception):
    """Base exception for pipeline errors.

    Attributes:
        code: Stable machine-readable error code.
        details: Optional structured context for the caller.
    """

    code: str = "FOUNDRY_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}


class ValidationFailure(FoundryError):
    """Malformed input to a pipeline call (unknown format, bad mapping...)."""

    code = "VALIDATION_ERROR"


class NotEligible(FoundryError):
    """A precondition for the operation is not met. No state was created."""

    code = "NOT_ELIGIBLE"


class NotFoundError(FoundryError):
    """A resource does not exist or belongs to another organization."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        suffix = f" with id '{resource_id}'" if resource_id is not None else ""
        super().__init__(f"{resource}{suffix} not found")
        self.resource = resource
        self.resource_id = resource_id


class ConnectorFailure(FoundryError):
    """A source connector could not fetch data (network, auth, bad payload)."""

    code = "CONNECTOR_ERROR"

    def __init__(self, connector: str, message: str) -> None:
        super().__init__(f"{connector}: {message}")
        self.connector = connector
