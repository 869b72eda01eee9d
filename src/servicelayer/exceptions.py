"""Exception hierarchy for the service layer.

INVARIANT: ValidationError, PersistenceError and NotFoundError travel inside
ServiceResponse.error. ServiceConfigurationError and AlreadyFinishedError
are programming defects and are always raised.
"""

from __future__ import annotations

from typing import Any


class ServiceLayerError(Exception):
    """Base class for every error raised by servicelayer."""

    code = "SERVICE_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ServiceConfigurationError(ServiceLayerError):
    """A service was declared or constructed with a model it cannot handle."""

    code = "SERVICE_CONFIGURATION"


class ValidationError(ServiceLayerError):
    """An entity failed its own validation rules.

    Attributes:
        messages: One ``{"field", "message", "validation"}`` dict per failure.
    """

    code = "VALIDATION_FAILED"

    def __init__(self, message: str, messages: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.messages = messages or []

    @property
    def fields(self) -> list[str]:
        """Names of the fields that failed, in report order, without duplicates."""
        seen: dict[str, None] = {}
        for item in self.messages:
            seen.setdefault(item["field"], None)
        return list(seen)


class PersistenceError(ServiceLayerError):
    """The database rejected an operation run by an action."""

    code = "PERSISTENCE_FAILED"


class NotFoundError(ServiceLayerError):
    """A lookup that must resolve exactly one row found nothing."""

    code = "MODEL_NOT_FOUND"

    def __init__(self, message: str, *, model: str | None = None) -> None:
        super().__init__(message)
        self.model = model


class AlreadyFinishedError(ServiceLayerError):
    """A ServiceContext was finalized more than once."""

    code = "CONTEXT_FINISHED"


class FrozenEntityError(ServiceLayerError):
    """An attribute was assigned on an entity that has been deleted."""

    code = "ENTITY_FROZEN"
