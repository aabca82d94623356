"""Error types raised by the loom services and mapped to HTTP responses by the API."""

from __future__ import annotations


class LoomError(Exception):
    """Base class for all domain errors."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class LoomValidationError(LoomError):
    status_code = 422


class WindowSizeError(LoomValidationError):
    def __init__(self, weeks: object, minimum: int, maximum: int) -> None:
        super().__init__(f"Window size must be between {minimum} and {maximum} weeks, got {weeks!r}")
        self.weeks = weeks
        self.minimum = minimum
        self.maximum = maximum


class NotFoundError(LoomError):
    status_code = 404

    def __init__(self, entity: str, identifier: object) -> None:
        super().__init__(f"{entity} {identifier} not found")
        self.entity = entity
        self.identifier = identifier


class InvalidTransitionError(LoomError):
    status_code = 409


class ConsistencyViolationError(LoomError):
    status_code = 409
