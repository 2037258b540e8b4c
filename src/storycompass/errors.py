"""Exception hierarchy shared by the storycompass core."""

from __future__ import annotations

from typing import Sequence


class StoryCompassError(Exception):
    """Base class for all errors raised deliberately by storycompass."""


class ResourceNotFoundError(StoryCompassError, KeyError):
    """Raised when a scenario, session, profile or bundle cannot be found."""

    def __init__(self, resource: str, identifier: str) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} '{identifier}' does not exist")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable instead.
        return str(self.args[0])


class InvalidSessionOperationError(StoryCompassError):
    """Raised when an operation is not legal for the session's current state.

    These failures are not retryable: the caller must reload the session before
    deciding what to do next.
    """

    def __init__(self, message: str, *, session_id: str | None = None) -> None:
        super().__init__(message)
        self.session_id = session_id


class SessionConflictError(InvalidSessionOperationError):
    """Raised when a staged session write no longer matches persisted state."""


class ScenarioValidationError(StoryCompassError, ValueError):
    """Raised when a caller requires a valid scenario and validation failed."""

    def __init__(self, scenario_id: str, errors: Sequence[str]) -> None:
        self.scenario_id = scenario_id
        self.errors = tuple(errors)
        summary = "; ".join(self.errors) or "unknown validation failure"
        super().__init__(f"Scenario '{scenario_id}' is invalid: {summary}")


class BadgeConfigurationError(StoryCompassError, ValueError):
    """Raised when badge tiers are configured out of order."""


__all__ = [
    "StoryCompassError",
    "ResourceNotFoundError",
    "InvalidSessionOperationError",
    "SessionConflictError",
    "ScenarioValidationError",
    "BadgeConfigurationError",
]
