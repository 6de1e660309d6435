"""Exception hierarchy for the generation pipeline and its HTTP surface."""

from __future__ import annotations


class CareerAssistantError(Exception):
    """Base class for all errors raised by career_assistant."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(CareerAssistantError):
    """Missing or empty input fields, or a malformed request body."""

    status_code = 400


class UnauthorizedError(CareerAssistantError):
    status_code = 401


class NotFoundError(CareerAssistantError):
    """The task does not exist or belongs to another owner."""

    status_code = 404


class UpstreamError(CareerAssistantError):
    """The generation service failed or dropped the stream before completion."""

    status_code = 502


class PersistenceError(CareerAssistantError):
    """A storage write failed after the stream had already been delivered."""

    status_code = 500
