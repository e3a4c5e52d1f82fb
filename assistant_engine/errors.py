"""Exception types shared across the assistant engine."""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for assistant engine failures."""


class ConfigurationError(AssistantError):
    """Required configuration is missing or invalid."""


class ClassificationError(AssistantError):
    """The classification backend failed or returned unusable output."""


class InvalidDelegation(AssistantError):
    """A delegation names no recipient or one that is not registered."""


class HandlerError(AssistantError):
    """A domain handler raised while serving a delegation."""

    def __init__(self, agent: str, cause: BaseException):
        super().__init__(f"{agent} handler failed: {cause}")
        self.agent = agent
        self.cause = cause


class SessionNotFound(AssistantError, KeyError):
    """No active intelligence session exists for the user."""

    def __str__(self) -> str:
        return f"No active intelligence session for user {self.args[0]!r}"
