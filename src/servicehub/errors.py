"""Exception types raised by servicehub."""

from __future__ import annotations

from typing import Any


class ServiceHubError(Exception):
    """Base class for every error raised by servicehub."""


class ConfigurationError(ServiceHubError):
    """A required setting is missing or invalid."""


class DuplicateNameError(ServiceHubError):
    """A job or resource with the same name is already registered."""

    def __init__(self, name: str, what: str = "resource"):
        self.name = name
        self.what = what
        super().__init__(f"{what.capitalize()} '{name}' already exists")


class NotFoundError(ServiceHubError):
    """An operation referenced a name that is not registered."""

    def __init__(self, name: str, what: str = "resource", available: Any = None):
        self.name = name
        self.what = what
        message = f"{what.capitalize()} '{name}' not found"
        if available is not None:
            message += f". Available: [{', '.join(available)}]"
        super().__init__(message)


class AdapterInitError(ServiceHubError):
    """Constructing a resource adapter failed.

    The original exception is chained as ``__cause__`` and its message is
    embedded in this error's message.
    """

    def __init__(self, name: str, kind: str, cause: BaseException):
        self.name = name
        self.kind = kind
        self.cause = cause
        super().__init__(f"Resource '{name}' ({kind}) initialization failed: {cause}")


class SafetyGuardError(ServiceHubError):
    """A destructive operation was blocked by an environment guard."""


class TransportError(ServiceHubError):
    """A registration call failed after all attempts were exhausted."""

    def __init__(self, action: str, attempts: int, cause: BaseException):
        self.action = action
        self.attempts = attempts
        self.cause = cause
        plural = "s" if attempts != 1 else ""
        super().__init__(f"Registry '{action}' failed after {attempts} attempt{plural}: {cause}")


class CacheOperationError(ServiceHubError):
    """A cache command failed on the key-value backend."""
