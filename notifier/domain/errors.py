"""Exceptions raised by the notification domain and its collaborators."""

from __future__ import annotations


class NotifierError(Exception):
    """Base class for every error raised by the service."""


class ValidationError(NotifierError):
    """Input breaks a notification, preference or subscription rule."""


class NoEligibleChannelError(ValidationError):
    """The recipient's preferences leave no channel for the notification type."""


class NotFoundError(NotifierError):
    """A referenced notification or subscription does not exist."""


class AuthorizationError(NotifierError):
    """The caller tried to mutate an entity owned by another recipient."""


class ProviderError(NotifierError):
    """A push backend rejected a delivery."""

    code = "provider_error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EndpointGoneError(ProviderError):
    """The push endpoint or token no longer exists."""

    code = "endpoint_gone"


class InvalidCredentialsError(ProviderError):
    """The backend refused our VAPID keys or service account."""

    code = "invalid_credentials"


class TransientProviderError(ProviderError):
    """Any other backend failure that may succeed later."""

    code = "transient"


class InfrastructureError(NotifierError):
    """A repository or queue is unavailable."""


__all__ = [
    "AuthorizationError",
    "EndpointGoneError",
    "InfrastructureError",
    "InvalidCredentialsError",
    "NoEligibleChannelError",
    "NotFoundError",
    "NotifierError",
    "ProviderError",
    "TransientProviderError",
    "ValidationError",
]
