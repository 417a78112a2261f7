"""Helper utilities shared across API route handlers."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from notifier.domain.errors import (
    AuthorizationError,
    InfrastructureError,
    NotFoundError,
    NotifierError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[NotifierError], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (InfrastructureError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: NotifierError) -> HTTPException:
    """Map a domain error onto the HTTP status clients should see."""

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            if status_code >= 500:
                logger.error("Request failed: %s", exc)
            return HTTPException(status_code=status_code, detail=str(exc))
    logger.error("Unhandled notifier error: %s", exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
    )


__all__ = ["to_http_exception"]
