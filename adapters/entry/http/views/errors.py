from __future__ import annotations

from fastapi import HTTPException

from core.services.exceptions import (
    IdempotencyInProgress,
    NoRouteAvailable,
    NotFoundError,
    ProviderUnavailable,
    TransferStateError,
    WebhookAuthenticationError,
)

# most specific first
_STATUS_BY_ERROR = (
    (WebhookAuthenticationError, 401),
    (NotFoundError, 404),
    (IdempotencyInProgress, 409),
    (TransferStateError, 409),
    (NoRouteAvailable, 422),
    (ProviderUnavailable, 502),
    (ValueError, 400),
)


def http_error(exc: Exception, action: str) -> HTTPException:
    """
    Translate a core error into the HTTPException a view raises.
    """
    if isinstance(exc, HTTPException):
        return exc
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=f"Failed to {action}: {exc}")
