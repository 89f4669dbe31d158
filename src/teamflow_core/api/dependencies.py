"""Request dependencies shared by the API routers."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException

from ..exceptions import (
    AccessDeniedError,
    CircularReportingError,
    InsufficientPermissionError,
    NotFoundError,
    TeamflowError,
)

logger = logging.getLogger("teamflow-core.api")

# Same body for "absent" and "not yours" so outsiders cannot probe for existence
NOT_FOUND_DETAIL = {"code": "NOT_FOUND", "message": "Resource not found"}


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> UUID:
    """
    Get the calling user's ID.

    Authentication happens at the gateway, which forwards the authenticated
    principal in the ``X-User-Id`` header.

    Raises:
        HTTPException: 401 if the header is missing or malformed
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")


def to_http_exception(error: TeamflowError) -> HTTPException:
    """Translate an engine error into an HTTPException."""
    if isinstance(error, (AccessDeniedError, NotFoundError)):
        logger.info(f"{error.code}: {error.message}")
        return HTTPException(status_code=404, detail=NOT_FOUND_DETAIL)
    if isinstance(error, InsufficientPermissionError):
        return HTTPException(status_code=403, detail={"code": error.code, "message": error.message})
    if isinstance(error, CircularReportingError):
        return HTTPException(
            status_code=409,
            detail={"code": error.code, "message": error.message, "path": [str(p) for p in error.path]},
        )
    return HTTPException(status_code=400, detail={"code": error.code, "message": error.message})
