"""Realize Reporter — Error → HTTP Translation."""

from fastapi import HTTPException

from realize.core.errors import RealizeError, ReportValidationError
from realize.core.logging import get_logger

logger = get_logger("api.errors")


def http_error(e: RealizeError, action: str) -> HTTPException:
    """Map a domain error onto the HTTPException a route raises."""
    if isinstance(e, ReportValidationError):
        detail = f"{e.title}: {e.message}"
    else:
        detail = f"{action} failed: {e.message}"
    if e.http_status >= 500:
        logger.error(detail)
    else:
        logger.warning(detail)
    return HTTPException(status_code=e.http_status, detail=detail)
