"""
Exception handlers registered on the Gradii app.

Route handlers raise HTTPException for expected failures, and FastAPI's
default handling turns those into {"detail": ...}. Anything that escapes a
route lands here and becomes:

    {"detail": <message>, "error_id": <hex id>, "error_type": <class name>}

The same error_id is logged and returned in the X-Error-ID header so support
can find the traceback from what a company user reports.

- SQLAlchemyError: 503 when the database is unreachable, 500 otherwise
- PyMongoError: 503, the resume/generation archive is unavailable
- Exception: 500
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError

from app.core.logging_config import get_logger

logger = get_logger(__name__)


def _error_response(request: Request, exc: Exception, status_code: int, detail: str) -> JSONResponse:
    error_id = uuid.uuid4().hex[:12]
    error_type = type(exc).__name__

    logger.error(
        f"{error_type} [{error_id}] in {request.method} {request.url.path}: {exc}",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
            "error_type": error_type,
            "status_code": status_code,
        }
    )

    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "error_id": error_id, "error_type": error_type},
        headers={"X-Error-ID": error_id},
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    if isinstance(exc, (OperationalError, DisconnectionError)):
        return _error_response(request, exc, 503, "Database unavailable")
    return _error_response(request, exc, 500, "Database error")


async def document_store_exception_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    return _error_response(request, exc, 503, "Document store unavailable")


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for anything a route did not turn into an HTTPException."""
    return _error_response(request, exc, 500, "Internal server error")


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(PyMongoError, document_store_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered")
