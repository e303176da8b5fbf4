import logging
from typing import Sequence

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from .application.media.errors import MediaError

logger = logging.getLogger(__name__)

def create_error_response(error_message: str) -> dict:
    """Single-cause error body"""
    return {"error": error_message}

def create_errors_response(error_messages: Sequence[str]) -> dict:
    """Body used when several validation problems are reported together"""
    return {"errors": list(error_messages)}

def media_error_response(errors: Sequence[MediaError]) -> JSONResponse:
    """Render one or more pipeline errors as a JSON response"""
    if not errors:
        return JSONResponse(status_code=500, content=create_error_response("Unknown error"))
    if len(errors) == 1:
        error = errors[0]
        content = create_error_response(str(error))
        content.update({"kind": error.kind.value, "retryable": error.retryable})
        return JSONResponse(status_code=error.http_status, content=content)
    statuses = {e.http_status for e in errors}
    content = create_errors_response([str(e) for e in errors])
    content["details"] = [e.to_dict() for e in errors]
    return JSONResponse(status_code=statuses.pop() if len(statuses) == 1 else 400, content=content)

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required")
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail))
    )

async def media_exception_handler(request: Request, exc: MediaError) -> JSONResponse:
    """Pipeline errors that escaped an outcome, e.g. from listing endpoints"""
    logger.warning(f"{request.method} {request.url.path} failed: {exc!r}")
    return media_error_response([exc])
