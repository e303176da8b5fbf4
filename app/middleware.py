import time
from typing import Optional
import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .core.config import settings
from .application.media.image_class import largest_ceiling

logger = logging.getLogger(__name__)

class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        # Log request (guard against missing client info)
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Request: {request.method} {request.url.path} from {client_host}")

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(f"Response: {response.status_code} in {duration:.3f}s")

        return response

class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error: {str(e)}", exc_info=True)

            if settings.DEBUG:
                return JSONResponse(
                    status_code=500,
                    content={"error": f"Internal server error: {str(e)}"}
                )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error"}
            )

class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies above the largest class ceiling before they are read.

    Per-class ceilings are enforced later by the validator; this only bounds
    the memory a single request can claim.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: Optional[int] = None):
        super().__init__(app)
        self.max_body_bytes = max_body_bytes or (largest_ceiling() + settings.MULTIPART_OVERHEAD_BYTES)

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                # Malformed header; downstream checks still apply
                size = 0
            if size > self.max_body_bytes:
                logger.warning(f"Rejected {request.method} {request.url.path}: body of {size} bytes")
                return JSONResponse(
                    status_code=413,
                    content={"error": f"Request entity too large. Maximum {self.max_body_bytes} bytes allowed."}
                )
        return await call_next(request)
