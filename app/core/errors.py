"""
Exception handlers.

- HTTPException: {"detail": ...}, logged at warning level
- RateLimitExceeded: 429 {"detail": ...} with Retry-After
- Request validation: 400 (not FastAPI's 422) with per-field errors
- Anything else: logged with traceback, generic 500
"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from app.core.rate_limit import rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(
        "HTTPException request_id=%s path=%s status=%s detail=%s",
        getattr(request.state, "request_id", "-"),
        request.url.path,
        exc.status_code,
        exc.detail,
    )
    content = exc.detail if isinstance(exc.detail, dict) else {"detail": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            # drop the leading "body"/"path"/"query" location
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    logger.info("Validation failed path=%s errors=%s", request.url.path, errors)
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({"detail": "Validation failed", "errors": errors}),
    )


async def unhandled_exception_handler(_: Request, exc: Exception):
    logger.exception("Unhandled server error: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
