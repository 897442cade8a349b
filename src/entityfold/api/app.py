"""FastAPI application factory and exception handlers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from logging import getLogger
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException

from entityfold import __version__
from entityfold.config.errors import ConfigurationError
from entityfold.domain.errors import MergeError

from .envelope import failure
from .routes import router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi.responses import JSONResponse

    from entityfold.app import MergeService

log = getLogger(__name__)

API_PREFIX = "/api/v1/cleanup"


async def merge_error_handler(request: Request, exc: MergeError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        log.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return failure(exc.status_code, exc.message, error=exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request payload")
    if location:
        message = f"{location}: {message}"
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in errors
    ]
    return failure(400, message, error=details)


async def configuration_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("%s %s unavailable: %s", request.method, request.url.path, exc)
    return failure(503, str(exc))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return failure(exc.status_code, str(exc.detail))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return failure(500, "Something went wrong")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MergeError, merge_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


def create_app(service: MergeService) -> FastAPI:
    """Build the HTTP app around an already wired ``MergeService``."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await service.aclose()

    app = FastAPI(title="entityfold", version=__version__, lifespan=lifespan)
    app.state.service = service
    app.include_router(router, prefix=API_PREFIX)
    register_exception_handlers(app)
    return app
