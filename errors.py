"""
Error taxonomy shared by the stores and the HTTP layer.

Stores raise these; the handlers installed by ``install_error_handlers``
turn them into ``{"detail": ...}`` responses with the matching status code.
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    status_code = 400


class InvalidInput(AppError):
    status_code = 400


def _body(message: str, exc: Exception, development: bool) -> dict:
    body = {"detail": message}
    if development:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def install_error_handlers(app: FastAPI, development: bool) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content=_body(exc.message, exc, development))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=_body(str(exc), exc, development))
