import logging
from enum import Enum
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = "validation"  # nunca sale a la red
    NETWORK = "network"
    SERVER = "server"
    MALFORMED = "malformed"


class AppError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def from_failure(
        cls,
        message: Optional[str],
        kind: Optional[ErrorKind],
        status_code: Optional[int] = None,
    ) -> "AppError":
        """
        Traduce un resultado fallido de la capa de datos a un error HTTP local.
        """
        if kind == ErrorKind.VALIDATION:
            code = status_code or 422
        elif kind == ErrorKind.SERVER and status_code and 400 <= status_code < 500:
            code = status_code
        else:
            code = 502
        return cls(message or "An error occurred", code)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(_: Request, exc: AppError):
        logger.warning("AppError: %s", exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(ValidationError)
    async def validation_error_handler(_: Request, exc: ValidationError):  # pragma: no cover
        return JSONResponse(status_code=422, content={"detail": exc.errors()})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_: Request, exc: StarletteHTTPException):  # pragma: no cover
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
