"""
API error type and handlers.

Every failure path answers with a JSON body carrying a short machine-readable
``error`` code, e.g. ``{"error": "future_exam"}``.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, error: str, detail: str | None = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.detail = detail

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        if self.detail:
            body["detail"] = self.detail
        return body


def unauthorized() -> ApiError:
    return ApiError(status.HTTP_401_UNAUTHORIZED, "unauthorized")


def bad_request(error: str = "bad_request", detail: str | None = None) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, error, detail)


def not_found() -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, "not_found")


async def _api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _validation_error_handler(_request: Request, _exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "bad_request"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
