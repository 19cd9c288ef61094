"""Translate domain and validation failures into HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..domain.errors import AccountServiceError, StoreFailure, Unauthenticated


def _http_error_from_domain_error(request: Request, exc: AccountServiceError) -> JSONResponse:
    headers = None
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}
    detail = exc.detail
    if isinstance(exc, StoreFailure):
        detail = StoreFailure.default_detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": jsonable_encoder(detail)},
        headers=headers,
    )


def _http_error_from_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccountServiceError, _http_error_from_domain_error)
    app.add_exception_handler(RequestValidationError, _http_error_from_validation_error)
