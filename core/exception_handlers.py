import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import StoreUnavailableError, SubscriptionValidationError
from .response import error as resp_error

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=resp_error(code=str(exc.status_code), message=str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=resp_error(code="invalid_request", message="Invalid request body", details=jsonable_encoder(exc.errors())),
        )

    @app.exception_handler(SubscriptionValidationError)
    async def subscription_validation_handler(request: Request, exc: SubscriptionValidationError):
        return JSONResponse(status_code=400, content=resp_error(code="invalid_subscription", message=str(exc)))

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content=resp_error(code="store_unavailable", message="Database error"))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=resp_error(code="internal_error", message="Internal server error"))
