"""Global error handlers: every failure leaves the API as ``{"detail": ...}`` JSON."""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from campus.exceptions import AccessDeniedError, ConflictError, NotFoundError, UpstreamServiceError

logger = structlog.get_logger()


def _detail(exc: Exception, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers.

    Services raise domain exceptions and routers let them propagate:

    * ``NotFoundError``     -> 404
    * ``AccessDeniedError`` -> 403
    * ``ConflictError``     -> 409
    * any other ``ValueError`` -> 400
    * ``UpstreamServiceError`` -> 502
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": "Validation error",
                "errors": jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
            },
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
        return _detail(exc, 404)

    @app.exception_handler(AccessDeniedError)
    async def access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
        logger.info("access_denied", path=request.url.path, reason=str(exc))
        return _detail(exc, 403)

    @app.exception_handler(ConflictError)
    async def conflict_handler(_request: Request, exc: ConflictError) -> JSONResponse:
        return _detail(exc, 409)

    @app.exception_handler(UpstreamServiceError)
    async def upstream_handler(request: Request, exc: UpstreamServiceError) -> JSONResponse:
        logger.warning("upstream_failure", path=request.url.path, error=str(exc))
        return _detail(exc, 502)

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
        return _detail(exc, 400)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions, always JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
