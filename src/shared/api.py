"""FastAPI plumbing shared by the ordering and payments routers."""

import structlog
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from shared.errors import OrderingError

logger = structlog.get_logger(__name__)


def get_engine(request: Request):
    """The ``OrderLifecycleEngine`` attached to the running application."""
    return request.app.state.engine


def bearer_token(authorization: str | None = Header(default=None)) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(OrderingError)
    async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
        if exc.client_facing:
            logger.info("Request rejected", path=request.url.path, error=exc.kind, **exc.details)
        else:
            logger.error("Request failed", path=request.url.path, error=exc.kind, message=exc.message, **exc.details)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info("Request rejected", path=request.url.path, error="ValidationError", messages=exc.messages)
        return JSONResponse(
            status_code=400,
            content={"error": "ValidationError", "message": "Invalid data", "messages": exc.messages},
        )

    @app.exception_handler(ObjectNotFoundError)
    async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
        logger.info("Request rejected", path=request.url.path, error="ObjectNotFoundError")
        return JSONResponse(status_code=404, content={"error": "ObjectNotFoundError", "message": str(exc)})
