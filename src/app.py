"""Orderflow FastAPI application.

Serves the order lifecycle (checkout, payment confirmation, status
management, cancellation and refund) and the payment provider webhook.
Every request runs inside the ordering domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ordering.domain import init_domain, ordering
from shared.config import Settings, settings as default_settings

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
init_domain(default_settings.DATABASE_URL)

from ordering.api.routes import checkout_router, order_router  # noqa: E402
from ordering.engine import OrderLifecycleEngine  # noqa: E402
from payments.api.routes import payment_router  # noqa: E402
from shared.api import register_exception_handlers  # noqa: E402
from shared.logging import bind_request_context, clear_request_context, configure_logging  # noqa: E402

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, engine=None) -> FastAPI:
    """Build the application. ``engine`` replaces the default gateway-backed one."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info("Orderflow started", environment=settings.ENVIRONMENT)
        yield

    app = FastAPI(
        title="Orderflow API",
        description="Order lifecycle and payment reconciliation",
        lifespan=lifespan,
    )
    app.state.engine = engine or OrderLifecycleEngine(currency=settings.CURRENCY)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the ordering domain context and tag log events for each request."""
        request_id = bind_request_context(request.method, request.url.path, request.headers.get("x-request-id"))
        try:
            with ordering.domain_context():
                response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response

    register_exception_handlers(app)
    app.include_router(order_router)
    app.include_router(checkout_router)
    app.include_router(payment_router)

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "environment": settings.ENVIRONMENT,
                "domain": ordering.name,
            }
        )

    return app


app = create_app()
