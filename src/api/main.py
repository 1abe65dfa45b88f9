"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from infrastructure.database.dependencies import dispose_engine
from infrastructure.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
)
from infrastructure.settings import get_settings
from infrastructure.version import __version__
from tenancy.dependencies import close_identity_provider_client
from tenancy.presentation import routes as tenancy_routes
from tenancy.presentation.errors import (
    REQUEST_ID_HEADER,
    current_request_id,
    register_exception_handlers,
)


@asynccontextmanager
async def provisioning_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages:
    - Logging configuration
    - Identity provider client (created lazily, closed on shutdown)
    - Database engine (created lazily, disposed on shutdown)
    """
    configure_logging(debug=get_settings().debug)

    yield

    await close_identity_provider_client()
    await dispose_engine()


app = FastAPI(
    title="Tenant Provisioning API",
    description="Tenant provisioning and owner credential lifecycle",
    version=__version__,
    lifespan=provisioning_lifespan,
)

register_exception_handlers(app)


@app.middleware("http")
async def bind_request_id(request: Request, call_next):
    """Assign a correlation id to every request and echo it back."""
    request_id = current_request_id(request)
    bind_request_context(request_id, request.headers.get("X-Requester-Id"))
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


# Include Tenancy bounded context routes
app.include_router(tenancy_routes.router)
app.include_router(tenancy_routes.operator_router)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}
