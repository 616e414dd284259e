"""FastAPI application factory, entry point for the storefront API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.config import get_settings
from storefront.exceptions import StorefrontError
from storefront.routers import admin, auth, catalog, checkout, coaching, webhooks
from storefront.utils import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    from storefront.db.session import create_all, engine, is_sqlite
    from storefront.services.stripe_service import init_stripe
    from storefront.services.supabase_auth import close_auth_client, init_auth_client

    settings = get_settings()
    setup_logging(settings.log_level)

    # Auto-create tables for SQLite (dev mode); PostgreSQL uses Alembic
    if is_sqlite():
        await create_all()

    if settings.stripe_secret_key:
        init_stripe()
    else:
        logger.warning("STRIPE_SECRET_KEY is not set; checkout will fail")

    await init_auth_client()

    yield

    await close_auth_client()
    await engine.dispose()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )
    app.state.settings = settings

    # --- Error handlers ---
    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]
        return JSONResponse(
            {"error": "Missing or invalid fields", "details": jsonable_encoder(details)},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    # --- Routers ---
    app.include_router(auth.router)
    app.include_router(catalog.router)
    app.include_router(checkout.router)
    app.include_router(coaching.router)
    app.include_router(webhooks.router)
    app.include_router(admin.router)

    return app


app = create_app()
