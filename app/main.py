import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .db.dal import Database
from .db.migrate import apply_migrations
from .core import errors
from .routers import dashboard, goals, health, profile, rates, strategy, transactions
from .services.rate_service import build_rate_matrix_provider
from .services.rates.cache_service import MetadataRateMatrixCache


def create_app(settings_override: Settings | None = None) -> FastAPI:
    """Build the API. Tests pass `settings_override` to point at a temp database."""
    settings = settings_override or get_settings()
    if settings_override is not None:
        settings.init_post_load()
    init_logging(debug=settings.debug)

    # Schema must exist before the first request touches the store
    try:
        apply_migrations(settings.db_path)  # type: ignore[arg-type]
    except Exception:
        logging.getLogger("app").exception("failed to apply migrations on startup")
        raise

    app = FastAPI(
        title=settings.app_name, debug=settings.debug, version=settings.version
    )
    app.state.settings = settings
    # Rate matrices are cached in the metadata table so they survive restarts
    app.state.rate_provider = build_rate_matrix_provider(
        settings,
        MetadataRateMatrixCache(Database(settings.db_path, settings.tz)),  # type: ignore[arg-type]
    )

    app.middleware("http")(request_context_middleware)

    app.add_exception_handler(StarletteHTTPException, errors.http_error_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(errors.NotFoundError, errors.not_found_handler)
    app.add_exception_handler(errors.StoreError, errors.store_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    app.include_router(health.router)
    app.include_router(profile.router)
    app.include_router(transactions.router)
    app.include_router(goals.router)
    app.include_router(dashboard.router)
    app.include_router(rates.router)
    app.include_router(strategy.router)

    @app.get("/")
    async def root():
        return {"message": "Finance Tracker API", "version": settings.version}

    return app


app = create_app()
