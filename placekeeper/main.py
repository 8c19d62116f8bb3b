"""FastAPI application entry point."""

from __future__ import annotations

from dotenv import load_dotenv

from fastapi import FastAPI

# Load environment variables from .env file
load_dotenv()

from placekeeper.api.routes import router
from placekeeper.core.config import get_settings
from placekeeper.core.context import JobContext, build_context
from placekeeper.core.logging_config import setup_logging
from placekeeper.services.scheduler import Scheduler


def create_app(context: JobContext | None = None) -> FastAPI:
    """Build the app; without a context one is created from settings at startup."""
    settings = context.settings if context is not None else get_settings()
    app = FastAPI(title=settings.project_name)
    app.include_router(router, prefix=settings.api_v1_prefix)

    if context is not None:
        app.state.context = context
        app.state.scheduler = Scheduler(context)

    @app.on_event("startup")
    def on_startup() -> None:
        """Connect to the store and prepare the job scheduler."""
        setup_logging(settings.log_level)
        if getattr(app.state, "context", None) is None:
            ctx = build_context(settings)
            app.state.context = ctx
            app.state.scheduler = Scheduler(ctx)

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        scheduler: Scheduler = app.state.scheduler
        scheduler.stop()
        scheduler.join(timeout=30)
        app.state.context.close()

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        """Health check endpoint for Docker."""
        return {"status": "healthy"}

    return app


app = create_app()
