"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from gitweb_pubsub.interface.dependencies import shutdown, startup
from gitweb_pubsub.interface.error_handlers import register_error_handlers
from gitweb_pubsub.interface.routes import router


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup / shutdown of shared resources and the event stream."""
    await startup()
    yield
    await shutdown()


def create_app() -> FastAPI:
    """Build and wire the FastAPI application."""
    app = FastAPI(
        title="gitweb pubsub",
        version="1.0.0",
        description=(
            "Browses repositories exposed by a gitweb front end (references, "
            "trees, file content, changelogs) and follows the server's push "
            "notification feed."
        ),
        lifespan=_lifespan,
    )

    register_error_handlers(app)
    app.include_router(router)

    # ── Health check (liveness) ────────────────────────────────────

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
