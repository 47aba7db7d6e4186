"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shelfsync.api.auth_routes import router as auth_router
from shelfsync.api.category_routes import router as category_router
from shelfsync.api.routes import router as books_router
from shelfsync.api.search_routes import router as search_router
from shelfsync.core.config import Settings, get_settings
from shelfsync.core.dependencies import AppContext, build_context

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    settings = settings or get_settings()

    # Configure logging
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info("Starting ShelfSync")
        ctx = context or build_context(settings)
        await ctx.start()
        app.state.context = ctx
        logger.info("Record store initialized")
        yield
        logger.info("Shutting down ShelfSync")
        await ctx.close()

    app = FastAPI(
        title="ShelfSync",
        description="Local-first reading lists with optional cloud sync",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(books_router)
    app.include_router(category_router)
    app.include_router(search_router)
    app.include_router(auth_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("shelfsync.main:app", host="0.0.0.0", port=8000, reload=False)
