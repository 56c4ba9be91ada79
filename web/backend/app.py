#!/usr/bin/env python3
"""
Matching Engine API - FastAPI Application

HTTP surface of the candidate/job matching engine: single and job-wide
matching, bulk queue, match review, feedback, statistics, weights and export.

Usage:
    python main.py serve

Then open:
    - http://localhost:8080/docs - API Documentation (Swagger UI)
    - http://localhost:8080/redoc - Alternative API Documentation
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from core.app_context import AppContext
from core.exceptions import MatchingException
from .config import get_config
from .exceptions import (
    matching_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    general_exception_handler
)
from .routers import (
    bulk_router,
    stats_router,
    weights_router,
    export_router,
    listings_router,
    matching_router,
    preferences_router
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the application context on startup unless one was injected."""
    owned = app.state.context is None
    if owned:
        app.state.context = AppContext.build(get_config())
    app.state.context.start_background()

    yield

    logger.info("Shutting down matching API")
    if owned:
        app.state.context.shutdown()


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        context: Pre-built AppContext (tests, embedding); built from config on startup when None
    """
    app = FastAPI(
        title="Matching Engine API",
        description="Accessibility-aware candidate/job matching and scoring",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.context = context

    # Register exception handlers
    app.add_exception_handler(MatchingException, matching_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Fixed /api/matching/* paths go before the /{match_id} routes
    app.include_router(bulk_router)
    app.include_router(stats_router)
    app.include_router(weights_router)
    app.include_router(preferences_router)
    app.include_router(export_router)
    app.include_router(listings_router)
    app.include_router(matching_router)

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        ctx = app.state.context
        cache_available = ctx.cache.is_available if ctx is not None else False
        return {"status": "healthy", "service": "matching-engine", "cache": cache_available}

    return app


app = create_app()


def main(host: Optional[str] = None, port: Optional[int] = None):
    """Run the web server."""
    import uvicorn

    config = get_config()
    host = host or config.web.host
    port = port or config.web.port

    logger.info(f"Starting Matching Engine API on {host}:{port}")
    logger.info(f"API Docs: http://{host}:{port}/docs")

    uvicorn.run(
        "web.backend.app:app",
        host=host,
        port=port,
        reload=False,
        log_level="info"
    )


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    main()
