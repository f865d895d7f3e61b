"""
Main Application Module

This module builds the FastAPI application serving the import queue,
the live dashboard and the live subscription.

Features:
- Route management
- CORS configuration
- Session lifecycle
- Error handling
- Request logging

Data Model:
- API routes
- Application session
- Request data
- Response data

Dependencies:
- FastAPI for routing
- CORS middleware
- Logging

Author: Ledger Sync Development Team
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .shared.config import AUTH_TOKEN, LOG_LEVEL
from .shared.session import AppSession
from .features.uploadqueue import router as import_queue_router
from .features.dashboard import router as dashboard_router
from .features.billing import router as subscription_router

# Set up logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app(session: Optional[AppSession] = None) -> FastAPI:
    """
    Build the application around a session.

    Args:
        session: Preconfigured session, a default one is created otherwise

    Returns:
        FastAPI: Configured application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting session...")
        await app.state.session.start(AUTH_TOKEN)
        yield
        logger.info("Closing session...")
        await app.state.session.close()

    app = FastAPI(lifespan=lifespan)
    app.state.session = session or AppSession()

    # CORS middleware setup
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, specify your domains
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*", "Authorization"],
        expose_headers=["*"],
    )

    logger.info("Mounting API routers...")
    app.include_router(import_queue_router)
    app.include_router(dashboard_router)
    app.include_router(subscription_router)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.error(f"Bad request on {request.url.path}: {str(exc)}")
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        logger.info(f"Incoming request: {request.method} {request.url}")
        response = await call_next(request)
        logger.info(f"Response status: {response.status_code}")
        return response

    @app.get("/api/health")
    async def health():
        session = app.state.session
        return {
            "status": "success",
            "data": {
                "live_channel": session.manager.status.value,
                "queued": len(session.store)
            }
        }

    return app


app = create_app()
