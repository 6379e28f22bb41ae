"""
Order Hub
Main FastAPI application

Startup order: schema -> cache warm-up -> stream subscription -> HTTP.
A failed warm-up is not fatal; lookups fall back to the database and
refill the cache as they go.
"""
from contextlib import asynccontextmanager
from typing import Optional
import os

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from redis.exceptions import RedisError

from orderhub.config import get_settings
from orderhub.errors import StorageError
from orderhub.utils.logger import log
from orderhub import __version__

from orderhub.api import health, orders

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    from orderhub.connectors.stream_listener import StreamListener
    from orderhub.services.order_service import OrderService
    from orderhub.services.order_store import OrderStore
    from orderhub.utils.cache import OrderCache

    store = None
    service = app.state.order_service
    if service is None:
        store = OrderStore()
        store.ensure_schema()
        log.info("Database schema ready")

        service = OrderService(store, OrderCache())
        app.state.order_service = service
        try:
            service.warm_cache()
        except StorageError as e:
            log.error(f"Cache warm-up failed: {e}")

    listener = None
    if app.state.listener_enabled:
        listener = StreamListener(service)
        try:
            listener.start()
        except RedisError as e:
            log.error(f"Stream subscription failed: {e}")
            listener = None
    app.state.listener = listener

    yield

    # Shutdown
    log.info("Shutdown signal received")
    if listener is not None:
        listener.stop()
    if store is not None:
        store.close()
    log.info("Shutting down application")


def create_app(order_service=None, listener_enabled: Optional[bool] = None) -> FastAPI:
    """
    Build the application.

    Args:
        order_service: Pre-built service (tests); built from settings when None
        listener_enabled: Override settings.enable_listener
    """
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="""
        Order lookup service

        Orders arrive on a Redis Stream, are stored in the database and
        served from an in-memory cache:
        - GET /orders/{order_uid} - canonical order JSON
        - GET /health, GET /status
        """,
        lifespan=lifespan
    )
    app.state.order_service = order_service
    app.state.listener_enabled = settings.enable_listener if listener_enabled is None else listener_enabled
    app.state.listener = None

    app.include_router(health.router, tags=["health"])
    app.include_router(orders.router)

    # Static front-end for everything else
    static_dir = os.path.abspath(settings.static_dir)
    if os.path.isdir(static_dir):
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:
        @app.get("/")
        def root():
            """Root endpoint with API information"""
            return {
                "app": settings.app_name,
                "version": __version__,
                "docs": "/docs",
                "health": "/health",
                "status": "/status",
                "endpoints": {
                    "get_order": "GET /orders/{order_uid}",
                }
            }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "orderhub.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
