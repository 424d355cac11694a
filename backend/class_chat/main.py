"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .config import (
    APP_TITLE,
    APP_VERSION,
    CORS_ORIGINS,
    CORS_ALLOW_CREDENTIALS,
    CORS_ALLOW_METHODS,
    CORS_ALLOW_HEADERS,
    HOST,
    LOG_FORMAT,
    LOG_LEVEL,
    PORT,
)
from .database import DurableStore
from .errors import register_exception_handlers
from .class_requests.services import ClassRequestService
from .messages.services import MessageService
from .rooms.registry import RoomRegistry

# Import routers
from .class_requests.routes import router as class_requests_router
from .messages.routes import router as messages_router
from .rooms.connection import router as realtime_router
from .server.routes import router as server_router

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(level=level, format=LOG_FORMAT)


def create_app(db_file: Optional[str] = None) -> FastAPI:
    """Build an app with its own store, room registry and services."""
    store = DurableStore(db_file)
    registry = RoomRegistry()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.init_db()
        logger.info("Store ready at %s", store.db_file)
        yield
        store.close()

    app = FastAPI(title=APP_TITLE, version=APP_VERSION, lifespan=lifespan)
    app.state.store = store
    app.state.registry = registry
    app.state.messages = MessageService(store, registry)
    app.state.class_requests = ClassRequestService(store, registry)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=CORS_ALLOW_CREDENTIALS,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
    )
    register_exception_handlers(app)

    # Register API routers
    app.include_router(messages_router, prefix="/api")
    app.include_router(class_requests_router, prefix="/api")
    app.include_router(server_router, prefix="/api")
    app.include_router(realtime_router)

    @app.get("/", response_class=PlainTextResponse)
    async def read_root():
        return "Chat server is running"

    return app


app = create_app()


def run():
    import uvicorn

    configure_logging()
    logger.info("Starting Class Chat Server on %s:%d", HOST, PORT)
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
