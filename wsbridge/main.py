from contextlib import asynccontextmanager

from fastapi import FastAPI

from wsbridge._version import __version__
from wsbridge.rest.routes import router as bridge_router
from wsbridge.servers.bridge_server import BridgeServer
from wsbridge.util.logging_helper import get_logger

logger = get_logger(__name__)


def create_app(bridge: BridgeServer) -> FastAPI:
    """Build the FastAPI application serving the WebSocket front end for ``bridge``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("Application startup...")
        await bridge.start()
        logger.info("Dual WebSocket to TCP proxy ready (IN=%s, OUT=%s)", bridge.in_endpoint, bridge.out_endpoint)

        yield

        # Shutdown
        logger.info("Application shutdown...")
        await bridge.stop()

    app = FastAPI(
        title="WebSocket to TCP Bridge",
        description="Forwards WebSocket messages to an IN TCP server and OUT TCP data back to the client.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.bridge = bridge

    # Mount the bridge router (WebSocket front end, history, status)
    app.include_router(bridge_router, prefix="/api")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app
