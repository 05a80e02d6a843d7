import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..core.config import SystemConfig
from ..core.control import SystemController
from ..integrations.registry import DispatchTable
from . import control, websocket
from .models import HealthResponse

logger = logging.getLogger(__name__)


def init_app(
    config: Optional[SystemConfig] = None,
    controller: Optional[SystemController] = None,
    dispatch_table: Optional[DispatchTable] = None,
) -> FastAPI:
    """Create and configure the FastAPI application

    The controller is created (unless one is given) and started when the
    application starts, and stopped on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Deckhand API")
        try:
            if app.state.system_controller is None:
                app.state.system_controller = SystemController(
                    config or SystemConfig.create_default(),
                    dispatch_table=dispatch_table,
                )
            await app.state.system_controller.start()
            app.state.startup_complete = True
            logger.info("Startup complete")
        except Exception as e:
            logger.error(f"Failed to initialize system: {e}")
            app.state.system_controller = None
            app.state.startup_complete = False
            raise

        try:
            yield
        finally:
            logger.info("Shutting down Deckhand API")
            app.state.startup_complete = False
            try:
                await app.state.system_controller.stop()
                logger.info("System controller stopped")
            except Exception as e:
                logger.error(f"Error during shutdown: {e}")

    app = FastAPI(
        title="Deckhand Control API",
        description="Button deck action routing and layout sync",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Enable CORS for browser-based deck clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.system_controller = controller
    app.state.startup_complete = False

    app.include_router(control.router)
    app.include_router(websocket.router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint"""
        controller = app.state.system_controller
        state = controller.get_state() if controller is not None else {}
        return HealthResponse(
            status="healthy" if app.state.startup_complete else "starting",
            controller=controller is not None,
            clients=state.get("clients", 0),
            integrations=state.get("integrations", []),
        )

    return app


__all__ = ["init_app"]
