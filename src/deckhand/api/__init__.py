"""REST API and WebSocket interfaces"""

from .app import init_app
from .models import ButtonPressRequest, HealthResponse
from .control import router as control_router
from .websocket import router as websocket_router

__all__ = [
    # Application
    "init_app",
    # Routers
    "control_router",
    "websocket_router",
    # Models
    "ButtonPressRequest",
    "HealthResponse",
]
