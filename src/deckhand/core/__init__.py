"""Core components: profiles, rendering, routing and sessions"""

from ..common.exceptions import ValidationError, ConfigurationError
from .config import SystemConfig, SystemDefaults, NetworkConfig, RenderConfig, load_config
from .models import Action, ButtonState, Profile, ProfileButton
from .profiles import ProfileStore
from .clients import ClientRegistry, ClientSession, SessionState
from .render import ImageRenderCache
from .router import ActionRouter, ExecutionRequest

# Import controller last to avoid circular imports
from .sessions import SessionManager
from .control import SystemController

__all__ = [
    "ValidationError",
    "ConfigurationError",
    "SystemConfig",
    "SystemDefaults",
    "NetworkConfig",
    "RenderConfig",
    "load_config",
    "Action",
    "ButtonState",
    "Profile",
    "ProfileButton",
    "ProfileStore",
    "ClientRegistry",
    "ClientSession",
    "SessionState",
    "ImageRenderCache",
    "ActionRouter",
    "ExecutionRequest",
    "SessionManager",
    "SystemController",
]
