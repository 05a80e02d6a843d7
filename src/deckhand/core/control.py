import asyncio
import logging
from typing import Any, Dict, Iterable, Optional

from ..integrations.registry import DispatchTable, build_dispatch_table
from .clients import ClientRegistry
from .config import SystemConfig
from .models import Action
from .profiles import ProfileStore
from .render import ImageRenderCache
from .router import ActionRouter
from .sessions import SessionManager

logger = logging.getLogger(__name__)


class SystemController:
    """Owns the router, session manager and their shared state"""

    def __init__(self, config: SystemConfig, dispatch_table: Optional[DispatchTable] = None):
        self.config = config
        self.profiles = ProfileStore(config.profiles)
        self.clients = ClientRegistry()
        self.render_cache = ImageRenderCache(config.render)
        self.dispatch_table = dispatch_table
        self.router: Optional[ActionRouter] = None
        self.sessions: Optional[SessionManager] = None
        self.shutdown_event = asyncio.Event()
        self._started = False

    @property
    def is_running(self) -> bool:
        return self._started and not self.shutdown_event.is_set()

    async def start(self) -> None:
        """Start the system"""
        try:
            logger.info("Starting system controller")

            if self.dispatch_table is None:
                self.dispatch_table = await build_dispatch_table(self.config.integrations)

            self.router = ActionRouter(
                self.dispatch_table,
                self.profiles,
                self.clients,
                request_timeout_s=self.config.network.request_timeout_s,
            )
            self.sessions = SessionManager(
                self.router,
                self.profiles,
                self.render_cache,
                self.clients,
                self.config.network,
            )

            await self.router.start()
            await self.sessions.start()
            self._started = True
            logger.info(
                f"System controller started with integrations {self.dispatch_table.names()}"
            )

        except Exception as e:
            logger.error(f"Failed to start system: {e}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the system"""
        if self.shutdown_event.is_set():
            return

        logger.info("Stopping system controller")
        self.shutdown_event.set()

        try:
            if self.sessions:
                await self.sessions.stop()
            if self.router:
                await self.router.stop()
            if self.dispatch_table:
                await self.dispatch_table.close()
            await self.render_cache.close()
            logger.info("System controller stopped")

        except Exception as e:
            logger.error(f"Error during shutdown: {e}")
            raise

    async def execute(self, actions: Iterable[Action]) -> str:
        """Execute actions on behalf of no particular client"""
        return await self.router.submit(actions)

    async def press_button(self, profile: str, button: int) -> str:
        """Resolve a profile button and execute its actions"""
        actions = self.profiles.actions_for(profile, button)
        return await self.router.submit(actions)

    def get_state(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "clients": len(self.clients),
            "profiles": self.profiles.names(),
            "integrations": self.dispatch_table.names() if self.dispatch_table else [],
            "cached_icons": len(self.render_cache),
        }
