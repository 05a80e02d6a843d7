"""Duplex client sessions: ingress, egress, layout pushes and keepalive."""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError as ModelValidationError

from ..common.exceptions import (
    FetchError,
    RenderError,
    RequestTimeout,
    SessionNotFound,
    UnknownButton,
    UnknownProfile,
)
from .clients import ClientRegistry, ClientSession, CloseSession, RenderLayout, SessionState
from .config import NetworkConfig
from .models import (
    ButtonPressed,
    ButtonUI,
    Ping,
    Pong,
    Profile,
    ProfileButton,
    SetButtons,
    parse_inbound,
)
from .profiles import ProfileStore
from .render import ImageRenderCache
from .router import ActionRouter

logger = logging.getLogger(__name__)

# How long a closing session's egress task may take to drain
EGRESS_DRAIN_TIMEOUT_S = 1.0


class SessionManager:
    """Tracks connected clients and keeps their button layouts in sync

    Each connection gets an ingress loop (the caller's task) and an egress
    task that drains the session's outbound queue onto the transport.
    Layouts are re-rendered in full after every press.
    """

    def __init__(
        self,
        router: ActionRouter,
        profiles: ProfileStore,
        render_cache: ImageRenderCache,
        clients: ClientRegistry,
        config: NetworkConfig,
    ):
        self.router = router
        self.profiles = profiles
        self.render_cache = render_cache
        self.clients = clients
        self.config = config
        self._running = False
        self._keepalive_task: Optional[asyncio.Task] = None

    @property
    def default_profile(self) -> str:
        return self.config.default_profile

    async def start(self) -> None:
        """Start the keepalive task"""
        if self._running:
            return
        self._running = True
        self._keepalive_task = asyncio.create_task(
            self._keepalive_loop(), name="session_keepalive"
        )
        logger.info("Session manager started")

    async def stop(self) -> None:
        """Stop keepalive and ask every egress task to finish"""
        self._running = False
        if self._keepalive_task:
            self._keepalive_task.cancel()
            try:
                await self._keepalive_task
            except asyncio.CancelledError:
                pass
            self._keepalive_task = None

        for session in await self.clients.sessions():
            session.outbound.put_nowait(CloseSession())
        logger.info("Session manager stopped")

    async def handle_connection(self, websocket: Any) -> None:
        """Run one client connection until the transport closes"""
        session, egress = await self.connect(websocket)
        try:
            await self._ingress(session, websocket)
        finally:
            await self.disconnect(session, egress)

    async def connect(self, websocket: Any) -> Tuple[ClientSession, asyncio.Task]:
        await websocket.accept()
        session = ClientSession(active_profile_name=self.default_profile)
        await self.clients.register(session)

        egress = asyncio.create_task(
            self._egress(session, websocket), name=f"egress-{session.id}"
        )
        session.state = SessionState.ACTIVE
        session.outbound.put_nowait(RenderLayout())
        logger.info(f"Client {session.id} connected on profile {session.active_profile_name}")
        return session, egress

    async def disconnect(self, session: ClientSession, egress: asyncio.Task) -> None:
        await self.clients.unregister(session.id)
        session.outbound.put_nowait(CloseSession())
        try:
            await asyncio.wait_for(egress, EGRESS_DRAIN_TIMEOUT_S)
        except asyncio.TimeoutError:
            logger.warning(f"Egress for client {session.id} did not drain in time")
        logger.info(f"Cleaned up connection for client {session.id}")

    async def _ingress(self, session: ClientSession, websocket: Any) -> None:
        while True:
            try:
                message = await websocket.receive()
            except Exception as e:
                logger.info(f"Read from client {session.id} failed: {e}")
                return

            if message.get("type") == "websocket.disconnect":
                logger.info(f"Client {session.id} disconnected")
                return

            text = message.get("text")
            if text is None:
                logger.warning(f"Dropping non-text frame from client {session.id}")
                continue

            await self.handle_frame(session, text)

    async def handle_frame(self, session: ClientSession, text: str) -> None:
        """Handle one inbound text frame; malformed frames are skipped"""
        try:
            frame = parse_inbound(text)
        except ModelValidationError as e:
            logger.warning(f"Invalid frame from client {session.id}: {e}")
            return

        logger.debug(f"Received {frame.type} from client {session.id}")
        if isinstance(frame, Ping):
            session.outbound.put_nowait(Pong())
        elif isinstance(frame, ButtonPressed):
            await self.handle_button_press(session, frame)

    async def handle_button_press(self, session: ClientSession, frame: ButtonPressed) -> None:
        profile_name = frame.profile or session.active_profile_name
        try:
            actions = self.profiles.actions_for(profile_name, frame.button)
        except (UnknownProfile, UnknownButton) as e:
            logger.warning(f"Ignoring press from client {session.id}: {e}")
            return

        requested = session.render_requests
        try:
            status = await self.router.submit(actions, requestor_id=session.id)
            logger.info(f"Press {profile_name}[{frame.button}] from {session.id}: {status}")
        except RequestTimeout as e:
            logger.warning(f"Press {profile_name}[{frame.button}] from {session.id}: {e}")

        # A profile switch in this press has already queued a render
        if session.render_requests == requested:
            session.outbound.put_nowait(RenderLayout())

    async def _egress(self, session: ClientSession, websocket: Any) -> None:
        while True:
            item = await session.outbound.get()
            if isinstance(item, CloseSession):
                return
            if isinstance(item, RenderLayout):
                try:
                    item = await self.render_layout(session)
                except Exception as e:
                    logger.error(f"Failed to render layout for client {session.id}: {e}")
                    continue

            try:
                await websocket.send_text(item.model_dump_json())
            except Exception as e:
                logger.info(f"Write to client {session.id} failed: {e}")
                await self._close_transport(session, websocket)
                return

    async def _close_transport(self, session: ClientSession, websocket: Any) -> None:
        try:
            await websocket.close()
        except Exception as e:
            logger.debug(f"Closing transport for client {session.id}: {e}")

    async def resolve_profile(self, session: ClientSession) -> Optional[Profile]:
        """The session's active profile, falling back to the default"""
        try:
            return self.profiles.lookup(session.active_profile_name)
        except UnknownProfile:
            logger.warning(
                f"Client {session.id} profile {session.active_profile_name} missing, "
                f"using {self.default_profile}"
            )

        try:
            profile = self.profiles.lookup(self.default_profile)
        except UnknownProfile:
            logger.error(f"Default profile {self.default_profile} is not defined")
            return None

        try:
            await self.clients.set_active_profile(session.id, profile.name)
        except SessionNotFound:
            session.active_profile_name = profile.name
        return profile

    async def render_layout(self, session: ClientSession) -> SetButtons:
        """Build the full layout message for the session's profile"""
        profile = await self.resolve_profile(session)
        if profile is None:
            return SetButtons(buttons=[])
        buttons = [await self.render_button(button) for button in profile.buttons]
        return SetButtons(buttons=buttons)

    async def render_button(self, button: ProfileButton) -> ButtonUI:
        state = button.display_state
        if state is None:
            return ButtonUI()

        image = None
        if state.image:
            try:
                image = await self.render_cache.render(state.image, state.color)
            except (FetchError, RenderError) as e:
                logger.warning(f"Failed to render icon {state.image}: {e}")
            except Exception as e:
                logger.error(f"Unexpected error rendering icon {state.image}: {e}")
        return ButtonUI(image=image, color=state.color)

    async def _keepalive_loop(self) -> None:
        """Periodically queue a ping for every registered client"""
        while self._running:
            await asyncio.sleep(self.config.keepalive_interval_s)
            for session in await self.clients.sessions():
                session.outbound.put_nowait(Ping())

    def stats(self) -> Dict[str, int]:
        return {"clients": len(self.clients)}
