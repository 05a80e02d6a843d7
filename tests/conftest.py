import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image
from pydantic import TypeAdapter

from deckhand.core.clients import ClientRegistry
from deckhand.core.config import NetworkConfig, RenderConfig, SystemConfig
from deckhand.core.models import Profile
from deckhand.core.profiles import ProfileStore
from deckhand.core.render import ImageRenderCache
from deckhand.core.router import ActionRouter
from deckhand.core.sessions import SessionManager
from deckhand.integrations.base import Integration
from deckhand.integrations.registry import DispatchTable


class RecordingIntegration(Integration):
    """Integration that records calls and optionally fails or stalls"""

    kind = "recording"
    actions = TypeAdapter(Dict[str, Any])

    def __init__(self, name: str = "fake", fail_with: Optional[Exception] = None, delay: float = 0.0):
        super().__init__(name)
        self.fail_with = fail_with
        self.delay = delay
        self.calls: List[tuple] = []

    @classmethod
    async def from_config(cls, name, settings):
        return cls(name)

    async def execute(self, action, options):
        self.calls.append((action, dict(options)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with


class FakeWebSocket:
    """In-memory stand-in for a Starlette WebSocket"""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: asyncio.Queue = asyncio.Queue()
        self.accepted = False
        self.closed = False

    async def accept(self):
        self.accepted = True

    async def receive(self):
        return await self.incoming.get()

    async def send_text(self, data: str):
        if self.closed:
            raise RuntimeError("websocket is closed")
        await self.sent.put(json.loads(data))

    async def close(self, code: int = 1000):
        self.closed = True

    def push_text(self, text: str):
        self.incoming.put_nowait({"type": "websocket.receive", "text": text})

    def push_json(self, message: Dict[str, Any]):
        self.push_text(json.dumps(message))

    def push_bytes(self, data: bytes):
        self.incoming.put_nowait({"type": "websocket.receive", "bytes": data})

    def disconnect(self):
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": 1000})

    async def next_sent(self, timeout: float = 2.0) -> Dict[str, Any]:
        return await asyncio.wait_for(self.sent.get(), timeout)


@pytest.fixture
def icon_dir(tmp_path):
    """Directory holding a half-transparent RGBA icon and an RGB icon"""
    rgba = Image.new("RGBA", (4, 4), (0, 0, 255, 255))
    for x in range(2):
        for y in range(4):
            rgba.putpixel((x, y), (0, 0, 0, 0))
    rgba.save(tmp_path / "icon.png")
    Image.new("RGB", (4, 4), (10, 20, 30)).save(tmp_path / "opaque.png")
    return tmp_path


@pytest.fixture
def profiles_data():
    return [
        {
            "name": "default",
            "buttons": [
                {
                    "states": [{"image": "icon.png"}],
                    "actions": [{"action": "fake::toggle", "light": "Lamp"}],
                },
                {
                    "states": [{"image": "missing.png", "color": "FF0000"}],
                    "actions": [{"action": "profile::set", "profile": "media"}],
                },
                {"states": [{"color": "00FF00"}], "actions": []},
            ],
        },
        {
            "name": "media",
            "buttons": [
                {
                    "states": [{"image": "icon.png", "color": "00FF00"}],
                    "actions": [{"action": "profile::set", "profile": "default"}],
                }
            ],
        },
    ]


@pytest.fixture
def system_config(profiles_data, icon_dir):
    return SystemConfig(
        network=NetworkConfig(keepalive_interval_s=60.0, request_timeout_s=1.0),
        render=RenderConfig(icon_size=100, icon_dir=str(icon_dir)),
        profiles=[Profile.model_validate(p) for p in profiles_data],
    )


@pytest.fixture
def profile_store(system_config):
    return ProfileStore(system_config.profiles)


@pytest.fixture
def fake_integration():
    return RecordingIntegration("fake")


@pytest.fixture
def dispatch_table(fake_integration):
    return DispatchTable([fake_integration])


@pytest.fixture
async def clients():
    return ClientRegistry()


@pytest.fixture
async def render_cache(system_config):
    cache = ImageRenderCache(system_config.render)
    yield cache
    await cache.close()


@pytest.fixture
async def router(dispatch_table, profile_store, clients):
    router = ActionRouter(dispatch_table, profile_store, clients, request_timeout_s=1.0)
    await router.start()
    yield router
    await router.stop()


@pytest.fixture
async def session_manager(router, profile_store, render_cache, clients, system_config):
    manager = SessionManager(router, profile_store, render_cache, clients, system_config.network)
    await manager.start()
    yield manager
    await manager.stop()
