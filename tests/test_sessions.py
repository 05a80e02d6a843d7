import asyncio

import pytest

from deckhand.core.config import NetworkConfig
from deckhand.core.models import Profile
from deckhand.core.profiles import ProfileStore
from deckhand.core.sessions import SessionManager

from .conftest import FakeWebSocket


@pytest.fixture
async def connected(session_manager):
    """A connected fake client with its initial layout consumed"""
    websocket = FakeWebSocket()
    task = asyncio.create_task(session_manager.handle_connection(websocket))
    layout = await websocket.next_sent()
    yield websocket, layout
    if not task.done():
        websocket.disconnect()
    await asyncio.wait_for(task, 2.0)


async def only_session(clients):
    sessions = await clients.sessions()
    assert len(sessions) == 1
    return sessions[0]


class TestConnect:
    async def test_initial_layout(self, connected, clients):
        websocket, layout = connected

        assert websocket.accepted
        assert layout["type"] == "setButtons"
        assert len(layout["buttons"]) == 3
        session = await only_session(clients)
        assert session.active_profile_name == "default"

    async def test_render_failure_is_isolated(self, connected):
        _, layout = connected
        icon, missing, plain = layout["buttons"]

        assert icon["image"]
        assert icon["color"] is None
        assert missing == {"image": None, "color": "FF0000"}
        assert plain == {"image": None, "color": "00FF00"}

    async def test_disconnect_removes_session(self, session_manager, clients):
        websocket = FakeWebSocket()
        task = asyncio.create_task(session_manager.handle_connection(websocket))
        await websocket.next_sent()
        assert len(clients) == 1

        websocket.disconnect()
        await asyncio.wait_for(task, 2.0)
        assert len(clients) == 0

    async def test_unknown_active_profile_falls_back(self, connected, session_manager, clients):
        websocket, _ = connected
        session = await only_session(clients)
        session.active_profile_name = "gone"

        layout = await session_manager.render_layout(session)
        assert len(layout.buttons) == 3
        assert session.active_profile_name == "default"

    async def test_write_failure_closes_transport(self, session_manager, clients):
        websocket = FakeWebSocket()
        websocket.closed = True
        task = asyncio.create_task(session_manager.handle_connection(websocket))
        await asyncio.sleep(0.1)

        websocket.disconnect()
        await asyncio.wait_for(task, 2.0)
        assert websocket.sent.empty()
        assert len(clients) == 0


class TestRenderIsolation:
    @pytest.fixture
    async def manager(self, router, render_cache, clients, system_config):
        profiles = ProfileStore(
            [
                Profile.model_validate(
                    {
                        "name": "default",
                        "buttons": [
                            {"states": [{"image": "http://[bad/x.png"}]},
                            {"states": [{"image": "icon.png"}]},
                        ],
                    }
                )
            ]
        )
        manager = SessionManager(router, profiles, render_cache, clients, system_config.network)
        await manager.start()
        yield manager
        await manager.stop()

    async def test_malformed_icon_url_beside_good_icon(self, manager):
        websocket = FakeWebSocket()
        task = asyncio.create_task(manager.handle_connection(websocket))

        layout = await websocket.next_sent()
        bad, good = layout["buttons"]
        assert bad["image"] is None
        assert good["image"]

        websocket.disconnect()
        await asyncio.wait_for(task, 2.0)

    async def test_layout_failure_keeps_egress_running(self, connected, session_manager, clients, monkeypatch):
        websocket, _ = connected

        async def broken_layout(session):
            raise RuntimeError("boom")

        monkeypatch.setattr(session_manager, "render_layout", broken_layout)
        await clients.request_render((await only_session(clients)).id)
        websocket.push_json({"type": "ping"})

        assert await websocket.next_sent() == {"type": "pong"}


class TestFrames:
    async def test_ping_gets_pong(self, connected):
        websocket, _ = connected
        websocket.push_json({"type": "ping"})
        assert await websocket.next_sent() == {"type": "pong"}

    async def test_binary_frames_dropped(self, connected, fake_integration):
        websocket, _ = connected
        websocket.push_bytes(b"\x00\x01")
        websocket.push_json({"type": "ping"})

        assert await websocket.next_sent() == {"type": "pong"}
        assert fake_integration.calls == []

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            '{"type": "bogus"}',
            '{"type": "buttonPressed"}',
            '{"type": "buttonPressed", "button": -1}',
        ],
    )
    async def test_malformed_frames_skipped(self, connected, fake_integration, text):
        websocket, _ = connected
        websocket.push_text(text)
        websocket.push_json({"type": "ping"})

        assert await websocket.next_sent() == {"type": "pong"}
        assert fake_integration.calls == []


class TestButtonPress:
    async def test_press_forwards_actions(self, connected, fake_integration):
        websocket, _ = connected
        websocket.push_json({"type": "buttonPressed", "button": 0})

        layout = await websocket.next_sent()
        assert layout["type"] == "setButtons"
        assert fake_integration.calls == [("toggle", {"light": "Lamp", "action": "toggle"})]

    async def test_press_with_explicit_profile(self, connected, fake_integration, clients):
        websocket, _ = connected
        websocket.push_json({"type": "buttonPressed", "profile": "media", "button": 0})

        await websocket.next_sent()
        session = await only_session(clients)
        # media button 0 switches back to default
        assert session.active_profile_name == "default"
        assert fake_integration.calls == []

    async def test_profile_switch_pushes_new_layout(self, connected, clients):
        websocket, _ = connected
        websocket.push_json({"type": "buttonPressed", "button": 1})

        layout = await websocket.next_sent()
        assert len(layout["buttons"]) == 1
        assert layout["buttons"][0]["color"] == "00FF00"
        session = await only_session(clients)
        assert session.active_profile_name == "media"

        # Exactly one layout for the switch, the next frame is the pong
        websocket.push_json({"type": "ping"})
        assert await websocket.next_sent() == {"type": "pong"}

    async def test_unknown_button_ignored(self, connected, fake_integration):
        websocket, _ = connected
        websocket.push_json({"type": "buttonPressed", "button": 9})
        websocket.push_json({"type": "ping"})

        assert await websocket.next_sent() == {"type": "pong"}
        assert fake_integration.calls == []

    async def test_unknown_profile_ignored(self, connected, fake_integration):
        websocket, _ = connected
        websocket.push_json({"type": "buttonPressed", "profile": "nope", "button": 0})
        websocket.push_json({"type": "ping"})

        assert await websocket.next_sent() == {"type": "pong"}
        assert fake_integration.calls == []

    async def test_timed_out_press_still_rerenders(self, connected, router, fake_integration):
        websocket, _ = connected
        router.request_timeout_s = 0.05
        fake_integration.delay = 0.3

        websocket.push_json({"type": "buttonPressed", "button": 0})
        layout = await websocket.next_sent()

        assert layout["type"] == "setButtons"
        assert len(fake_integration.calls) == 1


class TestKeepalive:
    async def test_pings_clients(self, router, profile_store, render_cache, clients):
        manager = SessionManager(
            router,
            profile_store,
            render_cache,
            clients,
            NetworkConfig(keepalive_interval_s=0.05),
        )
        await manager.start()
        websocket = FakeWebSocket()
        task = asyncio.create_task(manager.handle_connection(websocket))
        try:
            await websocket.next_sent()
            assert await websocket.next_sent() == {"type": "ping"}
        finally:
            websocket.disconnect()
            await asyncio.wait_for(task, 2.0)
            await manager.stop()

    async def test_stats(self, connected, session_manager):
        assert session_manager.stats() == {"clients": 1}
