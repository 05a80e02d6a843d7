import pytest
from fastapi.testclient import TestClient

from deckhand.api.app import init_app


@pytest.fixture
def client(system_config, dispatch_table):
    app = init_app(system_config, dispatch_table=dispatch_table)
    with TestClient(app) as client:
        yield client


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["controller"] is True
        assert body["integrations"] == ["fake"]

    def test_not_started(self, system_config):
        app = init_app(system_config)
        client = TestClient(app)
        assert client.get("/health").json()["status"] == "starting"
        response = client.post("/v1/actions/execute", json=[])
        assert response.status_code == 503


class TestExecute:
    def test_success(self, client, fake_integration):
        response = client.post(
            "/v1/actions/execute", json=[{"action": "fake::toggle", "light": "Lamp"}]
        )
        assert response.status_code == 200
        assert response.text == "success"
        assert fake_integration.calls == [("toggle", {"light": "Lamp", "action": "toggle"})]

    def test_unknown_integration(self, client):
        response = client.post("/v1/actions/execute", json=[{"action": "nope::toggle"}])
        assert response.status_code == 400
        assert "unknown integration" in response.text

    def test_invalid_body(self, client):
        response = client.post("/v1/actions/execute", json=[{"light": "Lamp"}])
        assert response.status_code == 422


class TestButtonPress:
    def test_press(self, client, fake_integration):
        response = client.post(
            "/v1/profiles/button_press", json={"profile": "default", "button": 0}
        )
        assert response.status_code == 200
        assert len(fake_integration.calls) == 1

    def test_unknown_profile(self, client):
        response = client.post(
            "/v1/profiles/button_press", json={"profile": "nope", "button": 0}
        )
        assert response.status_code == 400
        assert response.text == "profile nope not found"

    def test_unknown_button(self, client):
        response = client.post(
            "/v1/profiles/button_press", json={"profile": "default", "button": 7}
        )
        assert response.status_code == 400

    def test_profile_switch_needs_client(self, client):
        response = client.post(
            "/v1/profiles/button_press", json={"profile": "default", "button": 1}
        )
        assert response.status_code == 400
        assert response.text.startswith("error executing request")


class TestWebSocket:
    def test_layout_and_press(self, client, fake_integration):
        with client.websocket_connect("/v1/ws") as websocket:
            layout = websocket.receive_json()
            assert layout["type"] == "setButtons"
            assert len(layout["buttons"]) == 3

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json() == {"type": "pong"}

            websocket.send_json({"type": "buttonPressed", "button": 0})
            assert websocket.receive_json()["type"] == "setButtons"
            assert len(fake_integration.calls) == 1

            assert client.get("/health").json()["clients"] == 1
