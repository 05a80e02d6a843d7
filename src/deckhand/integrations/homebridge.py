"""Homebridge accessory control through the homebridge-config-ui-x REST API."""

import asyncio
import logging
import time
from typing import Any, Dict, List, Literal, Optional

import httpx
from pydantic import BaseModel, TypeAdapter

from ..common.exceptions import IntegrationError
from .base import Integration, parse_settings

logger = logging.getLogger(__name__)

# Refresh tokens this long before they expire
TOKEN_REFRESH_MARGIN_S = 2 * 60 * 60


class HomebridgeSettings(BaseModel):
    api_endpoint: str
    username: str
    password: str


class ToggleAction(BaseModel):
    action: Literal["toggle"]
    device: str


class HomebridgeClient:
    """Bearer-token client for one Homebridge instance"""

    def __init__(
        self,
        endpoint: str,
        username: str,
        password: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint.rstrip("/") + "/"
        self.username = username
        self.password = password
        self._client = client or httpx.AsyncClient(timeout=5.0)
        self._token: Optional[str] = None
        self._expires_at: Optional[float] = None
        self._auth_lock = asyncio.Lock()

    def url_for_path(self, path: str) -> str:
        return self.endpoint + path.lstrip("/")

    def has_valid_token(self) -> bool:
        if self._token is None:
            return False
        if self._expires_at is None:
            return True
        return time.time() < self._expires_at - TOKEN_REFRESH_MARGIN_S

    async def authenticate(self) -> None:
        try:
            response = await self._client.post(
                self.url_for_path("api/auth/login"),
                json={"username": self.username, "password": self.password},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise IntegrationError(f"homebridge authentication failed: {e}") from e

        self._token = body["access_token"]
        expires_in = body.get("expires_in")
        self._expires_at = time.time() + expires_in if expires_in else None
        logger.debug("Authenticated with homebridge")

    async def auth_token(self) -> str:
        async with self._auth_lock:
            if not self.has_valid_token():
                await self.authenticate()
            return self._token

    async def request(self, method: str, path: str, json: Optional[Dict] = None) -> Any:
        token = await self.auth_token()
        try:
            response = await self._client.request(
                method,
                self.url_for_path(path),
                headers={"Authorization": f"Bearer {token}"},
                json=json,
            )
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise IntegrationError(f"homebridge {method} {path} failed: {e}") from e

    async def devices(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "api/accessories")

    async def get_device(self, device: str) -> Dict[str, Any]:
        """Find an accessory by unique id or service name"""
        for accessory in await self.devices():
            if device in (accessory.get("uniqueId"), accessory.get("serviceName")):
                return accessory
        raise IntegrationError(f"homebridge device {device} not found")

    async def set_characteristic(self, unique_id: str, characteristic: str, value: Any) -> Dict[str, Any]:
        return await self.request(
            "PUT",
            f"api/accessories/{unique_id}",
            json={"characteristicType": characteristic, "value": value},
        )

    async def close(self) -> None:
        await self._client.aclose()


class HomebridgeIntegration(Integration):
    kind = "homebridge"
    actions = TypeAdapter(ToggleAction)

    def __init__(self, name: str, client: HomebridgeClient):
        super().__init__(name)
        self.client = client

    @classmethod
    async def from_config(cls, name: str, settings: Dict[str, Any]) -> "HomebridgeIntegration":
        parsed = parse_settings(HomebridgeSettings, cls.kind, settings)
        client = HomebridgeClient(parsed.api_endpoint, parsed.username, parsed.password)
        await client.authenticate()
        return cls(name, client)

    async def execute(self, action: str, options: Dict[str, Any]) -> None:
        request = self.decode(options)
        accessory = await self.client.get_device(request.device)
        on = (accessory.get("values") or {}).get("On")
        if on is None:
            raise IntegrationError("device does not support switch")
        await self.client.set_characteristic(accessory["uniqueId"], "On", 0 if on else 1)
        logger.info(f"Toggled {request.device} {'off' if on else 'on'}")

    async def close(self) -> None:
        await self.client.close()
