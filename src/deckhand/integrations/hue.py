"""Philips Hue bridge integration over the CLIP v2 REST API."""

import logging
from typing import Annotated, Any, Dict, Literal, Optional, Union

import httpx
from pydantic import BaseModel, Field, TypeAdapter

from ..common.exceptions import ConfigurationError, IntegrationError, MalformedAction
from .base import Integration, parse_settings
from .light_utils import calc_light_state

logger = logging.getLogger(__name__)

DISCOVERY_URL = "https://discovery.meethue.com"


class HueSettings(BaseModel):
    auth: str
    bridge: Optional[str] = None


class LightOptions(BaseModel):
    light: Optional[str] = None
    room: Optional[str] = None
    brightness: Optional[float] = Field(None, ge=0, le=100)
    rel_brightness: Optional[float] = None


class ToggleAction(LightOptions):
    action: Literal["toggle"]


class SetAction(LightOptions):
    action: Literal["set"]


HueActions = Annotated[Union[ToggleAction, SetAction], Field(discriminator="action")]


class HueLight:
    """A light or grouped light resource on the bridge"""

    def __init__(self, resource: str, data: Dict[str, Any]):
        self.resource = resource
        self.id = data["id"]
        self.on = bool(data.get("on", {}).get("on", False))
        dimming = data.get("dimming")
        self.brightness: Optional[float] = (
            float(dimming["brightness"]) if dimming else None
        )

    @property
    def path(self) -> str:
        return f"clip/v2/resource/{self.resource}/{self.id}"


class HueIntegration(Integration):
    kind = "hue"
    actions = TypeAdapter(HueActions)

    def __init__(self, name: str, bridge: str, application_key: str, client: Optional[httpx.AsyncClient] = None):
        super().__init__(name)
        self.bridge = bridge
        self.application_key = application_key
        # Bridges serve a self-signed certificate
        self._client = client or httpx.AsyncClient(verify=False, timeout=5.0)
        self.light_name_to_id: Dict[str, str] = {}
        self.room_name_to_group_id: Dict[str, str] = {}

    @classmethod
    async def from_config(cls, name: str, settings: Dict[str, Any]) -> "HueIntegration":
        parsed = parse_settings(HueSettings, cls.kind, settings)
        bridge = parsed.bridge or await discover_bridge()
        integration = cls(name, bridge, parsed.auth)
        await integration.sync()
        logger.info(
            f"Connected to hue bridge at {bridge}: "
            f"lights={sorted(integration.light_name_to_id)} "
            f"rooms={sorted(integration.room_name_to_group_id)}"
        )
        return integration

    def url(self, path: str) -> str:
        return f"https://{self.bridge}/{path}"

    async def _request(self, method: str, path: str, json: Optional[Dict] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(
                method,
                self.url(path),
                headers={"hue-application-key": self.application_key},
                json=json,
            )
        except httpx.HTTPError as e:
            raise IntegrationError(f"hue request {method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        errors = body.get("errors") or []
        if not response.is_success or errors:
            detail = "; ".join(e.get("description", "") for e in errors) or response.text
            raise IntegrationError(
                f"hue request {method} {path} returned {response.status_code}: {detail}"
            )
        return body

    async def sync(self) -> None:
        """Refresh the light and room name maps"""
        lights = await self._request("GET", "clip/v2/resource/light")
        self.light_name_to_id = {
            item["metadata"]["name"]: item["id"]
            for item in lights.get("data", [])
            if item.get("metadata")
        }

        rooms = await self._request("GET", "clip/v2/resource/room")
        self.room_name_to_group_id = {}
        for room in rooms.get("data", []):
            for service in room.get("services", []):
                if service.get("rtype") == "grouped_light":
                    self.room_name_to_group_id[room["metadata"]["name"]] = service["rid"]

    async def get_light(self, resource: str, resource_id: str) -> HueLight:
        body = await self._request("GET", f"clip/v2/resource/{resource}/{resource_id}")
        data = body.get("data") or []
        if not data:
            raise IntegrationError(f"hue {resource} {resource_id} not found")
        return HueLight(resource, data[0])

    async def light_by_name(self, name: str) -> HueLight:
        light_id = self.light_name_to_id.get(name)
        if light_id is None:
            raise IntegrationError(f"Light named {name} not found")
        return await self.get_light("light", light_id)

    async def room_by_name(self, name: str) -> HueLight:
        group_id = self.room_name_to_group_id.get(name)
        if group_id is None:
            raise IntegrationError(f"Room named {name} not found or didn't have any lights")
        return await self.get_light("grouped_light", group_id)

    async def switch(self, light: HueLight, on: bool) -> None:
        await self._request("PUT", light.path, json={"on": {"on": on}})
        light.on = on

    async def dim(self, light: HueLight, brightness: float) -> None:
        if light.brightness is None:
            raise IntegrationError(f"hue {light.resource} {light.id} does not support dimming")
        await self._request("PUT", light.path, json={"dimming": {"brightness": brightness}})
        light.brightness = brightness

    async def set_light(self, light: HueLight, options: LightOptions) -> None:
        state = calc_light_state(light.brightness, options.brightness, options.rel_brightness)
        # Switch on before dimming, a soft-off light ignores brightness
        await self.switch(light, state.on)
        if state.brightness is not None:
            await self.dim(light, state.brightness)

    async def toggle_light(self, light: HueLight, options: LightOptions) -> None:
        if light.on:
            await self.switch(light, False)
            return
        await self.set_light(light, options)

    async def execute(self, action: str, options: Dict[str, Any]) -> None:
        request = self.decode(options)
        if request.light is not None:
            light = await self.light_by_name(request.light)
        elif request.room is not None:
            light = await self.room_by_name(request.room)
        else:
            raise MalformedAction("Either light or room options must be set")

        if isinstance(request, ToggleAction):
            await self.toggle_light(light, request)
        else:
            await self.set_light(light, request)

    async def close(self) -> None:
        await self._client.aclose()


async def discover_bridge() -> str:
    """Address of the first bridge reported by the discovery service"""
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(DISCOVERY_URL)
            response.raise_for_status()
            bridges = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise ConfigurationError(f"getting hue bridges failed: {e}") from e
    if not bridges:
        raise ConfigurationError("no hue bridges found")
    return bridges[0]["internalipaddress"]
