"""Apple TV / AirPlay control through the atvremote binary."""

import asyncio
import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from ..common.exceptions import IntegrationError, MalformedAction
from .base import Integration, parse_settings

logger = logging.getLogger(__name__)


class Device(BaseModel):
    name: str
    identifier: str
    credentials: Optional[str] = None
    protocol: Optional[str] = None


class AirplaySettings(BaseModel):
    binary: str = "atvremote"
    devices: List[Device] = Field(default_factory=list)


class CommandAction(BaseModel):
    action: Literal["command"]
    device: str
    command: str


class OpenAppAction(BaseModel):
    action: Literal["open_app"]
    device: str
    identifier: str


AirplayActions = Annotated[
    Union[CommandAction, OpenAppAction], Field(discriminator="action")
]


class AirplayIntegration(Integration):
    kind = "airplay"
    actions = TypeAdapter(AirplayActions)

    def __init__(self, name: str, devices: List[Device], binary: str = "atvremote"):
        super().__init__(name)
        self.binary = binary
        self.devices: Dict[str, Device] = {device.name: device for device in devices}

    @classmethod
    async def from_config(cls, name: str, settings: Dict[str, Any]) -> "AirplayIntegration":
        parsed = parse_settings(AirplaySettings, cls.kind, settings)
        return cls(name, parsed.devices, binary=parsed.binary)

    async def execute(self, action: str, options: Dict[str, Any]) -> None:
        request = self.decode(options)
        if isinstance(request, OpenAppAction):
            await self.run_command(request.device, f"launch_app={request.identifier}")
        else:
            await self.run_command(request.device, request.command)

    def command_for(self, device: Device, command: str) -> List[str]:
        protocol = (device.protocol or "airplay").lower()
        args = [self.binary, "-i", device.identifier, "--protocol", protocol]
        if device.credentials:
            args += [f"--{protocol}-credentials", device.credentials]
        args.append(command)
        return args

    async def run_command(self, device_name: str, command: str) -> None:
        device = self.devices.get(device_name)
        if device is None:
            raise MalformedAction(f"unknown airplay device {device_name}")

        args = self.command_for(device, command)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            raise IntegrationError(f"airplay command failed: {e}") from e

        if process.returncode != 0:
            raise IntegrationError(
                f"airplay command returned non-zero exit ({process.returncode}): "
                f"{stdout.decode(errors='replace')} {stderr.decode(errors='replace')}"
            )
        logger.info(f"Sent {command} to {device_name}")
