"""Generic HTTP GET integration."""

import logging
from typing import Any, Dict, Literal, Optional

import httpx
from pydantic import BaseModel, TypeAdapter

from ..common.exceptions import IntegrationError
from .base import Integration

logger = logging.getLogger(__name__)


class GetAction(BaseModel):
    action: Literal["get"]
    url: str


class HttpIntegration(Integration):
    """Calls a URL with GET; any non-2xx response is a failure"""

    kind = "http"
    actions = TypeAdapter(GetAction)

    def __init__(self, name: str, client: Optional[httpx.AsyncClient] = None):
        super().__init__(name)
        self._client = client or httpx.AsyncClient(follow_redirects=True)

    @classmethod
    async def from_config(cls, name: str, settings: Dict[str, Any]) -> "HttpIntegration":
        return cls(name)

    async def execute(self, action: str, options: Dict[str, Any]) -> None:
        request = self.decode(options)
        await self.get(request.url)

    async def get(self, url: str) -> None:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise IntegrationError(f"failed to get url ({url}): {e}") from e
        if not response.is_success:
            raise IntegrationError(
                f"failed to get url ({url}): {response.status_code} {response.text}"
            )
        logger.debug(f"GET {url} -> {response.status_code}")

    async def close(self) -> None:
        await self._client.aclose()
