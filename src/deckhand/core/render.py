"""Icon rendering with a memoizing cache."""

import asyncio
import base64
import io
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

import httpx
import numpy as np
from PIL import Image, UnidentifiedImageError

from ..common.exceptions import FetchError, RenderError
from .config import RenderConfig
from .models import normalize_color

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


def cache_key(image: str, color: Optional[str]) -> CacheKey:
    """Absent color is keyed as the empty string"""
    return (image, color or "")


def is_url(reference: str) -> bool:
    try:
        parsed = urlparse(reference)
    except ValueError as e:
        raise FetchError(f"invalid icon reference {reference!r}: {e}") from e
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_color(color: str) -> Tuple[int, int, int]:
    try:
        value = normalize_color(color)
    except ValueError as e:
        raise RenderError(str(e)) from e
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def composite_backdrop(image: Image.Image, color: str) -> Image.Image:
    """Place a solid color behind a transparent icon

    Each pixel shows the backdrop in proportion to its own transparency, so
    sparse regions of the icon take on the color.
    """
    if image.mode == "P" and "transparency" in image.info:
        image = image.convert("RGBA")
    if "A" not in image.getbands():
        raise RenderError(f"icon has no alpha channel (mode {image.mode})")

    rgba = np.asarray(image.convert("RGBA"), dtype=np.float32)
    alpha = rgba[..., 3:4] / 255.0
    backdrop = np.array(parse_color(color), dtype=np.float32)

    out = np.empty_like(rgba)
    out[..., :3] = rgba[..., :3] * alpha + backdrop * (1.0 - alpha)
    out[..., 3] = 255.0
    return Image.fromarray(np.clip(out, 0, 255).astype(np.uint8))


def render_icon(data: bytes, color: Optional[str], size: int) -> str:
    """Decode, composite, resize and encode an icon as base64 PNG"""
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise RenderError(f"failed to decode icon: {e}") from e

    if color:
        image = composite_backdrop(image, color)

    buffer = io.BytesIO()
    try:
        image = image.resize((size, size), Image.Resampling.NEAREST)
        image.save(buffer, format="PNG")
    except (OSError, ValueError, MemoryError) as e:
        raise RenderError(f"failed to encode icon: {e}") from e
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class ImageRenderCache:
    """Memoizes rendered icons by (reference, color)

    Entries are never evicted. Concurrent misses on one key may each render;
    the last insert wins.
    """

    def __init__(
        self, config: RenderConfig, http_client: Optional[httpx.AsyncClient] = None
    ):
        self.config = config
        self._entries: Dict[CacheKey, str] = {}
        self._lock = asyncio.Lock()
        self._http_client = http_client
        self._owns_client = http_client is None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    async def render(self, image: str, color: Optional[str] = None) -> str:
        """Return the base64 PNG for an icon reference and overlay color"""
        key = cache_key(image, color)
        async with self._lock:
            cached = self._entries.get(key)
        if cached is not None:
            return cached

        data = await self.fetch(image)
        loop = asyncio.get_running_loop()
        encoded = await loop.run_in_executor(
            None, render_icon, data, color, self.config.icon_size
        )

        async with self._lock:
            self._entries[key] = encoded
        logger.debug(f"Cached icon {key}")
        return encoded

    async def fetch(self, reference: str) -> bytes:
        """Read raw icon bytes from a URL or the icon directory"""
        if is_url(reference):
            return await self._fetch_url(reference)
        return await self._read_file(reference)

    async def _fetch_url(self, url: str) -> bytes:
        client = self._client()
        try:
            response = await client.get(url, timeout=self.config.fetch_timeout_s)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(f"failed to fetch {url}: {e}") from e
        return response.content

    async def _read_file(self, reference: str) -> bytes:
        path = Path(reference)
        if not path.is_absolute():
            path = Path(self.config.icon_dir) / path
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, path.read_bytes)
        except (OSError, ValueError) as e:
            raise FetchError(f"failed to read {path}: {e}") from e

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(follow_redirects=True)
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
