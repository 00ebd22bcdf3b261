"""Resolve image references into something the vision model can consume."""

from __future__ import annotations

import asyncio
import base64
import mimetypes
from pathlib import Path
from typing import Optional

import httpx

from enrichment.core.config import ImageSettings
from enrichment.core.errors import ItemUnreadable
from enrichment.utils.http import RetryConfig, request_with_retry

_DEFAULT_MIME = "image/jpeg"


class ImageLoader:
    """Turn local paths and remote URLs into provider image references."""

    def __init__(
        self,
        settings: ImageSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._retry = retry_config or RetryConfig()

    async def resolve(self, image_path: str) -> str:
        """Return a ``data:`` URI, or the URL itself for remote images.

        Remote images are only downloaded and inlined when ``fetch_remote`` is
        enabled; otherwise the provider fetches them.
        """
        if image_path.startswith("data:"):
            return image_path
        if image_path.startswith(("http://", "https://")):
            if not self._settings.fetch_remote:
                return image_path
            data, mime_type = await self._fetch(image_path)
        else:
            data = await asyncio.to_thread(self._read_local, image_path)
            mime_type = mimetypes.guess_type(image_path)[0] or _DEFAULT_MIME
        encoded = base64.b64encode(data).decode("utf-8")
        return f"data:{mime_type};base64,{encoded}"

    def _read_local(self, image_path: str) -> bytes:
        path = Path(image_path)
        try:
            size = path.stat().st_size
            if size > self._settings.max_bytes:
                raise ItemUnreadable(
                    f"Image {image_path} is {size} bytes, over the "
                    f"{self._settings.max_bytes} byte limit"
                )
            data = path.read_bytes()
        except OSError as exc:
            raise ItemUnreadable(f"Cannot read image {image_path}: {exc}") from exc
        if not data:
            raise ItemUnreadable(f"Image {image_path} is empty")
        return data

    async def _fetch(self, url: str) -> tuple[bytes, str]:
        async with httpx.AsyncClient(
            timeout=self._settings.fetch_timeout_seconds,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            try:
                response = await request_with_retry(
                    client.get, url, retry_config=self._retry
                )
            except httpx.HTTPError as exc:
                raise ItemUnreadable(f"Cannot fetch image {url}: {exc}") from exc

        data = response.content
        if not data:
            raise ItemUnreadable(f"Image {url} returned an empty body")
        if len(data) > self._settings.max_bytes:
            raise ItemUnreadable(
                f"Image {url} is {len(data)} bytes, over the "
                f"{self._settings.max_bytes} byte limit"
            )
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type.startswith("image/"):
            content_type = mimetypes.guess_type(url)[0] or _DEFAULT_MIME
        return data, content_type


__all__ = ["ImageLoader"]
