"""Attachment byte reader shared by both directions."""

from __future__ import annotations

from typing import Any


class MediaReader:
    """Read Matrix media (``mxc://``) or plain URLs as bytes.

    Plain URLs (Discord CDN links, non-mxc Matrix urls) are fetched through
    the aiohttp session the mautrix client already owns.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    async def read(self, url: str) -> bytes:
        if url.startswith("mxc://"):
            return await self._client.download_media(url)
        async with self._client.api.session.get(url) as response:
            response.raise_for_status()
            return await response.read()
