from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


class VideoRenderError(RuntimeError):
    """Raised when the render service rejects or cannot process a brief."""


@dataclass
class RenderResult:
    success: bool
    video_url: str | None = None
    thumbnail_url: str | None = None
    duration: int | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


class VideoRenderer(Protocol):
    async def render(self, brief: dict[str, Any]) -> RenderResult: ...


class HttpVideoRenderer:
    """Submit a brief to the render service and wait for the finished asset."""

    def __init__(
        self,
        url: str | None = None,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url if url is not None else settings.video_render_url
        self.api_key = api_key if api_key is not None else settings.video_render_api_key
        self.timeout = timeout or settings.video_render_timeout_seconds
        self._transport = transport

    async def render(self, brief: dict[str, Any]) -> RenderResult:
        if not self.url:
            return RenderResult(success=False, error="video renderer not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        timeout = httpx.Timeout(10.0, read=self.timeout)
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            try:
                response = await client.post(self.url, json={"brief": brief}, headers=headers)
            except httpx.HTTPError as exc:
                logger.warning("Render request failed for %r: %s", brief.get("title"), exc)
                raise VideoRenderError(f"render request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "Render service rejected brief: status=%s body=%s",
                response.status_code,
                response.text[:500],
            )
            raise VideoRenderError(f"render failed with status {response.status_code}")

        data = response.json()
        video_url = data.get("video_url") or data.get("videoUrl")
        if not video_url:
            raise VideoRenderError("render response missing video url")
        return RenderResult(
            success=True,
            video_url=video_url,
            thumbnail_url=data.get("thumbnail_url") or data.get("thumbnailUrl"),
            duration=data.get("duration") or brief.get("duration"),
            metadata={
                "title": brief.get("title"),
                "format": brief.get("format") or "default",
                "platform": brief.get("platform") or "default",
                **(data.get("metadata") or {}),
            },
        )


__all__ = ["RenderResult", "VideoRenderer", "VideoRenderError", "HttpVideoRenderer"]
