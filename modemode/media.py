"""Image and video providers used by the media endpoints.

Image generation is an opaque collaborator: it either returns a list of
image locators (URLs or ``data:`` URIs) or raises
:class:`~modemode.errors.MediaProviderError`. Video assembly is mocked.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence
from urllib.parse import quote

import httpx

from .errors import MediaProviderError

logger = logging.getLogger("modemode.media")

DEFAULT_IMAGE_COUNT = 4
MAX_IMAGE_COUNT = 8
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"
SAMPLE_VIDEO_URL = "https://sample-videos.com/video321/mp4/720/big_buck_bunny_720p_1mb.mp4"


def clamp_image_count(count: Optional[int]) -> int:
    if count is None:
        return DEFAULT_IMAGE_COUNT
    return max(1, min(int(count), MAX_IMAGE_COUNT))


class ImageProvider(Protocol):
    demo: bool

    async def generate(self, prompt: str, count: int = DEFAULT_IMAGE_COUNT) -> List[str]:
        ...


class PlaceholderImageProvider:
    """Deterministic stand-in used when no generation backend is configured."""

    demo = True

    def __init__(self, *, width: int = 800, height: int = 1200) -> None:
        self._width = width
        self._height = height

    async def generate(self, prompt: str, count: int = DEFAULT_IMAGE_COUNT) -> List[str]:
        seed = quote(prompt, safe="")
        return [
            f"https://picsum.photos/seed/{seed}{index}/{self._width}/{self._height}"
            for index in range(1, clamp_image_count(count) + 1)
        ]


class GeminiImageProvider:
    """Request images from the Gemini ``generateContent`` endpoint."""

    demo = False

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gemini-1.5-pro",
        base_url: str = GEMINI_BASE_URL,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Gemini API key must not be empty")
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _build_payload(self, prompt: str, count: int) -> Dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "image/png",
                "candidateCount": count,
            },
        }

    @staticmethod
    def _extract_images(data: Dict[str, Any]) -> List[str]:
        images: List[str] = []
        for candidate in data.get("candidates") or []:
            parts = (candidate.get("content") or {}).get("parts") or []
            for part in parts:
                inline = part.get("inlineData")
                if not inline or not inline.get("data"):
                    continue
                mime_type = inline.get("mimeType") or "image/png"
                images.append(f"data:{mime_type};base64,{inline['data']}")
        return images

    async def generate(self, prompt: str, count: int = DEFAULT_IMAGE_COUNT) -> List[str]:
        count = clamp_image_count(count)
        url = f"{self._base_url}/v1beta/models/{self._model}:generateContent"
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    url,
                    params={"key": self._api_key},
                    json=self._build_payload(prompt, count),
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                logger.warning("Gemini request failed with status %s", exc.response.status_code)
                raise MediaProviderError("Image generation request was rejected") from exc
            except httpx.HTTPError as exc:
                logger.warning("Gemini request failed: %s", exc)
                raise MediaProviderError("Image generation service is unreachable") from exc
            except ValueError as exc:
                raise MediaProviderError("Image generation service returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise MediaProviderError("Image generation service returned an unexpected payload")
        return self._extract_images(data)[:count]


class MockVideoProvider:
    """Return a fixed sample clip regardless of the supplied images."""

    def __init__(self, video_url: str = SAMPLE_VIDEO_URL) -> None:
        self._video_url = video_url

    async def assemble(self, images: Sequence[str]) -> str:
        logger.info("Returning sample video for %d image(s)", len(images))
        return self._video_url


def build_image_provider(api_key: Optional[str], *, model: str, allow_placeholder: bool = True):
    """Pick the Gemini provider when a key is configured, else the placeholder."""

    if api_key:
        return GeminiImageProvider(api_key, model=model)
    if allow_placeholder:
        logger.info("No image generation key configured; serving placeholder images")
        return PlaceholderImageProvider()
    return None


__all__ = [
    "DEFAULT_IMAGE_COUNT",
    "GeminiImageProvider",
    "ImageProvider",
    "MAX_IMAGE_COUNT",
    "MockVideoProvider",
    "PlaceholderImageProvider",
    "SAMPLE_VIDEO_URL",
    "build_image_provider",
    "clamp_image_count",
]
