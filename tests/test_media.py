from __future__ import annotations

import json

import anyio
import httpx
import pytest

from modemode.errors import MediaProviderError
from modemode.media import (
    MAX_IMAGE_COUNT,
    GeminiImageProvider,
    MockVideoProvider,
    PlaceholderImageProvider,
    SAMPLE_VIDEO_URL,
    build_image_provider,
    clamp_image_count,
)


def test_placeholder_images_are_deterministic() -> None:
    provider = PlaceholderImageProvider()

    first = anyio.run(provider.generate, "sunset & sea", 3)
    second = anyio.run(provider.generate, "sunset & sea", 3)

    assert first == second
    assert first == [
        "https://picsum.photos/seed/sunset%20%26%20sea1/800/1200",
        "https://picsum.photos/seed/sunset%20%26%20sea2/800/1200",
        "https://picsum.photos/seed/sunset%20%26%20sea3/800/1200",
    ]


def test_image_count_is_clamped() -> None:
    assert clamp_image_count(None) == 4
    assert clamp_image_count(0) == 1
    assert clamp_image_count(100) == MAX_IMAGE_COUNT


def test_gemini_provider_extracts_inline_images() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "candidates": [
                    {
                        "content": {
                            "parts": [
                                {"text": "here you go"},
                                {"inlineData": {"mimeType": "image/png", "data": "AAAA"}},
                                {"inlineData": {"data": "BBBB"}},
                            ]
                        }
                    }
                ]
            },
        )

    provider = GeminiImageProvider(
        "test-key",
        model="gemini-test",
        transport=httpx.MockTransport(handler),
    )
    images = anyio.run(provider.generate, "red dress", 2)

    assert images == ["data:image/png;base64,AAAA", "data:image/png;base64,BBBB"]
    assert "/v1beta/models/gemini-test:generateContent" in seen["url"]
    assert "key=test-key" in seen["url"]
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "red dress"


def test_gemini_provider_wraps_http_errors() -> None:
    provider = GeminiImageProvider(
        "test-key",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "boom"})),
    )

    with pytest.raises(MediaProviderError):
        anyio.run(provider.generate, "red dress", 1)


def test_gemini_provider_wraps_invalid_json() -> None:
    provider = GeminiImageProvider(
        "test-key",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>")),
    )

    with pytest.raises(MediaProviderError):
        anyio.run(provider.generate, "red dress", 1)


def test_build_image_provider_selection() -> None:
    assert isinstance(build_image_provider("key", model="m"), GeminiImageProvider)
    assert isinstance(build_image_provider(None, model="m"), PlaceholderImageProvider)
    assert build_image_provider(None, model="m", allow_placeholder=False) is None


def test_mock_video_provider_returns_sample() -> None:
    provider = MockVideoProvider()
    assert anyio.run(provider.assemble, ["a", "b"]) == SAMPLE_VIDEO_URL
