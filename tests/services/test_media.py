"""Tests for demon_lord.services.media — image/audio gating and HTTP clients."""

import base64
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from demon_lord.errors import GenerationError
from demon_lord.services.media import (
    HttpAudioNarrator,
    HttpImageGenerator,
    emotion_style_for_day,
    importance_score,
    should_generate_image,
    should_narrate,
)


def _mock_response(body: dict | None = None, status: int = 200, content: bytes = b"",
                   headers: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body or {}
    resp.content = content
    resp.headers = headers or {}
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


# ── gating ───────────────────────────────────────────────


@pytest.mark.parametrize("day,expected", [
    (1, True), (2, False), (3, False), (4, True), (5, True),
    (6, False), (7, True), (15, True), (20, True), (30, True),
])
def test_should_generate_image(day, expected):
    assert should_generate_image(day) is expected


def test_importance_score_components():
    assert importance_score("静かな朝", 2) == 0
    assert importance_score("魔王が来る", 2) == 3
    assert importance_score("魔王に備えて武器を準備する", 2) == 4
    assert importance_score("あ" * 200, 2) == 1
    assert importance_score("静かな朝", 26) == 1
    assert importance_score("静かな朝", 10) == 1


def test_importance_uses_context():
    assert importance_score("静かな朝", 2, context="魔王襲来！") == 3


def test_should_narrate_threshold():
    assert should_narrate("魔王が来る", 2)
    assert not should_narrate("武器を準備する", 2)
    assert should_narrate("武器を準備する" + "。" * 200, 25)


@pytest.mark.parametrize("day,style", [
    (1, 0), (4, 0), (5, 1), (12, 1), (15, 2), (22, 3), (28, 4), (29, 5), (30, 6),
])
def test_emotion_style_for_day(day, style):
    assert emotion_style_for_day(day) == style


# ── images ───────────────────────────────────────────────


class TestHttpImageGenerator:
    async def test_no_api_key_returns_none(self) -> None:
        mock_post = AsyncMock()
        with patch("httpx.AsyncClient.post", mock_post):
            assert await HttpImageGenerator("https://api.x.ai").generate_image("Day 1", 1) is None
        mock_post.assert_not_awaited()

    async def test_returns_url(self) -> None:
        gen = HttpImageGenerator("https://api.x.ai/", api_key="k", model="grok-2-image")
        mock_post = AsyncMock(return_value=_mock_response({"data": [{"url": "https://img/1.png"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            url = await gen.generate_image("Day 1: 村長と相談", 1)
        assert url == "https://img/1.png"
        assert mock_post.call_args[0][0] == "https://api.x.ai/v1/images/generations"
        body = mock_post.call_args.kwargs["json"]
        assert body["model"] == "grok-2-image"
        assert "村長と相談" in body["prompt"]
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer k"

    async def test_http_error_raises(self) -> None:
        gen = HttpImageGenerator("https://api.x.ai", api_key="k")
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response(status=500))):
            with pytest.raises(GenerationError, match="500"):
                await gen.generate_image("x", 1)

    async def test_connect_error_raises(self) -> None:
        gen = HttpImageGenerator("https://api.x.ai", api_key="k")
        with patch("httpx.AsyncClient.post", AsyncMock(side_effect=httpx.ConnectError("refused"))):
            with pytest.raises(GenerationError, match="unreachable"):
                await gen.generate_image("x", 1)

    async def test_missing_url_raises(self) -> None:
        gen = HttpImageGenerator("https://api.x.ai", api_key="k")
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response({"data": []}))):
            with pytest.raises(GenerationError, match="Unexpected response"):
                await gen.generate_image("x", 1)

    @pytest.mark.parametrize("body", [
        {"data": ["https://img/1.png"]},
        {"data": {"url": "https://img/1.png"}},
        {"data": [{"url": 42}]},
        {"images": []},
    ])
    async def test_malformed_body_raises(self, body) -> None:
        gen = HttpImageGenerator("https://api.x.ai", api_key="k")
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response(body))):
            with pytest.raises(GenerationError, match="Unexpected response"):
                await gen.generate_image("x", 1)

    async def test_non_json_body_raises(self) -> None:
        gen = HttpImageGenerator("https://api.x.ai", api_key="k")
        resp = _mock_response()
        resp.json.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=resp)):
            with pytest.raises(GenerationError, match="Unexpected response"):
                await gen.generate_image("x", 1)


# ── audio ────────────────────────────────────────────────


class TestHttpAudioNarrator:
    async def test_no_api_key_returns_none(self) -> None:
        assert await HttpAudioNarrator("https://tts.test").synthesize_audio("魔王", 1) is None

    async def test_returns_base64_payload(self) -> None:
        narrator = HttpAudioNarrator("https://tts.test", api_key="k", voice="v-1")
        resp = _mock_response(content=b"ID3audio", headers={"content-type": "audio/mpeg"})
        mock_post = AsyncMock(return_value=resp)
        with patch("httpx.AsyncClient.post", mock_post):
            payload = await narrator.synthesize_audio("魔王が来る", 25)
        assert base64.b64decode(payload.data) == b"ID3audio"
        assert payload.content_type == "audio/mpeg"
        assert payload.style_id == 4
        assert mock_post.call_args[0][0] == "https://tts.test/v1/tts/synthesize"
        body = mock_post.call_args.kwargs["json"]
        assert body["model_uuid"] == "v-1"
        assert body["style_id"] == 4

    async def test_empty_body_raises(self) -> None:
        narrator = HttpAudioNarrator("https://tts.test", api_key="k")
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response(content=b""))):
            with pytest.raises(GenerationError, match="empty"):
                await narrator.synthesize_audio("魔王", 1)

    async def test_timeout_raises(self) -> None:
        narrator = HttpAudioNarrator("https://tts.test", api_key="k")
        with patch("httpx.AsyncClient.post", AsyncMock(side_effect=httpx.ReadTimeout("slow"))):
            with pytest.raises(GenerationError):
                await narrator.synthesize_audio("魔王", 1)
