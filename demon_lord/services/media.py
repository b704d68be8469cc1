"""Scene illustration and spoken narration.

Both are optional extras: the orchestrator asks the gate functions first
and only calls the HTTP clients on days / texts that warrant it. Clients
raise GenerationError on any transport or format problem.
"""

from __future__ import annotations

import base64
import logging
from bisect import bisect_right

import httpx

from demon_lord.errors import GenerationError
from demon_lord.models import AudioPayload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

IMAGE_MILESTONE_DAYS = frozenset({1, 5, 10, 15, 20, 25, 30})


def should_generate_image(day: int) -> bool:
    return day % 3 == 1 or day in IMAGE_MILESTONE_DAYS


class HttpImageGenerator:
    """POST {base}/v1/images/generations, OpenAI/xAI style."""

    def __init__(self, provider_url: str, api_key: str = "", model: str = "", timeout: float = 60.0) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    async def generate_image(self, prompt: str, day: int) -> str | None:
        if not self._api_key:
            logger.debug("image generation disabled: no api key")
            return None

        body: dict = {"prompt": f"fantasy RPG scene: {prompt[:500]}", "n": 1}
        if self._model:
            body["model"] = self._model
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(f"{self._base_url}/v1/images/generations", json=body, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GenerationError(f"Image backend returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GenerationError(f"Image backend unreachable: {e}") from e

        try:
            url = resp.json()["data"][0]["url"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationError("Unexpected response format from image backend") from e
        if not isinstance(url, str) or not url:
            raise GenerationError("Unexpected response format from image backend")
        logger.info("scene image generated for day %d", day)
        return url


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------

HIGH_IMPORTANCE_KEYWORDS = ("魔王", "決戦", "最終", "勝利", "敗北", "死", "生", "運命")
MEDIUM_IMPORTANCE_KEYWORDS = ("準備", "仲間", "情報", "武器", "魔法", "戦略")
AUDIO_THRESHOLD = 3
LONG_TEXT = 200
DRAMATIC_DAYS = frozenset({5, 10, 15, 20, 25, 29, 30})

# Milestone day -> voice style; days in between use the latest milestone passed.
DAY_EMOTION_STYLE: dict[int, int] = {1: 0, 5: 1, 10: 1, 15: 2, 20: 3, 25: 4, 29: 5, 30: 6}
_EMOTION_DAYS = sorted(DAY_EMOTION_STYLE)


def importance_score(text: str, day: int, context: str = "") -> int:
    haystack = f"{text}\n{context}"
    score = 0
    if any(kw in haystack for kw in HIGH_IMPORTANCE_KEYWORDS):
        score += 3
    if any(kw in haystack for kw in MEDIUM_IMPORTANCE_KEYWORDS):
        score += 1
    if len(text) >= LONG_TEXT:
        score += 1
    if day >= 25 or day in DRAMATIC_DAYS:
        score += 1
    return score


def should_narrate(text: str, day: int, context: str = "") -> bool:
    return importance_score(text, day, context) >= AUDIO_THRESHOLD


def emotion_style_for_day(day: int) -> int:
    idx = bisect_right(_EMOTION_DAYS, day) - 1
    return DAY_EMOTION_STYLE[_EMOTION_DAYS[max(idx, 0)]]


class HttpAudioNarrator:
    """Text-to-speech over HTTP; returns the audio as a base64 payload."""

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        voice: str = "default-jp-001",
        timeout: float = 60.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._voice = voice
        self._timeout = timeout

    async def synthesize_audio(self, text: str, day: int, context: str = "") -> AudioPayload | None:
        if not self._api_key:
            logger.debug("audio narration disabled: no api key")
            return None

        style_id = emotion_style_for_day(day)
        body = {
            "model_uuid": self._voice,
            "text": text,
            "style_id": style_id,
            "speed": 1.0,
            "pitch": 1.0,
            "output_format": "mp3",
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(f"{self._base_url}/v1/tts/synthesize", json=body, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GenerationError(f"TTS backend returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GenerationError(f"TTS backend unreachable: {e}") from e

        audio = resp.content
        if not audio:
            raise GenerationError("TTS backend returned an empty body")
        return AudioPayload(
            data=base64.b64encode(audio).decode("ascii"),
            content_type=resp.headers.get("content-type", "audio/mpeg"),
            style_id=style_id,
            reason=f"importance={importance_score(text, day, context)}",
        )
