"""LLM client — HTTP connection to a text-generation backend.

Every generator receives an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` names the calling generator ("narrator", "choices",
"special_event", "npc", "search", "search_integration"). HttpLLM uses it
for logging and to pick per-stage sampling settings.

Implementations:

    HttpLLM   — real HTTP client for KoboldCpp, OpenAI-style completions
                 and OpenAI-style chat completions (xAI Grok, local servers).
    EchoLLM   — returns the prompt back unchanged; lets the whole turn run
                 without a model.

All transport and protocol failures surface as LLMError, which the turn
orchestrator treats as a generation failure for that one task.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx

from demon_lord.errors import GenerationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM — connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai", "openai_chat"]

# Short structured stages run cooler than prose stages.
STAGE_TEMPERATURE: dict[str, float] = {
    "narrator": 0.8,
    "special_event": 0.8,
    "npc": 0.7,
    "choices": 0.5,
    "search": 0.3,
    "search_integration": 0.6,
}


class HttpLLM:
    """Async HTTP client for text-generation backends.

    Supported formats:
      "koboldcpp"    POST /api/v1/generate        {"prompt": ...}
                     Response: {"results": [{"text": "..."}]}
      "openai"       POST /v1/completions         {"model": ..., "prompt": ...}
                     Response: {"choices": [{"text": "..."}]}
      "openai_chat"  POST /v1/chat/completions    {"model": ..., "messages": [...]}
                     Response: {"choices": [{"message": {"content": "..."}}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "https://api.x.ai".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai_chat".
        model:           Model identifier, sent by the openai formats.
        max_tokens:      Completion length cap.
        timeout:         HTTP timeout in seconds. Defaults to 60.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai_chat",
        model: str = "",
        max_tokens: int = 1000,
        timeout: float = 60.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._max_tokens = max_tokens
        self._timeout = timeout

    @classmethod
    def from_connection(cls, conn: dict[str, Any], api_key: str = "") -> "HttpLLM":
        """Build a client from a stored llm_connections entry."""
        return cls(
            provider_url=conn.get("provider_url", ""),
            api_key=conn.get("api_key", "") or api_key,
            provider_format=conn.get("provider_format", "openai_chat"),
            model=conn.get("model", ""),
            max_tokens=int(conn.get("max_tokens", 1000)),
        )

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, stage: str, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        temperature = STAGE_TEMPERATURE.get(stage, 0.7)

        if self._format == "openai_chat":
            url = f"{self._base_url}/v1/chat/completions"
            body: dict = {
                "messages": [{"role": "user", "content": prompt}],
                "temperature": temperature,
                "max_tokens": self._max_tokens,
            }
            if self._model:
                body["model"] = self._model
            return url, body

        if self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body = {"prompt": prompt, "temperature": temperature, "max_tokens": self._max_tokens}
            if self._model:
                body["model"] = self._model
            return url, body

        # koboldcpp
        url = f"{self._base_url}/api/v1/generate"
        return url, {"prompt": prompt, "temperature": temperature, "max_length": self._max_tokens}

    def _parse_response(self, data: dict) -> str:
        """Extract the generated text from the response body."""
        if self._format == "openai_chat":
            choices = data.get("choices")
            message = choices[0].get("message") if choices else None
            if not isinstance(message, dict) or "content" not in message:
                raise LLMError("Unexpected response format from chat completions backend")
            return message["content"] or ""

        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        results = data.get("results")
        if not results or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(stage, prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json())
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# EchoLLM — returns the prompt unchanged; useful for smoke tests
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the prompt text as-is. No network calls.

    Narrative stages echo their prompt as the story text; structured stages
    (choices, npc) will fail to parse and fall back, which is exactly what a
    wiring smoke test wants to see.
    """

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("EchoLLM stage=%s prompt_len=%d", stage, len(prompt))
        return prompt


# ---------------------------------------------------------------------------
# LLMError — raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(GenerationError):
    """Raised when the LLM backend cannot be reached or returns an error."""
