"""Tests for demon_lord.llm — HttpLLM and EchoLLM."""

import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from demon_lord.errors import GenerationError
from demon_lord.llm import EchoLLM, HttpLLM, LLMError


# ---------------------------------------------------------------------------
# EchoLLM
# ---------------------------------------------------------------------------

class TestEchoLLM:
    async def test_returns_prompt_unchanged(self) -> None:
        llm = EchoLLM()
        result = await llm("narrator", "村に朝が来た")
        assert result == "村に朝が来た"

    async def test_stage_name_ignored(self) -> None:
        llm = EchoLLM()
        assert await llm("narrator", "x") == await llm("choices", "x")


# ---------------------------------------------------------------------------
# HttpLLM — chat completions format (default)
# ---------------------------------------------------------------------------

def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _chat_body(text: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


class TestHttpLLMChat:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(provider_url="https://api.x.ai", api_key="xai-key", model="grok-3-mini")

    async def test_happy_path(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat_body("魔王の影が迫る。")))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("narrator", "Describe the village.")
        assert result == "魔王の影が迫る。"

    async def test_posts_to_chat_url(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("narrator", "prompt")
        url = mock_post.call_args[0][0]
        assert url == "https://api.x.ai/v1/chat/completions"

    async def test_sends_prompt_as_user_message(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("narrator", "my prompt")
        sent = mock_post.call_args.kwargs["json"]
        assert sent["messages"] == [{"role": "user", "content": "my prompt"}]
        assert sent["model"] == "grok-3-mini"

    async def test_stage_selects_temperature(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("choices", "prompt")
            choices_temp = mock_post.call_args.kwargs["json"]["temperature"]
            await llm("narrator", "prompt")
            narrator_temp = mock_post.call_args.kwargs["json"]["temperature"]
        assert choices_temp < narrator_temp

    async def test_bearer_token_sent(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("narrator", "prompt")
        headers = mock_post.call_args.kwargs["headers"]
        assert headers.get("Authorization") == "Bearer xai-key"

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "x"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("narrator", "prompt")

    async def test_llm_error_is_generation_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(GenerationError):
                await llm("narrator", "prompt")


# ---------------------------------------------------------------------------
# HttpLLM — KoboldCpp format
# ---------------------------------------------------------------------------

class TestHttpLLMKoboldCpp:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(provider_url="http://localhost:5001/", provider_format="koboldcpp")

    async def test_posts_to_generate_url(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "ok"}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("narrator", "prompt")
        assert result == "ok"
        assert mock_post.call_args[0][0] == "http://localhost:5001/api/v1/generate"

    async def test_no_auth_header_without_key(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "ok"}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("narrator", "prompt")
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]

    async def test_connect_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Cannot connect"):
                await llm("narrator", "prompt")

    async def test_timeout_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.TimeoutException("timeout"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="timed out"):
                await llm("narrator", "prompt")

    async def test_http_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({}, status=503))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="HTTP 503"):
                await llm("narrator", "prompt")


# ---------------------------------------------------------------------------
# HttpLLM — OpenAI completions format
# ---------------------------------------------------------------------------

class TestHttpLLMOpenAI:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(
            provider_url="http://localhost:8080",
            provider_format="openai",
            model="mistral-7b",
        )

    async def test_posts_to_completions_url(self, llm: HttpLLM) -> None:
        body = {"choices": [{"text": "ok"}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("narrator", "prompt")
        assert mock_post.call_args[0][0] == "http://localhost:8080/v1/completions"
        assert mock_post.call_args.kwargs["json"]["model"] == "mistral-7b"

    async def test_kobold_body_rejected(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "kobold format accidentally"}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("narrator", "prompt")


# ---------------------------------------------------------------------------
# from_connection
# ---------------------------------------------------------------------------

class TestFromConnection:
    async def test_env_key_used_when_connection_has_none(self) -> None:
        conn = {"name": "grok", "provider_url": "https://api.x.ai", "api_key": "", "model": "grok-3"}
        llm = HttpLLM.from_connection(conn, api_key="from-env")
        mock_post = AsyncMock(return_value=_mock_response(_chat_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("narrator", "prompt")
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer from-env"
