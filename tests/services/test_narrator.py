"""Tests for demon_lord.services.narrator — prose, choices, special events."""

import json
from unittest.mock import AsyncMock

import pytest

from demon_lord.engine.state import StateStore
from demon_lord.errors import GenerationError, ParseFailure
from demon_lord.models import Choice
from demon_lord.services.narrator import MAX_CHOICES, LLMNarrator, parse_choices


@pytest.fixture
def state():
    return StateStore().new_game("アレン", "hero")


# ---------------------------------------------------------------------------
# parse_choices
# ---------------------------------------------------------------------------

class TestParseChoices:
    def test_string_entries(self) -> None:
        raw = '{"choices": ["村長と相談", " 休息する "]}'
        assert parse_choices(raw) == ["村長と相談", "休息する"]

    def test_fenced_with_prose(self) -> None:
        raw = 'Here you go:\n```json\n{"choices": ["探索する"]}\n```'
        assert parse_choices(raw) == ["探索する"]

    def test_object_entries_get_default_ids(self) -> None:
        raw = json.dumps({"choices": [
            {"text": "北へ遠征する", "dayAdvance": 2},
            {"id": "rest", "text": "休息する"},
        ]}, ensure_ascii=False)
        first, second = parse_choices(raw)
        assert isinstance(first, Choice)
        assert first.id == "choice_1"
        assert first.day_advance == 2
        assert second.id == "rest"
        assert second.day_advance == 1

    def test_malformed_entries_dropped(self) -> None:
        raw = json.dumps({"choices": ["", 7, {"text": "x", "dayAdvance": -3}, "休息する"]}, ensure_ascii=False)
        assert parse_choices(raw) == ["休息する"]

    def test_truncated_to_max(self) -> None:
        raw = json.dumps({"choices": [f"行動{i}" for i in range(10)]}, ensure_ascii=False)
        assert len(parse_choices(raw)) == MAX_CHOICES

    @pytest.mark.parametrize("raw", [
        "",
        "ただの文章です",
        '{"options": ["a"]}',
        '{"choices": "a"}',
        '{"choices": []}',
    ])
    def test_unusable_reply_raises(self, raw: str) -> None:
        with pytest.raises(ParseFailure):
            parse_choices(raw)

    def test_parse_failure_is_generation_error(self) -> None:
        with pytest.raises(GenerationError):
            parse_choices("nope")


# ---------------------------------------------------------------------------
# LLMNarrator
# ---------------------------------------------------------------------------

class TestGenerateNarrative:
    async def test_returns_stripped_text(self, state) -> None:
        llm = AsyncMock(return_value="  村に朝が来た。\n")
        narrator = LLMNarrator(llm)
        assert await narrator.generate_narrative(1, "村長と相談", state) == "村に朝が来た。"

    async def test_prompt_carries_action_and_player(self, state) -> None:
        llm = AsyncMock(return_value="ok")
        await LLMNarrator(llm).generate_narrative(1, "森で剣を鍛える", state)
        stage, prompt = llm.call_args[0]
        assert stage == "narrator"
        assert "森で剣を鍛える" in prompt
        assert "アレン" in prompt
        assert "29 days left" in prompt

    async def test_empty_text_raises(self, state) -> None:
        narrator = LLMNarrator(AsyncMock(return_value="   "))
        with pytest.raises(GenerationError):
            await narrator.generate_narrative(1, "x", state)

    async def test_llm_error_propagates(self, state) -> None:
        narrator = LLMNarrator(AsyncMock(side_effect=GenerationError("down")))
        with pytest.raises(GenerationError):
            await narrator.generate_narrative(1, "x", state)


class TestGenerateChoices:
    async def test_uses_choices_llm(self, state) -> None:
        main = AsyncMock(return_value="unused")
        choices_llm = AsyncMock(return_value='{"choices": ["休息する", "探索する"]}')
        narrator = LLMNarrator(main, choices_llm=choices_llm)

        result = await narrator.generate_choices(1, "静かな朝だった。", state)

        assert result == ["休息する", "探索する"]
        main.assert_not_awaited()
        stage, prompt = choices_llm.call_args[0]
        assert stage == "choices"
        assert "静かな朝だった。" in prompt

    async def test_unparseable_raises(self, state) -> None:
        narrator = LLMNarrator(AsyncMock(return_value="I refuse"))
        with pytest.raises(ParseFailure):
            await narrator.generate_choices(1, "x", state)


class TestCheckSpecialEvent:
    async def test_quiet_day_returns_none_without_llm(self, state) -> None:
        llm = AsyncMock(return_value="x")
        assert await LLMNarrator(llm).check_special_event(3, state) is None
        llm.assert_not_awaited()

    async def test_event_day_elaborates_title(self, state) -> None:
        llm = AsyncMock(return_value="荷馬車が広場に着いた。")
        result = await LLMNarrator(llm).check_special_event(5, state)
        assert result == "商人が村を訪れる\n荷馬車が広場に着いた。"
        assert llm.call_args[0][0] == "special_event"

    async def test_failure_falls_back_to_title(self, state) -> None:
        llm = AsyncMock(side_effect=GenerationError("down"))
        assert await LLMNarrator(llm).check_special_event(30, state) == "魔王襲来！"

    async def test_empty_elaboration_falls_back_to_title(self, state) -> None:
        event_llm = AsyncMock(return_value="")
        narrator = LLMNarrator(AsyncMock(), event_llm=event_llm)
        assert await narrator.check_special_event(29, state) == "決戦前夜"
