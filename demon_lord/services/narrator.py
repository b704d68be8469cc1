"""LLM-backed narrator: story text, next-action choices, special events."""

from __future__ import annotations

import logging
from typing import Union

from pydantic import ValidationError

from demon_lord.errors import GenerationError, ParseFailure
from demon_lord.llm import LLM
from demon_lord.models import Choice, GameState
from demon_lord.parsing import ParseError, parse_json_object
from demon_lord.prompts import (
    CHOICES_PROMPT,
    NARRATOR_PROMPT,
    SPECIAL_EVENT_PROMPT,
    PromptError,
    build_context,
    render_prompt,
)

logger = logging.getLogger(__name__)

SPECIAL_EVENTS: dict[int, str] = {
    5: "商人が村を訪れる",
    10: "偵察隊が魔王軍の動きを報告",
    15: "村に不穏な噂が広がる",
    20: "魔王軍の先遣隊が目撃される",
    25: "最後の準備期間",
    29: "決戦前夜",
    30: "魔王襲来！",
}

MAX_CHOICES = 4


def parse_choices(raw: str) -> list[Union[str, Choice]]:
    """Parse a {"choices": [...]} reply; entries may be strings or choice objects."""
    parsed = parse_json_object(raw)
    if isinstance(parsed, ParseError):
        raise ParseFailure(f"choices reply unparseable: {parsed.reason}")

    entries = parsed.data.get("choices")
    if not isinstance(entries, list):
        raise ParseFailure("choices reply has no 'choices' list")

    choices: list[Union[str, Choice]] = []
    for i, entry in enumerate(entries):
        if isinstance(entry, str) and entry.strip():
            choices.append(entry.strip())
        elif isinstance(entry, dict) and entry.get("text"):
            entry = {"id": f"choice_{i + 1}", **entry}
            try:
                choices.append(Choice.model_validate(entry))
            except ValidationError as e:
                logger.warning("Dropping malformed choice %r: %s", entry, e)
    if not choices:
        raise ParseFailure("choices reply contained no usable choices")
    return choices[:MAX_CHOICES]


class LLMNarrator:
    def __init__(
        self,
        llm: LLM,
        *,
        choices_llm: LLM | None = None,
        event_llm: LLM | None = None,
    ) -> None:
        self._llm = llm
        self._choices_llm = choices_llm or llm
        self._event_llm = event_llm or llm

    async def generate_narrative(self, day: int, action_text: str, state: GameState) -> str:
        prompt = render_prompt(NARRATOR_PROMPT, build_context(state, action=action_text))
        text = (await self._llm("narrator", prompt)).strip()
        if not text:
            raise GenerationError(f"Narrator returned no text for day {day}")
        return text

    async def generate_choices(
        self, day: int, narrative: str, state: GameState
    ) -> list[Union[str, Choice]]:
        prompt = render_prompt(CHOICES_PROMPT, build_context(state, narrative=narrative))
        return parse_choices(await self._choices_llm("choices", prompt))

    async def check_special_event(self, day: int, state: GameState) -> str | None:
        title = SPECIAL_EVENTS.get(day)
        if title is None:
            return None
        try:
            prompt = render_prompt(SPECIAL_EVENT_PROMPT, build_context(state, title=title))
            text = (await self._event_llm("special_event", prompt)).strip()
        except (GenerationError, PromptError) as e:
            logger.warning("special event elaboration failed for day %d: %s", day, e)
            return title
        return f"{title}\n{text}" if text else title
