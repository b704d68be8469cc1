"""Contextual lookups woven into the story on fixed trigger days.

On days 5/10/15/20/25 the searcher builds a query from the day and the
player's action, asks the "search" stage for findings (cached for 30
minutes per query), then asks the "search_integration" stage to retell
them as in-world narration.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from demon_lord.errors import GenerationError
from demon_lord.llm import LLM
from demon_lord.models import GameState, SearchEvent, SearchMood
from demon_lord.prompts import (
    SEARCH_INTEGRATION_PROMPT,
    SEARCH_PROMPT,
    PromptError,
    build_context,
    render_prompt,
)

logger = logging.getLogger(__name__)

SEARCH_MOODS: dict[int, SearchMood] = {
    5: "hopeful",
    10: "neutral",
    15: "concerned",
    20: "urgent",
    25: "desperate",
}
TRIGGER_DAYS = tuple(SEARCH_MOODS)

BASE_QUERIES: dict[int, str] = {
    5: "disaster preparedness community survival methods",
    10: "medieval fantasy defense strategies against monsters",
    15: "ancient legends demon lord weakness mythological",
    20: "military tactics last stand village defense",
    25: "apocalyptic survival final battle preparations",
}
DEFAULT_QUERY = "fantasy RPG survival tactics"

# action keyword(s) -> query extension
QUERY_EXTENSIONS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("武器",), "weapon crafting ancient artifacts"),
    (("魔法",), "magic spells protective enchantments"),
    (("情報",), "intelligence gathering reconnaissance"),
    (("村", "仲間"), "community unity teamwork"),
)

FALLBACK_INTEGRATION = "村の賢者が語った：「困難な時こそ、過去の知恵に学ばねばならぬ...」"

CACHE_TTL_SECONDS = 30 * 60


def should_search(day: int) -> bool:
    return day in SEARCH_MOODS


def mood_for_day(day: int) -> SearchMood:
    return SEARCH_MOODS.get(day, "neutral")


def build_query(day: int, action_text: str) -> str:
    query = BASE_QUERIES.get(day, DEFAULT_QUERY)
    for keywords, extension in QUERY_EXTENSIONS:
        if any(kw in action_text for kw in keywords):
            query += f" {extension}"
    return query


class LLMSearcher:
    def __init__(
        self,
        llm: LLM,
        *,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._llm = llm
        self._ttl = ttl
        self._clock = clock
        self._cache: dict[str, tuple[float, str]] = {}

    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def _lookup(self, query: str, state: GameState) -> str:
        key = query.lower()
        now = self._clock()
        cached = self._cache.get(key)
        if cached and now - cached[0] < self._ttl:
            logger.debug("search cache hit: %s", query)
            return cached[1]

        prompt = render_prompt(SEARCH_PROMPT, build_context(state, query=query))
        findings = (await self._llm("search", prompt)).strip()
        if not findings:
            raise GenerationError(f"Search returned nothing for {query!r}")
        self._cache[key] = (now, findings)
        return findings

    async def _integrate(self, findings: str, mood: SearchMood, state: GameState) -> str:
        try:
            prompt = render_prompt(
                SEARCH_INTEGRATION_PROMPT, build_context(state, findings=findings, mood=mood)
            )
            text = (await self._llm("search_integration", prompt)).strip()
        except (GenerationError, PromptError) as e:
            logger.warning("search integration failed: %s", e)
            return FALLBACK_INTEGRATION
        return text or FALLBACK_INTEGRATION

    async def search(self, day: int, action_text: str, state: GameState) -> SearchEvent | None:
        if not should_search(day):
            return None
        query = build_query(day, action_text)
        logger.info("day %d search: %s", day, query)
        mood = mood_for_day(day)
        findings = await self._lookup(query, state)
        return SearchEvent(
            query=query,
            integration_text=await self._integrate(findings, mood, state),
            mood=mood,
        )
