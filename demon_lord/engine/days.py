"""Day counter, milestone warnings, passive decay and the delayed-effect queue.

Day 30 is the last playable day. Advancing past it sets the
`demon_lord_arrived` flag; after that `advance` is a no-op.
"""

from __future__ import annotations

import logging

from demon_lord.models import MAX_DAYS, ConsequenceEffect, DayWarning, GameState, ScheduledEffect
from demon_lord.engine.state import StateStore, clamp

logger = logging.getLogger(__name__)

GAME_OVER_FLAG = "demon_lord_arrived"

FATIGUE_THRESHOLD = 90
FATIGUE_STEP = 1
DAILY_REPUTATION_DECAY = 1

# (threshold day, flag, message)
DAY_WARNINGS: tuple[tuple[int, str, str], ...] = (
    (10, "day10_warning", "村人たちが魔王襲来について本格的に議論し始めました..."),
    (20, "day20_urgency", "緊張感が高まっています。残り10日です！"),
    (25, "day25_final_prep", "最終準備の時期です。残り5日となりました！"),
    (29, "day29_imminent", "魔王襲来が明日に迫りました...！"),
)
ARRIVAL_MESSAGE = "魔王が襲来しました！"

QUICK_ACTION_KEYWORDS = ("話す", "聞く", "見る", "talk", "ask", "look")
LONG_ACTION_KEYWORDS = (
    "遠征", "expedition", "長旅", "long journey", "大工事",
    "深い研究", "deep research", "難しい", "difficult",
)


def is_game_over(state: GameState) -> bool:
    return state.flags.get(GAME_OVER_FLAG, False)


def days_for_action(text: str) -> int:
    """How many days an action consumes: 2 for long undertakings, 0 for talk/look, else 1."""
    lowered = (text or "").lower()
    if any(kw in lowered for kw in LONG_ACTION_KEYWORDS):
        return 2
    if any(kw in lowered for kw in QUICK_ACTION_KEYWORDS):
        return 0
    return 1


def schedule(state: GameState, effects: list[tuple[int, ConsequenceEffect]]) -> GameState:
    """Queue (delay_days, effect) pairs relative to the current day."""
    if not effects:
        return state
    new = state.model_copy(deep=True)
    for delay, effect in effects:
        new.scheduled_effects.append(
            ScheduledEffect(due_day=state.current_day + delay, effect=effect)
        )
    return new


class DayProgressionTracker:
    def __init__(self, store: StateStore | None = None) -> None:
        self._store = store or StateStore()

    def _decay(self, state: GameState) -> GameState:
        new = state.model_copy(deep=True)
        stats = new.stats
        if stats.health > FATIGUE_THRESHOLD:
            stats.health = clamp(stats.health - FATIGUE_STEP, 0, 100)
        if stats.reputation > 0:
            stats.reputation = max(0, stats.reputation - DAILY_REPUTATION_DECAY)
        return new

    def _drain(self, state: GameState, day: int) -> GameState:
        due = [s for s in state.scheduled_effects if s.due_day <= day]
        if not due:
            return state
        new = state.model_copy(deep=True)
        new.scheduled_effects = [s for s in new.scheduled_effects if s.due_day > day]
        logger.debug("day %d: applying %d delayed effects", day, len(due))
        return self._store.apply_consequences(new, [s.effect for s in due])

    def advance(self, state: GameState, days: int = 1) -> tuple[GameState, list[DayWarning]]:
        if days < 0:
            raise ValueError(f"Cannot advance by a negative number of days: {days}")
        if is_game_over(state):
            return state, []

        start = state.current_day
        target = start + days
        new_day = min(target, MAX_DAYS)

        for day in range(start + 1, new_day + 1):
            state = self._decay(state)
            state = self._drain(state, day)

        state = state.model_copy(deep=True)
        state.current_day = new_day
        events: list[DayWarning] = []

        for threshold, flag, message in DAY_WARNINGS:
            if new_day >= threshold and not state.flags.get(flag, False):
                state.flags[flag] = True
                events.append(DayWarning(day=new_day, flag=flag, message=message))

        if new_day > 20:
            state.flags["high_tension"] = True
        if new_day >= 25:
            state.flags["final_phase"] = True

        if target > MAX_DAYS:
            state.flags[GAME_OVER_FLAG] = True
            events.append(DayWarning(day=MAX_DAYS, flag=GAME_OVER_FLAG, message=ARRIVAL_MESSAGE))
            logger.info("day limit reached: the demon lord has arrived")

        if events:
            logger.info("day %d -> %d warnings=%s", start, new_day, [e.flag for e in events])
        return state, events
