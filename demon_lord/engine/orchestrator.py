"""Turn orchestrator: runs one player turn end-to-end.

Turn flow:
  1. Validate the action (game over, blank, too long -> InvalidInputError;
     nothing is touched).
  2. Phase 1, concurrently: special event, narrative (delegated to an NPC
     when the router matches, else the narrator), search lookup, scene image.
  3. Integrate: special-event block, narrative, search block, in that order.
  4. Phase 2, concurrently: choice list, audio narration.
  5. Commit, synchronously: resolve effect, overlay the NPC's effect, roll
     risk, apply, update the NPC relationship, apply the selected choice's
     consequences, advance the day.

Every generation task runs inside `_guarded`: a failure or timeout is
logged and replaced by that task's fallback, and never reaches its
siblings or the turn. Only Commit errors propagate, as TurnError.

A GameSession is owned by the caller; its lock serialises turns.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar, Union

from demon_lord.engine.days import (
    DayProgressionTracker,
    days_for_action,
    is_game_over,
    schedule,
)
from demon_lord.engine.delegation import DelegationOutcome, DelegationRouter, merge_effects
from demon_lord.engine.effects import ActionEffectResolver
from demon_lord.engine.endings import determine_ending
from demon_lord.engine.risk import RiskEngine
from demon_lord.engine.state import StateStore
from demon_lord.errors import InvalidInputError, TurnError
from demon_lord.models import (
    ActionEffect,
    Choice,
    ConsequenceEffect,
    DayWarning,
    GameState,
    PerformanceMetrics,
    SearchEvent,
    TurnResult,
)
from demon_lord.services import AudioNarrator, ImageGenerator, Narrator, Searcher
from demon_lord.services.media import should_generate_image, should_narrate
from demon_lord.services.search import should_search

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ACTION_LENGTH = 500

FALLBACK_CHOICES: tuple[str, ...] = ("探索する", "休息する", "情報を集める")
RETRY_CHOICE = Choice(id="retry", text="もう一度試す", day_advance=0)
RESTART_CHOICE = "もう一度プレイする"


def fallback_narrative(day: int) -> str:
    return f"Day {day}の物語を紡いでいます..."


def integrate_narrative(base: str, special_event: str | None, search_text: str | None) -> str:
    narrative = base
    if special_event:
        narrative = f"【特別イベント】\n{special_event}\n\n{narrative}"
    if search_text:
        narrative += f"\n\n【探索結果】\n{search_text}"
    return narrative


def normalize_choices(raw: Sequence[Union[str, Choice]]) -> list[Choice]:
    choices: list[Choice] = []
    for i, entry in enumerate(raw or ()):
        if isinstance(entry, Choice):
            choices.append(entry)
        elif isinstance(entry, str) and entry.strip():
            text = entry.strip()
            choices.append(Choice(id=f"choice_{i + 1}", text=text, day_advance=days_for_action(text)))
    return choices


class TurnPhase(str, Enum):
    IDLE = "idle"
    PHASE1_RUNNING = "phase1_running"
    NARRATIVE_INTEGRATED = "narrative_integrated"
    PHASE2_RUNNING = "phase2_running"
    COMMITTED = "committed"
    TURN_OVER = "turn_over"
    CONTINUING = "continuing"


@dataclass
class GameSession:
    state: GameState
    phase: TurnPhase = TurnPhase.IDLE
    offered_choices: list[Choice] = field(default_factory=list)
    history: list[dict[str, Any]] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def game_over(self) -> bool:
        return is_game_over(self.state)

    def match_choice(self, action_text: str) -> Choice | None:
        """An offered choice selected by exact text or by 1-based number."""
        text = action_text.strip()
        if text.isdigit():
            idx = int(text) - 1
            if 0 <= idx < len(self.offered_choices):
                return self.offered_choices[idx]
            return None
        return next((c for c in self.offered_choices if c.text == text), None)


@dataclass
class _TaskCounts:
    completed: int = 0
    skipped: int = 0
    failed: int = 0


class TurnOrchestrator:
    def __init__(
        self,
        narrator: Narrator,
        *,
        router: DelegationRouter | None = None,
        searcher: Searcher | None = None,
        images: ImageGenerator | None = None,
        audio: AudioNarrator | None = None,
        resolver: ActionEffectResolver | None = None,
        risk: RiskEngine | None = None,
        store: StateStore | None = None,
        tracker: DayProgressionTracker | None = None,
        delegation_enabled: bool = True,
        task_timeout: float | None = None,
    ) -> None:
        self.narrator = narrator
        self.router = router or DelegationRouter()
        self.searcher = searcher
        self.images = images
        self.audio = audio
        self.resolver = resolver or ActionEffectResolver()
        self.risk = risk or RiskEngine()
        self.store = store or StateStore()
        self.tracker = tracker or DayProgressionTracker(self.store)
        self.delegation_enabled = delegation_enabled
        self.task_timeout = task_timeout

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def new_session(self, player_name: str, role: str) -> GameSession:
        return GameSession(state=self.store.new_game(player_name, role))

    def load_session(self, save_text: str) -> GameSession:
        return GameSession(state=self.store.load_game(save_text))

    def save_session(self, session: GameSession) -> str:
        return self.store.save_game(session.state)

    # ------------------------------------------------------------------
    # Isolation boundary
    # ------------------------------------------------------------------

    async def _guarded(self, name: str, task: Awaitable[T] | None, fallback: T, counts: _TaskCounts) -> T:
        if task is None:
            return fallback
        try:
            if self.task_timeout:
                result = await asyncio.wait_for(task, self.task_timeout)
            else:
                result = await task
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %ss; using fallback", name, self.task_timeout)
            counts.failed += 1
            return fallback
        except Exception as e:
            logger.warning("%s failed (%s: %s); using fallback", name, type(e).__name__, e)
            counts.failed += 1
            return fallback
        counts.completed += 1
        return result

    def _gate(self, enabled: bool, task_factory, counts: _TaskCounts) -> Awaitable[Any] | None:
        if not enabled:
            counts.skipped += 1
            return None
        return task_factory()

    async def _narrate(self, npc_id: str | None, action: str, state: GameState) -> Union[str, DelegationOutcome]:
        if npc_id is not None:
            return await self.router.delegate(npc_id, action, state)
        return await self.narrator.generate_narrative(state.current_day, action, state)

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    def _validate(self, session: GameSession, action_text: object) -> str:
        if session.game_over:
            raise InvalidInputError("The game is over; start a new game")
        if not isinstance(action_text, str) or not action_text.strip():
            raise InvalidInputError("Action must not be empty")
        if len(action_text) > MAX_ACTION_LENGTH:
            raise InvalidInputError(f"Action must be at most {MAX_ACTION_LENGTH} characters")
        return action_text.strip()

    async def run_turn(self, session: GameSession, action_text: str) -> TurnResult:
        async with session.lock:
            return await self._run_turn(session, action_text)

    async def _run_turn(self, session: GameSession, action_text: str) -> TurnResult:
        text = self._validate(session, action_text)
        choice = session.match_choice(text)
        action = choice.text if choice is not None else text

        started = time.perf_counter()
        counts = _TaskCounts()
        snapshot = session.state
        day = snapshot.current_day

        # ── Phase 1 ──
        session.phase = TurnPhase.PHASE1_RUNNING
        npc_id = self.router.route(action) if self.delegation_enabled else None

        special, narration, search, image_url = await asyncio.gather(
            self._guarded("special_event", self.narrator.check_special_event(day, snapshot), None, counts),
            self._guarded("narrative", self._narrate(npc_id, action, snapshot), fallback_narrative(day), counts),
            self._guarded(
                "search",
                self._gate(
                    self.searcher is not None and should_search(day),
                    lambda: self.searcher.search(day, action, snapshot),
                    counts,
                ),
                None,
                counts,
            ),
            self._guarded(
                "image",
                self._gate(
                    self.images is not None and should_generate_image(day),
                    lambda: self.images.generate_image(f"Day {day}: {action}", day),
                    counts,
                ),
                None,
                counts,
            ),
        )
        phase1_done = time.perf_counter()

        # ── Integration ──
        delegated = narration if isinstance(narration, DelegationOutcome) else None
        base = delegated.narrative if delegated is not None else narration
        search_event: SearchEvent | None = search
        narrative = integrate_narrative(
            base, special, search_event.integration_text if search_event else None
        )
        session.phase = TurnPhase.NARRATIVE_INTEGRATED

        # ── Phase 2 ──
        session.phase = TurnPhase.PHASE2_RUNNING
        context = special or ""
        raw_choices, audio = await asyncio.gather(
            self._guarded(
                "choices",
                self.narrator.generate_choices(day, narrative, snapshot),
                list(FALLBACK_CHOICES),
                counts,
            ),
            self._guarded(
                "audio",
                self._gate(
                    self.audio is not None and should_narrate(narrative, day, context),
                    lambda: self.audio.synthesize_audio(narrative, day, context),
                    counts,
                ),
                None,
                counts,
            ),
        )
        choices = normalize_choices(raw_choices) or normalize_choices(FALLBACK_CHOICES)
        if delegated is not None and delegated.retry_hint:
            choices.insert(0, RETRY_CHOICE)
        phase2_done = time.perf_counter()

        # ── Commit ──
        try:
            state, effect, warnings = self._commit(session.state, action, choice, delegated)
        except Exception as e:
            session.phase = TurnPhase.IDLE
            logger.exception("turn commit failed on day %d", day)
            raise TurnError(f"Turn commit failed: {e}") from e
        session.state = state
        session.phase = TurnPhase.COMMITTED
        session.history.append({"day": day, "action": action, "narrative": narrative})

        ending = None
        if is_game_over(state):
            session.phase = TurnPhase.TURN_OVER
            ending = determine_ending(state)
            narrative += f"\n\n【エンディング: {ending.title}】"
            session.offered_choices = []
            choice_texts = [RESTART_CHOICE]
        else:
            session.phase = TurnPhase.CONTINUING
            session.offered_choices = choices
            choice_texts = [c.text for c in choices]
        finished = time.perf_counter()

        performance = PerformanceMetrics(
            total_ms=(finished - started) * 1000,
            phase1_ms=(phase1_done - started) * 1000,
            phase2_ms=(phase2_done - phase1_done) * 1000,
            commit_ms=(finished - phase2_done) * 1000,
            tasks_completed=counts.completed,
            tasks_skipped=counts.skipped,
            tasks_failed=counts.failed,
        )
        logger.info(
            "turn day=%d npc=%s days->%d tasks ok=%d skipped=%d failed=%d total=%.0fms",
            day, npc_id, state.current_day, counts.completed, counts.skipped,
            counts.failed, performance.total_ms,
        )

        return TurnResult(
            day=day,
            narrative=narrative,
            choices=choice_texts,
            image_url=image_url,
            audio=audio,
            game_over=ending is not None,
            performance=performance,
            special_event=special,
            search=search_event,
            warnings=warnings,
            effect=effect,
            game_state=state,
            ending=ending,
        )

    def _commit(
        self,
        state: GameState,
        action: str,
        choice: Choice | None,
        delegated: DelegationOutcome | None,
    ) -> tuple[GameState, ActionEffect, list[DayWarning]]:
        effect = self.resolver.resolve(action, state.player_role)
        if delegated is not None:
            effect = merge_effects(effect, delegated.effect)
        effect = self.risk.apply_risk(effect).effect
        state = self.store.apply_effect(state, effect)

        if delegated is not None and delegated.relationship is not None:
            rel = delegated.relationship
            state = self.store.apply_relationship(
                state, delegated.npc_id, rel.affinity, rel.trust, rel.learned
            )

        if choice is not None:
            state = self.store.apply_consequences(state, choice.consequences.immediate)
            state = schedule(state, [
                (d.delay_days, ConsequenceEffect(type=d.type, target=d.target, change=d.change))
                for d in choice.consequences.delayed
            ])
            days = choice.day_advance
        else:
            days = days_for_action(action)

        state, warnings = self.tracker.advance(state, days)
        return state, effect, warnings
