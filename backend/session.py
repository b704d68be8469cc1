"""Builds a TurnOrchestrator from stored config and holds the active game.

Each generator stage (narrator, choices, special_event, npc, search) is
assigned a connection by name in config["generators"]; an empty assignment
falls back to the first configured connection, and no connection at all
falls back to EchoLLM so the game stays playable offline.

A connection without its own api_key uses XAI_API_KEY from the environment.
"""

import logging
import os
from typing import Any, Callable

from demon_lord.engine import DelegationRouter, GameSession, TurnOrchestrator
from demon_lord.llm import LLM, EchoLLM, HttpLLM
from demon_lord.models import MAX_DAYS
from demon_lord.services import (
    NPC_PROFILES,
    HttpAudioNarrator,
    HttpImageGenerator,
    LLMNarrator,
    LLMNPCGenerator,
    LLMSearcher,
)

logger = logging.getLogger(__name__)


class NoActiveGame(Exception):
    """Raised when a game command arrives before a game was started or loaded."""


def _env_api_key() -> str:
    return os.getenv("XAI_API_KEY", "")


def resolve_connection(config: dict[str, Any], stage: str) -> dict[str, Any] | None:
    """The llm_connections entry assigned to a generator stage."""
    connections = config.get("llm_connections", [])
    name = config.get("generators", {}).get(stage, "")
    if name:
        for conn in connections:
            if conn.get("name") == name:
                return conn
        logger.warning("Connection %r for stage %s not found", name, stage)
        return None
    return connections[0] if connections else None


def build_llm(config: dict[str, Any], stage: str) -> LLM:
    conn = resolve_connection(config, stage)
    if conn is None:
        logger.warning("No LLM connection for stage %s; using EchoLLM", stage)
        return EchoLLM()
    return HttpLLM.from_connection(conn, api_key=_env_api_key())


def build_orchestrator(config: dict[str, Any]) -> TurnOrchestrator:
    features = config["features"]

    narrator = LLMNarrator(
        build_llm(config, "narrator"),
        choices_llm=build_llm(config, "choices"),
        event_llm=build_llm(config, "special_event"),
    )
    npc = LLMNPCGenerator(build_llm(config, "npc"))
    router = DelegationRouter(generators={npc_id: npc for npc_id in NPC_PROFILES})

    searcher = LLMSearcher(build_llm(config, "search")) if features.get("search") else None

    images = None
    if features.get("images"):
        image = config["image"]
        images = HttpImageGenerator(
            image["provider_url"],
            api_key=image.get("api_key") or _env_api_key(),
            model=image.get("model", ""),
        )

    audio = None
    if features.get("audio"):
        cfg = config["audio"]
        if cfg.get("provider_url"):
            audio = HttpAudioNarrator(cfg["provider_url"], api_key=cfg.get("api_key", ""), voice=cfg["voice"])
        else:
            logger.warning("Audio enabled but no provider_url configured; audio disabled")

    timeout = config.get("task_timeout_seconds")
    return TurnOrchestrator(
        narrator,
        router=router,
        searcher=searcher,
        images=images,
        audio=audio,
        delegation_enabled=bool(features.get("delegation", True)),
        task_timeout=float(timeout) if timeout else None,
    )


class GameHost:
    """The orchestrator built from current settings plus the single active session."""

    def __init__(self, factory: Callable[[dict[str, Any]], TurnOrchestrator] = build_orchestrator) -> None:
        self._factory = factory
        self.orchestrator: TurnOrchestrator | None = None
        self.session: GameSession | None = None

    def configure(self, config: dict[str, Any]) -> None:
        """Rebuild the orchestrator; the active session is kept."""
        self.orchestrator = self._factory(config)
        logger.info(
            "orchestrator configured: delegation=%s search=%s images=%s audio=%s",
            self.orchestrator.delegation_enabled,
            self.orchestrator.searcher is not None,
            self.orchestrator.images is not None,
            self.orchestrator.audio is not None,
        )

    def require_session(self) -> GameSession:
        if self.session is None:
            raise NoActiveGame("No active game; start or load one first")
        return self.session

    def status(self) -> dict[str, Any]:
        session = self.require_session()
        return {
            "day": session.state.current_day,
            "maxDays": MAX_DAYS,
            "gameState": session.state.model_dump(mode="json", by_alias=True),
            "gameOver": session.game_over,
        }
