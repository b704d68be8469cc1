"""Content-generation collaborators consumed by the turn orchestrator.

The orchestrator depends only on these protocols; LLM- and HTTP-backed
implementations live in the submodules and tests pass plain stubs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Union

if TYPE_CHECKING:
    from demon_lord.models import AudioPayload, Choice, GameState, SearchEvent

from .media import HttpAudioNarrator, HttpImageGenerator  # noqa: F401
from .narrator import LLMNarrator  # noqa: F401
from .npcs import NPC_PROFILES, LLMNPCGenerator  # noqa: F401
from .search import LLMSearcher  # noqa: F401


class Narrator(Protocol):
    async def generate_narrative(self, day: int, action_text: str, state: "GameState") -> str: ...

    async def generate_choices(
        self, day: int, narrative: str, state: "GameState"
    ) -> list[Union[str, "Choice"]]: ...

    async def check_special_event(self, day: int, state: "GameState") -> str | None: ...


class NPCGenerator(Protocol):
    async def __call__(self, npc_id: str, action_text: str, state: "GameState") -> str: ...


class ImageGenerator(Protocol):
    async def generate_image(self, prompt: str, day: int) -> str | None: ...


class AudioNarrator(Protocol):
    async def synthesize_audio(self, text: str, day: int, context: str) -> "AudioPayload | None": ...


class Searcher(Protocol):
    async def search(self, day: int, action_text: str, state: "GameState") -> "SearchEvent | None": ...
