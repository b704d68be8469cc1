"""Village NPCs that can take over a turn's narrative."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from demon_lord.errors import GenerationError
from demon_lord.llm import LLM
from demon_lord.models import GameState
from demon_lord.prompts import NPC_PROMPT, build_context, render_prompt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NPCProfile:
    npc_id: str
    name: str
    description: str
    style: str


NPC_PROFILES: dict[str, NPCProfile] = {
    "Elder_Morgan": NPCProfile(
        npc_id="Elder_Morgan",
        name="村長エルダー・モーガン",
        description=(
            "the 65-year-old elder of Alpha village. Cautious and conservative but "
            "devoted to the villagers; keeper of the old prophecy of the demon lord "
            "and responsible for the village's defence."
        ),
        style="dignified, archaic Japanese (〜である, 〜であろう)",
    ),
    "Merchant_Grom": NPCProfile(
        npc_id="Merchant_Grom",
        name="商人兼鍛冶屋グロム",
        description=(
            "the village merchant and blacksmith, 45, honest and hard-working. Sells "
            "and forges weapons, armour and tools, and knows the trade routes."
        ),
        style="blunt, friendly merchant speech; always names a price",
    ),
    "Elara_Sage": NPCProfile(
        npc_id="Elara_Sage",
        name="賢者エララ",
        description=(
            "the village sage, 35, who studies ancient magic and interprets "
            "prophecy from her tower at the edge of the village."
        ),
        style="calm, measured and slightly cryptic",
    ),
}


class LLMNPCGenerator:
    """Speaks as any profiled NPC through the "npc" stage."""

    def __init__(self, llm: LLM, profiles: dict[str, NPCProfile] | None = None) -> None:
        self._llm = llm
        self._profiles = profiles if profiles is not None else NPC_PROFILES

    async def __call__(self, npc_id: str, action_text: str, state: GameState) -> str:
        profile = self._profiles.get(npc_id)
        if profile is None:
            raise GenerationError(f"No profile for npc {npc_id!r}")

        rel = state.npc_relationships.get(npc_id)
        npc = {
            "name": profile.name,
            "description": profile.description,
            "style": profile.style,
            "affinity": rel.affinity if rel else 0,
            "trust": rel.trust if rel else 0,
        }
        prompt = render_prompt(NPC_PROMPT, build_context(state, npc=npc, action=action_text))
        logger.debug("delegating to npc=%s", npc_id)
        return await self._llm("npc", prompt)
