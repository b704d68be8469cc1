"""Routing a turn's narrative to an NPC generator.

`route` picks the NPC whose keyword set first matches the action; the
orchestrator then calls `delegate`, which never raises: a missing or
failing generator yields a canned "unavailable" reply, and a malformed
reply yields a canned error narrative with a retry hint.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from demon_lord.models import ActionEffect, GameState
from demon_lord.parsing import ParseError, as_int, effect_from_changes, parse_json_object
from demon_lord.services import NPCGenerator

logger = logging.getLogger(__name__)

# Evaluation order is priority order.
NPC_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Elder_Morgan", ("村長", "予言", "布告", "elder", "morgan", "village chief")),
    ("Merchant_Grom", ("商売", "武器", "装備", "買い", "trade", "shop", "buy", "weapon", "equipment")),
    ("Elara_Sage", ("魔法", "占い", "賢者", "エララ", "magic", "divination", "elara", "sage")),
)

PARSE_FAILURE_NARRATIVE = "システムエラーが発生しました。もう一度お試しください。"


def unavailable_narrative(npc_id: str) -> str:
    return f"{npc_id}は現在応答できません。後でもう一度お試しください。"


@dataclass(frozen=True)
class RelationshipChange:
    affinity: int = 0
    trust: int = 0
    learned: tuple[str, ...] = ()


@dataclass(frozen=True)
class DelegationOutcome:
    npc_id: str
    narrative: str
    effect: ActionEffect | None = None
    relationship: RelationshipChange | None = None
    retry_hint: bool = False


def merge_effects(base: ActionEffect, delegated: ActionEffect | None) -> ActionEffect:
    """Overlay the fields a delegate actually set onto the base effect.

    Flags merge key by key; every other field is overwritten only when the
    delegated payload provided it.
    """
    if delegated is None:
        return base
    overrides = delegated.model_dump(exclude_unset=True)
    flags = {**base.flags, **overrides.pop("flags", {})}
    return base.model_copy(update={**overrides, "flags": flags})


def _int(value: object) -> int:
    number = as_int(value)
    return 0 if number is None else number


def _relationship_from(data: dict) -> RelationshipChange | None:
    rel = data.get("relationship")
    info = data.get("information")
    learned = tuple(str(i) for i in info if i) if isinstance(info, list) else ()
    if not isinstance(rel, dict) and not learned:
        return None
    rel = rel if isinstance(rel, dict) else {}
    return RelationshipChange(
        affinity=_int(rel.get("affinity")),
        trust=_int(rel.get("trust")),
        learned=learned,
    )


@dataclass
class DelegationRouter:
    generators: Mapping[str, NPCGenerator] = field(default_factory=dict)
    keywords: tuple[tuple[str, tuple[str, ...]], ...] = NPC_KEYWORDS

    def route(self, action_text: str) -> str | None:
        lowered = (action_text or "").lower()
        for npc_id, words in self.keywords:
            if any(w in lowered for w in words):
                return npc_id
        return None

    async def delegate(self, npc_id: str, action_text: str, state: GameState) -> DelegationOutcome:
        generator = self.generators.get(npc_id)
        if generator is None:
            logger.warning("No generator registered for npc %s", npc_id)
            return DelegationOutcome(npc_id=npc_id, narrative=unavailable_narrative(npc_id))

        try:
            raw = await generator(npc_id, action_text, state)
        except Exception as e:
            logger.warning("NPC %s failed to respond: %s", npc_id, e)
            return DelegationOutcome(npc_id=npc_id, narrative=unavailable_narrative(npc_id))

        parsed = parse_json_object(raw)
        if isinstance(parsed, ParseError):
            logger.warning("NPC %s reply unparseable (%s): %r", npc_id, parsed.reason, parsed.raw[:200])
            return DelegationOutcome(npc_id=npc_id, narrative=PARSE_FAILURE_NARRATIVE, retry_hint=True)

        data = parsed.data
        response = data.get("response")
        if not isinstance(response, str) or not response.strip():
            return DelegationOutcome(npc_id=npc_id, narrative=PARSE_FAILURE_NARRATIVE, retry_hint=True)

        return DelegationOutcome(
            npc_id=npc_id,
            narrative=response.strip(),
            effect=effect_from_changes(data.get("stateChanges")),
            relationship=_relationship_from(data),
        )
