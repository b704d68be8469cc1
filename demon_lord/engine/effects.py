"""Action effect resolution.

Turns a free-text player action into an ActionEffect:

  1. exact lookup in the curated action table
  2. ordered keyword categories: positive (help, study, train), then
     negative (fraud, theft, extortion); first match wins
  3. neutral default
  4. role multiplier on reputation / wealth / strength / knowledge
  5. explicit amount ("100G", "50ゴールド") overrides the wealth delta

Resolution never raises: anything unrecognised yields the neutral effect.
"""

from __future__ import annotations

import logging
import math
import re
import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass, field

from demon_lord.models import ActionEffect

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

STATIC_ACTIONS: dict[str, ActionEffect] = {
    "村長と相談": ActionEffect(reputation_delta=10, flags={"talked_to_elder": True}),
    "村長に予言について聞く": ActionEffect(
        knowledge_delta=5, flags={"talked_to_elder": True, "prophecyHeard": True},
    ),
    "武器を探す": ActionEffect(strength_delta=3, flags={"searched_weapons": True}),
    "伝説の剣を探す": ActionEffect(
        strength_delta=10, flags={"searched_weapons": True, "found_weapon": True}, risk="medium",
    ),
    "情報を集める": ActionEffect(knowledge_delta=5, flags={"gathered_info": True}),
    "探索する": ActionEffect(knowledge_delta=2, wealth_delta=10),
    "休息する": ActionEffect(health_delta=15),
    "剣の訓練をする": ActionEffect(strength_delta=8, health_delta=-5, flags={"trained": True}),
    "村人に警告する": ActionEffect(reputation_delta=5, flags={"villageWarned": True}),
    "防衛準備を手伝う": ActionEffect(
        reputation_delta=8, strength_delta=2, flags={"defensesPrepared": True},
    ),
    "村から逃げる": ActionEffect(reputation_delta=-20, flags={"fled_village": True}),
}


@dataclass(frozen=True)
class KeywordCategory:
    name: str
    keywords: tuple[str, ...]
    effect: ActionEffect


# Evaluation order is priority order.
KEYWORD_CATEGORIES: tuple[KeywordCategory, ...] = (
    KeywordCategory(
        "help",
        ("助け", "手伝", "救", "守る", "help", "assist", "protect"),
        ActionEffect(reputation_delta=5, flags={"helped_villagers": True}),
    ),
    KeywordCategory(
        "study",
        ("勉強", "学ぶ", "研究", "調べ", "読む", "study", "learn", "research", "read"),
        ActionEffect(knowledge_delta=5, flags={"gathered_info": True}),
    ),
    KeywordCategory(
        "train",
        ("訓練", "鍛え", "練習", "修行", "train", "practice", "exercise"),
        ActionEffect(strength_delta=5, flags={"trained": True}),
    ),
    KeywordCategory(
        "fraud",
        ("詐欺", "騙", "偽", "fraud", "cheat", "swindle", "scam"),
        ActionEffect(reputation_delta=-10, wealth_delta=50, risk="medium"),
    ),
    KeywordCategory(
        "theft",
        ("盗", "窃", "万引", "steal", "theft", "rob", "pickpocket"),
        ActionEffect(reputation_delta=-5, wealth_delta=30, risk="high"),
    ),
    KeywordCategory(
        "extortion",
        ("脅", "恐喝", "ゆすり", "extort", "blackmail", "threaten"),
        ActionEffect(reputation_delta=-15, wealth_delta=40, risk="high"),
    ),
)


@dataclass(frozen=True)
class RoleMultiplier:
    reputation: float = 1.0
    wealth: float = 1.0
    strength: float = 1.0
    knowledge: float = 1.0


NEUTRAL_MULTIPLIER = RoleMultiplier()

ROLE_MULTIPLIERS: Mapping[str, RoleMultiplier] = {
    "hero": RoleMultiplier(reputation=1.5, strength=1.2),
    "merchant": RoleMultiplier(wealth=1.5, strength=0.8),
    "coward": RoleMultiplier(reputation=0.8, strength=0.7),
    "traitor": RoleMultiplier(reputation=0.5, wealth=1.2, knowledge=1.2),
    "villager": NEUTRAL_MULTIPLIER,
    "sage": RoleMultiplier(wealth=0.8, strength=0.8, knowledge=1.5),
    "mercenary": RoleMultiplier(reputation=0.8, wealth=1.3, strength=1.5, knowledge=0.8),
}

_AMOUNT_RE = re.compile(r"(\d+)\s*(?:ゴールド|gold|円|g(?![a-z]))", re.IGNORECASE)

LOSS_CUES = ("盗まれ", "奪われ", "失", "払", "支払", "買", "購入",
             "lose", "lost", "pay", "buy", "robbed", "stolen")
GAIN_CUES = ("得", "もら", "稼", "売", "報酬",
             "earn", "gain", "receive", "sell", "reward")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def normalize_action(text: object) -> str:
    """NFKC-normalise and trim; non-strings become the empty string."""
    if not isinstance(text, str):
        return ""
    return unicodedata.normalize("NFKC", text).strip()


def scale(value: int, multiplier: float) -> int:
    """Multiply and round half away from zero."""
    scaled = math.floor(abs(value) * multiplier + 0.5)
    return int(math.copysign(scaled, value)) if value else 0


def extract_amount(text: str) -> int | None:
    match = _AMOUNT_RE.search(text)
    return int(match.group(1)) if match else None


def _has_cue(text: str, cues: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(cue in lowered for cue in cues)


def apply_multiplier(effect: ActionEffect, multiplier: RoleMultiplier) -> ActionEffect:
    return effect.model_copy(update={
        "reputation_delta": scale(effect.reputation_delta, multiplier.reputation),
        "wealth_delta": scale(effect.wealth_delta, multiplier.wealth),
        "strength_delta": scale(effect.strength_delta, multiplier.strength),
        "knowledge_delta": scale(effect.knowledge_delta, multiplier.knowledge),
        "flags": dict(effect.flags),
    })


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

@dataclass
class ActionEffectResolver:
    """Maps action text and role to an ActionEffect.

    Tables are injectable so curated content can be tuned without code
    changes; the defaults are the module-level tables above.
    """

    table: Mapping[str, ActionEffect] = field(default_factory=lambda: STATIC_ACTIONS)
    categories: tuple[KeywordCategory, ...] = KEYWORD_CATEGORIES
    multipliers: Mapping[str, RoleMultiplier] = field(default_factory=lambda: ROLE_MULTIPLIERS)

    def match(self, text: str) -> tuple[str, ActionEffect]:
        """Return (source, base effect) before role scaling."""
        if text in self.table:
            return "table", self.table[text]
        lowered = text.lower()
        for category in self.categories:
            if any(kw in lowered for kw in category.keywords):
                return category.name, category.effect
        return "default", ActionEffect()

    def resolve(self, action_text: object, role: str) -> ActionEffect:
        text = normalize_action(action_text)
        if not text:
            return ActionEffect()

        source, base = self.match(text)
        multiplier = self.multipliers.get(role, NEUTRAL_MULTIPLIER)
        effect = apply_multiplier(base, multiplier)

        amount = extract_amount(text)
        if amount is not None:
            if _has_cue(text, LOSS_CUES):
                effect = effect.model_copy(update={"wealth_delta": -amount, "risk": "low"})
            elif _has_cue(text, GAIN_CUES) or base.wealth_delta > 0:
                effect = effect.model_copy(update={"wealth_delta": amount})
            else:
                effect = effect.model_copy(update={"wealth_delta": -amount})

        logger.debug("resolved action=%r role=%s source=%s effect=%s",
                     text, role, source, effect.model_dump(exclude_defaults=True))
        return effect
