"""Probabilistic complications for risky actions.

One Bernoulli trial per applicable effect:

    high    p=0.30  reputation -10, wealth -50, caught_in_act
    medium  p=0.15  reputation -5
    low     no roll

The random source is injected so tests can seed or script it.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Protocol

from demon_lord.models import ActionEffect

logger = logging.getLogger(__name__)

HIGH_RISK_CHANCE = 0.30
HIGH_RISK_REPUTATION_PENALTY = 10
HIGH_RISK_WEALTH_PENALTY = 50
MEDIUM_RISK_CHANCE = 0.15
MEDIUM_RISK_REPUTATION_PENALTY = 5


class RandomSource(Protocol):
    def random(self) -> float: ...


@dataclass(frozen=True)
class RiskOutcome:
    effect: ActionEffect
    triggered: bool


class RiskEngine:
    def __init__(self, rng: RandomSource | None = None, seed: int | None = None) -> None:
        self._rng: RandomSource = rng if rng is not None else random.Random(seed)

    def apply_risk(self, effect: ActionEffect) -> RiskOutcome:
        """Roll once for the effect's risk tier; return the possibly penalised effect."""
        if effect.risk == "high":
            if self._rng.random() < HIGH_RISK_CHANCE:
                logger.info("high-risk action backfired: caught in the act")
                return RiskOutcome(
                    effect=effect.model_copy(update={
                        "reputation_delta": effect.reputation_delta - HIGH_RISK_REPUTATION_PENALTY,
                        "wealth_delta": effect.wealth_delta - HIGH_RISK_WEALTH_PENALTY,
                        "flags": {**effect.flags, "caught_in_act": True},
                    }),
                    triggered=True,
                )
        elif effect.risk == "medium":
            if self._rng.random() < MEDIUM_RISK_CHANCE:
                logger.info("medium-risk action backfired")
                return RiskOutcome(
                    effect=effect.model_copy(update={
                        "reputation_delta": effect.reputation_delta - MEDIUM_RISK_REPUTATION_PENALTY,
                    }),
                    triggered=True,
                )
        return RiskOutcome(effect=effect, triggered=False)
