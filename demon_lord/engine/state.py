"""Canonical game state: creation, bounded mutation, save/load.

Every operation takes a GameState and returns a new one; the input is never
modified. Bounds after every mutation:

    health, strength, knowledge   [0, 100]
    reputation                    [-100, 100]
    wealth                        [0, ∞)

Level is derived from growth (strength + knowledge + |reputation|) in
bands of LEVEL_BAND and never goes down.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable

from pydantic import ValidationError

from demon_lord.errors import InvalidInputError
from demon_lord.models import (
    ROLES,
    ActionEffect,
    ConsequenceEffect,
    GameState,
    InventoryItem,
    NPCRelationship,
    PlayerStats,
)

logger = logging.getLogger(__name__)

LEVEL_BAND = 50

STAT_BOUNDS: dict[str, tuple[int, int | None]] = {
    "health": (0, 100),
    "strength": (0, 100),
    "knowledge": (0, 100),
    "reputation": (-100, 100),
    "wealth": (0, None),
}

_BASE_STATS: dict[str, int] = {
    "health": 100,
    "strength": 20,
    "knowledge": 20,
    "reputation": 0,
    "wealth": 100,
}

ROLE_STATS: dict[str, dict[str, int]] = {
    "hero": {"strength": 35, "reputation": 10},
    "merchant": {"wealth": 300, "knowledge": 30},
    "coward": {"health": 120, "strength": 10},
    "traitor": {"knowledge": 35, "reputation": -10},
    "villager": {},
    "sage": {"knowledge": 40, "wealth": 50},
    "mercenary": {"strength": 40, "wealth": 150},
}

ROLE_ITEMS: dict[str, InventoryItem] = {
    "hero": InventoryItem(id="sword", name="鉄の剣", type="weapon", value=50),
    "merchant": InventoryItem(id="ledger", name="商売帳", type="item", value=20),
    "coward": InventoryItem(id="herbs", name="薬草", type="item", value=15),
    "sage": InventoryItem(id="tome", name="古い書物", type="item", value=30),
}

STARTING_ITEMS: tuple[InventoryItem, ...] = (
    InventoryItem(id="bread", name="パン", type="food", value=5),
    InventoryItem(id="water", name="水", type="food", value=3),
)

# npc id -> starting trust
STARTING_NPCS: dict[str, int] = {
    "Elder_Morgan": 50,
    "Elara_Sage": 30,
    "Merchant_Grom": 40,
}

STARTING_FLAGS: dict[str, bool] = {
    "prophecyHeard": False,
    "villageWarned": False,
    "defensesPrepared": False,
}


def clamp(value: int, low: int, high: int | None) -> int:
    value = max(low, value)
    return value if high is None else min(high, value)


def compute_level(stats: PlayerStats) -> int:
    growth = stats.strength + stats.knowledge + abs(stats.reputation)
    return max(stats.level, growth // LEVEL_BAND + 1)


class StateStore:
    """Bounded, copy-on-write operations over GameState."""

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def new_game(self, player_name: str, role: str) -> GameState:
        name = (player_name or "").strip()
        if not name:
            raise InvalidInputError("Player name must not be empty")
        if role not in ROLES:
            raise InvalidInputError(f"Unknown role {role!r}")

        values = {**_BASE_STATS, **ROLE_STATS[role]}
        for stat, (low, high) in STAT_BOUNDS.items():
            values[stat] = clamp(values[stat], low, high)
        stats = PlayerStats(level=1, **values)
        stats.level = compute_level(stats)

        inventory = [item.model_copy() for item in STARTING_ITEMS]
        if role in ROLE_ITEMS:
            inventory.append(ROLE_ITEMS[role].model_copy())

        state = GameState(
            current_day=1,
            player_role=role,
            player_name=name,
            location="village_center",
            stats=stats,
            inventory=inventory,
            flags=dict(STARTING_FLAGS),
            npc_relationships={
                npc_id: NPCRelationship(npc_id=npc_id, trust=trust)
                for npc_id, trust in STARTING_NPCS.items()
            },
        )
        logger.info("new game player=%s role=%s", name, role)
        return state

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def apply_effect(self, state: GameState, effect: ActionEffect) -> GameState:
        new = state.model_copy(deep=True)
        stats = new.stats
        deltas = {
            "health": effect.health_delta,
            "strength": effect.strength_delta,
            "knowledge": effect.knowledge_delta,
            "reputation": effect.reputation_delta,
            "wealth": effect.wealth_delta,
        }
        for stat, delta in deltas.items():
            low, high = STAT_BOUNDS[stat]
            setattr(stats, stat, clamp(getattr(stats, stat) + delta, low, high))
        stats.level = compute_level(stats)
        new.flags.update(effect.flags)
        return new

    def apply_stat(self, state: GameState, stat: str, delta: int) -> GameState:
        field = f"{stat}_delta"
        if field not in ActionEffect.model_fields:
            logger.debug("Ignoring unknown stat %r", stat)
            return state
        return self.apply_effect(state, ActionEffect(**{field: delta}))

    def apply_relationship(
        self,
        state: GameState,
        npc_id: str,
        affinity_delta: int = 0,
        trust_delta: int = 0,
        learned: Iterable[str] = (),
    ) -> GameState:
        if npc_id not in state.npc_relationships:
            logger.debug("Ignoring relationship change for unknown npc %r", npc_id)
            return state
        new = state.model_copy(deep=True)
        rel = new.npc_relationships[npc_id]
        rel.affinity = clamp(rel.affinity + affinity_delta, -100, 100)
        rel.trust = clamp(rel.trust + trust_delta, 0, 100)
        for fact in learned:
            if fact and fact not in rel.known_information:
                rel.known_information.append(fact)
        return new

    def apply_consequences(
        self, state: GameState, consequences: Iterable[ConsequenceEffect]
    ) -> GameState:
        for c in consequences:
            if c.type == "stat":
                if isinstance(c.change, bool) or not isinstance(c.change, int):
                    continue
                state = self.apply_stat(state, c.target, c.change)
            elif c.type == "flag":
                state = state.model_copy(deep=True)
                state.flags[c.target] = bool(c.change)
            elif c.type == "location":
                state = state.model_copy(update={"location": str(c.change)}, deep=True)
            elif c.type == "item":
                state = self._apply_item(state, c)
            elif c.type == "relationship":
                if isinstance(c.change, int) and not isinstance(c.change, bool):
                    state = self.apply_relationship(state, c.target, affinity_delta=c.change)
        return state

    def _apply_item(self, state: GameState, c: ConsequenceEffect) -> GameState:
        new = state.model_copy(deep=True)
        removing = c.change is False or (
            isinstance(c.change, int) and not isinstance(c.change, bool) and c.change < 0
        )
        existing = next((i for i in new.inventory if c.target in (i.id, i.name)), None)
        if removing:
            if existing is None:
                return state
            if existing.quantity > 1:
                existing.quantity -= 1
            else:
                new.inventory.remove(existing)
            return new

        if existing is not None:
            existing.quantity += 1
        else:
            name = c.change if isinstance(c.change, str) and c.change else c.target
            new.inventory.append(InventoryItem(id=c.target, name=name))
        return new

    def add_ally(self, state: GameState, ally: str) -> GameState:
        if ally in state.stats.allies:
            return state
        new = state.model_copy(deep=True)
        new.stats.allies.append(ally)
        return new

    # ------------------------------------------------------------------
    # Save / load
    # ------------------------------------------------------------------

    def save_game(self, state: GameState) -> str:
        payload = {
            "day": state.current_day,
            "state": state.model_dump(mode="json", by_alias=True),
        }
        return json.dumps(payload, ensure_ascii=False, indent=2)

    def load_game(self, text: str) -> GameState:
        try:
            payload = json.loads(text)
            state = GameState.model_validate(payload["state"])
        except (json.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
            raise InvalidInputError(f"Malformed save data: {e}") from e
        if payload.get("day") != state.current_day:
            logger.warning("save header day=%s disagrees with state day=%s",
                           payload.get("day"), state.current_day)
        return state
