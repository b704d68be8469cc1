"""Core domain models.

Every engine stage and the HTTP layer operate on these types. Pydantic is
used for validation and serialisation at every data boundary.

Attribute names are snake_case; the JSON form uses the camelCase aliases
(`currentDay`, `npcRelationships`, ...) and both spellings are accepted on
load.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_DAYS = 30

Role = Literal["hero", "merchant", "coward", "traitor", "villager", "sage", "mercenary"]
ROLES: tuple[str, ...] = ("hero", "merchant", "coward", "traitor", "villager", "sage", "mercenary")

RiskLevel = Literal["low", "medium", "high"]
ItemType = Literal["weapon", "armor", "item", "food"]
ConsequenceType = Literal["stat", "item", "flag", "relationship", "location"]
SearchMood = Literal["hopeful", "neutral", "concerned", "urgent", "desperate"]


class GameModel(BaseModel):
    """Base model: camelCase aliases on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Game state
# ---------------------------------------------------------------------------

class PlayerStats(GameModel):
    level: int = Field(default=1, ge=1)
    health: int = Field(default=100, ge=0, le=100)
    strength: int = Field(default=20, ge=0, le=100)
    knowledge: int = Field(default=20, ge=0, le=100)
    reputation: int = Field(default=0, ge=-100, le=100)
    wealth: int = Field(default=100, ge=0)
    allies: list[str] = Field(default_factory=list)


class InventoryItem(GameModel):
    id: str
    name: str
    type: ItemType = "item"
    value: int = Field(default=0, ge=0)
    quantity: int = Field(default=1, ge=1)


class NPCRelationship(GameModel):
    npc_id: str
    affinity: int = Field(default=0, ge=-100, le=100)
    trust: int = Field(default=0, ge=0, le=100)
    known_information: list[str] = Field(default_factory=list)


class ConsequenceEffect(GameModel):
    """A single typed consequence attached to a choice."""

    type: ConsequenceType
    target: str
    change: Union[bool, int, str]


class DelayedEffect(ConsequenceEffect):
    delay_days: int = Field(ge=1)


class ScheduledEffect(GameModel):
    """A delayed consequence waiting for its due day."""

    due_day: int
    effect: ConsequenceEffect


class GameState(GameModel):
    current_day: int = Field(default=1, ge=1, le=MAX_DAYS)
    player_role: Role
    player_name: str = Field(min_length=1)
    location: str = "village_center"
    stats: PlayerStats = Field(default_factory=PlayerStats)
    inventory: list[InventoryItem] = Field(default_factory=list)
    flags: dict[str, bool] = Field(default_factory=dict)
    npc_relationships: dict[str, NPCRelationship] = Field(default_factory=dict)
    scheduled_effects: list[ScheduledEffect] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Per-turn values
# ---------------------------------------------------------------------------

class ActionEffect(GameModel):
    """Quantified stat/flag delta produced by interpreting one action."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    reputation_delta: int = 0
    wealth_delta: int = 0
    strength_delta: int = 0
    knowledge_delta: int = 0
    health_delta: int = 0
    flags: dict[str, bool] = Field(default_factory=dict)
    risk: RiskLevel = "low"


class Consequences(GameModel):
    immediate: list[ConsequenceEffect] = Field(default_factory=list)
    delayed: list[DelayedEffect] = Field(default_factory=list)


class Choice(GameModel):
    id: str
    text: str
    day_advance: int = Field(default=1, ge=0)
    consequences: Consequences = Field(default_factory=Consequences)


class DayWarning(GameModel):
    """A one-time notification raised when the day counter crosses a milestone."""

    day: int
    flag: str
    message: str


class SearchEvent(GameModel):
    query: str
    integration_text: str
    mood: SearchMood = "neutral"


class AudioPayload(GameModel):
    data: str  # base64
    content_type: str = "audio/mpeg"
    style_id: int = 0
    reason: str = ""


class Ending(GameModel):
    key: str
    title: str
    description: str


class PerformanceMetrics(GameModel):
    total_ms: float = 0.0
    phase1_ms: float = 0.0
    phase2_ms: float = 0.0
    commit_ms: float = 0.0
    tasks_completed: int = 0
    tasks_skipped: int = 0
    tasks_failed: int = 0


class TurnResult(GameModel):
    day: int
    narrative: str
    choices: list[str]
    image_url: str | None = None
    audio: AudioPayload | None = None
    game_over: bool = False
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    special_event: str | None = None
    search: SearchEvent | None = None
    warnings: list[DayWarning] = Field(default_factory=list)
    effect: ActionEffect = Field(default_factory=ActionEffect)
    game_state: GameState | None = None
    ending: Ending | None = None
