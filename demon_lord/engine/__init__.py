"""Turn orchestration and effect-resolution engine.

Executes one player turn:
  1. Phase 1 fan-out: special event, narrative (narrator or delegated NPC),
     search lookup, scene image; each task isolated behind its own fallback.
  2. Integration: special-event block + narrative + search block.
  3. Phase 2 fan-out: choice list, audio narration.
  4. Commit: ActionEffectResolver -> RiskEngine -> StateStore ->
     DayProgressionTracker.

Bounds: health/strength/knowledge 0-100, reputation -100..100, wealth >= 0.
Day 30 is the last playable day; advancing past it ends the game.
"""

from .days import (  # noqa: F401
    DayProgressionTracker,
    days_for_action,
    is_game_over,
)
from .delegation import (  # noqa: F401
    DelegationOutcome,
    DelegationRouter,
    merge_effects,
)
from .effects import ActionEffectResolver  # noqa: F401
from .endings import determine_ending  # noqa: F401
from .orchestrator import (  # noqa: F401
    GameSession,
    TurnOrchestrator,
    TurnPhase,
    integrate_narrative,
)
from .risk import RiskEngine  # noqa: F401
from .state import StateStore  # noqa: F401
