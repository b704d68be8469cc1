"""FastAPI API endpoints under /api.

Endpoint groups: health/settings/check-connection, and the game itself
(new-game, command, status, save/load/saves). The active game lives on
app.state.game (a backend.session.GameHost).
"""

from fastapi import APIRouter

from .game import router as game_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(game_router)
