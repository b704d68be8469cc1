"""Game endpoints: new game, player command, status, save/load slots."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from backend import storage
from backend.session import GameHost, NoActiveGame
from demon_lord.errors import InvalidInputError, TurnError

from .models import CommandBody, NewGameBody, SlotBody

logger = logging.getLogger(__name__)

router = APIRouter()


def get_host(request: Request) -> GameHost:
    return request.app.state.game


def _status(host: GameHost) -> dict:
    try:
        return host.status()
    except NoActiveGame as e:
        raise HTTPException(409, str(e))


@router.post("/new-game")
async def new_game(body: NewGameBody, host: GameHost = Depends(get_host)):
    """Start a new game, replacing the active one."""
    try:
        host.session = host.orchestrator.new_session(body.player_name, body.role)
    except InvalidInputError as e:
        raise HTTPException(400, str(e))
    logger.info("new game: role=%s", body.role)
    return _status(host)


@router.post("/command")
async def command(body: CommandBody, host: GameHost = Depends(get_host)):
    """Run one turn with the player's action (free text or a choice number)."""
    try:
        session = host.require_session()
    except NoActiveGame as e:
        raise HTTPException(409, str(e))
    try:
        result = await host.orchestrator.run_turn(session, body.command)
    except InvalidInputError as e:
        raise HTTPException(400, str(e))
    except TurnError as e:
        raise HTTPException(500, str(e))
    return result.model_dump(mode="json", by_alias=True)


@router.get("/status")
async def status(host: GameHost = Depends(get_host)):
    """Current day and game state."""
    return _status(host)


@router.post("/save")
async def save(body: SlotBody, host: GameHost = Depends(get_host)):
    """Save the active game to a slot."""
    try:
        session = host.require_session()
    except NoActiveGame as e:
        raise HTTPException(409, str(e))
    slot = storage.write_save(body.slot, host.orchestrator.save_session(session))
    return {"slot": slot, "day": session.state.current_day}


@router.post("/load")
async def load(body: SlotBody, host: GameHost = Depends(get_host)):
    """Replace the active game with a saved one."""
    text = storage.read_save(body.slot)
    if text is None:
        raise HTTPException(404, "Save not found")
    try:
        host.session = host.orchestrator.load_session(text)
    except InvalidInputError as e:
        raise HTTPException(400, str(e))
    return _status(host)


@router.get("/saves")
async def list_saves():
    """List save slots."""
    return storage.list_saves()


@router.delete("/saves/{slot}")
async def delete_save(slot: str):
    """Delete a save slot."""
    if not storage.delete_save(slot):
        raise HTTPException(404, "Save not found")
    return {"ok": True}
