"""Health check, settings, and connection check endpoints."""

import httpx
from fastapi import APIRouter, HTTPException, Request

from backend import storage

from .models import CheckConnectionBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.post("/check-connection")
async def check_connection(body: CheckConnectionBody):
    """Quick health check against an OpenAI-compatible provider URL."""
    url = f"{body.provider_url.rstrip('/')}/v1/models"
    headers: dict[str, str] = {}
    if body.api_key:
        headers["Authorization"] = f"Bearer {body.api_key}"
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            resp = await client.get(url, headers=headers)
            resp.raise_for_status()
        return {"ok": True}
    except httpx.HTTPError:
        return {"ok": False}


@router.get("/settings")
async def get_settings():
    """Get global app settings (connections, generators, features, media)."""
    return storage.get_config()


@router.patch("/settings")
async def update_settings(body: dict, request: Request):
    """Update global app settings (partial merge) and rebuild the orchestrator.

    The merged config is written only once an orchestrator was built from it.
    """
    try:
        config = storage.merge_config(body)
        request.app.state.game.configure(config)
    except (ValueError, TypeError, AttributeError) as e:
        raise HTTPException(400, f"Invalid settings: {e}")
    return storage.save_config(config)
