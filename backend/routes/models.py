"""Pydantic request models for API endpoints."""

from pydantic import BaseModel, Field


class NewGameBody(BaseModel):
    player_name: str
    role: str = "villager"


class CommandBody(BaseModel):
    command: str


class SlotBody(BaseModel):
    slot: str = Field(default="autosave", min_length=1)


class CheckConnectionBody(BaseModel):
    provider_url: str
    api_key: str = ""
