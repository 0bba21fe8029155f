"""Pydantic v2 schemas for actor (character) registration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ActorItem(BaseModel):
    image_path: str = Field(..., min_length=1)
    audio_path: str | None = None
    timestamps: str = "0,3"
    from_task: str | None = None


class ActorCreate(BaseModel):
    """Batch registration; provider and API key default to the live settings."""

    items: list[ActorItem] = Field(..., min_length=1, max_length=20)
    provider_id: str | None = None
    api_key: str | None = None


class ActorRead(BaseModel):
    id: str
    username: str
    permalink: str = ""
    profile_picture_url: str = ""
    profile_desc: str | None = None

    model_config = {"from_attributes": True}


class ActorResult(BaseModel):
    image_path: str
    actor: ActorRead | None = None
    error: str | None = None
