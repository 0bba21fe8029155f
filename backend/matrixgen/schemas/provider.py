"""Pydantic v2 schemas for provider listings."""

from __future__ import annotations

from pydantic import BaseModel


class ProviderRead(BaseModel):
    id: str
    name: str
    description: str
    version: str
    builtin: bool
    models: dict[str, list[str]] = {}
    supports_actors: bool = False


class ProviderModels(BaseModel):
    provider_id: str
    media_type: str
    models: list[str]


class ReloadResult(BaseModel):
    loaded: list[str]
    rejected: dict[str, str]
    providers: list[ProviderRead]
