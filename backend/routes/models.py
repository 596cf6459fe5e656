"""Pydantic request/response models for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class GenerationStartBody(BaseModel):
    generation_type: str = "normal"
    cycle_id: str | None = None


class EntriesBody(BaseModel):
    entries: list[Any] = Field(default_factory=list)


class EntriesActivatedBody(BaseModel):
    entries: list[Any] = Field(default_factory=list)
    messages: list[Any] = Field(default_factory=list)
    chat_id: str | None = None
    character_id: str | None = None
