"""Pydantic DTOs for the registry API."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class SubscriptionCreateDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str
    events: list[str]
    secret: str | None = None
    name: str | None = None
    description: str | None = None
    scope: str | None = None


class SubscriptionUpdateDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str | None = None
    events: list[str] | None = None
    active: bool | None = None
    name: str | None = None
    description: str | None = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
