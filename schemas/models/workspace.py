"""
Workspace document model.

Maps to the `workspaces` MongoDB collection. Exactly one document exists per
deployment, addressed by the configured workspace id.

The bottle is an optional embedded sub-document. Its replies form one thread
that is discarded whenever the message is replaced.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from schemas.models.base import CamelModel, MongoBaseModel
from shared.geo import DEFAULT_BOTTLE_LAT, DEFAULT_BOTTLE_LNG, coerce_coordinate

DEFAULT_WORKSPACE_NAME = "Our Memories"
DEFAULT_BOTTLE_MESSAGE = (
    "Welcome to our secret bottle! Write something for us to find."
)
ANONYMOUS_AUTHOR = "Anonymous"


class BottleReply(CamelModel):
    id: str
    text: str
    author: str
    created_at: datetime


class Bottle(CamelModel):
    message: str = ""
    lat: float = DEFAULT_BOTTLE_LAT
    lng: float = DEFAULT_BOTTLE_LNG
    last_moved_at: Optional[datetime] = None
    replies: list[BottleReply] = []

    # Older documents may hold coordinates as strings or garbage
    @field_validator("lat", mode="before")
    @classmethod
    def _coerce_lat(cls, v: Any) -> float:
        return coerce_coordinate(v, DEFAULT_BOTTLE_LAT)

    @field_validator("lng", mode="before")
    @classmethod
    def _coerce_lng(cls, v: Any) -> float:
        return coerce_coordinate(v, DEFAULT_BOTTLE_LNG)

    @field_validator("replies", mode="before")
    @classmethod
    def _null_replies(cls, v: Any) -> Any:
        return [] if v is None else v


class WorkspaceDoc(MongoBaseModel):
    """Document model for the `workspaces` collection."""

    id: str = Field(alias="_id")
    name: str = DEFAULT_WORKSPACE_NAME
    allowed_emails: list[str] = []
    bottle: Optional[Bottle] = None
    created_at: Optional[datetime] = None


def default_bottle(now: datetime) -> Bottle:
    """Seed bottle placed in a freshly created workspace."""
    return Bottle(
        message=DEFAULT_BOTTLE_MESSAGE,
        lat=DEFAULT_BOTTLE_LAT,
        lng=DEFAULT_BOTTLE_LNG,
        last_moved_at=now,
    )
