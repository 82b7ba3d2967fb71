"""
Response DTOs for workspace endpoints.

BottleReplyResponse: one reply in a bottle thread
BottleResponse: the bottle sub-document
WorkspaceResponse: GET /api/v1/workspace
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.workspace import Bottle, BottleReply, WorkspaceDoc


class BottleReplyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str
    author: str
    created_at: datetime

    @classmethod
    def from_model(cls, reply: BottleReply) -> "BottleReplyResponse":
        return cls(
            id=reply.id,
            text=reply.text,
            author=reply.author,
            created_at=reply.created_at,
        )


class BottleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    lat: float
    lng: float
    last_moved_at: Optional[datetime] = None
    replies: list[BottleReplyResponse] = []

    @classmethod
    def from_model(cls, bottle: Bottle) -> "BottleResponse":
        return cls(
            message=bottle.message,
            lat=bottle.lat,
            lng=bottle.lng,
            last_moved_at=bottle.last_moved_at,
            replies=[BottleReplyResponse.from_model(r) for r in bottle.replies],
        )


class WorkspaceResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    allowed_emails: list[str]
    bottle: Optional[BottleResponse] = None

    @classmethod
    def from_doc(cls, workspace: WorkspaceDoc) -> "WorkspaceResponse":
        return cls(
            id=workspace.id,
            name=workspace.name,
            allowed_emails=workspace.allowed_emails,
            bottle=BottleResponse.from_model(workspace.bottle) if workspace.bottle else None,
        )
