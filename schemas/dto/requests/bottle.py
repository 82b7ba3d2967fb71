"""
Request DTOs for bottle endpoints.

BottleMessageRequest: PUT /api/v1/workspace/bottle/message
MoveBottleRequest: PUT /api/v1/workspace/bottle/location
BottleReplyRequest: POST /api/v1/workspace/bottle/replies
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

MAX_MESSAGE_LENGTH = 2000
MAX_REPLY_LENGTH = 1000


class BottleMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    message: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)


class MoveBottleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class BottleReplyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    text: str = Field(min_length=1, max_length=MAX_REPLY_LENGTH)
