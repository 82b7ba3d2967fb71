"""
Shared workspace endpoints. Every route requires a live session and an
allowed user.

GET    /api/v1/workspace
PUT    /api/v1/workspace/bottle/message
PUT    /api/v1/workspace/bottle/location
POST   /api/v1/workspace/bottle/read
POST   /api/v1/workspace/bottle/replies
DELETE /api/v1/workspace/bottle/replies/{reply_id}
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import require_workspace
from errors import NotFoundError, StoreError
from schemas.dto.requests.bottle import (
    BottleMessageRequest,
    BottleReplyRequest,
    MoveBottleRequest,
)
from schemas.dto.responses.common import MessageResponse
from schemas.dto.responses.workspace import (
    BottleReplyResponse,
    BottleResponse,
    WorkspaceResponse,
)
from services.workspace_coordinator import WorkspaceCoordinator

router = APIRouter(prefix="/workspace", tags=["workspace"])

NO_BOTTLE_MESSAGE = "There is no bottle in this workspace yet."


@router.get("", response_model=WorkspaceResponse)
async def get_workspace(
    coordinator: WorkspaceCoordinator = Depends(require_workspace),
) -> WorkspaceResponse:
    return WorkspaceResponse.from_doc(coordinator.workspace)


@router.put("/bottle/message", response_model=BottleResponse)
async def update_bottle_message(
    body: BottleMessageRequest,
    coordinator: WorkspaceCoordinator = Depends(require_workspace),
) -> BottleResponse:
    bottle = await coordinator.update_bottle_message(body.message)
    return BottleResponse.from_model(bottle)


@router.put("/bottle/location", response_model=BottleResponse)
async def move_bottle(
    body: MoveBottleRequest,
    coordinator: WorkspaceCoordinator = Depends(require_workspace),
) -> BottleResponse:
    if coordinator.workspace.bottle is None:
        raise NotFoundError(NO_BOTTLE_MESSAGE)
    bottle = await coordinator.move_bottle(body.lat, body.lng)
    if bottle is None:
        raise StoreError()
    return BottleResponse.from_model(bottle)


@router.post("/bottle/read", response_model=BottleResponse)
async def read_bottle(
    coordinator: WorkspaceCoordinator = Depends(require_workspace),
) -> BottleResponse:
    bottle = await coordinator.read_bottle()
    if bottle is None:
        raise NotFoundError(NO_BOTTLE_MESSAGE)
    return BottleResponse.from_model(bottle)


@router.post("/bottle/replies", response_model=BottleReplyResponse, status_code=201)
async def reply_to_bottle(
    body: BottleReplyRequest,
    coordinator: WorkspaceCoordinator = Depends(require_workspace),
) -> BottleReplyResponse:
    reply = await coordinator.reply_to_bottle(body.text)
    if reply is None:
        raise NotFoundError(NO_BOTTLE_MESSAGE)
    return BottleReplyResponse.from_model(reply)


@router.delete("/bottle/replies/{reply_id}", response_model=MessageResponse)
async def delete_bottle_reply(
    reply_id: str,
    coordinator: WorkspaceCoordinator = Depends(require_workspace),
) -> MessageResponse:
    deleted = await coordinator.delete_bottle_reply(reply_id)
    return MessageResponse(
        success=True,
        message="Reply deleted." if deleted else "Reply not found.",
    )
