"""
Repository for the `workspaces` collection (a single document per deployment).

create_if_absent() relies on an upsert with ``$setOnInsert``: racing first
accesses converge on one document and only the first writer's seed lands.
Bottle writes address ``bottle.*`` paths so sibling fields such as
allowedEmails are never rewritten by a bottle operation.
"""

from __future__ import annotations

from typing import Any, Optional

from repositories.base import BaseRepository
from schemas.models.workspace import BottleReply, WorkspaceDoc


class WorkspaceRepository(BaseRepository):
    collection_name = "workspaces"

    async def get(self, workspace_id: str) -> Optional[WorkspaceDoc]:
        async with self._guard("get", workspace_id=workspace_id):
            doc = await self._col.find_one({"_id": workspace_id})
        return WorkspaceDoc.from_mongo(doc)

    async def create_if_absent(self, workspace: WorkspaceDoc) -> WorkspaceDoc:
        """Insert *workspace* unless one with its id exists; return the stored one."""
        seed = workspace.to_mongo()
        seed.pop("_id", None)
        async with self._guard("create_if_absent", workspace_id=workspace.id):
            await self._col.update_one(
                {"_id": workspace.id}, {"$setOnInsert": seed}, upsert=True
            )
            doc = await self._col.find_one({"_id": workspace.id})
        return WorkspaceDoc.from_mongo(doc) or workspace

    async def merge(self, workspace_id: str, fields: dict[str, Any]) -> None:
        """Set *fields* (stored names, dotted paths allowed) on the workspace."""
        async with self._guard("merge", workspace_id=workspace_id, fields=sorted(fields)):
            await self._col.update_one(
                {"_id": workspace_id}, {"$set": fields}, upsert=True
            )

    async def push_reply(self, workspace_id: str, reply: BottleReply) -> None:
        async with self._guard("push_reply", workspace_id=workspace_id):
            await self._col.update_one(
                {"_id": workspace_id},
                {"$push": {"bottle.replies": reply.model_dump(by_alias=True)}},
            )

    async def pull_reply(self, workspace_id: str, reply_id: str) -> None:
        async with self._guard("pull_reply", workspace_id=workspace_id):
            await self._col.update_one(
                {"_id": workspace_id},
                {"$pull": {"bottle.replies": {"id": reply_id}}},
            )
