"""
Repository for the `users` collection.

All writes are merges (``$set`` / ``$push``); nothing here replaces a whole
user document, so fields owned by other writers (loginHistory, workspaceId)
survive every update.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from errors import ConflictError
from repositories.base import BaseRepository
from schemas.models.user import LoginHistoryEntry, UserDoc


def _user_key(uid: str) -> Any:
    return ObjectId(uid) if ObjectId.is_valid(uid) else uid


class UserRepository(BaseRepository):
    collection_name = "users"

    async def ensure_indexes(self) -> None:
        async with self._guard("ensure_indexes"):
            await self._col.create_index([("email", ASCENDING)], unique=True)

    async def find_by_id(self, uid: str) -> Optional[UserDoc]:
        async with self._guard("find_by_id", user_id=uid):
            doc = await self._col.find_one({"_id": _user_key(uid)})
        return UserDoc.from_mongo(doc)

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        async with self._guard("find_by_email"):
            doc = await self._col.find_one({"email": email.strip().lower()})
        return UserDoc.from_mongo(doc)

    async def insert(self, user: UserDoc) -> str:
        """Insert a new user and return its id. Duplicate emails conflict."""
        async with self._guard("insert"):
            try:
                result = await self._col.insert_one(user.to_mongo())
            except DuplicateKeyError as e:
                raise ConflictError(
                    "A user with this email already exists.", field="email"
                ) from e
        return str(result.inserted_id)

    async def merge(self, uid: str, fields: dict[str, Any]) -> None:
        """Set *fields* (stored names) on the user, creating it if absent."""
        async with self._guard("merge", user_id=uid, fields=sorted(fields)):
            await self._col.update_one(
                {"_id": _user_key(uid)}, {"$set": fields}, upsert=True
            )

    async def record_login(
        self,
        uid: str,
        email: str,
        session_expiry: int,
        entry: LoginHistoryEntry,
    ) -> None:
        """Persist a new session and append to loginHistory in one update."""
        async with self._guard("record_login", user_id=uid):
            await self._col.update_one(
                {"_id": _user_key(uid)},
                {
                    "$set": {
                        "email": email,
                        "sessionExpiry": session_expiry,
                        "lastLogin": entry.timestamp,
                    },
                    "$push": {"loginHistory": entry.model_dump(by_alias=True)},
                },
                upsert=True,
            )

    async def issue_login_token(
        self, uid: str, token_hash: str, expires_at_ms: int
    ) -> None:
        """Replace any previous login token with a fresh, unused one."""
        await self.merge(
            uid,
            {
                "loginToken": token_hash,
                "loginTokenExpiry": expires_at_ms,
                "loginTokenUsed": False,
            },
        )

    async def consume_login_token(
        self, uid: str, token_hash: str, verified_at: datetime
    ) -> bool:
        """Mark the token used and stamp emailVerifiedAt.

        Returns False when the token was consumed concurrently (or replaced)
        between the caller's read and this write.
        """
        async with self._guard("consume_login_token", user_id=uid):
            result = await self._col.update_one(
                {
                    "_id": _user_key(uid),
                    "loginToken": token_hash,
                    "loginTokenUsed": {"$ne": True},
                },
                {
                    "$set": {
                        "loginTokenUsed": True,
                        "emailVerifiedAt": verified_at,
                    }
                },
            )
        return result.modified_count == 1
