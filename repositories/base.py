"""
Shared plumbing for Mongo-backed repositories.

Every driver failure is logged once here and re-raised as StoreError so
services only ever see the application error hierarchy.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from errors import StoreError
from shared.logging import get_logger

log = get_logger(__name__)


class BaseRepository:
    collection_name: str = ""

    def __init__(self, db: AsyncDatabase) -> None:
        self._col: AsyncCollection = db[self.collection_name]

    @asynccontextmanager
    async def _guard(self, operation: str, **context) -> AsyncIterator[None]:
        try:
            yield
        except PyMongoError as e:
            log.error(
                "store_operation_failed",
                collection=self.collection_name,
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                **context,
            )
            raise StoreError() from e
