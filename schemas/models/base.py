"""
Base models for MongoDB documents.

Stored field names are camelCase (``sessionExpiry``, ``allowedEmails``);
Python attributes are snake_case. CamelModel maps between them through an
alias generator, so ``model_dump(by_alias=True)`` yields the stored shape.

PyObjectId handles the mismatch between BSON ObjectId and Pydantic v2.
"""

from __future__ import annotations

from typing import Any, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, GetCoreSchemaHandler
from pydantic.alias_generators import to_camel
from pydantic_core import core_schema


class PyObjectId(ObjectId):
    """BSON ObjectId that Pydantic v2 knows how to validate and serialize."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def _validate(cls, v: Any) -> ObjectId:
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError(f"Invalid ObjectId: {v!r}")


class CamelModel(BaseModel):
    """Embedded sub-document with camelCase storage names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class MongoBaseModel(CamelModel):
    """
    Base for top-level documents. Subclasses declare ``id`` with
    ``alias="_id"`` and their own id type.

    to_mongo(): model to dict suitable for pymongo insert/update
    from_mongo(): raw pymongo dict to model (None passes through)
    """

    def to_mongo(self) -> dict:
        """Return a dict ready for MongoDB insertion.

        Drops a None ``_id`` so MongoDB can generate one on insert.
        """
        data = self.model_dump(by_alias=True, exclude_none=False)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    @classmethod
    def from_mongo(cls, data: Optional[dict]) -> Optional["MongoBaseModel"]:
        """Build a model from a raw MongoDB document (None when absent)."""
        if data is None:
            return None
        return cls.model_validate(data)
