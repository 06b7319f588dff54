from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from matchchat.models.match import MatchDocument
from matchchat.schemas.conversation import Match, MatchQuery, MatchStatus


class MatchRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["matches"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participant_a", ASCENDING), ("status", ASCENDING)])
        await self.collection.create_index([("participant_b", ASCENDING), ("status", ASCENDING)])
        await self.collection.create_index([("created_at", DESCENDING)])

    async def get_match(self, match_id: str) -> Optional[Match]:
        doc = await self.collection.find_one({"_id": to_object_id(match_id)})
        if not doc:
            return None
        return to_match(doc)

    async def list_for_user(self, query: MatchQuery) -> List[Match]:
        filters: Dict[str, Any] = {
            "status": query.status.value,
            "$or": [
                {"participant_a": query.participant_id},
                {"participant_b": query.participant_id},
            ],
        }
        cursor = self.collection.find(filters).sort("created_at", ASCENDING)
        items = await cursor.to_list(length=None)
        return [to_match(it) for it in items]

    async def update_status(self, match_id: str, status: MatchStatus) -> bool:
        result = await self.collection.update_one(
            {"_id": to_object_id(match_id)},
            {"$set": {"status": status.value}},
        )
        return bool(result.matched_count)


def to_object_id(value: str):
    return ObjectId(value) if ObjectId.is_valid(value) else value


def to_match(doc: MatchDocument) -> Match:
    return Match(
        id=str(doc["_id"]),
        participant_a=doc["participant_a"],
        participant_b=doc["participant_b"],
        status=doc.get("status", MatchStatus.pending.value),
        created_at=doc["created_at"],
    )
