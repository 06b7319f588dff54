from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from matchchat.models.message import MessageDocument
from matchchat.repositories.match_repository import to_object_id
from matchchat.schemas.conversation import Message, MessageType


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("match_id", ASCENDING), ("created_at", DESCENDING)])
        await self.collection.create_index([("match_id", ASCENDING), ("recipient_id", ASCENDING), ("read_at", ASCENDING)])

    async def save_message(
        self,
        match_id: str,
        sender_id: str,
        recipient_id: str,
        content: str,
        type: MessageType = MessageType.text,
    ) -> Message:
        doc: MessageDocument = {
            "match_id": match_id,
            "sender_id": sender_id,
            "recipient_id": recipient_id,
            "type": type.value,
            "content": content,
            "created_at": datetime.now(timezone.utc),
            "read_at": None,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return to_message(doc)

    async def get_last_message(self, match_id: str) -> Optional[Message]:
        cursor = self.collection.find({"match_id": match_id}).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).limit(1)
        items = await cursor.to_list(length=1)
        if not items:
            return None
        return to_message(items[0])

    async def count_unread(self, match_id: str, recipient_id: str) -> int:
        return await self.collection.count_documents(
            {"match_id": match_id, "recipient_id": recipient_id, "read_at": None}
        )

    async def get_messages_by_match(
        self,
        match_id: str,
        limit: int = 50,
        cursor: Optional[str] = None,
    ) -> Tuple[List[Message], Optional[str]]:
        query: Dict[str, Any] = {"match_id": match_id}
        sort = [("created_at", DESCENDING), ("_id", DESCENDING)]
        if cursor:
            # cursor format: ts_ms:oid
            ts_str, oid = cursor.split(":", 1)
            ts = datetime.fromtimestamp(int(ts_str) / 1000.0, tz=timezone.utc)
            query["$or"] = [
                {"created_at": {"$lt": ts}},
                {"created_at": ts, "_id": {"$lt": to_object_id(oid)}},
            ]
        cur = self.collection.find(query).sort(sort).limit(limit)
        items = [to_message(it) for it in await cur.to_list(length=limit)]
        next_cursor = None
        if len(items) == limit:
            last = items[-1]
            next_cursor = f"{int(last.created_at.timestamp() * 1000)}:{last.id}"
        # ascending within a match
        return list(reversed(items)), next_cursor

    async def mark_read(self, match_id: str, recipient_id: str) -> int:
        result = await self.collection.update_many(
            {"match_id": match_id, "recipient_id": recipient_id, "read_at": None},
            {"$set": {"read_at": datetime.now(timezone.utc)}},
        )
        return result.modified_count or 0


def to_message(doc: MessageDocument) -> Message:
    return Message(
        id=str(doc["_id"]),
        match_id=str(doc["match_id"]),
        sender_id=doc["sender_id"],
        recipient_id=doc["recipient_id"],
        type=doc.get("type") or MessageType.text.value,
        content=doc.get("content") or "",
        created_at=doc["created_at"],
        read_at=doc.get("read_at"),
    )
