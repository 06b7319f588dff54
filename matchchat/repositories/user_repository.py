from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from matchchat.models.user import UserDocument
from matchchat.repositories.match_repository import to_object_id
from matchchat.schemas.conversation import UserSummary


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def get_user_summary(self, user_id: str) -> Optional[UserSummary]:

        user: Optional[UserDocument] = await self._collection.find_one(
            {"_id": to_object_id(user_id)},
            {"display_name": 1, "photo_url": 1},
        )
        if not user:
            return None
        return UserSummary(
            id=str(user["_id"]),
            display_name=user.get("display_name") or "Unknown",
            photo_url=user.get("photo_url"),
        )
