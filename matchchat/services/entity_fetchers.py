from typing import Optional, Protocol

from matchchat.repositories.message_repository import MessageRepository
from matchchat.repositories.user_repository import UserRepository
from matchchat.schemas.conversation import Message, UserSummary


class EntityFetcher(Protocol):
    """Single-shot reads a conversation row is assembled from."""

    async def get_user(self, user_id: str) -> Optional[UserSummary]:
        ...

    async def get_last_message(self, match_id: str) -> Optional[Message]:
        ...

    async def get_unread_count(self, match_id: str, recipient_id: str) -> int:
        ...


class MongoEntityFetcher:

    def __init__(self, user_repo: UserRepository, message_repo: MessageRepository) -> None:
        self._user_repo = user_repo
        self._message_repo = message_repo

    async def get_user(self, user_id: str) -> Optional[UserSummary]:
        return await self._user_repo.get_user_summary(user_id)

    async def get_last_message(self, match_id: str) -> Optional[Message]:
        return await self._message_repo.get_last_message(match_id)

    async def get_unread_count(self, match_id: str, recipient_id: str) -> int:
        return await self._message_repo.count_unread(match_id, recipient_id)
