from typing import List

from matchchat.repositories.match_repository import MatchRepository
from matchchat.schemas.conversation import Conversation, MatchQuery
from matchchat.services.conversation_builder import build_conversations
from matchchat.services.entity_fetchers import EntityFetcher


class ConversationService:

    def __init__(self, match_repo: MatchRepository, fetcher: EntityFetcher) -> None:
        self._match_repo = match_repo
        self._fetcher = fetcher

    async def list_conversations(self, user_id: str) -> List[Conversation]:
        matches = await self._match_repo.list_for_user(MatchQuery(participant_id=user_id))
        return await build_conversations(matches, user_id, self._fetcher)
