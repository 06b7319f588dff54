import logging
from typing import List, Optional, Tuple

from matchchat.repositories.match_repository import MatchRepository
from matchchat.repositories.message_repository import MessageRepository
from matchchat.schemas.conversation import Match, MatchStatus, Message, MessageType
from matchchat.utils.realtime_bus import notify_match_changed

logger = logging.getLogger(__name__)


class MatchNotFoundError(LookupError):
    pass


class ChatService:
    """Write side of the chat. Every change is announced to both participants on the bus."""

    def __init__(self, message_repo: MessageRepository, match_repo: MatchRepository, bus) -> None:
        self._message_repo = message_repo
        self._match_repo = match_repo
        self._bus = bus

    async def _get_match(self, match_id: str) -> Match:
        match = await self._match_repo.get_match(match_id)
        if match is None:
            raise MatchNotFoundError(f"Match {match_id} not found")
        return match

    async def send_message(self, match_id: str, sender_id: str, content: str, type: MessageType = MessageType.text) -> Message:
        if type == MessageType.text and (not content or not content.strip()):
            raise ValueError("Message content cannot be empty")
        match = await self._get_match(match_id)
        if match.status != MatchStatus.matched:
            raise ValueError("Cannot send messages on a match that is not matched")
        recipient_id = match.counterpart_of(sender_id)
        saved = await self._message_repo.save_message(
            match_id=match.id,
            sender_id=sender_id,
            recipient_id=recipient_id,
            content=content.strip(),
            type=type,
        )
        await notify_match_changed(self._bus, sender_id, recipient_id)
        return saved

    async def get_history(self, match_id: str, limit: int = 50, cursor: Optional[str] = None) -> Tuple[List[Message], Optional[str]]:
        return await self._message_repo.get_messages_by_match(match_id, limit=limit, cursor=cursor)

    async def mark_read(self, match_id: str, reader_id: str) -> int:
        match = await self._get_match(match_id)
        if not match.involves(reader_id):
            raise ValueError(f"User {reader_id} is not a participant of match {match_id}")
        modified = await self._message_repo.mark_read(match.id, reader_id)
        if modified:
            await notify_match_changed(self._bus, match.participant_a, match.participant_b)
        return modified

    async def set_match_status(self, match_id: str, status: MatchStatus) -> Match:
        match = await self._get_match(match_id)
        if match.status == status:
            return match
        await self._match_repo.update_status(match.id, status)
        logger.info("Match %s changed from %s to %s", match.id, match.status.value, status.value)
        await notify_match_changed(self._bus, match.participant_a, match.participant_b)
        return match.model_copy(update={"status": status})
