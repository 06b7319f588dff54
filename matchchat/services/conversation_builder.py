import asyncio
import logging
from typing import Iterable, List

from matchchat.schemas.conversation import Conversation, Match, MatchStatus, UserSummary
from matchchat.services.entity_fetchers import EntityFetcher

logger = logging.getLogger(__name__)

UNKNOWN_DISPLAY_NAME = "Unknown"


async def build_conversation(match: Match, observing_user_id: str, fetcher: EntityFetcher) -> Conversation:
    """
    Assemble the conversation row for one matched record.

    The counterpart profile, the last message and the unread count are read
    concurrently. A failed or empty read degrades only its own field:
    - profile -> UserSummary named "Unknown" with no photo
    - last message -> None
    - unread count -> 0
    """
    if match.status != MatchStatus.matched:
        raise ValueError(f"Match {match.id} is {match.status.value}, not matched")
    counterpart_id = match.counterpart_of(observing_user_id)

    user, last_message, unread = await asyncio.gather(
        fetcher.get_user(counterpart_id),
        fetcher.get_last_message(match.id),
        fetcher.get_unread_count(match.id, observing_user_id),
        return_exceptions=True,
    )

    if isinstance(user, BaseException):
        logger.warning("Profile read failed for user %s (match %s): %s", counterpart_id, match.id, user)
        user = None
    if user is None:
        user = UserSummary(id=counterpart_id, display_name=UNKNOWN_DISPLAY_NAME, photo_url=None)

    if isinstance(last_message, BaseException):
        logger.warning("Last message read failed for match %s: %s", match.id, last_message)
        last_message = None

    if isinstance(unread, BaseException):
        logger.warning("Unread count read failed for match %s: %s", match.id, unread)
        unread = 0
    elif not isinstance(unread, int) or isinstance(unread, bool) or unread < 0:
        logger.warning("Discarding invalid unread count %r for match %s", unread, match.id)
        unread = 0

    updated_at = last_message.created_at if last_message is not None else match.created_at
    return Conversation(
        match_id=match.id,
        user_id=counterpart_id,
        user=user,
        last_message=last_message,
        unread_count=unread,
        updated_at=updated_at,
    )


async def build_conversations(matches: Iterable[Match], observing_user_id: str, fetcher: EntityFetcher) -> List[Conversation]:
    """Build every qualifying match in parallel and return them sorted."""
    qualifying = [
        m for m in matches
        if m.status == MatchStatus.matched and m.involves(observing_user_id)
    ]
    conversations = await asyncio.gather(
        *(build_conversation(m, observing_user_id, fetcher) for m in qualifying)
    )
    return sort_conversations(conversations)


def sort_conversations(conversations: Iterable[Conversation]) -> List[Conversation]:
    # Most recent activity first; equal timestamps fall back to match id ascending
    by_id = sorted(conversations, key=lambda c: c.match_id)
    return sorted(by_id, key=lambda c: c.updated_at, reverse=True)
