from typing import List, Optional, Sequence, Tuple

from matchchat.schemas.conversation import Conversation


def split_conversations(conversations: Sequence[Conversation]) -> Tuple[List[Conversation], List[Conversation]]:
    """Split into (active conversations, new matches without messages), keeping order."""
    active = [c for c in conversations if c.last_message is not None]
    new_matches = [c for c in conversations if c.last_message is None]
    return active, new_matches


def search_conversations(conversations: Sequence[Conversation], query: Optional[str]) -> List[Conversation]:
    if not query or not query.strip():
        return list(conversations)
    needle = query.strip().lower()
    return [c for c in conversations if needle in c.user.display_name.lower()]
