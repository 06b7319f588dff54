from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class MatchStatus(str, Enum):

    pending = "pending"
    matched = "matched"
    unmatched = "unmatched"


class MessageType(str, Enum):

    text = "text"
    image = "image"
    audio = "audio"
    gif = "gif"
    icebreaker = "icebreaker"


class Match(BaseModel):

    id: str
    participant_a: str
    participant_b: str
    status: MatchStatus
    created_at: datetime

    def involves(self, user_id: str) -> bool:
        return user_id in (self.participant_a, self.participant_b)

    def counterpart_of(self, user_id: str) -> str:
        if user_id == self.participant_a:
            return self.participant_b
        if user_id == self.participant_b:
            return self.participant_a
        raise ValueError(f"User {user_id} is not a participant of match {self.id}")


class Message(BaseModel):

    id: str
    match_id: str
    sender_id: str
    recipient_id: str
    type: MessageType = MessageType.text
    content: str = ""
    created_at: datetime
    read_at: Optional[datetime] = None


EMPTY_PREVIEW = "Start a conversation!"


def message_preview(message: Optional[Message]) -> str:
    if message is None:
        return EMPTY_PREVIEW
    if message.type == MessageType.image:
        return "📷 Photo"
    if message.type == MessageType.audio:
        return "🎤 Voice message"
    if message.type == MessageType.gif:
        return "GIF"
    if message.type == MessageType.icebreaker:
        return f"💡 {message.content}"
    return message.content


class UserSummary(BaseModel):

    id: str
    display_name: str
    photo_url: Optional[str] = None


class Conversation(BaseModel):
    """One row of the conversation list, derived from a single matched record."""

    model_config = ConfigDict(frozen=True)

    match_id: str
    # the counterpart, never the observing user
    user_id: str
    user: UserSummary
    last_message: Optional[Message] = None
    unread_count: int = Field(default=0, ge=0)
    updated_at: datetime

    @computed_field  # type: ignore[misc]
    @property
    def preview(self) -> str:
        return message_preview(self.last_message)


class MatchQuery(BaseModel):

    participant_id: str
    status: MatchStatus = MatchStatus.matched


class ConversationState(BaseModel):
    """Published output of the aggregation engine."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    conversations: List[Conversation] = Field(default_factory=list)
    loading: bool = False
    error: Optional[Exception] = None

    def to_payload(self) -> dict:
        return {
            "conversations": [c.model_dump(mode="json") for c in self.conversations],
            "loading": self.loading,
            "error": str(self.error) if self.error is not None else None,
        }
