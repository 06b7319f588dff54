from datetime import datetime
from typing import Optional, TypedDict


class MessageDocument(TypedDict, total=False):
    _id: str
    match_id: str
    sender_id: str
    recipient_id: str
    # text | image | audio | gif | icebreaker
    type: str
    content: str
    created_at: datetime
    # None until the recipient reads it
    read_at: Optional[datetime]
