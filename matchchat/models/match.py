from datetime import datetime
from typing import TypedDict


class MatchDocument(TypedDict, total=False):
    _id: str
    participant_a: str
    participant_b: str
    # pending | matched | unmatched
    status: str
    created_at: datetime
