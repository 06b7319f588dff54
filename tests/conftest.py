"""
Conftest

In-memory stand-ins for the change source and the entity reads, so the
aggregation engine can be driven with synthetic snapshots.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from matchchat.schemas.conversation import Match, MatchStatus, Message, MessageType, UserSummary

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def ts(seconds: int) -> datetime:
    return EPOCH + timedelta(seconds=seconds)


def make_match(match_id: str, a: str = "U", b: str = "X", created: int = 0, status: MatchStatus = MatchStatus.matched) -> Match:
    return Match(id=match_id, participant_a=a, participant_b=b, status=status, created_at=ts(created))


def make_message(match_id: str, created: int, sender: str = "X", recipient: str = "U", type: MessageType = MessageType.text, content: str = "hi") -> Message:
    return Message(
        id=f"{match_id}-msg-{created}",
        match_id=match_id,
        sender_id=sender,
        recipient_id=recipient,
        type=type,
        content=content,
        created_at=ts(created),
    )


async def settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeFetcher:

    def __init__(self) -> None:
        self.users: Dict[str, UserSummary] = {}
        self.last_messages: Dict[str, Message] = {}
        self.unread: Dict[str, int] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.calls: List[tuple] = []
        # reads started while a gate is set wait for that gate
        self.gate: Optional[asyncio.Event] = None

    def add_user(self, user_id: str, name: str, photo: Optional[str] = None) -> None:
        self.users[user_id] = UserSummary(id=user_id, display_name=name, photo_url=photo)

    async def _read(self, key: tuple):
        self.calls.append(key)
        gate = self.gate
        if gate is not None:
            await gate.wait()
        if key in self.failures:
            raise self.failures[key]

    async def get_user(self, user_id: str) -> Optional[UserSummary]:
        await self._read(("user", user_id))
        return self.users.get(user_id)

    async def get_last_message(self, match_id: str) -> Optional[Message]:
        await self._read(("last_message", match_id))
        return self.last_messages.get(match_id)

    async def get_unread_count(self, match_id: str, recipient_id: str) -> int:
        await self._read(("unread", match_id))
        return self.unread.get(match_id, 0)


class FakeSubscription:

    def __init__(self, initial_snapshot: List[Match]) -> None:
        self.initial_snapshot = initial_snapshot
        self.cancelled = False

    async def cancel(self) -> None:
        self.cancelled = True


class FakeChangeSource:

    def __init__(self, initial: Optional[List[Match]] = None) -> None:
        self.initial = list(initial or [])
        self.subscribe_error: Optional[Exception] = None
        self.queries = []
        self.subscription: Optional[FakeSubscription] = None
        self._on_change = None
        self._on_error = None

    async def subscribe(self, query, on_change, on_error) -> FakeSubscription:
        self.queries.append(query)
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self._on_change = on_change
        self._on_error = on_error
        self.subscription = FakeSubscription(list(self.initial))
        return self.subscription

    def emit(self, snapshot: List[Match]) -> None:
        self._on_change(list(snapshot))

    def fail(self, exc: Exception) -> None:
        self._on_error(exc)


@pytest.fixture
def fetcher() -> FakeFetcher:
    f = FakeFetcher()
    f.add_user("X", "Xena", "https://cdn.example.com/x.jpg")
    f.add_user("Y", "Yuri")
    f.add_user("Z", "Zoe")
    return f


@pytest.fixture
def source() -> FakeChangeSource:
    return FakeChangeSource()
