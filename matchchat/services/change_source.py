import asyncio
import logging
from typing import Callable, List, Protocol

from matchchat.repositories.match_repository import MatchRepository
from matchchat.schemas.conversation import Match, MatchQuery
from matchchat.utils.realtime_bus import match_channel

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[List[Match]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription(Protocol):

    initial_snapshot: List[Match]

    async def cancel(self) -> None:
        ...


class ChangeSource(Protocol):
    """
    Live query over match records.

    subscribe() returns the records matching the query right now; afterwards
    on_change receives a full snapshot once per mutation batch until the
    subscription is cancelled. on_error fires at most once and ends the
    subscription.
    """

    async def subscribe(self, query: MatchQuery, on_change: SnapshotCallback, on_error: ErrorCallback) -> Subscription:
        ...


class BusSubscription:

    def __init__(self, initial_snapshot: List[Match], bus_subscription, task: "asyncio.Task[None]") -> None:
        self.initial_snapshot = initial_snapshot
        self._bus_subscription = bus_subscription
        self._task = task
        self._cancelled = False

    async def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        await self._bus_subscription.cancel()


class BusChangeSource:
    """Re-reads the match snapshot from Mongo whenever the realtime bus signals a change."""

    def __init__(self, bus, match_repo: MatchRepository) -> None:
        self._bus = bus
        self._match_repo = match_repo

    async def subscribe(self, query: MatchQuery, on_change: SnapshotCallback, on_error: ErrorCallback) -> BusSubscription:

        async def _on_message(_data: str) -> None:
            snapshot = await self._match_repo.list_for_user(query)
            on_change(snapshot)

        # Listen before the first read so a change between the two is not lost
        bus_subscription = await self._bus.subscribe(match_channel(query.participant_id), _on_message)
        try:
            initial = await self._match_repo.list_for_user(query)
        except Exception:
            await bus_subscription.cancel()
            raise

        task = asyncio.create_task(self._pump(query, bus_subscription, on_error))
        return BusSubscription(initial, bus_subscription, task)

    async def _pump(self, query: MatchQuery, bus_subscription, on_error: ErrorCallback) -> None:
        try:
            await bus_subscription.run()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Match subscription for user %s failed: %s", query.participant_id, exc)
            await bus_subscription.cancel()
            on_error(exc)
