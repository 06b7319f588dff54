import asyncio
import logging
from typing import Callable, List, Optional, Set

from matchchat.schemas.conversation import ConversationState, Match, MatchQuery
from matchchat.services.change_source import ChangeSource, Subscription
from matchchat.services.conversation_builder import build_conversations
from matchchat.services.entity_fetchers import EntityFetcher

logger = logging.getLogger(__name__)

StateListener = Callable[[ConversationState], None]


class ConversationAggregator:
    """
    Keeps a live, ordered conversation list for one observing user.

    Every snapshot from the change source gets a sequence number and a build
    task. A build publishes only if its sequence is still the latest when it
    finishes, so a slow build for an older snapshot can never overwrite a
    newer list. After stop() nothing is published.
    """

    def __init__(self, source: ChangeSource, fetcher: EntityFetcher) -> None:
        self._source = source
        self._fetcher = fetcher
        self._listeners: List[StateListener] = []
        self._state = ConversationState()
        self._user_id: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._builds: Set["asyncio.Task[None]"] = set()
        self._seq = 0
        self._active = False

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def start(self, user_id: str) -> None:
        if self._active:
            await self.stop()
        if user_id == self._user_id:
            # same user retrying: keep showing the last good list
            subscribing = self._state.model_copy(update={"loading": True})
        else:
            subscribing = ConversationState(loading=True)
        self._user_id = user_id
        self._active = True
        self._set_state(subscribing)

        try:
            subscription = await self._source.subscribe(
                MatchQuery(participant_id=user_id), self._on_snapshot, self._on_error
            )
        except Exception as exc:
            self._on_error(exc)
            return
        if not self._active:
            # stopped or failed while subscribing
            await subscription.cancel()
            return
        self._subscription = subscription
        self._on_snapshot(subscription.initial_snapshot)

    async def stop(self) -> None:
        self._active = False
        self._seq += 1
        subscription, self._subscription = self._subscription, None
        builds = list(self._builds)
        for task in builds:
            task.cancel()
        if subscription is not None:
            await subscription.cancel()
        if builds:
            await asyncio.gather(*builds, return_exceptions=True)

    def _on_snapshot(self, snapshot: List[Match]) -> None:
        if not self._active:
            return
        self._seq += 1
        task = asyncio.create_task(self._build(self._seq, list(snapshot)))
        self._builds.add(task)
        task.add_done_callback(self._builds.discard)

    def _on_error(self, exc: Exception) -> None:
        if not self._active:
            return
        logger.error("Conversation subscription for user %s failed: %s", self._user_id, exc)
        self._active = False
        # in-flight builds belong to the failed subscription
        self._seq += 1
        self._subscription = None
        self._set_state(self._state.model_copy(update={"loading": False, "error": exc}))

    async def _build(self, seq: int, snapshot: List[Match]) -> None:
        user_id = self._user_id
        try:
            conversations = await build_conversations(snapshot, user_id, self._fetcher)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Conversation build %d for user %s failed", seq, user_id)
            if self._active and seq == self._seq and self._state.loading:
                # nothing published yet; release the consumer's spinner
                self._set_state(self._state.model_copy(update={"loading": False}))
            return
        if not self._active or seq != self._seq:
            logger.debug("Discarding stale conversation build %d (latest %d)", seq, self._seq)
            return
        self._set_state(ConversationState(conversations=conversations, loading=False, error=None))

    def _set_state(self, state: ConversationState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
