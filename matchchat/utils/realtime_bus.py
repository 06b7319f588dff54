import asyncio
import logging
import os
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


def match_channel(user_id: str) -> str:
    return f"matches:{user_id}"


class NoopBus:

    enabled = False

    async def publish(self, channel: str, message: str) -> None:
        return

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        # Never delivers anything; run() parks until cancelled
        class _Sub:
            async def run(self):
                await asyncio.Future()
            async def cancel(self):
                return
        return _Sub()


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                # Connection errors propagate to the caller, which owns the subscription
                while self_inner._running:
                    msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    if msg and msg.get("type") == "message":
                        data = msg.get("data")
                        if isinstance(data, bytes):
                            data = data.decode("utf-8")
                        await on_message(data)

            async def cancel(self_inner):
                self_inner._running = False
                try:
                    await pubsub.unsubscribe(channel)
                    await pubsub.aclose()
                except redis.RedisError as exc:
                    logger.debug("Ignoring error while closing pubsub for %s: %s", channel, exc)

        return _Sub()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    url = os.getenv("REDIS_URL")
    if not url:
        logger.info("REDIS_URL not set; live conversation updates are disabled")
        _bus = NoopBus()
        return _bus
    _bus = RedisBus(url)
    return _bus


async def notify_match_changed(bus, *user_ids: Optional[str]) -> None:
    for user_id in user_ids:
        if user_id:
            await bus.publish(match_channel(user_id), "changed")
