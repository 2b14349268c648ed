"""
Change Notification Channels

Writers publish the key they changed; every subscriber in every execution
context re-reads the store. The channel carries no data, only the fact that
something changed and who changed it.

- LocalChangeChannel delivers to subscribers in the same process.
- RedisChangeChannel additionally fans out through Redis pub/sub so other
  processes (other open views of the same marketplace) converge as well.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import structlog

logger = structlog.get_logger(__name__)

MAX_RECONNECT_DELAY_SECONDS = 30.0


@dataclass(frozen=True)
class StorageChange:
    """Notification that a stored key changed."""

    key: str
    origin: str  # context id of the writer, or "resync"

    def is_from(self, context_id: str) -> bool:
        return self.origin == context_id


ChangeCallback = Callable[[StorageChange], Awaitable[Any] | Any]


class LocalChangeChannel:
    """In-context publish/subscribe."""

    def __init__(self, context_id: str | None = None) -> None:
        self.context_id = context_id or uuid4().hex
        self._subscribers: list[ChangeCallback] = []

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """
        Register a callback for every change.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def publish(self, key: str) -> None:
        """Announce a change made by this context."""
        await self.dispatch(StorageChange(key=key, origin=self.context_id))

    async def dispatch(self, change: StorageChange) -> None:
        """Deliver a change to every local subscriber."""
        for callback in list(self._subscribers):
            try:
                result = callback(change)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # One broken view must not stop the others from converging
                logger.error(
                    "change_callback_failed",
                    key=change.key,
                    origin=change.origin,
                    error=str(e),
                )

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        self._subscribers.clear()


class RedisChangeChannel(LocalChangeChannel):
    """
    Cross-context channel over Redis pub/sub.

    Local subscribers are notified directly on publish; the message echoed
    back by Redis is recognised by its origin and not delivered twice. A
    dropped pub/sub connection is logged and re-established with backoff.
    """

    def __init__(
        self,
        redis_client: Any,
        channel: str = "artmint:storage",
        context_id: str | None = None,
        reconnect_delay_seconds: float = 1.0,
    ) -> None:
        super().__init__(context_id)
        self._redis = redis_client
        self._channel = channel
        self._pubsub: Any = None
        self._listener: asyncio.Task[None] | None = None
        self._reconnect_delay = reconnect_delay_seconds
        self.reconnects = 0

    async def publish(self, key: str) -> None:
        await super().publish(key)
        message = json.dumps({"key": key, "origin": self.context_id})
        await self._redis.publish(self._channel, message)

    async def start(self) -> None:
        """Subscribe to the Redis channel and start relaying foreign changes."""
        if self._listener is not None:
            return
        await self._subscribe()
        self._listener = asyncio.create_task(
            self._listen(), name=f"artmint_channel_{self._channel}"
        )
        logger.info("change_channel_started", channel=self._channel, context_id=self.context_id)

    async def _subscribe(self) -> None:
        await self._release_pubsub()
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        self._pubsub = pubsub

    async def _release_pubsub(self) -> None:
        if self._pubsub is None:
            return
        pubsub, self._pubsub = self._pubsub, None
        try:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()
        except Exception as e:
            logger.debug("change_channel_release_failed", channel=self._channel, error=str(e))

    async def _listen(self) -> None:
        delay = self._reconnect_delay
        while True:
            try:
                await self._relay()
                logger.warning("change_channel_stream_ended", channel=self._channel)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "change_channel_listener_failed",
                    channel=self._channel,
                    error=str(e),
                    reconnects=self.reconnects,
                )

            await asyncio.sleep(delay)
            self.reconnects += 1
            try:
                await self._subscribe()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                delay = min(delay * 2, MAX_RECONNECT_DELAY_SECONDS)
                logger.error(
                    "change_channel_resubscribe_failed",
                    channel=self._channel,
                    error=str(e),
                    retry_in=delay,
                )
                continue
            delay = self._reconnect_delay
            logger.info("change_channel_resubscribed", channel=self._channel)

    async def _relay(self) -> None:
        if self._pubsub is None:
            raise ConnectionError(f"Not subscribed to {self._channel}")
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            change = self._parse(message.get("data"))
            if change is None or change.is_from(self.context_id):
                continue
            await self.dispatch(change)

    def _parse(self, data: Any) -> StorageChange | None:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            payload = json.loads(data)
            return StorageChange(key=str(payload["key"]), origin=str(payload["origin"]))
        except (TypeError, ValueError, KeyError) as e:
            logger.warning("change_message_malformed", channel=self._channel, error=str(e))
            return None

    async def close(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self._release_pubsub()
        await super().close()
