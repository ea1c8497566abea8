"""In-process event bus.

Topics are plain strings; handlers are async callables registered with
subscribe() at startup. publish() awaits every handler in registration order
and isolates failures: a raising handler is logged and its siblings still
run. The publisher never sees a handler exception.

publish_nowait() schedules the same dispatch as a background task so the
request path does not wait on cache or durable writes.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, topic: str, handler: Handler) -> None:
        self._handlers[topic].append(handler)
        logger.debug("Subscribed %s to %s", getattr(handler, "__qualname__", handler), topic)

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        handlers = self._handlers.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)

    def handler_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, []))

    async def publish(self, topic: str, event: Any) -> None:
        for handler in list(self._handlers.get(topic, [])):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Event handler %s failed for topic %s",
                    getattr(handler, "__qualname__", handler),
                    topic,
                )

    def publish_nowait(self, topic: str, event: Any) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(self.publish(topic, event))
        # Hold a reference until done so the task is not garbage collected
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for all background publications (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
