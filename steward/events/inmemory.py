"""In-process event bus.

Events are queued on publish and delivered by a background dispatcher.
Each event is delivered to all matching listeners in parallel; a listener
that raises is retried with linear backoff until it succeeds or the
attempt limit is reached. Delivered events are kept in a bounded history
for replay.
"""

import asyncio
from collections import defaultdict, deque
from uuid import UUID

from steward.events.bus import EventBus, EventListener, matches_pattern
from steward.events.models import EventType, OrchestrationEvent
from steward.observability.logging import get_logger
from steward.observability.metrics import EVENT_DELIVERY_FAILURES, EVENTS_PUBLISHED

logger = get_logger(__name__)


class InMemoryEventBus(EventBus):
    """Asyncio-queue backed event bus for a single process.

    Events published before :meth:`start` are held in the queue and
    delivered once the dispatcher runs. Not suitable for multi-process
    deployments.
    """

    def __init__(
        self,
        history_size: int = 100,
        max_delivery_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
    ) -> None:
        """Initialize the bus.

        Args:
            history_size: Number of published events kept for replay
            max_delivery_attempts: Attempts per listener before giving up
            retry_backoff_seconds: Base delay between attempts
        """
        self._listeners: dict[str, list[EventListener]] = defaultdict(list)
        self._lock = asyncio.Lock()
        self._queue: asyncio.Queue[OrchestrationEvent] = asyncio.Queue()
        self._history: deque[OrchestrationEvent] = deque(maxlen=history_size)
        self._max_attempts = max_delivery_attempts
        self._backoff = retry_backoff_seconds
        self._dispatcher: asyncio.Task | None = None
        self._deliveries: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._dispatcher is not None and not self._dispatcher.done()

    async def publish(self, event: OrchestrationEvent) -> None:
        """Queue an event for delivery and record it in the history."""
        self._history.append(event)
        EVENTS_PUBLISHED.labels(event_type=event.type.value).inc()
        logger.debug(
            "event_published",
            event_id=str(event.id),
            event_type=event.type.value,
            task_id=str(event.task_id) if event.task_id else None,
            correlation_id=event.correlation_id,
        )
        await self._queue.put(event)

    async def subscribe(self, pattern: str, listener: EventListener) -> None:
        """Register a listener for events matching a pattern."""
        async with self._lock:
            self._listeners[pattern].append(listener)
            logger.debug(
                "event_listener_registered",
                pattern=pattern,
                total_listeners=len(self._listeners[pattern]),
            )

    async def unsubscribe(self, pattern: str, listener: EventListener) -> None:
        """Remove a previously registered listener."""
        async with self._lock:
            try:
                self._listeners[pattern].remove(listener)
            except ValueError:
                logger.warning("event_listener_not_found", pattern=pattern)

    async def start(self) -> None:
        """Start the background dispatcher."""
        if self.running:
            return
        self._dispatcher = asyncio.create_task(self._dispatch_loop())
        logger.info("event_bus_started", queued=self._queue.qsize())

    async def stop(self) -> None:
        """Stop the dispatcher and wait for in-flight deliveries."""
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None
        if self._deliveries:
            await asyncio.gather(*self._deliveries, return_exceptions=True)
        logger.info("event_bus_stopped", pending=self._queue.qsize())

    async def join(self) -> None:
        """Wait until every queued event has been fully delivered."""
        await self._queue.join()

    def history(
        self,
        *,
        event_type: EventType | None = None,
        task_id: UUID | None = None,
    ) -> list[OrchestrationEvent]:
        """Recently published events, oldest first."""
        return [
            event
            for event in self._history
            if (event_type is None or event.type == event_type)
            and (task_id is None or event.task_id == task_id)
        ]

    async def replay(self, event_id: UUID) -> OrchestrationEvent:
        """Redeliver an event from history with its original identity.

        Raises:
            KeyError: If the event is no longer in the history
        """
        for event in self._history:
            if event.id == event_id:
                logger.info("event_replayed", event_id=str(event_id), event_type=event.type.value)
                await self._queue.put(event)
                return event
        raise KeyError(f"Event {event_id} not in history")

    async def _dispatch_loop(self) -> None:
        while True:
            event = await self._queue.get()
            delivery = asyncio.create_task(self._deliver(event))
            self._deliveries.add(delivery)
            delivery.add_done_callback(self._deliveries.discard)

    async def _deliver(self, event: OrchestrationEvent) -> None:
        try:
            listeners = await self._find_matching_listeners(event)
            if not listeners:
                logger.debug("no_listeners_for_event", event_type=event.type.value)
                return
            await asyncio.gather(
                *(self._deliver_to_listener(listener, event) for listener in listeners)
            )
        finally:
            self._queue.task_done()

    async def _find_matching_listeners(self, event: OrchestrationEvent) -> list[EventListener]:
        matching = []
        async with self._lock:
            for pattern, listeners in self._listeners.items():
                if matches_pattern(event.type.value, pattern):
                    matching.extend(listeners)
        return matching

    async def _deliver_to_listener(
        self, listener: EventListener, event: OrchestrationEvent
    ) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                await listener(event)
                return
            except Exception as e:
                EVENT_DELIVERY_FAILURES.labels(
                    event_type=event.type.value,
                    error_type=type(e).__name__,
                ).inc()
                if attempt >= self._max_attempts:
                    logger.error(
                        "event_delivery_exhausted",
                        event_id=str(event.id),
                        event_type=event.type.value,
                        attempts=attempt,
                        error=str(e),
                        exc_info=True,
                    )
                    return
                logger.warning(
                    "event_delivery_retry",
                    event_id=str(event.id),
                    event_type=event.type.value,
                    attempt=attempt,
                    error=str(e),
                )
                await asyncio.sleep(self._backoff * attempt)
