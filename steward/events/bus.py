"""EventBus abstract interface."""

from abc import ABC, abstractmethod
from typing import Protocol

from steward.events.models import OrchestrationEvent


class EventListener(Protocol):
    """Async callable that receives an OrchestrationEvent.

    Delivery is at-least-once: a listener may see the same event more
    than once and must be idempotent or deduplicate on ``event.id``.
    Raising signals a failed delivery that the bus may retry.
    """

    async def __call__(self, event: OrchestrationEvent) -> None: ...


class EventBus(ABC):
    """Publish/subscribe boundary for orchestration events.

    Subscription patterns:
    - "*" matches all events
    - "task:*" matches every event in the task namespace
    - "task:override_set" matches exactly
    """

    @abstractmethod
    async def publish(self, event: OrchestrationEvent) -> None:
        """Publish an event; delivery happens asynchronously."""
        pass

    @abstractmethod
    async def subscribe(self, pattern: str, listener: EventListener) -> None:
        """Register a listener for events matching a pattern."""
        pass

    @abstractmethod
    async def unsubscribe(self, pattern: str, listener: EventListener) -> None:
        """Remove a previously registered listener."""
        pass

    async def start(self) -> None:
        """Start delivering events."""

    async def stop(self) -> None:
        """Stop delivering events."""


def matches_pattern(event_type: str, pattern: str) -> bool:
    """Check if an event type matches a subscription pattern.

    Args:
        event_type: Event name, e.g. "task:override_set"
        pattern: "*", "namespace:*" or an exact event name

    Returns:
        True if the event type matches
    """
    if pattern == "*":
        return True
    if event_type == pattern:
        return True
    if pattern.endswith(":*"):
        namespace = pattern[:-2]
        return event_type.startswith(f"{namespace}:")
    return False
