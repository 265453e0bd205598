"""Orchestration event contract and bus."""

from steward.events.bus import EventBus, EventListener, matches_pattern
from steward.events.inmemory import InMemoryEventBus
from steward.events.models import TRIGGER_EVENTS, EventType, OrchestrationEvent

__all__ = [
    "TRIGGER_EVENTS",
    "EventBus",
    "EventListener",
    "EventType",
    "InMemoryEventBus",
    "OrchestrationEvent",
    "matches_pattern",
]
