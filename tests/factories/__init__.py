"""Test factories for creating domain objects."""

from tests.factories.scheduling import CommitmentFactory, UserFactory
from tests.factories.tasks import EventFactory, TaskFactory, TemplateFactory

__all__ = [
    "CommitmentFactory",
    "EventFactory",
    "TaskFactory",
    "TemplateFactory",
    "UserFactory",
]
