"""Task domain: tasks, templates and their persistence interface."""

from steward.tasks.models import Task, TaskOverride, TaskStatus, TaskTemplate
from steward.tasks.store import TaskStore

__all__ = ["Task", "TaskOverride", "TaskStatus", "TaskStore", "TaskTemplate"]
