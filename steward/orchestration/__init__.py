"""Task orchestration: state machine, human control protocol and evaluation."""

from steward.orchestration.intake import IntakeService
from steward.orchestration.mutex import InProcessTaskMutex, RedisTaskMutex, TaskMutex
from steward.orchestration.override import OverrideController, OverrideResult
from steward.orchestration.reprocess import ReprocessAck, ReprocessCoordinator
from steward.orchestration.runner import EvaluationRunner
from steward.orchestration.sla import SLAMonitor
from steward.orchestration.state_machine import TaskStateMachine

__all__ = [
    "EvaluationRunner",
    "InProcessTaskMutex",
    "IntakeService",
    "OverrideController",
    "OverrideResult",
    "RedisTaskMutex",
    "ReprocessAck",
    "ReprocessCoordinator",
    "SLAMonitor",
    "TaskMutex",
    "TaskStateMachine",
]
