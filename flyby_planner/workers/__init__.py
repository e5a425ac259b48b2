from .messages import (
    Complete,
    Continue,
    Debug,
    InboundMessage,
    Initialize,
    Initialized,
    OutboundMessage,
    Pass,
    Progress,
    Received,
    Run,
    Stop,
    Stopped,
)
from .tasks import SequenceGenerationTask, Task, TaskContext, TrajectorySearchTask
from .worker import BACKENDS, ComputeWorker, serve

__all__ = [
    "Complete",
    "Continue",
    "Debug",
    "InboundMessage",
    "Initialize",
    "Initialized",
    "OutboundMessage",
    "Pass",
    "Progress",
    "Received",
    "Run",
    "Stop",
    "Stopped",
    "SequenceGenerationTask",
    "Task",
    "TaskContext",
    "TrajectorySearchTask",
    "BACKENDS",
    "ComputeWorker",
    "serve",
]
