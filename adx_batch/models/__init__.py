"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
exchanged with the worker engine, plus the client configuration model.
"""

from .catalog import ManifestDescriptor
from .config import ClientConfig, TaskOptions
from .task import (
    TERMINAL_STATUSES,
    EventEnvelope,
    FailItem,
    Task,
    TaskRequest,
    TaskStatus,
    TaskStatusView,
)

__all__ = [
    "TERMINAL_STATUSES",
    "ClientConfig",
    "EventEnvelope",
    "FailItem",
    "ManifestDescriptor",
    "Task",
    "TaskOptions",
    "TaskRequest",
    "TaskStatus",
    "TaskStatusView",
]
