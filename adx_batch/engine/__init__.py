"""
Worker Engine Layer.

This package handles all communication with the external worker engine.
"""

from .base import Subscription, TaskEngine
from .client import HttpTaskEngine

__all__ = ["HttpTaskEngine", "Subscription", "TaskEngine"]
