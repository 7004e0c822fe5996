"""Planboard: action plan and strategic backlog orchestration."""

from .action_plan import ActionPlanStore
from .backlog import BacklogStore
from .config import Settings, load_settings
from .container import Planboard
from .pipeline import ClassificationPipeline

__all__ = [
    "ActionPlanStore",
    "BacklogStore",
    "ClassificationPipeline",
    "Planboard",
    "Settings",
    "load_settings",
]

__version__ = "0.1.0"
