"""Simulated load-testing backend for local runs and tests."""

from .api import create_app
from .engine import ActionEngine, ActionRecord, EngineBusyError

__all__ = ["create_app", "ActionEngine", "ActionRecord", "EngineBusyError"]
