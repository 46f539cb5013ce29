"""Real-time load-testing dashboard client."""

from __future__ import annotations

from .contracts.error import DecodeError, DispatchError, TransportError
from .dashboard import Dashboard
from .domain import compute_domain
from .history import RollingHistory
from .models import Action, ActionStatus, ActionType, MetricDimension, MetricSample
from .registry import ActionRegistry

__version__ = "0.1.0"

__all__ = [
    "Action",
    "ActionRegistry",
    "ActionStatus",
    "ActionType",
    "Dashboard",
    "DecodeError",
    "DispatchError",
    "MetricDimension",
    "MetricSample",
    "RollingHistory",
    "TransportError",
    "compute_domain",
    "__version__",
]
