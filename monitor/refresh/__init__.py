"""
Refresh module - staged refresh of dashboard data.
"""

from monitor.refresh.orchestrator import RefreshOrchestrator, RefreshState
from monitor.refresh.stages import FetchOutcome, RefreshStage, settle_all

__all__ = [
    "FetchOutcome",
    "RefreshOrchestrator",
    "RefreshStage",
    "RefreshState",
    "settle_all",
]
