"""Application layer: store, coordinators, projections and recovery policy."""
from triview.application.error_recovery import ErrorRecoveryPolicy, RecoveryDecision
from triview.application.projection_engine import ProjectionEngine
from triview.application.query_coordinator import CancellationToken, QueryCoordinator
from triview.application.selection_coordinator import SelectionCoordinator, SelectionMode
from triview.application.store import MergeResult, NormalizedStore

__all__ = [
    "CancellationToken",
    "ErrorRecoveryPolicy",
    "MergeResult",
    "NormalizedStore",
    "ProjectionEngine",
    "QueryCoordinator",
    "RecoveryDecision",
    "SelectionCoordinator",
    "SelectionMode",
]
