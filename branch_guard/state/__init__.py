# AGPL-3.0 License

"""
In-process state for Branch Guard.

Nothing here is authoritative: losing it only delays resolution until the
next fallback evaluation of the pull request.
"""

from branch_guard.state.pending_store import (
    InMemoryPendingStore,
    PendingEvaluation,
    PendingEvaluationStore,
    pending_key,
)

__all__ = [
    "InMemoryPendingStore",
    "PendingEvaluation",
    "PendingEvaluationStore",
    "pending_key",
]
