# AGPL-3.0 License

"""
Store of external_status evaluations that are waiting on other checks.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from branch_guard.config_loader import get_settings
from branch_guard.log import get_logger
from branch_guard.rules.rule_models import FailureMessage


def pending_key(owner: str, repo: str, head_sha: str, rule_name: str) -> str:
    return f"{owner}/{repo}:{head_sha}:{rule_name}"


@dataclass
class PendingEvaluation:
    """
    An external_status rule whose required checks had not all finished.

    Only the key and the timestamps are trusted; the remote check runs are
    always re-read before a terminal result is written.
    """

    owner: str
    repo: str
    head_sha: str
    rule_name: str
    required_checks: list[str]
    check_run_id: int
    created_at: datetime
    timeout_minutes: float
    failure_message: Optional[FailureMessage] = None
    pr_number: Optional[int] = None
    notify: bool = True

    @property
    def key(self) -> str:
        return pending_key(self.owner, self.repo, self.head_sha, self.rule_name)

    @property
    def deadline(self) -> datetime:
        return self.created_at + timedelta(minutes=self.timeout_minutes)

    def is_expired(self, now: datetime) -> bool:
        return now > self.deadline


class PendingEvaluationStore(ABC):
    """
    Abstract store of pending evaluations.

    Implementations are shared by concurrent evaluations and use
    last-writer-wins semantics.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[PendingEvaluation]:
        pass

    @abstractmethod
    async def set(self, key: str, evaluation: PendingEvaluation) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def scan(self, prefix: str) -> list[PendingEvaluation]:
        """Return every evaluation whose key starts with ``prefix``."""
        pass

    async def list_for_commit(self, owner: str, repo: str, head_sha: str) -> list[PendingEvaluation]:
        return await self.scan(f"{owner}/{repo}:{head_sha}:")


class InMemoryPendingStore(PendingEvaluationStore):
    """
    Process-local dict-backed store. Lost on restart.

    Each write drops records whose deadline passed more than ``retention``
    before the new record was created, so commits that never receive another
    event do not accumulate.
    """

    def __init__(self, retention: Optional[timedelta] = None):
        if retention is None:
            hours = get_settings().get("branch_guard", {}).get("pending_retention_hours", 24)
            retention = timedelta(hours=hours)
        self.retention = retention
        self._evaluations: dict[str, PendingEvaluation] = {}
        self.logger = get_logger()

    async def get(self, key: str) -> Optional[PendingEvaluation]:
        return self._evaluations.get(key)

    async def set(self, key: str, evaluation: PendingEvaluation) -> None:
        self._prune(evaluation.created_at)
        self._evaluations[key] = evaluation
        self.logger.debug(f"Stored pending evaluation {key}")

    async def delete(self, key: str) -> None:
        if self._evaluations.pop(key, None) is not None:
            self.logger.debug(f"Deleted pending evaluation {key}")

    async def scan(self, prefix: str) -> list[PendingEvaluation]:
        return [evaluation for key, evaluation in list(self._evaluations.items()) if key.startswith(prefix)]

    def _prune(self, now: datetime) -> None:
        stale = [key for key, evaluation in self._evaluations.items() if now > evaluation.deadline + self.retention]
        for key in stale:
            del self._evaluations[key]
        if stale:
            self.logger.debug(f"Pruned {len(stale)} stale pending evaluations")

    def __len__(self) -> int:
        return len(self._evaluations)
