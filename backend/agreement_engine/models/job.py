"""
Agreement Engine - Validation Job

Per-organization job state. The orchestrator is the only writer; pollers
read snapshots. Transitions are forward-only:

    idle -> running -> {done, error, blocked}

Terminal jobs are never resurrected; a new trigger creates a fresh job.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# STATES
# =============================================================================

class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"
    BLOCKED = "blocked"

    @property
    def terminal(self) -> bool:
        return self in (JobState.DONE, JobState.ERROR, JobState.BLOCKED)


ALLOWED_TRANSITIONS = {
    JobState.IDLE: {JobState.RUNNING},
    JobState.RUNNING: {JobState.DONE, JobState.ERROR, JobState.BLOCKED},
    JobState.DONE: set(),
    JobState.ERROR: set(),
    JobState.BLOCKED: set(),
}


class MemberCheckStatus(str, Enum):
    """Public per-member vocabulary shown to pollers."""
    QUEUED = "queued"
    CHECKING = "checking"
    VALIDATED = "validated"
    AMBIGUOUS = "ambiguous"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    MISMATCH = "mismatch"
    ERROR = "error"
    NO_REQUEST = "no_request"
    MANUAL = "manual"

    @property
    def terminal(self) -> bool:
        return self not in (MemberCheckStatus.QUEUED, MemberCheckStatus.CHECKING)

    @property
    def rank(self) -> int:
        if self == MemberCheckStatus.QUEUED:
            return 0
        if self == MemberCheckStatus.CHECKING:
            return 1
        return 2


class InvalidJobTransition(Exception):
    """Raised when a job is asked to move backwards or out of a terminal state."""


# =============================================================================
# JOB
# =============================================================================

@dataclass
class ChecklistEntry:
    member_id: str
    name: str = ""
    membership_type: str = ""
    expected_bucket: str = ""
    status: MemberCheckStatus = MemberCheckStatus.QUEUED
    reason_code: Optional[str] = None
    reason_message: Optional[str] = None

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.member_id,
            "name": self.name,
            "type": self.membership_type,
            "expected_bucket": self.expected_bucket or None,
            "status": self.status.value,
            "reason_code": self.reason_code,
            "reason_message": self.reason_message,
        }


@dataclass
class JobProgress:
    validated: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"validated": self.validated, "total": self.total}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ValidationJob:
    """Validate-and-generate job for one organization."""
    organization_id: str
    state: JobState = JobState.IDLE
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    progress: JobProgress = field(default_factory=JobProgress)
    members: List[ChecklistEntry] = field(default_factory=list)
    result: Optional[Dict[str, Any]] = None
    message: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.state.terminal

    def _transition(self, target: JobState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidJobTransition(f"{self.state.value} -> {target.value}")
        self.state = target
        if target.terminal:
            self.finished_at = _utcnow()

    def start(self) -> None:
        self._transition(JobState.RUNNING)
        self.started_at = _utcnow()

    def seed(self, entries: List[ChecklistEntry]) -> None:
        """Install the checklist (all queued) and the progress total."""
        self.members = list(entries)
        self.progress = JobProgress(validated=0, total=len(entries))

    def entry(self, member_id: str) -> Optional[ChecklistEntry]:
        for e in self.members:
            if e.member_id == member_id:
                return e
        return None

    def mark(
        self,
        member_id: str,
        status: MemberCheckStatus,
        reason_code: Optional[str] = None,
        reason_message: Optional[str] = None,
    ) -> None:
        """Move one checklist entry forward; terminal outcomes advance progress."""
        e = self.entry(member_id)
        if e is None:
            raise KeyError(member_id)
        if status.rank < e.status.rank or (e.status.terminal and status != e.status):
            raise InvalidJobTransition(f"member {member_id}: {e.status.value} -> {status.value}")
        was_terminal = e.status.terminal
        e.status = status
        e.reason_code = reason_code
        e.reason_message = reason_message
        if status.terminal and not was_terminal:
            self.progress.validated += 1

    def finish(self, result: Dict[str, Any]) -> None:
        self.result = result
        self._transition(JobState.DONE)

    def fail(self, message: str) -> None:
        self.message = message
        self._transition(JobState.ERROR)

    def block(self, message: str) -> None:
        self.message = message
        self._transition(JobState.BLOCKED)

    def snapshot(self) -> Dict[str, Any]:
        """Small view returned by trigger."""
        return {
            "state": self.state.value,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "progress": self.progress.to_dict(),
        }
