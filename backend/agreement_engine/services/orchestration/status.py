"""
Public Status Vocabulary

Maps resolver outcomes onto the per-member statuses shown to pollers, each
with a fixed reason code and message. Upstream bodies never reach this layer.
"""
from typing import Any, Dict, Tuple

from ...exceptions import EligibilityBlocked, GenerationFailure
from ...models.domain import EligibilityOutcome, OutcomeStatus, SkipReason
from ...models.job import JobState, MemberCheckStatus, ValidationJob

StatusTriple = Tuple[MemberCheckStatus, str, str]

REASON_MESSAGES: Dict[str, str] = {
    "bucket_confirmed": "Discount eligibility confirmed.",
    "qualifies_other": "Member qualifies for a different discount category.",
    "bucket_not_found": "Requested discount category could not be confirmed.",
    "multiple_matches": "More than one directory record matches this member.",
    "no_match": "No directory record matches this member.",
    "directory_unauthorized": "The directory rejected our credentials.",
    "directory_error": "The directory could not be queried.",
    "internal_error": "An unexpected error occurred while checking this member.",
    "manual_override": "Discount set by manual override; no directory check needed.",
    "no_discount_requested": "No discount was requested for this member.",
}


def _triple(status: MemberCheckStatus, code: str) -> StatusTriple:
    return status, code, REASON_MESSAGES[code]


def describe_skip(reason: SkipReason) -> StatusTriple:
    if reason == SkipReason.MANUAL:
        return _triple(MemberCheckStatus.MANUAL, "manual_override")
    return _triple(MemberCheckStatus.NO_REQUEST, "no_discount_requested")


def describe_outcome(outcome: EligibilityOutcome) -> StatusTriple:
    if outcome.status == OutcomeStatus.SKIPPED:
        return describe_skip(outcome.skip_reason or SkipReason.NO_REQUEST)
    if outcome.status == OutcomeStatus.VALID:
        return _triple(MemberCheckStatus.VALIDATED, "bucket_confirmed")
    if outcome.status == OutcomeStatus.INVALID:
        code = "qualifies_other" if outcome.qualifies_other else "bucket_not_found"
        return _triple(MemberCheckStatus.MISMATCH, code)
    if outcome.status == OutcomeStatus.AMBIGUOUS:
        return _triple(MemberCheckStatus.AMBIGUOUS, "multiple_matches")
    if outcome.status == OutcomeStatus.NOT_FOUND:
        return _triple(MemberCheckStatus.NOT_FOUND, "no_match")
    if outcome.unauthorized:
        return _triple(MemberCheckStatus.UNAUTHORIZED, "directory_unauthorized")
    return _triple(MemberCheckStatus.ERROR, "directory_error")


def describe_exception(exc: Exception) -> StatusTriple:
    return _triple(MemberCheckStatus.ERROR, "internal_error")


def public_job_message(exc: Exception) -> str:
    """Message stored on a blocked/error job; raw diagnostics only go to the log."""
    if isinstance(exc, EligibilityBlocked):
        return str(exc)
    if isinstance(exc, GenerationFailure):
        return "Agreement document could not be generated."
    return "Validation job failed."


def public_job_view(job: ValidationJob) -> Dict[str, Any]:
    view: Dict[str, Any] = {
        "state": job.state.value,
        "startedAt": job.started_at.isoformat() if job.started_at else None,
        "progress": job.progress.to_dict(),
        "members": [e.to_public() for e in job.members],
    }
    if job.state == JobState.DONE:
        view["result"] = job.result
    if job.state in (JobState.BLOCKED, JobState.ERROR) and job.message:
        view["message"] = job.message
    return view
