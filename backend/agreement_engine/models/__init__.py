"""Agreement Engine - Data Models"""
from .domain import (
    # Enums
    MembershipType, DiscountBucket, OutcomeStatus, SkipReason, ValidationSelect,
    BUCKET_PRECEDENCE,
    # Directory records
    PartialDate, AffiliationCode, DirectoryCandidate,
    # Resolver input / output
    EligibilityQuery, EligibilityOutcome,
    # Store views
    Attachment, Member, Organization, PricingRow, PricingMatrix,
)
from .job import (
    JobState, MemberCheckStatus, ChecklistEntry, JobProgress, ValidationJob,
    InvalidJobTransition,
)

__all__ = [
    "MembershipType", "DiscountBucket", "OutcomeStatus", "SkipReason", "ValidationSelect",
    "BUCKET_PRECEDENCE",
    "PartialDate", "AffiliationCode", "DirectoryCandidate",
    "EligibilityQuery", "EligibilityOutcome",
    "Attachment", "Member", "Organization", "PricingRow", "PricingMatrix",
    "JobState", "MemberCheckStatus", "ChecklistEntry", "JobProgress", "ValidationJob",
    "InvalidJobTransition",
]
