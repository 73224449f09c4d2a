"""
Agreement Engine - Domain Models

Plain dataclasses shared by the resolver, pricing assembler and orchestrator.
Directory candidates and eligibility outcomes are transient and never
persisted; Organization and Member are read views over the persistent store.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# ENUMS
# =============================================================================

class MembershipType(str, Enum):
    FULL = "Full Membership"
    CASUAL = "Casual Membership"
    DAY = "Day Membership"

    @classmethod
    def normalise(cls, raw: Optional[str]) -> "MembershipType":
        """Map free-text membership labels onto a type; unknown text is Casual."""
        s = str(raw or "").strip().lower()
        if "full" in s:
            return cls.FULL
        if "casual" in s:
            return cls.CASUAL
        if "day" in s:
            return cls.DAY
        return cls.CASUAL

    @property
    def short_name(self) -> str:
        return self.value.split(" ")[0]


class DiscountBucket(str, Enum):
    """Eligibility labels derived from directory affiliation codes.

    Declaration order is the primary-bucket precedence.
    """
    CURRENT_STUDENT = "Current Student"
    CURRENT_STAFF = "Current Staff"
    ALUMNI_WITHIN_12M = "Alumni (graduated within the last 12 months)"
    ALUMNI_OVER_12M = "Alumni (graduated more than 12 months ago)"
    FORMER_STAFF_WITHIN_12M = "Former Staff (employed within the last 12 months)"
    FORMER_STAFF_OVER_12M = "Former Staff (employed more than 12 months ago)"

    @property
    def key(self) -> str:
        return self.name.lower()

    @property
    def is_alumni(self) -> bool:
        return self in (DiscountBucket.ALUMNI_WITHIN_12M, DiscountBucket.ALUMNI_OVER_12M)


BUCKET_PRECEDENCE: List[DiscountBucket] = list(DiscountBucket)


class OutcomeStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"
    ERROR = "error"
    SKIPPED = "skipped"


class SkipReason(str, Enum):
    MANUAL = "manual"
    NO_REQUEST = "no_request"


class ValidationSelect(str, Enum):
    """Values written to the member's validation select field."""
    VALID = "Valid"
    QUALIFIES_OTHER = "Qualifies for Other"
    INVALID = "Invalid"


# =============================================================================
# DIRECTORY RECORDS (transient)
# =============================================================================

@dataclass(frozen=True)
class PartialDate:
    """A date where any component may be missing (wildcard)."""
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None

    @classmethod
    def from_api(cls, raw: Any) -> Optional["PartialDate"]:
        """Parse the directory's fuzzy date shape {"y": 2024, "m": 1, "d": 15}."""
        if not isinstance(raw, dict):
            return None

        def part(k: str) -> Optional[int]:
            try:
                v = int(raw.get(k))
            except (TypeError, ValueError):
                return None
            return v or None

        pd = cls(year=part("y"), month=part("m"), day=part("d"))
        if pd.year is None and pd.month is None and pd.day is None:
            return None
        return pd

    def to_date(self) -> Optional[date]:
        """Full calendar date, or None when any component is missing."""
        if self.year is None or self.month is None or self.day is None:
            return None
        try:
            return date(self.year, self.month, self.day)
        except ValueError:
            return None

    def matches(self, other: Optional["PartialDate"]) -> bool:
        """True when every component set on self equals the one on other."""
        if other is None:
            return False
        if self.year is not None and other.year != self.year:
            return False
        if self.month is not None and other.month != self.month:
            return False
        if self.day is not None and other.day != self.day:
            return False
        return True


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class AffiliationCode:
    """A constituent code attached to a directory record."""
    description: str
    inactive: bool = False
    start: Optional[PartialDate] = None
    date_added: Optional[datetime] = None
    date_modified: Optional[datetime] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "AffiliationCode":
        return cls(
            description=str(raw.get("description") or "").strip(),
            inactive=bool(raw.get("inactive")),
            start=PartialDate.from_api(raw.get("start")),
            date_added=_parse_timestamp(raw.get("date_added")),
            date_modified=_parse_timestamp(raw.get("date_modified")),
        )


@dataclass
class DirectoryCandidate:
    """A possible person match returned by the directory search."""
    id: str
    name: str = ""
    email: str = ""
    lookup_id: str = ""
    codes: List[AffiliationCode] = field(default_factory=list)

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "DirectoryCandidate":
        email = raw.get("email")
        if isinstance(email, dict):
            email = email.get("address")
        return cls(
            id=str(raw.get("id") or ""),
            name=str(raw.get("name") or ""),
            email=str(email or ""),
            lookup_id=str(raw.get("lookup_id") or ""),
        )

    def summary(self, buckets: Optional[List[DiscountBucket]] = None) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "lookup_id": self.lookup_id,
        }
        if buckets is not None:
            out["buckets"] = [b.value for b in buckets]
        return out


# =============================================================================
# RESOLVER INPUT / OUTPUT
# =============================================================================

@dataclass
class EligibilityQuery:
    """Identifying attributes for one member's discount check."""
    lookup_id: str
    expected_bucket: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    dob: Optional[str] = None
    manual_override: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "search_id": self.lookup_id,
            "expected": self.expected_bucket,
            "email": self.email,
            "name": self.name,
            "dob": self.dob,
        }


@dataclass
class EligibilityOutcome:
    """Pure result of one resolve() call."""
    status: OutcomeStatus
    reason: str = ""
    expected_bucket: Optional[str] = None
    derived_buckets: List[DiscountBucket] = field(default_factory=list)
    primary_bucket: Optional[DiscountBucket] = None
    record_id: Optional[str] = None
    candidate: Optional[Dict[str, Any]] = None
    candidates: List[Dict[str, Any]] = field(default_factory=list)
    qualifies_other: bool = False
    alumni_commencement: Optional[date] = None
    alumni_expires_at: Optional[date] = None
    upstream_status: Optional[int] = None
    skip_reason: Optional[SkipReason] = None

    @property
    def valid(self) -> bool:
        return self.status == OutcomeStatus.VALID

    @property
    def unauthorized(self) -> bool:
        return self.status == OutcomeStatus.ERROR and self.upstream_status in (401, 403)

    @property
    def validation_select(self) -> ValidationSelect:
        if self.valid:
            return ValidationSelect.VALID
        if self.qualifies_other:
            return ValidationSelect.QUALIFIES_OTHER
        return ValidationSelect.INVALID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "status": self.status.value,
            "reason": self.reason,
            "expected_bucket": self.expected_bucket,
            "derived_buckets": [b.value for b in self.derived_buckets],
            "primary_bucket": self.primary_bucket.value if self.primary_bucket else None,
            "record_id": self.record_id,
            "candidate": self.candidate,
            "candidates": self.candidates,
            "qualifies_other": self.qualifies_other,
            "alumni_commencement": self.alumni_commencement.isoformat() if self.alumni_commencement else None,
            "alumni_expires_at": self.alumni_expires_at.isoformat() if self.alumni_expires_at else None,
            "skip_reason": self.skip_reason.value if self.skip_reason else None,
        }


# =============================================================================
# STORE VIEWS
# =============================================================================

@dataclass
class Attachment:
    url: str
    filename: str
    created_at: Optional[datetime] = None


@dataclass
class Member:
    """A nominated member, linked to exactly one organization by id."""
    id: str
    organization_id: str
    name: str = ""
    email: str = ""
    dob: str = ""
    lookup_id: str = ""
    membership_type: str = ""
    expected_category: str = ""
    manual_override: bool = False
    manual_category: str = ""
    representative: bool = False
    form_submitted: bool = False
    validation_select: Optional[str] = None
    validated_on: Optional[date] = None
    discount_expires_on: Optional[date] = None

    @property
    def has_manual_override(self) -> bool:
        """Flag and category both set; a half-filled override is ignored everywhere."""
        return bool(self.manual_override and (self.manual_category or "").strip())

    @property
    def effective_category(self) -> str:
        """Manual category wins over the declared one when both flag and category are set."""
        if self.has_manual_override:
            return self.manual_category.strip()
        return (self.expected_category or "").strip()

    @property
    def membership(self) -> MembershipType:
        return MembershipType.normalise(self.membership_type)

    def to_query(self) -> EligibilityQuery:
        return EligibilityQuery(
            lookup_id=self.lookup_id,
            expected_bucket=self.expected_category or "",
            email=self.email or None,
            name=self.name or None,
            dob=self.dob or None,
            manual_override=self.has_manual_override,
        )


@dataclass
class Organization:
    id: str
    name: str
    legal_name: str = ""
    abn: str = ""
    contact_email: str = ""
    insurance: bool = False
    form_submitted: bool = False
    confirmation_recorded: bool = False
    attachments: List[Attachment] = field(default_factory=list)
    attachment_created_at: Optional[date] = None


@dataclass
class PricingRow:
    """Reference rate card row for one membership type."""
    membership_type: MembershipType
    base_rate: Decimal
    rates: Dict[DiscountBucket, Decimal] = field(default_factory=dict)


PricingMatrix = Dict[MembershipType, PricingRow]
