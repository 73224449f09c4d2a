"""
Agreement Engine - Pricing Assembler

Deterministic monthly fee for an organization's members against the pricing
matrix. Day members never contribute. Full/Casual members pay the base rate
of their type unless their effective discount category has been confirmed,
in which case the matching discount column applies.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ...config import DEFAULT_PRICING_COLUMNS, PricingSettings
from ...models.domain import (
    DiscountBucket,
    Member,
    MembershipType,
    PricingMatrix,
    PricingRow,
    ValidationSelect,
)
from ..eligibility.buckets import classify_category

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENTS = Decimal("0.01")

# Missing current-affiliation columns are priced as recent alumni
COLUMN_FALLBACKS = {
    DiscountBucket.CURRENT_STUDENT: DiscountBucket.ALUMNI_WITHIN_12M,
    DiscountBucket.CURRENT_STAFF: DiscountBucket.ALUMNI_WITHIN_12M,
}

WITHIN_12M_BUCKETS = (DiscountBucket.ALUMNI_WITHIN_12M, DiscountBucket.FORMER_STAFF_WITHIN_12M)
OVER_12M_BUCKETS = (DiscountBucket.ALUMNI_OVER_12M, DiscountBucket.FORMER_STAFF_OVER_12M)


class FeeKind(str, Enum):
    CHARGED = "charged"
    WAIVED = "waived"
    NONE = "none"


@dataclass
class MemberRate:
    member_id: str
    name: str
    membership_type: MembershipType
    rate: Decimal
    bucket: Optional[DiscountBucket] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "member_id": self.member_id,
            "name": self.name,
            "membership_type": self.membership_type.value,
            "rate": str(self.rate),
            "discount": self.bucket.value if self.bucket else None,
        }


@dataclass
class FeeResult:
    total: Decimal
    kind: FeeKind
    label: str
    breakdown: List[MemberRate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": str(self.total),
            "kind": self.kind.value,
            "label": self.label,
            "breakdown": [b.to_dict() for b in self.breakdown],
        }


# =============================================================================
# HELPERS
# =============================================================================

def to_decimal(value: Any) -> Decimal:
    """Lenient money parsing: strips currency symbols and separators, bad input is 0."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    cleaned = re.sub(r"[^0-9.\-]", "", str(value or ""))
    try:
        return Decimal(cleaned) if cleaned else ZERO
    except InvalidOperation:
        return ZERO


def format_money(amount: Decimal) -> str:
    return f"{amount.quantize(CENTS):,.2f}"


def discount_applies(member: Member) -> bool:
    """
    Only a `Valid` select confirms a discount. A manual override changes which
    category is priced (effective_category), not whether it counts.
    """
    return (member.validation_select or "").strip().lower() == ValidationSelect.VALID.value.lower()


def discount_bucket_for(member: Member) -> Optional[DiscountBucket]:
    if not discount_applies(member):
        return None
    return classify_category(member.effective_category)


def rate_for_member(member: Member, matrix: PricingMatrix) -> MemberRate:
    mtype = member.membership
    if mtype == MembershipType.DAY:
        return MemberRate(member.id, member.name, mtype, ZERO)

    row = matrix.get(mtype) or PricingRow(membership_type=mtype, base_rate=ZERO)
    bucket = discount_bucket_for(member)
    if bucket is not None:
        column = bucket
        if column not in row.rates:
            column = COLUMN_FALLBACKS.get(bucket, column)
        if column in row.rates:
            return MemberRate(member.id, member.name, mtype, row.rates[column], bucket)
    return MemberRate(member.id, member.name, mtype, row.base_rate)


# =============================================================================
# FEE
# =============================================================================

def compute_fee(
    members: Iterable[Member],
    matrix: PricingMatrix,
    settings: Optional[PricingSettings] = None,
) -> FeeResult:
    """Sum member rates and label the result."""
    settings = settings or PricingSettings()
    members = list(members)
    breakdown = [rate_for_member(m, matrix) for m in members]
    total = sum((b.rate for b in breakdown), ZERO)

    if total > 0:
        kind = FeeKind.CHARGED
        label = f"{settings.currency} {format_money(total)} per month plus GST"
    elif any(m.membership != MembershipType.DAY for m in members):
        kind = FeeKind.WAIVED
        label = f"{settings.currency} 0.00 per month (waived)"
    else:
        kind = FeeKind.NONE
        label = "No monthly fee (Day Memberships charged per-day)"

    logger.info(f"Computed fee {label!r} for {len(members)} members")
    return FeeResult(total=total, kind=kind, label=label, breakdown=breakdown)


def membership_counts(members: Iterable[Member]) -> Dict[str, str]:
    """Membership tallies printed on the agreement (string values)."""
    full = full_discounted = casual = casual_within = casual_over = day = 0
    for m in members:
        bucket = discount_bucket_for(m)
        if m.membership == MembershipType.FULL:
            full += 1
            if bucket is not None:
                full_discounted += 1
        elif m.membership == MembershipType.CASUAL:
            casual += 1
            if bucket in WITHIN_12M_BUCKETS:
                casual_within += 1
            elif bucket in OVER_12M_BUCKETS:
                casual_over += 1
        else:
            day += 1

    return {
        "mem_fulltime_count": str(full),
        "mem_fulltime_discount_count": str(full_discounted),
        "mem_casual_count": str(casual),
        "mem_casual_within_12m_count": str(casual_within),
        "mem_casual_over_12m_count": str(casual_over),
        "mem_day_count": str(day),
    }


# =============================================================================
# MATRIX
# =============================================================================

def build_matrix(
    records: Iterable[Mapping[str, Any]],
    columns: Optional[Mapping[str, str]] = None,
) -> PricingMatrix:
    """
    Build the matrix from raw rate-card records.

    Each record: {"membership_type": str, "base_rate": ..., "discount_rates": {column label: rate}}.
    A column missing from a record stays absent from the row so fallbacks apply.
    """
    columns = columns or DEFAULT_PRICING_COLUMNS
    matrix: PricingMatrix = {}
    for rec in records:
        raw_type = rec.get("membership_type")
        if not raw_type:
            continue
        mtype = MembershipType.normalise(raw_type)
        cells = rec.get("discount_rates") or {}
        rates: Dict[DiscountBucket, Decimal] = {}
        for bucket in DiscountBucket:
            label = columns.get(bucket.key)
            if label in cells and cells[label] not in (None, ""):
                rates[bucket] = to_decimal(cells[label])
        matrix[mtype] = PricingRow(membership_type=mtype, base_rate=to_decimal(rec.get("base_rate")), rates=rates)
    return matrix
