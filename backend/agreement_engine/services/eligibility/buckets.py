"""
Discount Bucket Derivation

Maps directory affiliation codes onto discount buckets. Only "student",
"staff" and "alumni" codes matter; everything else is ignored.

- Active student  -> Current Student
- Active staff    -> Current Staff
- Inactive staff  -> Former Staff within / over 12 months (date modified, else added)
- Alumni          -> Alumni within / over 12 months (code start date, else added)

Primary bucket precedence follows DiscountBucket declaration order.
"""
import re
from datetime import date, datetime
from typing import Iterable, List, Optional, Union

from dateutil.relativedelta import relativedelta

from ...models.domain import AffiliationCode, DiscountBucket, BUCKET_PRECEDENCE

AVERAGE_MONTH_DAYS = 30.4375
MONTH_EPSILON = 1e-6


def _as_date(value: Union[date, datetime, None]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def months_between(start: Union[date, datetime], end: Union[date, datetime]) -> float:
    """Elapsed months from start to end, never negative."""
    days = (_as_date(end) - _as_date(start)).days
    return max(0, days) / AVERAGE_MONTH_DAYS


def _within(start: Optional[date], today: date, window_months: int) -> bool:
    if start is None:
        return False
    return months_between(start, today) <= window_months + MONTH_EPSILON


def derive_buckets(
    codes: Iterable[AffiliationCode],
    today: Optional[date] = None,
    window_months: int = 12,
) -> List[DiscountBucket]:
    """Buckets implied by a candidate's codes, de-duplicated in code order."""
    today = today or date.today()
    out: List[DiscountBucket] = []

    def add(bucket: DiscountBucket):
        if bucket not in out:
            out.append(bucket)

    for code in codes or []:
        desc = (code.description or "").strip().lower()

        if desc == "student":
            if not code.inactive:
                add(DiscountBucket.CURRENT_STUDENT)
            continue

        if desc == "staff":
            if not code.inactive:
                add(DiscountBucket.CURRENT_STAFF)
            elif _within(_as_date(code.date_modified or code.date_added), today, window_months):
                add(DiscountBucket.FORMER_STAFF_WITHIN_12M)
            else:
                add(DiscountBucket.FORMER_STAFF_OVER_12M)
            continue

        if desc == "alumni":
            started = (code.start.to_date() if code.start else None) or _as_date(code.date_added)
            if _within(started, today, window_months):
                add(DiscountBucket.ALUMNI_WITHIN_12M)
            else:
                add(DiscountBucket.ALUMNI_OVER_12M)

    return out


def primary_bucket(buckets: Iterable[DiscountBucket]) -> Optional[DiscountBucket]:
    present = set(buckets)
    for bucket in BUCKET_PRECEDENCE:
        if bucket in present:
            return bucket
    return None


def alumni_commencement(codes: Iterable[AffiliationCode]) -> Optional[date]:
    """Start date of the first alumni code carrying a full date."""
    for code in codes or []:
        if (code.description or "").strip().lower() == "alumni" and code.start:
            started = code.start.to_date()
            if started:
                return started
    return None


def alumni_expiry(commencement: date, months: int = 12) -> date:
    """Commencement plus exactly `months` calendar months."""
    return commencement + relativedelta(months=months)


# =============================================================================
# CATEGORY TEXT -> BUCKET
# =============================================================================

_WITHIN = re.compile(r"within|<\s*12")
_OVER = re.compile(r"more than|over|>\s*12")


def classify_category(text: Optional[str]) -> Optional[DiscountBucket]:
    """
    Map a free-text discount category onto a bucket.

    Exact label (or enum key) matches win; otherwise keyword matching as used
    on the pricing matrix columns ("Alumni < 12m", "Former Staff > 12m", ...).
    """
    s = (text or "").strip().lower()
    if not s:
        return None

    for bucket in DiscountBucket:
        if s in (bucket.value.lower(), bucket.key):
            return bucket

    if "current" in s and "student" in s:
        return DiscountBucket.CURRENT_STUDENT
    if "current" in s and "staff" in s:
        return DiscountBucket.CURRENT_STAFF
    if "former" in s and "staff" in s:
        if _WITHIN.search(s):
            return DiscountBucket.FORMER_STAFF_WITHIN_12M
        if _OVER.search(s):
            return DiscountBucket.FORMER_STAFF_OVER_12M
        return None
    if "alumni" in s:
        if _WITHIN.search(s):
            return DiscountBucket.ALUMNI_WITHIN_12M
        if _OVER.search(s):
            return DiscountBucket.ALUMNI_OVER_12M
    return None
