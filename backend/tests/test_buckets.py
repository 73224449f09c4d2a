"""
Discount Bucket Derivation Tests

Verifies:
1. Only student/staff/alumni codes produce buckets
2. 12-month windows for alumni and former staff
3. Alumni commencement and calendar-month expiry
4. Primary bucket precedence
5. Category text classification
"""
from datetime import date

import pytest

from agreement_engine.models.domain import AffiliationCode, DiscountBucket, PartialDate
from agreement_engine.services.eligibility import (
    alumni_commencement,
    alumni_expiry,
    classify_category,
    derive_buckets,
    months_between,
    primary_bucket,
)

from conftest import TODAY, make_code


def codes(*raws):
    return [AffiliationCode.from_api(r) for r in raws]


# =============================================================================
# DERIVATION
# =============================================================================

class TestDeriveBuckets:

    def test_active_student(self):
        assert derive_buckets(codes(make_code("Student")), TODAY) == [DiscountBucket.CURRENT_STUDENT]

    def test_inactive_student_ignored(self):
        assert derive_buckets(codes(make_code("student", inactive=True)), TODAY) == []

    def test_active_staff(self):
        assert derive_buckets(codes(make_code("STAFF")), TODAY) == [DiscountBucket.CURRENT_STAFF]

    def test_former_staff_recent_uses_date_modified(self):
        raw = make_code("Staff", inactive=True, added="2010-01-01T00:00:00Z", modified="2025-02-01T00:00:00Z")
        assert derive_buckets(codes(raw), TODAY) == [DiscountBucket.FORMER_STAFF_WITHIN_12M]

    def test_former_staff_old(self):
        raw = make_code("Staff", inactive=True, modified="2022-02-01T00:00:00Z")
        assert derive_buckets(codes(raw), TODAY) == [DiscountBucket.FORMER_STAFF_OVER_12M]

    def test_former_staff_falls_back_to_date_added(self):
        raw = make_code("Staff", inactive=True, added="2025-05-01T10:00:00Z")
        assert derive_buckets(codes(raw), TODAY) == [DiscountBucket.FORMER_STAFF_WITHIN_12M]

    def test_alumni_recent_start(self):
        raw = make_code("Alumni", start=date(2025, 1, 10))
        assert derive_buckets(codes(raw), TODAY) == [DiscountBucket.ALUMNI_WITHIN_12M]

    def test_alumni_old_start(self):
        raw = make_code("Alumni", start=date(2020, 12, 1))
        assert derive_buckets(codes(raw), TODAY) == [DiscountBucket.ALUMNI_OVER_12M]

    def test_alumni_without_dates_is_over(self):
        assert derive_buckets(codes(make_code("Alumni")), TODAY) == [DiscountBucket.ALUMNI_OVER_12M]

    def test_alumni_partial_start_uses_date_added(self):
        raw = {"description": "Alumni", "start": {"y": 2019}, "date_added": "2025-04-02T00:00:00Z"}
        assert derive_buckets(codes(raw), TODAY) == [DiscountBucket.ALUMNI_WITHIN_12M]

    def test_unrelated_codes_ignored(self):
        assert derive_buckets(codes(make_code("Donor"), make_code("Board Member")), TODAY) == []

    def test_duplicates_collapsed_in_code_order(self):
        raws = [make_code("Alumni", start=date(2025, 1, 1)), make_code("Student"), make_code("Student")]
        assert derive_buckets(codes(*raws), TODAY) == [
            DiscountBucket.ALUMNI_WITHIN_12M,
            DiscountBucket.CURRENT_STUDENT,
        ]


class TestMonths:

    def test_one_year_is_within_window(self):
        assert months_between(date(2024, 6, 15), TODAY) < 12

    def test_a_day_past_a_leap_year_is_over(self):
        raw = make_code("Alumni", start=date(2024, 6, 14))
        assert derive_buckets(codes(raw), TODAY) == [DiscountBucket.ALUMNI_OVER_12M]

    def test_future_dates_clamp_to_zero(self):
        assert months_between(date(2026, 1, 1), TODAY) == 0


# =============================================================================
# ALUMNI DATES
# =============================================================================

class TestAlumniDates:

    def test_commencement_is_first_full_alumni_start(self):
        raws = [make_code("Student"), make_code("Alumni", start=date(2024, 3, 5)), make_code("Alumni", start=date(2020, 1, 1))]
        assert alumni_commencement(codes(*raws)) == date(2024, 3, 5)

    def test_commencement_requires_full_date(self):
        raw = {"description": "Alumni", "start": {"y": 2024, "m": 3}}
        assert alumni_commencement(codes(raw)) is None

    def test_expiry_is_twelve_calendar_months(self):
        assert alumni_expiry(date(2025, 1, 10)) == date(2026, 1, 10)

    def test_expiry_clamps_leap_day(self):
        assert alumni_expiry(date(2024, 2, 29)) == date(2025, 2, 28)

    def test_partial_date_to_date(self):
        assert PartialDate(2024, 2, 30).to_date() is None
        assert PartialDate(2024, 2, 29).to_date() == date(2024, 2, 29)


# =============================================================================
# PRECEDENCE AND CLASSIFICATION
# =============================================================================

class TestPrimaryBucket:

    def test_student_beats_everything(self):
        buckets = [DiscountBucket.FORMER_STAFF_OVER_12M, DiscountBucket.ALUMNI_WITHIN_12M, DiscountBucket.CURRENT_STUDENT]
        assert primary_bucket(buckets) == DiscountBucket.CURRENT_STUDENT

    def test_alumni_within_beats_alumni_over_and_former_staff(self):
        buckets = [DiscountBucket.FORMER_STAFF_WITHIN_12M, DiscountBucket.ALUMNI_OVER_12M, DiscountBucket.ALUMNI_WITHIN_12M]
        assert primary_bucket(buckets) == DiscountBucket.ALUMNI_WITHIN_12M

    def test_empty(self):
        assert primary_bucket([]) is None


class TestClassifyCategory:

    @pytest.mark.parametrize("text,expected", [
        ("Current Student", DiscountBucket.CURRENT_STUDENT),
        ("current uts student", DiscountBucket.CURRENT_STUDENT),
        ("Current Staff", DiscountBucket.CURRENT_STAFF),
        ("Alumni (graduated within the last 12 months)", DiscountBucket.ALUMNI_WITHIN_12M),
        ("Alumni < 12m", DiscountBucket.ALUMNI_WITHIN_12M),
        ("UTS Alumni > 12m", DiscountBucket.ALUMNI_OVER_12M),
        ("Former Staff < 12m", DiscountBucket.FORMER_STAFF_WITHIN_12M),
        ("Former Staff (employed more than 12 months ago)", DiscountBucket.FORMER_STAFF_OVER_12M),
        ("alumni_over_12m", DiscountBucket.ALUMNI_OVER_12M),
    ])
    def test_known_labels(self, text, expected):
        assert classify_category(text) == expected

    @pytest.mark.parametrize("text", ["", None, "Gold sponsor", "Alumni", "Former Staff"])
    def test_unknown_labels(self, text):
        assert classify_category(text) is None
