"""
Eligibility Resolver

Maps a member's identifying attributes to a directory record and decides
whether the expected discount bucket holds.
"""
from .buckets import (
    alumni_commencement,
    alumni_expiry,
    classify_category,
    derive_buckets,
    months_between,
    primary_bucket,
)
from .matching import (
    exclude_lookup_collisions,
    normalize_name,
    parse_dob,
    pick_candidate,
    sanitize_lookup_id,
    score_name,
)
from .resolver import EligibilityResolver

__all__ = [
    "EligibilityResolver",
    "alumni_commencement",
    "alumni_expiry",
    "classify_category",
    "derive_buckets",
    "months_between",
    "primary_bucket",
    "exclude_lookup_collisions",
    "normalize_name",
    "parse_dob",
    "pick_candidate",
    "sanitize_lookup_id",
    "score_name",
]
