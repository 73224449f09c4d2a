"""Pricing Assembler - monthly fee and membership counts from the pricing matrix."""
from .assembler import (
    FeeKind,
    FeeResult,
    MemberRate,
    build_matrix,
    compute_fee,
    discount_applies,
    format_money,
    membership_counts,
    rate_for_member,
    to_decimal,
)

__all__ = [
    "FeeKind",
    "FeeResult",
    "MemberRate",
    "build_matrix",
    "compute_fee",
    "discount_applies",
    "format_money",
    "membership_counts",
    "rate_for_member",
    "to_decimal",
]
