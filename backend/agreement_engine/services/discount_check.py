"""
Agreement Engine - Discount Check

One member's discount check end to end: proactive token refresh, resolver
call wrapped in a single refresh-and-retry on 401/403, and persistence of
the outcome onto the member record.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Optional

from ..models.domain import EligibilityOutcome, EligibilityQuery, Member, OutcomeStatus
from .directory import DirectoryClient
from .eligibility import EligibilityResolver
from .store import PersistentStore

logger = logging.getLogger(__name__)

# Outcomes written back to the member record; errors leave the previous value
PERSISTED_STATUSES = (
    OutcomeStatus.VALID,
    OutcomeStatus.INVALID,
    OutcomeStatus.AMBIGUOUS,
    OutcomeStatus.NOT_FOUND,
)


@dataclass
class DiscountCheckResult:
    query: EligibilityQuery
    outcome: EligibilityOutcome
    member_id: Optional[str] = None
    store_update: Optional[Dict[str, Any]] = None


class DiscountCheckService:
    """Resolver + one token refresh + member persistence."""

    def __init__(
        self,
        resolver: EligibilityResolver,
        directory: DirectoryClient,
        store: PersistentStore,
        today: Callable[[], date] = date.today,
    ):
        self.resolver = resolver
        self.directory = directory
        self.store = store
        self._today = today

    async def resolve(self, query: EligibilityQuery) -> EligibilityOutcome:
        """Resolve with at most one token refresh; skipped queries never touch the directory."""
        if self.resolver.skip_reason(query) is not None:
            return await self.resolver.resolve(query)
        await self.directory.ensure_fresh()
        return await self.directory.call_with_refresh(
            lambda: self.resolver.resolve(query),
            lambda outcome: outcome.unauthorized,
        )

    async def check(
        self,
        query: EligibilityQuery,
        member_id: Optional[str] = None,
        update_store: bool = True,
        strict_store: bool = False,
    ) -> DiscountCheckResult:
        """
        Run one check and persist it when a member id is given.

        With strict_store the store error propagates; otherwise it is logged
        and reported in store_update.
        """
        logger.info(f"Discount check start (member={member_id}, has_lookup_id={bool(query.lookup_id)})")
        outcome = await self.resolve(query)
        logger.info(f"Discount check finish (member={member_id}): {outcome.status.value}")

        result = DiscountCheckResult(query=query, outcome=outcome, member_id=member_id)
        if not (member_id and update_store and outcome.status in PERSISTED_STATUSES):
            return result

        try:
            await self.persist(member_id, outcome, query.expected_bucket)
            result.store_update = {"ok": True, "validation": outcome.validation_select.value}
        except Exception as e:
            if strict_store:
                raise
            logger.error(f"Persisting validation for member {member_id} failed: {e}")
            result.store_update = {"error": "store update failed"}
        return result

    async def check_member(self, member: Member, strict_store: bool = True) -> DiscountCheckResult:
        return await self.check(member.to_query(), member_id=member.id, strict_store=strict_store)

    async def persist(self, member_id: str, outcome: EligibilityOutcome, expected: Optional[str]) -> None:
        expires = None
        if outcome.alumni_expires_at and any(b.is_alumni for b in outcome.derived_buckets):
            expires = outcome.alumni_expires_at
        await self.store.update_member_validation(
            member_id,
            validation_select=outcome.validation_select.value,
            validated_on=self._today(),
            discount_expires_on=expires,
            expected_category=expected or None,
        )
