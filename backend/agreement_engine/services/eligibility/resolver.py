"""
Agreement Engine - Eligibility Resolver

Resolves one member to at most one directory record and decides whether the
member's expected discount bucket is supported by that record's codes.

Pipeline:
1. Skip (manual override, or "no discount" sentinel) - no directory call
2. Sanitize lookup id, strict search
3. Drop lookup-id collisions from the pool
4. Disambiguate: email -> name score -> date of birth
5. Single candidate: fetch codes, derive buckets, compare
6. Still unresolved: evaluate every candidate's buckets (ambiguous / invalid)

The resolver is pure relative to the directory: it never writes anything and
never refreshes tokens. Upstream failures become `error` outcomes carrying
the upstream status so the caller can decide whether to refresh and retry.
"""
from __future__ import annotations
import logging
from datetime import date
from typing import Callable, List, Optional, Tuple

from ...config import PricingSettings, ResolverSettings
from ...exceptions import UpstreamError
from ...models.domain import (
    AffiliationCode,
    DirectoryCandidate,
    DiscountBucket,
    EligibilityOutcome,
    EligibilityQuery,
    OutcomeStatus,
    PartialDate,
    SkipReason,
)
from ..directory import DirectoryClient
from .buckets import (
    alumni_commencement,
    alumni_expiry,
    classify_category,
    derive_buckets,
    primary_bucket,
)
from .matching import exclude_lookup_collisions, parse_dob, pick_candidate, sanitize_lookup_id

logger = logging.getLogger(__name__)


class EligibilityResolver:
    """Directory-backed discount eligibility checks."""

    def __init__(
        self,
        directory: DirectoryClient,
        settings: Optional[ResolverSettings] = None,
        pricing: Optional[PricingSettings] = None,
        today: Callable[[], date] = date.today,
    ):
        self.directory = directory
        self.settings = settings or ResolverSettings()
        self.pricing = pricing or PricingSettings()
        self._today = today

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def skip_reason(self, query: EligibilityQuery) -> Optional[SkipReason]:
        """
        Why this query needs no directory call, if any.

        An expected bucket of None means "not specified" (any bucket will do);
        an empty string or a sentinel such as "N/A" means no discount was asked for.
        """
        if query.manual_override:
            return SkipReason.MANUAL
        if query.expected_bucket is not None and self.pricing.is_no_request(query.expected_bucket):
            return SkipReason.NO_REQUEST
        return None

    async def resolve(self, query: EligibilityQuery) -> EligibilityOutcome:
        skip = self.skip_reason(query)
        if skip is not None:
            return EligibilityOutcome(
                status=OutcomeStatus.SKIPPED,
                reason=f"skipped: {skip.value}",
                expected_bucket=query.expected_bucket,
                skip_reason=skip,
            )
        try:
            return await self._resolve(query)
        except UpstreamError as e:
            logger.warning(f"Directory call failed for lookup id {query.lookup_id!r}: {e}")
            return EligibilityOutcome(
                status=OutcomeStatus.ERROR,
                reason=str(e),
                expected_bucket=query.expected_bucket,
                upstream_status=e.status,
            )

    # =========================================================================
    # PIPELINE
    # =========================================================================

    async def _resolve(self, query: EligibilityQuery) -> EligibilityOutcome:
        expected = query.expected_bucket
        search_id = sanitize_lookup_id(query.lookup_id)
        if not search_id:
            return EligibilityOutcome(OutcomeStatus.NOT_FOUND, reason="no lookup id supplied", expected_bucket=expected)

        sr = await self.directory.search(search_id, strict=True, include_non_constituents=False)
        if not sr.ok:
            return EligibilityOutcome(
                OutcomeStatus.ERROR,
                reason=f"search {sr.status}",
                expected_bucket=expected,
                upstream_status=sr.status,
            )

        results = [DirectoryCandidate.from_api(v) for v in sr.values]
        if not results:
            return EligibilityOutcome(OutcomeStatus.NOT_FOUND, reason="no matches", expected_bucket=expected)

        pool = exclude_lookup_collisions(results, search_id)
        if not pool:
            return EligibilityOutcome(
                OutcomeStatus.NOT_FOUND,
                reason="no matches after excluding lookup collisions",
                expected_bucket=expected,
            )

        chosen = pick_candidate(pool, query.email, query.name, self.settings)
        if chosen is None and query.dob:
            chosen = await self._pick_by_dob(pool, query.dob)
        if chosen is not None:
            return await self._evaluate(chosen, expected)

        return await self._evaluate_pool(pool, expected)

    async def _pick_by_dob(self, pool: List[DirectoryCandidate], dob: str) -> Optional[DirectoryCandidate]:
        target = parse_dob(dob)
        if target is None:
            return None
        matches = []
        for candidate in pool:
            detail = await self.directory.get_record(candidate.id)
            if not detail.ok:
                continue
            birth = PartialDate.from_api((detail.json or {}).get("birthdate"))
            if target.matches(birth):
                matches.append(candidate)
        return matches[0] if len(matches) == 1 else None

    async def _fetch_codes(self, candidate: DirectoryCandidate) -> Tuple[Optional[List[AffiliationCode]], int]:
        resp = await self.directory.get_codes(candidate.id)
        if not resp.ok:
            return None, resp.status
        return [AffiliationCode.from_api(v) for v in resp.values], resp.status

    def _expected_present(self, expected: Optional[str], buckets: List[DiscountBucket]) -> bool:
        if expected is None:
            return bool(buckets)
        target = classify_category(expected)
        return target is not None and target in buckets

    async def _evaluate(
        self,
        candidate: DirectoryCandidate,
        expected: Optional[str],
        codes: Optional[List[AffiliationCode]] = None,
    ) -> EligibilityOutcome:
        """Single resolved candidate: compare derived buckets with the expected one."""
        if codes is None:
            codes, status = await self._fetch_codes(candidate)
            if codes is None:
                return EligibilityOutcome(
                    OutcomeStatus.ERROR,
                    reason=f"codes {status}",
                    expected_bucket=expected,
                    record_id=candidate.id,
                    candidate=candidate.summary(),
                    upstream_status=status,
                )
        candidate.codes = codes

        buckets = derive_buckets(codes, self._today(), self.settings.window_months)
        valid = self._expected_present(expected, buckets)
        commencement = alumni_commencement(codes)

        return EligibilityOutcome(
            status=OutcomeStatus.VALID if valid else OutcomeStatus.INVALID,
            reason="expected bucket present" if valid else "expected bucket not present",
            expected_bucket=expected,
            derived_buckets=buckets,
            primary_bucket=primary_bucket(buckets),
            record_id=candidate.id,
            candidate=candidate.summary(buckets),
            qualifies_other=bool(not valid and expected and buckets),
            alumni_commencement=commencement,
            alumni_expires_at=alumni_expiry(commencement) if commencement else None,
        )

    async def _evaluate_pool(self, pool: List[DirectoryCandidate], expected: Optional[str]) -> EligibilityOutcome:
        """No single candidate: let the expected bucket pick, else report."""
        evaluated: List[Tuple[DirectoryCandidate, List[AffiliationCode], List[DiscountBucket]]] = []
        for candidate in pool:
            codes, _ = await self._fetch_codes(candidate)
            if codes is None:
                continue
            evaluated.append((candidate, codes, derive_buckets(codes, self._today(), self.settings.window_months)))

        target = classify_category(expected) if expected else None
        if target is not None:
            matching = [e for e in evaluated if target in e[2]]
            if len(matching) == 1:
                candidate, codes, _ = matching[0]
                return await self._evaluate(candidate, expected, codes)
            if len(matching) > 1:
                return EligibilityOutcome(
                    OutcomeStatus.AMBIGUOUS,
                    reason="multiple candidates carry the expected bucket",
                    expected_bucket=expected,
                    candidates=[c.summary(b) for c, _, b in matching],
                )

        return EligibilityOutcome(
            OutcomeStatus.INVALID,
            reason="expected bucket not present on any candidate",
            expected_bucket=expected,
            candidates=[c.summary(b) for c, _, b in evaluated],
        )
