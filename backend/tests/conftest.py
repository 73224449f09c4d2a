"""
Shared fixtures: an in-memory directory, an in-memory store and record builders.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from agreement_engine.config import Settings, JobSettings
from agreement_engine.exceptions import RecordNotFound, TokenRefreshError
from agreement_engine.models.domain import (
    Attachment,
    DiscountBucket,
    Member,
    MembershipType,
    Organization,
    PricingRow,
)
from agreement_engine.services.directory import DirectoryResponse, RefreshPolicy
from agreement_engine.services.store import PersistentStore

TODAY = date(2025, 6, 15)


# =============================================================================
# RECORD BUILDERS
# =============================================================================

def make_candidate(id: str, name: str = "", email: str = "", lookup_id: str = "") -> dict:
    return {"id": id, "name": name, "email": {"address": email} if email else None, "lookup_id": lookup_id}


def make_code(description: str, inactive: bool = False, start: Optional[date] = None,
              added: Optional[str] = None, modified: Optional[str] = None) -> dict:
    raw = {"description": description, "inactive": inactive}
    if start:
        raw["start"] = {"y": start.year, "m": start.month, "d": start.day}
    if added:
        raw["date_added"] = added
    if modified:
        raw["date_modified"] = modified
    return raw


# =============================================================================
# FAKE DIRECTORY
# =============================================================================

class FakeDirectory:
    """Scripted directory. `search_statuses` is consumed one status per search call."""

    def __init__(
        self,
        results: Optional[List[dict]] = None,
        codes: Optional[Dict[str, List[dict]]] = None,
        records: Optional[Dict[str, dict]] = None,
        search_statuses: Optional[List[int]] = None,
        codes_statuses: Optional[Dict[str, int]] = None,
    ):
        self.results = results or []
        self.codes = codes or {}
        self.records = records or {}
        self.search_statuses = list(search_statuses or [])
        self.codes_statuses = codes_statuses or {}
        self.calls: List[tuple] = []
        self.tokens = MagicMock()
        self.tokens.refresh = AsyncMock()
        self.refresh_policy = RefreshPolicy(max_refreshes=1)

    @property
    def directory_calls(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in ("search", "get_codes", "get_record")]

    async def search(self, search_text, strict=True, include_non_constituents=False):
        self.calls.append(("search", search_text))
        status = self.search_statuses.pop(0) if self.search_statuses else 200
        if status != 200:
            return DirectoryResponse(status=status, json={}, text="upstream body")
        return DirectoryResponse(status=200, json={"value": self.results})

    async def get_codes(self, record_id):
        self.calls.append(("get_codes", record_id))
        status = self.codes_statuses.get(record_id, 200)
        if status != 200:
            return DirectoryResponse(status=status, json={})
        return DirectoryResponse(status=200, json={"value": self.codes.get(record_id, [])})

    async def get_record(self, record_id):
        self.calls.append(("get_record", record_id))
        if record_id not in self.records:
            return DirectoryResponse(status=404, json={})
        return DirectoryResponse(status=200, json=self.records[record_id])

    async def ensure_fresh(self):
        self.calls.append(("ensure_fresh",))
        return True

    async def call_with_refresh(self, attempt, is_unauthorized):
        return await self.refresh_policy.run(self.tokens, attempt, is_unauthorized)

    async def close(self):
        pass


# =============================================================================
# FAKE STORE
# =============================================================================

class FakeStore(PersistentStore):
    """In-memory PersistentStore that records validation writes."""

    def __init__(self, organizations=None, members=None, matrix=None):
        self.organizations: Dict[str, Organization] = {o.id: o for o in (organizations or [])}
        self.members: Dict[str, Member] = {m.id: m for m in (members or [])}
        self.matrix = matrix if matrix is not None else default_matrix()
        self.validation_writes: List[dict] = []
        self.fail_updates = False

    async def get_organization(self, organization_id):
        if organization_id not in self.organizations:
            raise RecordNotFound("organization", organization_id)
        return self.organizations[organization_id]

    async def list_members(self, organization_id):
        return [m for m in self.members.values() if m.organization_id == organization_id]

    async def get_member(self, member_id):
        if member_id not in self.members:
            raise RecordNotFound("member", member_id)
        return self.members[member_id]

    async def update_member_validation(self, member_id, validation_select, validated_on,
                                       discount_expires_on=None, expected_category=None):
        if self.fail_updates:
            raise RuntimeError("store unavailable")
        self.validation_writes.append({
            "member_id": member_id,
            "validation_select": validation_select,
            "validated_on": validated_on,
            "discount_expires_on": discount_expires_on,
            "expected_category": expected_category,
        })
        member = self.members[member_id]
        member.validation_select = validation_select
        member.validated_on = validated_on
        if discount_expires_on is not None:
            member.discount_expires_on = discount_expires_on

    async def append_attachment(self, organization_id, attachment: Attachment, created_on):
        org = self.organizations[organization_id]
        org.attachments.append(attachment)
        org.attachment_created_at = created_on

    async def load_pricing_matrix(self):
        return self.matrix


def default_matrix():
    return {
        MembershipType.FULL: PricingRow(
            membership_type=MembershipType.FULL,
            base_rate=Decimal("500"),
            rates={
                DiscountBucket.CURRENT_STUDENT: Decimal("250"),
                DiscountBucket.CURRENT_STAFF: Decimal("300"),
                DiscountBucket.ALUMNI_WITHIN_12M: Decimal("200"),
                DiscountBucket.ALUMNI_OVER_12M: Decimal("400"),
                DiscountBucket.FORMER_STAFF_WITHIN_12M: Decimal("350"),
                DiscountBucket.FORMER_STAFF_OVER_12M: Decimal("450"),
            },
        ),
        MembershipType.CASUAL: PricingRow(
            membership_type=MembershipType.CASUAL,
            base_rate=Decimal("150"),
            rates={
                DiscountBucket.ALUMNI_WITHIN_12M: Decimal("0"),
                DiscountBucket.ALUMNI_OVER_12M: Decimal("100"),
            },
        ),
        MembershipType.DAY: PricingRow(membership_type=MembershipType.DAY, base_rate=Decimal("30")),
    }


def make_org(id: str = "org-1", **overrides) -> Organization:
    fields = dict(
        id=id,
        name="Acme Labs",
        legal_name="Acme Labs Pty Ltd",
        abn="12 345 678 901",
        contact_email="founders@acme.test",
        insurance=True,
        form_submitted=True,
        confirmation_recorded=True,
    )
    fields.update(overrides)
    return Organization(**fields)


def make_member(id: str, organization_id: str = "org-1", **overrides) -> Member:
    fields = dict(
        id=id,
        organization_id=organization_id,
        name="Jane Citizen",
        email="jane@uni.test",
        lookup_id="12345678",
        membership_type="Full Membership",
        expected_category="Current Student",
        form_submitted=True,
    )
    fields.update(overrides)
    return Member(**fields)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def settings():
    return Settings(
        jwt_secret_key="test-secret",
        internal_api_key="internal-key",
        jobs=JobSettings(pacing_delay_seconds=0, public_base_url="https://agreements.test"),
    )


@pytest.fixture
def today():
    return lambda: TODAY


@pytest.fixture
def failing_refresh():
    """A refresh coroutine that always fails."""
    return AsyncMock(side_effect=TokenRefreshError("refresh failed"))
