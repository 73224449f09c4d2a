"""
Agreement Payload

The flat data handed to the document renderer: organization details,
debtor (representative) details, fee label, membership counts, team names
and insurance status.
"""
from __future__ import annotations
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from ...models.domain import Member, Organization
from ..eligibility.matching import split_name
from ..pricing import FeeResult, membership_counts


@dataclass
class TeamMemberName:
    first_name: str
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class AgreementPayload:
    legal_name: str
    abn: str
    address: str
    debtor_name: str
    debtor_email: str
    billing_start_date: str
    calculated_monthly_fee: str
    memberships: Dict[str, str] = field(default_factory=dict)
    team: List[TeamMemberName] = field(default_factory=list)
    insurance_status: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def team_name(member: Member) -> Optional[TeamMemberName]:
    """First/last split of a member's full name; everything before the final token is the first name."""
    clean = " ".join((member.name or "").split())
    if not clean:
        return None
    first, last = split_name(clean)
    return TeamMemberName(first_name=first, last_name=last)


def build_payload(
    organization: Organization,
    members: Iterable[Member],
    fee: FeeResult,
    address: str,
    today: Optional[date] = None,
) -> AgreementPayload:
    members = list(members)
    today = today or date.today()

    # No fallback: the debtor name stays empty without an explicit representative
    representative = next((m for m in members if m.representative), None)
    debtor_email = organization.contact_email or next((m.email for m in members if m.email), "")

    return AgreementPayload(
        legal_name=organization.legal_name or "",
        abn=organization.abn or "",
        address=address,
        debtor_name=representative.name.strip() if representative else "",
        debtor_email=debtor_email,
        billing_start_date=today.isoformat(),
        calculated_monthly_fee=fee.label,
        memberships=membership_counts(members),
        team=[n for n in (team_name(m) for m in members) if n is not None],
        insurance_status=1 if organization.insurance else 0,
    )


MEDIA_EXTENSIONS = {
    "application/pdf": "pdf",
    "text/plain": "txt",
}


def suggest_filename(
    payload: AgreementPayload,
    today: Optional[date] = None,
    media_type: str = "application/pdf",
) -> str:
    base = payload.legal_name or "agreement"
    extension = MEDIA_EXTENSIONS.get(media_type, "bin")
    return f"{base} - Incubator Agreement - {(today or date.today()).isoformat()}.{extension}"
