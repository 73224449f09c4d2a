"""
Eligibility Gates

Organization-level preconditions checked once before any member is
validated. All three must hold.
"""
from typing import Iterable, List

from ...exceptions import EligibilityBlocked
from ...models.domain import Member, Organization

GATE_ORGANIZATION_FORM = "organization_form_submitted"
GATE_CONFIRMATION = "confirmation_recorded"
GATE_REPRESENTATIVE_FORM = "representative_form_submitted"


def unmet_gates(organization: Organization, members: Iterable[Member]) -> List[str]:
    unmet = []
    if not organization.form_submitted:
        unmet.append(GATE_ORGANIZATION_FORM)
    if not organization.confirmation_recorded:
        unmet.append(GATE_CONFIRMATION)
    if not any(m.representative and m.form_submitted for m in members):
        unmet.append(GATE_REPRESENTATIVE_FORM)
    return unmet


def check_gates(organization: Organization, members: Iterable[Member]) -> None:
    """Raise EligibilityBlocked naming every unmet gate."""
    unmet = unmet_gates(organization, members)
    if unmet:
        raise EligibilityBlocked(unmet)
