"""
Persistent Store Interface

The record store that owns organizations, members, attachments and the
pricing matrix. The engine only reads those records, overwrites member
validation fields and appends attachments.
"""
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from ...models.domain import Attachment, Member, Organization, PricingMatrix


class PersistentStore(ABC):

    @abstractmethod
    async def get_organization(self, organization_id: str) -> Organization:
        """Raises RecordNotFound when the organization does not exist."""

    @abstractmethod
    async def list_members(self, organization_id: str) -> List[Member]:
        """Members linked to the organization by id, in fetch order."""

    @abstractmethod
    async def get_member(self, member_id: str) -> Member:
        """Raises RecordNotFound when the member does not exist."""

    @abstractmethod
    async def update_member_validation(
        self,
        member_id: str,
        validation_select: str,
        validated_on: date,
        discount_expires_on: Optional[date] = None,
        expected_category: Optional[str] = None,
    ) -> None:
        """Overwrite the member's outcome fields (no history is kept)."""

    @abstractmethod
    async def append_attachment(self, organization_id: str, attachment: Attachment, created_on: date) -> None:
        """Append to the organization's attachment list and stamp the creation date."""

    @abstractmethod
    async def load_pricing_matrix(self) -> PricingMatrix:
        ...
