"""
SQLAlchemy Store

PersistentStore over the ORM tables. Session work is blocking, so each call
runs in a worker thread via asyncio.to_thread and opens its own session.
"""
import asyncio
import logging
from datetime import date, datetime
from typing import List, Mapping, Optional

from sqlalchemy.orm import Session, sessionmaker

from ...config import PricingSettings
from ...exceptions import RecordNotFound
from ...models.db_models import AttachmentDB, MemberDB, OrganizationDB, PricingRowDB
from ...models.domain import Attachment, Member, Organization, PricingMatrix
from ..pricing import build_matrix
from .base import PersistentStore

logger = logging.getLogger(__name__)


def member_from_row(row: MemberDB) -> Member:
    return Member(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name or "",
        email=row.email or "",
        dob=row.date_of_birth or "",
        lookup_id=row.lookup_id or "",
        membership_type=row.membership_type or "",
        expected_category=row.expected_category or "",
        manual_override=bool(row.manual_override),
        manual_category=row.manual_category or "",
        representative=bool(row.representative),
        form_submitted=bool(row.form_submitted),
        validation_select=row.validation_select,
        validated_on=row.validated_on,
        discount_expires_on=row.discount_expires_on,
    )


def organization_from_row(row: OrganizationDB) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        legal_name=row.legal_name or "",
        abn=row.abn or "",
        contact_email=row.contact_email or "",
        insurance=bool(row.public_liability_insurance),
        form_submitted=bool(row.form_submitted),
        confirmation_recorded=bool(row.confirmation_recorded),
        attachments=[Attachment(url=a.url, filename=a.filename or "", created_at=a.created_at) for a in row.attachments],
        attachment_created_at=row.attachment_created_at,
    )


class SqlAlchemyStore(PersistentStore):
    """Store backed by the organizations/members/attachments/pricing_rows tables."""

    def __init__(self, session_factory: sessionmaker, pricing: Optional[PricingSettings] = None):
        self.session_factory = session_factory
        self.columns: Mapping[str, str] = (pricing or PricingSettings()).columns

    async def _run(self, fn, *args):
        return await asyncio.to_thread(self._in_session, fn, *args)

    def _in_session(self, fn, *args):
        db: Session = self.session_factory()
        try:
            return fn(db, *args)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # =========================================================================
    # READS
    # =========================================================================

    async def get_organization(self, organization_id: str) -> Organization:
        def fetch(db: Session, org_id: str) -> Organization:
            row = db.query(OrganizationDB).filter(OrganizationDB.id == org_id).first()
            if not row:
                raise RecordNotFound("organization", org_id)
            return organization_from_row(row)
        return await self._run(fetch, organization_id)

    async def list_members(self, organization_id: str) -> List[Member]:
        def fetch(db: Session, org_id: str) -> List[Member]:
            rows = (
                db.query(MemberDB)
                .filter(MemberDB.organization_id == org_id)
                .order_by(MemberDB.position, MemberDB.created_at)
                .all()
            )
            return [member_from_row(r) for r in rows]
        return await self._run(fetch, organization_id)

    async def get_member(self, member_id: str) -> Member:
        def fetch(db: Session, mid: str) -> Member:
            row = db.query(MemberDB).filter(MemberDB.id == mid).first()
            if not row:
                raise RecordNotFound("member", mid)
            return member_from_row(row)
        return await self._run(fetch, member_id)

    async def load_pricing_matrix(self) -> PricingMatrix:
        def fetch(db: Session) -> PricingMatrix:
            records = [
                {
                    "membership_type": r.membership_type,
                    "base_rate": r.base_rate,
                    "discount_rates": r.discount_rates or {},
                }
                for r in db.query(PricingRowDB).all()
            ]
            return build_matrix(records, self.columns)
        return await self._run(fetch)

    # =========================================================================
    # WRITES
    # =========================================================================

    async def update_member_validation(
        self,
        member_id: str,
        validation_select: str,
        validated_on: date,
        discount_expires_on: Optional[date] = None,
        expected_category: Optional[str] = None,
    ) -> None:
        def write(db: Session) -> None:
            row = db.query(MemberDB).filter(MemberDB.id == member_id).first()
            if not row:
                raise RecordNotFound("member", member_id)
            row.validation_select = validation_select
            row.validated_on = validated_on
            if discount_expires_on is not None:
                row.discount_expires_on = discount_expires_on
            if expected_category:
                row.expected_category = expected_category
            db.commit()
        await self._run(write)
        logger.info(f"Member {member_id} validation -> {validation_select}")

    async def append_attachment(self, organization_id: str, attachment: Attachment, created_on: date) -> None:
        def write(db: Session) -> None:
            org = db.query(OrganizationDB).filter(OrganizationDB.id == organization_id).first()
            if not org:
                raise RecordNotFound("organization", organization_id)
            db.add(AttachmentDB(
                organization_id=organization_id,
                url=attachment.url,
                filename=attachment.filename,
                created_at=attachment.created_at or datetime.utcnow(),
            ))
            org.attachment_created_at = created_on
            db.commit()
        await self._run(write)
        logger.info(f"Attachment {attachment.filename!r} appended to organization {organization_id}")
