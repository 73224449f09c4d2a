"""
Agreement Engine - SQLAlchemy ORM Models
Persistent store for organizations, members, attachments and the pricing matrix
"""
from datetime import datetime
from sqlalchemy import Column, String, Numeric, DateTime, Date, ForeignKey, Boolean, Integer, JSON
from sqlalchemy.orm import relationship
from ..database import Base


class OrganizationDB(Base):
    """An incubator startup that signs the membership agreement."""
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    legal_name = Column(String(255), nullable=True)
    abn = Column(String(20), nullable=True)
    contact_email = Column(String(255), nullable=True)
    public_liability_insurance = Column(Boolean, default=False)

    # ==========================================================================
    # ELIGIBILITY GATES
    # ==========================================================================
    form_submitted = Column(Boolean, default=False)
    confirmation_recorded = Column(Boolean, default=False)

    # Stamped each time a generated agreement is attached
    attachment_created_at = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    members = relationship("MemberDB", back_populates="organization", order_by="MemberDB.position")
    attachments = relationship(
        "AttachmentDB", back_populates="organization",
        order_by="AttachmentDB.id", cascade="all, delete-orphan",
    )


class MemberDB(Base):
    """A nominated team member. Linked to its organization by id, never by name."""
    __tablename__ = "members"

    id = Column(String(36), primary_key=True)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, default=0)  # fetch order

    name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=True)
    date_of_birth = Column(String(20), nullable=True)  # free text as entered
    lookup_id = Column(String(64), nullable=True)  # directory search id
    membership_type = Column(String(50), nullable=True)
    representative = Column(Boolean, default=False)
    form_submitted = Column(Boolean, default=False)

    # ==========================================================================
    # DISCOUNT REQUEST
    # ==========================================================================
    expected_category = Column(String(255), nullable=True)
    manual_override = Column(Boolean, default=False)
    manual_category = Column(String(255), nullable=True)

    # ==========================================================================
    # VALIDATION OUTCOME - overwritten on every pass, no history
    # ==========================================================================
    validation_select = Column(String(32), nullable=True)  # Valid / Qualifies for Other / Invalid
    validated_on = Column(Date, nullable=True)
    discount_expires_on = Column(Date, nullable=True)  # alumni only

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("OrganizationDB", back_populates="members")


class AttachmentDB(Base):
    """Generated agreement attached to an organization. Rows are only ever appended."""
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(1000), nullable=False)
    filename = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    organization = relationship("OrganizationDB", back_populates="attachments")


class PricingRowDB(Base):
    """Read-only rate card: one row per membership type."""
    __tablename__ = "pricing_rows"

    membership_type = Column(String(50), primary_key=True)
    base_rate = Column(Numeric(10, 2), nullable=False, default=0)
    # column label -> rate; labels come from PricingSettings.columns
    discount_rates = Column(JSON, default=dict)
