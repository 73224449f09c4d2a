"""
Agreement Engine - Discount Check Router

Internal single-member discount check. Explicit body fields win over the
stored member's fields.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ..auth import verify_internal_key
from ..dependencies import get_discount_checks, get_store
from ..exceptions import AgreementEngineError, RecordNotFound
from ..models.domain import EligibilityQuery, Member
from ..services.discount_check import DiscountCheckService
from ..services.store import PersistentStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["discount-check"], dependencies=[Depends(verify_internal_key)])


class DiscountCheckRequest(BaseModel):
    memberRecordId: Optional[str] = None
    search_id: Optional[str] = None
    expected: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    dob: Optional[str] = None
    updateStore: bool = True


class DiscountCheckData(BaseModel):
    input: Dict[str, Any]
    result: Dict[str, Any]
    storeUpdate: Optional[Dict[str, Any]] = None


class DiscountCheckResponse(BaseModel):
    success: bool = True
    data: DiscountCheckData


def build_query(body: DiscountCheckRequest, member: Optional[Member]) -> EligibilityQuery:
    def pick(value: Optional[str], fallback: str) -> Optional[str]:
        return value if value else (fallback or None)

    if member is None:
        return EligibilityQuery(
            lookup_id=body.search_id or "",
            expected_bucket=body.expected,
            email=body.email,
            name=body.name,
            dob=body.dob,
        )
    return EligibilityQuery(
        lookup_id=body.search_id or member.lookup_id,
        expected_bucket=body.expected if body.expected else member.expected_category,
        email=pick(body.email, member.email),
        name=pick(body.name, member.name),
        dob=pick(body.dob, member.dob),
        manual_override=member.has_manual_override,
    )


@router.post("/discount-check", response_model=DiscountCheckResponse)
async def discount_check(
    body: DiscountCheckRequest,
    checks: DiscountCheckService = Depends(get_discount_checks),
    store: PersistentStore = Depends(get_store),
):
    """Check one member's discount eligibility and optionally persist the outcome."""
    member = None
    if body.memberRecordId:
        try:
            member = await store.get_member(body.memberRecordId)
        except RecordNotFound:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")

    query = build_query(body, member)
    if not query.lookup_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing search_id and no member field available",
        )

    try:
        result = await checks.check(query, member_id=body.memberRecordId, update_store=body.updateStore)
    except AgreementEngineError as e:
        logger.error(f"Discount check failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Discount check failed")

    return DiscountCheckResponse(data=DiscountCheckData(
        input={"memberRecordId": body.memberRecordId, **query.to_dict()},
        result=result.outcome.to_dict(),
        storeUpdate=result.store_update,
    ))
