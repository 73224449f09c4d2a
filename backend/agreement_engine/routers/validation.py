"""
Agreement Engine - Validation Jobs Router

Trigger and poll the per-organization validate-and-generate job. Both
endpoints are addressed by the organization's signed link token.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ..auth import get_organization_id
from ..dependencies import get_orchestrator
from ..services.orchestration import JobOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["validation"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class ProgressResponse(BaseModel):
    validated: int
    total: int


class JobSnapshotResponse(BaseModel):
    state: str
    startedAt: Optional[str] = None
    progress: ProgressResponse


class TriggerResponse(BaseModel):
    success: bool = True
    job: JobSnapshotResponse


class MemberStatusResponse(BaseModel):
    id: str
    name: str
    type: str
    expected_bucket: Optional[str] = None
    status: str
    reason_code: Optional[str] = None
    reason_message: Optional[str] = None


class JobViewResponse(BaseModel):
    state: str
    startedAt: Optional[str] = None
    progress: ProgressResponse
    members: List[MemberStatusResponse] = []
    result: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


class JobStatusResponse(BaseModel):
    success: bool = True
    job: JobViewResponse


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post(
    "/validate-and-generate/{org_token}",
    response_model=TriggerResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def validate_and_generate(
    organization_id: str = Depends(get_organization_id),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Start validation and agreement generation; idempotent while a job is live."""
    snapshot = await orchestrator.trigger(organization_id)
    return TriggerResponse(job=JobSnapshotResponse(**snapshot))


@router.get(
    "/job-status/{org_token}",
    response_model=JobStatusResponse,
    response_model_exclude_unset=True,
)
async def job_status(
    organization_id: str = Depends(get_organization_id),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Poll the organization's latest job."""
    view = await orchestrator.status(organization_id)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No validation job for this organization")
    return JobStatusResponse(success=True, job=JobViewResponse(**view))
