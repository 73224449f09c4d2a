"""
Agreement Engine - Job Orchestrator

Validate-and-generate for one organization:

1. Load organization and linked members
2. Gate check (organization form, confirmation, representative form) -> blocked
3. Per member, sequentially with a pacing delay: skip / check / record
4. Re-read members, price, render, issue download link, append attachment
5. done (document reference + fee), or error on any failure outside step 3

The orchestrator owns all job state. The resolver returns pure outcomes and
the discount check service persists them; this module only maps them onto
the checklist.
"""
from __future__ import annotations
import asyncio
import logging
import os
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ...config import Settings
from ...exceptions import EligibilityBlocked, GenerationFailure
from ...models.domain import Attachment, Member, Organization
from ...models.job import ChecklistEntry, MemberCheckStatus, ValidationJob
from ..discount_check import DiscountCheckService
from ..pricing import compute_fee
from ..rendering import DocumentRenderer, DownloadTokenStore, build_payload, suggest_filename
from ..store import PersistentStore
from .gates import check_gates
from .registry import JobRegistry
from .status import describe_exception, describe_outcome, describe_skip, public_job_message, public_job_view

logger = logging.getLogger(__name__)


class JobOrchestrator:
    """Runs at most one validation job per organization at a time."""

    def __init__(
        self,
        store: PersistentStore,
        checks: DiscountCheckService,
        renderer: DocumentRenderer,
        downloads: DownloadTokenStore,
        registry: JobRegistry,
        settings: Settings,
        today: Callable[[], date] = date.today,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store = store
        self.checks = checks
        self.renderer = renderer
        self.downloads = downloads
        self.registry = registry
        self.settings = settings
        self._today = today
        self._sleep = sleep
        self._tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def trigger(self, organization_id: str) -> Dict[str, Any]:
        """Start a job unless one is already live; returns the live job's snapshot."""

        def new_job() -> ValidationJob:
            job = ValidationJob(organization_id=organization_id)
            job.start()
            return job

        job, created = await self.registry.upsert_if_absent(organization_id, new_job)
        if created:
            logger.info(f"Validation job started for organization {organization_id}")
            task = asyncio.create_task(self.run(job))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            logger.info(f"Validation job already {job.state.value} for organization {organization_id}")
        return job.snapshot()

    async def status(self, organization_id: str) -> Optional[Dict[str, Any]]:
        job = await self.registry.get(organization_id)
        return public_job_view(job) if job else None

    async def wait_idle(self):
        """Wait for every scheduled job task (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # JOB BODY
    # =========================================================================

    async def run(self, job: ValidationJob) -> None:
        org_id = job.organization_id
        try:
            organization = await self.store.get_organization(org_id)
            members = await self.store.list_members(org_id)
            check_gates(organization, members)

            job.seed([
                ChecklistEntry(
                    member_id=m.id,
                    name=m.name,
                    membership_type=m.membership.value,
                    expected_bucket=m.effective_category,
                )
                for m in members
            ])

            for index, member in enumerate(members):
                if index:
                    await self._sleep(self.settings.jobs.pacing_delay_seconds)
                await self._check_member(job, member)

            result = await self._generate(organization)
            job.finish(result)
            logger.info(f"Validation job done for organization {org_id}: {result['document']['filename']}")
        except EligibilityBlocked as e:
            job.block(public_job_message(e))
            logger.info(f"Validation job blocked for organization {org_id}: {e}")
        except Exception as e:
            logger.exception(f"Validation job failed for organization {org_id}: {e}")
            job.fail(public_job_message(e))

    async def _check_member(self, job: ValidationJob, member: Member) -> None:
        skip = self.checks.resolver.skip_reason(member.to_query())
        if skip is not None:
            job.mark(member.id, *describe_skip(skip))
            logger.info(f"Member {member.id} skipped ({skip.value})")
            return

        job.mark(member.id, MemberCheckStatus.CHECKING)
        try:
            check = await self.checks.check_member(member)
            status, code, message = describe_outcome(check.outcome)
        except Exception as e:
            logger.exception(f"Member {member.id} check failed: {e}")
            status, code, message = describe_exception(e)
        job.mark(member.id, status, code, message)
        logger.info(f"Member {member.id} -> {status.value} ({code})")

    async def _generate(self, organization: Organization) -> Dict[str, Any]:
        today = self._today()
        members = await self.store.list_members(organization.id)
        matrix = await self.store.load_pricing_matrix()
        fee = compute_fee(members, matrix, self.settings.pricing)

        payload = build_payload(organization, members, fee, self.settings.jobs.agreement_address, today)
        filename = suggest_filename(payload, today, self.renderer.media_type)
        try:
            content = await self.renderer.render(payload)
        except GenerationFailure:
            raise
        except Exception as e:
            raise GenerationFailure(f"renderer failed: {e}") from e

        await asyncio.to_thread(self._save_local_copy, filename, content)
        entry = await asyncio.to_thread(self.downloads.issue, content, filename, self.renderer.media_type)
        url = f"{self.settings.jobs.public_base_url}/download/{entry.token}"

        await self.store.append_attachment(
            organization.id,
            Attachment(url=url, filename=filename, created_at=datetime.now(timezone.utc)),
            created_on=today,
        )
        return {
            "document": {"url": url, "filename": filename, "expires_at": entry.expires_at.isoformat()},
            "fee": fee.to_dict(),
        }

    def _save_local_copy(self, filename: str, content: bytes) -> None:
        outdir = self.settings.jobs.pdf_outdir
        if not outdir:
            return
        os.makedirs(outdir, exist_ok=True)
        with open(os.path.join(outdir, filename), "wb") as f:
            f.write(content)
        logger.info(f"Saved local copy {filename!r} to {outdir}")
