"""
Job Registry

Holds at most one live (non-terminal) validation job per organization.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from ...models.job import ValidationJob


class JobRegistry(ABC):

    @abstractmethod
    async def get(self, organization_id: str) -> Optional[ValidationJob]:
        """Latest job for the organization, terminal or not."""

    @abstractmethod
    async def upsert_if_absent(
        self,
        organization_id: str,
        factory: Callable[[], ValidationJob],
    ) -> Tuple[ValidationJob, bool]:
        """
        Return the live job, or install factory() when none is live.

        The bool is True when a new job was created.
        """


class InMemoryJobRegistry(JobRegistry):
    """Process-local registry; check-and-insert happens under one lock."""

    def __init__(self):
        self._jobs: Dict[str, ValidationJob] = {}
        self._lock = asyncio.Lock()

    async def get(self, organization_id: str) -> Optional[ValidationJob]:
        return self._jobs.get(organization_id)

    async def upsert_if_absent(
        self,
        organization_id: str,
        factory: Callable[[], ValidationJob],
    ) -> Tuple[ValidationJob, bool]:
        async with self._lock:
            existing = self._jobs.get(organization_id)
            if existing is not None and not existing.terminal:
                return existing, False
            job = factory()
            self._jobs[organization_id] = job
            return job, True

    def __len__(self) -> int:
        return len(self._jobs)
