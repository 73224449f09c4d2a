"""Job Orchestrator - per-organization validate-and-generate jobs."""
from .gates import check_gates, unmet_gates
from .orchestrator import JobOrchestrator
from .registry import InMemoryJobRegistry, JobRegistry
from .status import REASON_MESSAGES, describe_outcome, describe_skip, public_job_view

__all__ = [
    "JobOrchestrator",
    "JobRegistry",
    "InMemoryJobRegistry",
    "check_gates",
    "unmet_gates",
    "REASON_MESSAGES",
    "describe_outcome",
    "describe_skip",
    "public_job_view",
]
