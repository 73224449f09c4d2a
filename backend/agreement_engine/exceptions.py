"""
Agreement Engine - Error Taxonomy

Per-member resolver outcomes (not found, ambiguous, mismatch, skipped) are
values of OutcomeStatus, not exceptions. The exceptions below cover the
failures that cross a component boundary.
"""
from typing import Optional


class AgreementEngineError(Exception):
    """Base class for all engine errors."""


class DirectoryUnauthorized(AgreementEngineError):
    """The directory rejected our credentials (401/403)."""

    def __init__(self, status: int, message: str = "directory rejected credentials"):
        super().__init__(f"{message} ({status})")
        self.status = status


class UpstreamError(AgreementEngineError):
    """Non-200 from the directory that is not an authorization failure."""

    def __init__(self, status: Optional[int], message: str):
        super().__init__(message)
        self.status = status


class TokenRefreshError(AgreementEngineError):
    """Refreshing the directory access token failed."""


class EligibilityBlocked(AgreementEngineError):
    """Organization-level gates are not satisfied."""

    def __init__(self, unmet_gates):
        self.unmet_gates = list(unmet_gates)
        super().__init__("Eligibility gates not met: " + ", ".join(self.unmet_gates))


class GenerationFailure(AgreementEngineError):
    """Rendering or attachment persistence failed after validation."""


class RecordNotFound(AgreementEngineError):
    """A record requested from the persistent store does not exist."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class DownloadNotFound(AgreementEngineError):
    """Unknown or already consumed download token."""


class DownloadExpired(AgreementEngineError):
    """Download token past its expiry."""
