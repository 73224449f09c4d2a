"""Agreement Engine - Document Rendering

Builds the agreement payload, renders it to bytes and hands out
single-use download links.
"""
from .downloads import DownloadEntry, DownloadTokenStore
from .payload import AgreementPayload, TeamMemberName, build_payload, suggest_filename
from .renderers import (
    CommandDocumentRenderer,
    DocumentRenderer,
    TextAgreementRenderer,
    build_renderer,
    membership_copy,
)

__all__ = [
    "AgreementPayload",
    "TeamMemberName",
    "build_payload",
    "suggest_filename",
    "DocumentRenderer",
    "CommandDocumentRenderer",
    "TextAgreementRenderer",
    "build_renderer",
    "membership_copy",
    "DownloadEntry",
    "DownloadTokenStore",
]
