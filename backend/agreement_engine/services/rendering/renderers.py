"""
Agreement Engine - Document Renderers

Payload in, document bytes out. Visual typesetting lives outside this
service: CommandDocumentRenderer bridges to the external generator, and
TextAgreementRenderer produces a deterministic plain-text agreement when no
generator is configured.
"""
from __future__ import annotations
import asyncio
import json
import logging
import os
import shlex
import tempfile
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ...config import JobSettings
from ...exceptions import GenerationFailure
from .payload import AgreementPayload

logger = logging.getLogger(__name__)


class DocumentRenderer(ABC):
    """Turns an agreement payload into document bytes."""

    media_type = "application/pdf"

    @abstractmethod
    async def render(self, payload: AgreementPayload) -> bytes:
        ...


# =============================================================================
# EXTERNAL GENERATOR
# =============================================================================

class CommandDocumentRenderer(DocumentRenderer):
    """
    Run the external generator as `<command> payload.json out.pdf`.

    A non-zero exit or missing output raises GenerationFailure.
    """

    def __init__(self, command: str):
        if not command:
            raise ValueError("CommandDocumentRenderer requires a generator command")
        self.command = command

    async def render(self, payload: AgreementPayload) -> bytes:
        with tempfile.TemporaryDirectory(prefix="agreement_") as tmp:
            payload_path = os.path.join(tmp, "payload.json")
            out_path = os.path.join(tmp, "out.pdf")
            with open(payload_path, "w", encoding="utf-8") as f:
                json.dump(payload.to_dict(), f, indent=2)

            args = shlex.split(self.command) + [payload_path, out_path]
            logger.debug(f"Spawning generator: {args}")
            proc = await asyncio.create_subprocess_exec(
                *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE,
            )
            _, err = await proc.communicate()
            if proc.returncode != 0:
                logger.error(f"Generator exited {proc.returncode}: {err.decode(errors='replace')[:500]}")
                raise GenerationFailure(f"Generator exited {proc.returncode}")
            if not os.path.exists(out_path):
                raise GenerationFailure("Generator produced no output")
            with open(out_path, "rb") as f:
                return f.read()


# =============================================================================
# PLAIN TEXT FALLBACK
# =============================================================================

MEMBERSHIP_COPY = [
    ("mem_fulltime_count", "full membership"),
    ("mem_fulltime_discount_count", "discounted full membership"),
    ("mem_casual_count", "casual membership"),
    ("mem_casual_within_12m_count", "free casual membership"),
    ("mem_casual_over_12m_count", "discounted casual membership"),
    ("mem_day_count", "daily membership"),
]


def membership_copy(memberships: Dict[str, str]) -> str:
    """Human summary of the membership counts, e.g. "2 full memberships, 1 daily membership"."""
    pieces = []
    for key, noun in MEMBERSHIP_COPY:
        try:
            n = int(memberships.get(key) or 0)
        except ValueError:
            n = 0
        if n:
            pieces.append(f"{n} {noun}{'' if n == 1 else 's'}")
    return ", ".join(pieces) if pieces else "none"


class TextAgreementRenderer(DocumentRenderer):
    """
    Render the agreement as plain text.

    Same payload always produces the same bytes.
    """

    media_type = "text/plain"

    async def render(self, payload: AgreementPayload) -> bytes:
        logger.info(f"Rendering text agreement for {payload.legal_name or 'unnamed organization'}")

        content_parts: List[str] = [
            self._render_title(),
            self._render_licensee(payload),
            self._render_terms(payload),
            self._render_personnel(payload),
            self._render_insurance(payload),
        ]
        content = "\n\n".join(filter(None, content_parts)) + "\n"
        return content.encode("utf-8")

    def _render_title(self) -> str:
        return "INCUBATOR MEMBERSHIP AGREEMENT"

    def _render_licensee(self, payload: AgreementPayload) -> str:
        return "\n".join([
            "Licensee",
            f"Name: {payload.legal_name or '-'}",
            f"ABN: {payload.abn or '-'}",
            f"Address: {payload.address or '-'}",
            f"Email: {payload.debtor_email or '-'}",
            f"Representative: {payload.debtor_name or '-'}",
        ])

    def _render_terms(self, payload: AgreementPayload) -> str:
        return "\n".join([
            f"Commencement date: {payload.billing_start_date or '-'}",
            f"Memberships: {membership_copy(payload.memberships)}",
            f"Monthly fee: {payload.calculated_monthly_fee or '-'}",
        ])

    def _render_personnel(self, payload: AgreementPayload) -> str:
        names = [t.full_name for t in payload.team if t.full_name]
        return f"Personnel: {', '.join(names) if names else '-'}"

    def _render_insurance(self, payload: AgreementPayload) -> str:
        cover = "$5 million for any one occurrence" if payload.insurance_status else "not applicable"
        return f"Public liability insurance: {cover}"


def build_renderer(settings: JobSettings, command: Optional[str] = None) -> DocumentRenderer:
    command = command or settings.renderer_command
    if command:
        return CommandDocumentRenderer(command)
    logger.warning("No generator command configured, using plain-text agreements")
    return TextAgreementRenderer()
