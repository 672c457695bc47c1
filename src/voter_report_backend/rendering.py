"""
HTML and PDF rendering for paginated reports.

Templates receive data that is already paginated; they only lay out what
they are given. PDF conversion is delegated to WeasyPrint, and each template
declares its own page size through CSS ``@page`` rules.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .errors import RenderError
from .layout import Page
from .models import DesignatedPetitionPayload

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
DEFAULT_REPORT_TITLE = "Monroe County Democratic Committee List"
SIGNATURES_PER_SHEET = 5


def _pad(value: object, width: int) -> str:
    return str(value).zfill(width)


def _build_env(template_dir: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(template_dir),
        autoescape=select_autoescape(enabled_extensions=("html", "j2")),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["pad"] = _pad
    return env


def _election_year(election_date: str) -> str:
    """``"June 24, 2025"`` -> ``"2025"``; blank when the year cannot be found."""
    _, _, tail = election_date.rpartition(",")
    return tail.strip() if tail.strip().isdigit() else ""


class HtmlRenderer:
    """Jinja2 wrapper producing complete HTML documents for each report type."""

    def __init__(self, template_dir: Path = DEFAULT_TEMPLATE_DIR, report_title: str = DEFAULT_REPORT_TITLE):
        self.template_dir = template_dir
        self.report_title = report_title
        self.env = _build_env(template_dir)

    def committee_report(self, pages: Sequence[Page], generated_on: Optional[date] = None) -> str:
        template = self.env.get_template("committee_report.html.j2")
        day = generated_on or date.today()
        return template.render(
            pages=pages,
            title=self.report_title,
            generated_on=f"{day:%A, %B} {day.day}, {day.year}",
        )

    def designated_petition(self, petition: DesignatedPetitionPayload) -> str:
        template = self.env.get_template("designated_petition.html.j2")
        return template.render(
            petition=petition,
            signatures=SIGNATURES_PER_SHEET,
            election_year=_election_year(petition.election_date),
        )


class PdfRenderer:
    """Converts rendered HTML into PDF bytes."""

    def render(self, html: str) -> bytes:
        """
        Raises:
            RenderError: If WeasyPrint is unavailable or conversion fails
        """
        try:
            from weasyprint import HTML
        except (ImportError, OSError) as exc:  # pragma: no cover - needs system libraries
            raise RenderError(f"weasyprint is not available: {exc}") from exc

        logger.info("Generating PDF")
        try:
            pdf_bytes = HTML(string=html, base_url=str(DEFAULT_TEMPLATE_DIR)).write_pdf()
        except Exception as exc:  # noqa: BLE001
            raise RenderError(f"Failed to render PDF: {exc}") from exc
        logger.info(f"Received PDF buffer ({len(pdf_bytes)} bytes)")
        return pdf_bytes
