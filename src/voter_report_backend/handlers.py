"""
Per-type report handlers.

Each handler turns one validated job into a file in object storage and
returns the storage key, which becomes the ``url`` of the success webhook.
Handlers raise on any failure; the job queue converts the exception into a
failure webhook.

Pipelines:
    - ldCommittees/pdf: committee sections -> layout engine -> HTML -> PDF
    - ldCommittees/xlsx: committee sections -> one worksheet per section
    - designatedPetition: petition payload -> HTML -> PDF
    - voterList: voter records -> single worksheet
    - absenteeReport: CSV from storage -> statistics -> statistics workbook
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from .errors import DataQualityError
from .layout import DEFAULT_PAGE_CAPACITY, Section, check_page_invariants, paginate
from .models import (
    AbsenteeReportJob,
    CommitteeSection,
    DesignatedPetitionJob,
    LdCommitteesJob,
    ReportType,
    VoterListJob,
    XlsxConfig,
)
from .rendering import HtmlRenderer, PdfRenderer
from .statistics import REQUIRED_COLUMNS, compute_absentee_statistics
from .storage import ObjectStorage, content_type_for
from .utils import generate_report_key
from .workbooks import RosterColumns, absentee_workbook, committee_workbook, voter_list_workbook

logger = logging.getLogger(__name__)

Handler = Callable[[Any], str]


@dataclass
class CommitteeRoster:
    """A committee section with empty election districts removed."""

    section_key: str
    label: str
    committees: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)


def drop_empty_committees(sections: Sequence[CommitteeSection]) -> List[CommitteeRoster]:
    """Drop election districts without members, then sections left with none."""
    rosters: List[CommitteeRoster] = []
    for section in sections:
        committees = {
            district: [member.model_dump() for member in members]
            for district, members in section.committees.items()
            if members
        }
        if not committees:
            logger.info(f"Skipping {section.label}: no committee members")
            continue
        rosters.append(CommitteeRoster(section_key=section.section_key, label=section.label, committees=committees))
    return rosters


def rosters_to_sections(rosters: Sequence[CommitteeRoster]) -> List[Section]:
    return [
        Section(section_key=roster.section_key, groups_by_identifier=roster.committees, label=roster.label)
        for roster in rosters
    ]


def roster_columns(include_fields: Sequence[str], xlsx_config: Optional[XlsxConfig]) -> RosterColumns:
    config = xlsx_config or XlsxConfig()
    return RosterColumns(
        selected_fields=include_fields,
        include_name=config.include_compound_fields.name,
        include_address=config.include_compound_fields.address,
        column_order=config.column_order,
        column_headers=config.column_headers,
    )


def load_csv_rows(text: str, required_columns: Sequence[str] = REQUIRED_COLUMNS) -> List[Dict[str, str]]:
    """
    Parse CSV text into row mappings with every value kept as a string.

    Raises:
        DataQualityError: If the CSV cannot be parsed or lacks a required header
    """
    try:
        dataframe = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise DataQualityError(f"Could not parse CSV: {exc}") from exc

    dataframe.columns = [str(column).strip() for column in dataframe.columns]
    missing = [column for column in required_columns if column not in dataframe.columns]
    if missing:
        raise DataQualityError(f"CSV is missing required columns: {', '.join(missing)}")

    logger.info(f"Parsed CSV with {len(dataframe)} rows and {len(dataframe.columns)} columns")
    return dataframe.to_dict(orient="records")


class ReportHandlers:
    """
    Collaborators shared by every handler.

    Args:
        storage: Destination for generated files and source of CSV inputs
        html_renderer: Jinja2 renderer for the PDF reports
        pdf_renderer: HTML-to-PDF converter
        page_capacity: Rows per committee report page
    """

    def __init__(
        self,
        storage: ObjectStorage,
        html_renderer: HtmlRenderer,
        pdf_renderer: PdfRenderer,
        page_capacity: int = DEFAULT_PAGE_CAPACITY,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.storage = storage
        self.html_renderer = html_renderer
        self.pdf_renderer = pdf_renderer
        self.page_capacity = page_capacity
        self.today = today

    def registry(self) -> Dict[str, Handler]:
        return {
            ReportType.LD_COMMITTEES.value: self.ld_committees,
            ReportType.DESIGNATED_PETITION.value: self.designated_petition,
            ReportType.VOTER_LIST.value: self.voter_list,
            ReportType.ABSENTEE_REPORT.value: self.absentee_report,
        }

    def _upload(self, job: Any, data: bytes, extension: str) -> str:
        key = generate_report_key(job.type, extension, job.author, job.job_id, report_name=job.name)
        return self.storage.upload_bytes(data, key, content_type_for(extension))

    def ld_committees(self, job: LdCommitteesJob) -> str:
        rosters = drop_empty_committees(job.payload)
        logger.info(f"Job {job.job_id}: {len(rosters)} committee sections with members")

        if job.format == "xlsx":
            data = committee_workbook(rosters, roster_columns(job.include_fields, job.xlsx_config))
            return self._upload(job, data, "xlsx")

        sections = rosters_to_sections(rosters)
        pages = paginate(sections, page_capacity=self.page_capacity)
        check_page_invariants(sections, pages)
        logger.info(f"Job {job.job_id}: laid out {len(pages)} pages")
        html = self.html_renderer.committee_report(pages, generated_on=self.today())
        return self._upload(job, self.pdf_renderer.render(html), "pdf")

    def designated_petition(self, job: DesignatedPetitionJob) -> str:
        html = self.html_renderer.designated_petition(job.payload)
        return self._upload(job, self.pdf_renderer.render(html), "pdf")

    def voter_list(self, job: VoterListJob) -> str:
        data = voter_list_workbook(job.payload, roster_columns(job.include_fields, job.xlsx_config))
        return self._upload(job, data, "xlsx")

    def absentee_report(self, job: AbsenteeReportJob) -> str:
        csv_key = job.payload.csv_file_key
        logger.info(f"Job {job.job_id}: downloading {csv_key}")
        rows = load_csv_rows(self.storage.download_text(csv_key))
        statistics = compute_absentee_statistics(rows)
        return self._upload(job, absentee_workbook(statistics, source_file=csv_key), "xlsx")
