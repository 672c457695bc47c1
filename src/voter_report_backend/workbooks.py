"""
Spreadsheet output for committee rosters, voter lists and absentee statistics.

Every writer builds its own openpyxl Workbook and returns the serialized
``.xlsx`` bytes; nothing is written to disk.
"""

from __future__ import annotations

import logging
import re
from io import BytesIO
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .statistics import PARTY_CODES, AbsenteeStatistics, GroupedStatistics

logger = logging.getLogger(__name__)

MAX_SHEET_NAME_LENGTH = 31
_DISALLOWED_SHEET_CHARS = re.compile(r"[/\\?*\[\]]")

DEFAULT_COLUMN_ORDER = [
    "electionDistrict",
    "name",
    "address",
    "VRCNUM",
    "firstName",
    "lastName",
    "middleInitial",
    "suffixName",
    "houseNum",
    "street",
    "apartment",
    "city",
    "state",
    "zipCode",
    "telephone",
    "email",
    "party",
    "gender",
    "DOB",
    "countyLegDistrict",
    "stateAssemblyDistrict",
    "stateSenateDistrict",
    "congressionalDistrict",
    "originalRegDate",
    "addressForCommittee",
]

DEFAULT_COLUMN_HEADERS = {
    "electionDistrict": "Election District",
    "name": "Name",
    "address": "Address",
    "VRCNUM": "Voter Registration Number",
    "firstName": "First Name",
    "lastName": "Last Name",
    "middleInitial": "Middle Initial",
    "suffixName": "Suffix Name",
    "houseNum": "House Number",
    "street": "Street",
    "apartment": "Apartment",
    "city": "City",
    "state": "State",
    "zipCode": "ZIP Code",
    "telephone": "Phone",
    "email": "Email",
    "party": "Political Party",
    "gender": "Gender",
    "DOB": "Date of Birth",
    "countyLegDistrict": "County Legislative District",
    "stateAssemblyDistrict": "State Assembly District",
    "stateSenateDistrict": "State Senate District",
    "congressionalDistrict": "Congressional District",
    "originalRegDate": "Original Registration Date",
    "addressForCommittee": "Address for Committee",
}

FIELD_WIDTHS = {
    "electionDistrict": 15,
    "name": 25,
    "address": 30,
    "VRCNUM": 20,
    "firstName": 20,
    "lastName": 20,
    "middleInitial": 5,
    "suffixName": 10,
    "houseNum": 10,
    "street": 25,
    "apartment": 15,
    "city": 20,
    "state": 8,
    "zipCode": 10,
    "telephone": 15,
    "email": 30,
    "party": 15,
    "gender": 8,
    "DOB": 12,
    "countyLegDistrict": 20,
    "stateAssemblyDistrict": 20,
    "stateSenateDistrict": 20,
    "congressionalDistrict": 20,
    "originalRegDate": 12,
    "addressForCommittee": 30,
}
DEFAULT_FIELD_WIDTH = 15
PARTY_COLUMN_WIDTH = 10


def sanitize_worksheet_name(name: str) -> str:
    """
    Make a string acceptable as an Excel worksheet title.

    Removes ``/ \\ ? * [ ]``, truncates to 31 characters and falls back to
    ``"Sheet"`` when nothing printable is left.
    """
    sanitized = _DISALLOWED_SHEET_CHARS.sub("", name)[:MAX_SHEET_NAME_LENGTH]
    return sanitized if sanitized.strip() else "Sheet"


def compound_name(record: Mapping[str, Any]) -> str:
    parts = [record.get("firstName") or ""]
    if record.get("middleInitial"):
        parts.append(record["middleInitial"])
    parts.append(record.get("lastName") or "")
    if record.get("suffixName"):
        parts.append(record["suffixName"])
    return " ".join(parts).strip()


def compound_address(record: Mapping[str, Any]) -> str:
    """``"12 Main St Apt 3, Rochester NY 14620"`` from the split address fields."""
    street_parts: List[str] = []
    if record.get("houseNum"):
        street_parts.append(str(record["houseNum"]))
    if record.get("street"):
        street_parts.append(str(record["street"]))
    if record.get("apartment"):
        street_parts.append(f"Apt {record['apartment']}")
    for extra in ("halfAddress", "resAddrLine2", "resAddrLine3"):
        if record.get(extra):
            street_parts.append(str(record[extra]))

    street = " ".join(street_parts).strip()
    city_state_zip = " ".join(
        str(record[part]) for part in ("city", "state", "zipCode", "zipSuffix") if record.get(part)
    )
    return ", ".join(part for part in (street, city_state_zip) if part).strip()


def determine_columns(
    selected_fields: Sequence[str],
    include_name: bool = True,
    include_address: bool = True,
    column_order: Optional[Sequence[str]] = None,
) -> List[str]:
    """
    Columns to write, in order.

    Compound ``name``/``address`` columns come first when requested, then the
    selected fields. Columns named in ``column_order`` are moved to the front
    in that order; the rest keep their relative order.
    """
    columns: List[str] = []
    if include_name:
        columns.append("name")
    if include_address:
        columns.append("address")
    for field in selected_fields:
        if field not in columns:
            columns.append(field)

    if column_order:
        ordered = [column for column in column_order if column in columns]
        remaining = [column for column in columns if column not in column_order]
        return ordered + remaining
    return columns


def field_value(record: Mapping[str, Any], field: str) -> Any:
    if field == "name":
        return record.get("name") or compound_name(record)
    if field == "address":
        return record.get("address") or compound_address(record)
    value = record.get(field)
    return "" if value is None else value


def _set_column_widths(sheet: Worksheet, widths: Iterable[float]) -> None:
    for index, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width


def _add_sheet(workbook: Workbook, title: str, rows: Iterable[Sequence[Any]], widths: Iterable[float]) -> Worksheet:
    # openpyxl appends a numeric suffix when the title is already taken
    sheet = workbook.create_sheet(title=sanitize_worksheet_name(title))
    for row in rows:
        sheet.append(list(row))
    _set_column_widths(sheet, widths)
    return sheet


def _new_workbook() -> Workbook:
    workbook = Workbook()
    workbook.remove(workbook.active)
    return workbook


def workbook_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class RosterColumns:
    """Resolved column layout shared by the committee and voter-list writers."""

    def __init__(
        self,
        selected_fields: Sequence[str] = (),
        include_name: bool = True,
        include_address: bool = True,
        column_order: Optional[Sequence[str]] = None,
        column_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.include_name = include_name
        self.include_address = include_address
        self.columns = determine_columns(
            selected_fields,
            include_name=include_name,
            include_address=include_address,
            column_order=column_order or DEFAULT_COLUMN_ORDER,
        )
        self.headers_by_field = dict(column_headers or DEFAULT_COLUMN_HEADERS)

    @property
    def headers(self) -> List[str]:
        return [self.headers_by_field.get(column, column) for column in self.columns]

    @property
    def widths(self) -> List[int]:
        return [FIELD_WIDTHS.get(column, DEFAULT_FIELD_WIDTH) for column in self.columns]

    def row(self, record: Mapping[str, Any], election_district: Optional[str] = None) -> List[Any]:
        values = dict(record)
        if self.include_name:
            values["name"] = values.get("name") or compound_name(record)
        if self.include_address:
            values["address"] = values.get("address") or compound_address(record)
        if election_district is not None:
            values["electionDistrict"] = election_district.zfill(3)
        return [field_value(values, column) for column in self.columns]


def committee_workbook(sections: Sequence[Any], columns: RosterColumns) -> bytes:
    """
    One worksheet per committee section.

    Args:
        sections: Objects with ``label`` and ``committees`` (election district
            to list of member mappings), already stripped of empty districts
        columns: Column layout
    """
    workbook = _new_workbook()
    for section in sections:
        rows: List[List[Any]] = [columns.headers]
        for district, members in section.committees.items():
            rows.extend(columns.row(member, election_district=str(district)) for member in members)
        _add_sheet(workbook, section.label, rows, columns.widths)
        logger.info(f"Added worksheet for {section.label} ({len(rows) - 1} members)")

    if not workbook.worksheets:
        _add_sheet(workbook, "Sheet", [columns.headers], columns.widths)
    return workbook_bytes(workbook)


def voter_list_workbook(records: Sequence[Mapping[str, Any]], columns: RosterColumns) -> bytes:
    """A single ``Voter List`` worksheet, one row per record."""
    workbook = _new_workbook()
    rows: List[List[Any]] = [columns.headers]
    rows.extend(columns.row(record) for record in records)
    _add_sheet(workbook, "Voter List", rows, columns.widths)
    logger.info(f"Voter list worksheet has {len(records)} rows")
    return workbook_bytes(workbook)


def _percent(value: float) -> str:
    return f"{value}%"


def _diagnostics_rows(statistics: AbsenteeStatistics, source_file: str) -> List[List[Any]]:
    summary = statistics.summary
    total = str(statistics.total_records)
    return [
        ["Diagnostics"],
        ["Metric", "Value"],
        ["Data Tab", "ALL Countywide"],
        ["Source File", source_file.rsplit("/", 1)[-1]],
        ["Raw Rows Read", total],
        ["Rows After Dedupe", total],
        ["Rows After Filters", total],
        [],
        ["Universe Totals"],
        ["Metric", "Value"],
        ["Requested (filtered universe)", str(summary.requested)],
        ["Ballots Sent (have date)", str(summary.sent)],
        ["Ballots Returned (date/status)", str(summary.returned)],
        ["Return Rate", _percent(summary.return_rate)],
    ]


def _ward_town_rows(grouped: GroupedStatistics) -> List[List[Any]]:
    headers: List[Any] = ["Ward / Town", "Requested", "Ballots Sent", "Returned", "Return %"]
    for party in PARTY_CODES:
        headers.extend([f"{party} Req", f"{party} Sent", f"{party} Ret", f"{party} %"])

    rows = [headers]
    for stats in grouped.statistics:
        row: List[Any] = [stats.identifier, stats.requested, stats.sent, stats.returned, _percent(stats.return_percentage)]
        for party in PARTY_CODES:
            party_stats = stats.party_breakdown[party]
            row.extend([party_stats.requested, party_stats.sent, party_stats.returned, _percent(party_stats.percentage)])
        rows.append(row)
    return rows


def _dimension_rows(grouped: GroupedStatistics, first_header: str) -> List[List[Any]]:
    display = grouped.dimension.display_name
    headers: List[Any] = [first_header, "Requested", "Returned", "Return %"]
    for party in PARTY_CODES:
        headers.extend([f"{party} Req", f"{party} Ret", f"{party} %"])

    rows: List[List[Any]] = [[f"{display}: Requested, Returned & Party Detail"], [], headers]
    for stats in grouped.statistics:
        row: List[Any] = [stats.identifier, stats.requested, stats.returned, _percent(stats.return_percentage)]
        for party in PARTY_CODES:
            party_stats = stats.party_breakdown[party]
            row.extend([party_stats.requested, party_stats.returned, _percent(party_stats.percentage)])
        rows.append(row)
    return rows


def _daily_curve_rows(statistics: AbsenteeStatistics) -> List[List[Any]]:
    headers: List[Any] = ["Date", "Returned", "Cumulative"]
    for party in PARTY_CODES:
        headers.extend([f"{party} Returned", f"{party} Cumulative"])

    rows: List[List[Any]] = [["Daily Return Curve"], [], headers]
    for entry in statistics.daily_returns:
        row: List[Any] = [entry.date, entry.returned, entry.cumulative]
        for party in PARTY_CODES:
            row.extend([entry.party_returned[party], entry.party_cumulative[party]])
        rows.append(row)
    return rows


# (dimension name, worksheet title, first column header)
DIMENSION_SHEETS = (
    ("delivery_method", "Delivery Method Details", "Delivery Method"),
    ("state_senate", "State Senate Details", "St.Sen"),
    ("state_legislature", "State Legislature Details", "St.Leg"),
    ("county_legislature", "County Legislature Details", "County Leg"),
)


def absentee_workbook(statistics: AbsenteeStatistics, source_file: str) -> bytes:
    """
    The absentee statistics workbook.

    Sheets: Diagnostics, Ward/Town Details (party Req/Sent/Ret/%), one detail
    sheet per additional dimension (party Req/Ret/%) and the Daily Return
    Curve. Dimensions that were not computed are skipped.
    """
    workbook = _new_workbook()
    _add_sheet(workbook, "Diagnostics", _diagnostics_rows(statistics, source_file), [30, 15])

    party_widths: Dict[int, List[int]] = {
        count: [PARTY_COLUMN_WIDTH] * (count * len(PARTY_CODES)) for count in (3, 4)
    }
    if "ward_town" in statistics.by_dimension:
        _add_sheet(
            workbook,
            "Ward/Town Details",
            _ward_town_rows(statistics["ward_town"]),
            [20, 12, 12, 12, 12] + party_widths[4],
        )
    for name, title, first_header in DIMENSION_SHEETS:
        if name not in statistics.by_dimension:
            continue
        _add_sheet(workbook, title, _dimension_rows(statistics[name], first_header), [20, 12, 12, 12] + party_widths[3])

    _add_sheet(workbook, "Daily Return Curve", _daily_curve_rows(statistics), [15, 12, 12] + [12] * (2 * len(PARTY_CODES)))
    logger.info(f"Absentee workbook has {len(workbook.worksheets)} sheets")
    return workbook_bytes(workbook)
