"""
Grouped statistics for absentee ballot request data.

Rows are plain ``{column: value}`` mappings as read from the county's
Absentee Standard Ballot Request export. Each grouping dimension assigns
every row to exactly one group (blank keys land in ``"Unknown"``) and the
aggregator computes requested/sent/returned counts, a return percentage and
a per-party breakdown for every group. A daily return curve is derived
separately from the returned rows.

Key Components:
    - percentage: zero-safe ratio used for every derived percentage
    - GroupingDimension: key function plus explicit sort order
    - compute_grouped_statistics: one dimension over a set of rows
    - daily_return_curve: per-day and cumulative returns
    - compute_absentee_statistics: the full workbook dataset
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import DataQualityError
from .ward_town import parse_ward_town_identifier, ward_sort_key, ward_town_identifier

logger = logging.getLogger(__name__)

Row = Mapping[str, str]
RowPredicate = Callable[[Row], bool]

PARTY_CODES: Tuple[str, ...] = ("DEM", "REP", "BLK", "CON", "WOR", "OTH", "IND")
UNKNOWN_GROUP = "Unknown"

# Column names in the county export
WARD_COLUMN = "Ward"
TOWN_COLUMN = "Town"
PARTY_COLUMN = "Party"
DELIVERY_METHOD_COLUMN = "Delivery Method"
STATE_SENATE_COLUMN = "St.Sen"
STATE_LEGISLATURE_COLUMN = "St.Leg"
COUNTY_LEGISLATURE_COLUMN = "Other1"
ISSUED_DATE_COLUMN = "Ballot Last Issued Date"
RECEIVED_DATE_COLUMN = "Ballot Last Received Date"
RECEIVED_STATUS_COLUMN = "Last Received Delivery Status"

REQUIRED_COLUMNS: Tuple[str, ...] = (WARD_COLUMN, TOWN_COLUMN, PARTY_COLUMN, RECEIVED_STATUS_COLUMN)
CRITICAL_COLUMNS: Tuple[str, ...] = (WARD_COLUMN, TOWN_COLUMN, PARTY_COLUMN)

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%m-%d-%Y",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M",
    "%b %d, %Y",
    "%B %d, %Y",
)


def percentage(numerator: int, denominator: int) -> float:
    """``numerator / denominator`` as a percentage rounded half up to 2 places; ``0`` when the denominator is 0."""
    if denominator == 0:
        return 0
    return math.floor(numerator / denominator * 10000 + 0.5) / 100


def _value(row: Row, column: str) -> str:
    return (row.get(column) or "").strip()


def is_ballot_sent(row: Row) -> bool:
    """A ballot counts as sent once it has a last-issued date."""
    return _value(row, ISSUED_DATE_COLUMN) != ""


def is_ballot_returned(row: Row) -> bool:
    return _value(row, RECEIVED_STATUS_COLUMN) == "Received"


def party_of(row: Row) -> str:
    return row.get(PARTY_COLUMN) or ""


def normalize_party(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def normalize_date(value: Optional[str]) -> Optional[str]:
    """
    Normalize a date string to ``YYYY-MM-DD``.

    Returns:
        The ISO calendar day, or None when the value cannot be parsed
    """
    text = (value or "").strip()
    if not text:
        return None

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return None


@dataclass(frozen=True)
class PartyStatistics:
    requested: int = 0
    sent: int = 0
    returned: int = 0
    percentage: float = 0

    def as_dict(self) -> Dict[str, Any]:
        return {"requested": self.requested, "sent": self.sent, "returned": self.returned, "percentage": self.percentage}


@dataclass
class GroupStatistics:
    identifier: str
    requested: int
    sent: int
    returned: int
    return_percentage: float
    party_breakdown: Dict[str, PartyStatistics]
    # Fields parsed out of the identifier, e.g. town and ward
    details: Dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "requested": self.requested,
            "sent": self.sent,
            "returned": self.returned,
            "returnPercentage": self.return_percentage,
            "partyBreakdown": {party: stats.as_dict() for party, stats in self.party_breakdown.items()},
            **self.details,
        }


@dataclass(frozen=True)
class GroupingDimension:
    """
    How to group rows and how to order the resulting statistics.

    Attributes:
        name: Machine name (``ward_town``, ``delivery_method``, ...)
        display_name: Human-readable name used in logs and sheet titles
        key: Maps a row to its raw group key; blank keys become ``"Unknown"``
        sort_key: Sort key applied to each group identifier
        describe: Optional parser turning an identifier into extra fields
    """

    name: str
    display_name: str
    key: Callable[[Row], str]
    sort_key: Callable[[str], Any] = lambda identifier: identifier
    describe: Optional[Callable[[str], Dict[str, str]]] = None

    @classmethod
    def by_column(cls, name: str, display_name: str, column: str) -> "GroupingDimension":
        """Group on a single column's trimmed value, ordered lexicographically."""
        return cls(name=name, display_name=display_name, key=lambda row: _value(row, column))


def _ward_town_key(row: Row) -> str:
    ward = _value(row, WARD_COLUMN)
    return ward_town_identifier(ward) if ward else ""


def _describe_ward_town(identifier: str) -> Dict[str, str]:
    town, ward = parse_ward_town_identifier(identifier)
    return {"town": town, "ward": ward}


WARD_TOWN = GroupingDimension(
    name="ward_town",
    display_name="Ward/Town",
    key=_ward_town_key,
    sort_key=ward_sort_key,
    describe=_describe_ward_town,
)
DELIVERY_METHOD = GroupingDimension.by_column("delivery_method", "Delivery Method", DELIVERY_METHOD_COLUMN)
STATE_SENATE = GroupingDimension.by_column("state_senate", "State Senate", STATE_SENATE_COLUMN)
STATE_LEGISLATURE = GroupingDimension.by_column("state_legislature", "State Legislature", STATE_LEGISLATURE_COLUMN)
COUNTY_LEGISLATURE = GroupingDimension.by_column("county_legislature", "County Legislature", COUNTY_LEGISLATURE_COLUMN)

ABSENTEE_DIMENSIONS: Tuple[GroupingDimension, ...] = (
    WARD_TOWN,
    DELIVERY_METHOD,
    STATE_SENATE,
    STATE_LEGISLATURE,
    COUNTY_LEGISLATURE,
)


@dataclass
class GroupedStatistics:
    dimension: GroupingDimension
    groups: Dict[str, List[Row]]
    statistics: List[GroupStatistics]

    @property
    def group_count(self) -> int:
        return len(self.groups)


def validate_rows(
    rows: Sequence[Row],
    required_columns: Iterable[str] = REQUIRED_COLUMNS,
    critical_columns: Iterable[str] = CRITICAL_COLUMNS,
) -> None:
    """
    Dataset-wide quality gate, run before any grouping.

    Raises:
        DataQualityError: If there are no rows, if any row lacks a required
            column, or if a critical column is blank in every row
    """
    if not rows:
        raise DataQualityError("No data provided for statistics calculation")

    missing = [column for column in required_columns if any(column not in row for row in rows)]
    if missing:
        raise DataQualityError(f"Missing required fields in data: {', '.join(missing)}")

    empty = [column for column in critical_columns if all(not _value(row, column) for row in rows)]
    if empty:
        raise DataQualityError(f"Critical fields contain no meaningful data: {', '.join(empty)}")


def group_rows(rows: Iterable[Row], key: Callable[[Row], str], default: str = UNKNOWN_GROUP) -> Dict[str, List[Row]]:
    """Assign every row to exactly one group; rows with a blank key go to ``default``."""
    grouped: Dict[str, List[Row]] = {}
    for row in rows:
        identifier = (key(row) or "").strip() or default
        grouped.setdefault(identifier, []).append(row)
    return grouped


def party_breakdown(
    rows: Iterable[Row],
    is_sent: RowPredicate = is_ballot_sent,
    is_returned: RowPredicate = is_ballot_returned,
    party: Callable[[Row], str] = party_of,
) -> Dict[str, PartyStatistics]:
    """
    Per-party counters for one group.

    Rows whose normalized party is not one of ``PARTY_CODES`` are left out
    here; callers still count them in the group totals.
    """
    counters = {code: [0, 0, 0] for code in PARTY_CODES}
    invalid_rows = 0
    invalid_values = set()

    for row in rows:
        code = normalize_party(party(row))
        if code not in counters:
            invalid_rows += 1
            invalid_values.add(code)
            continue
        counts = counters[code]
        counts[0] += 1
        if is_sent(row):
            counts[1] += 1
        if is_returned(row):
            counts[2] += 1

    if invalid_rows:
        logger.warning(
            f"Data quality issue: {invalid_rows} rows with invalid party values. "
            f"Invalid values: {', '.join(sorted(invalid_values))}"
        )

    return {
        code: PartyStatistics(requested=req, sent=sent, returned=ret, percentage=percentage(ret, sent))
        for code, (req, sent, ret) in counters.items()
    }


def compute_grouped_statistics(
    rows: Sequence[Row],
    dimension: GroupingDimension,
    is_sent: RowPredicate = is_ballot_sent,
    is_returned: RowPredicate = is_ballot_returned,
    party: Callable[[Row], str] = party_of,
) -> GroupedStatistics:
    """
    Group rows along one dimension and compute each group's statistics.

    Args:
        rows: Input rows; must not be empty
        dimension: Grouping key and ordering
        is_sent: Whether a row's ballot was sent
        is_returned: Whether a row's ballot came back
        party: Extracts the raw party code from a row

    Returns:
        The groups, their statistics in the dimension's order, and the count

    Raises:
        DataQualityError: If ``rows`` is empty
    """
    if not rows:
        raise DataQualityError("No data provided for statistics calculation")

    logger.info(f"Grouping by {dimension.display_name}...")
    grouped = group_rows(rows, dimension.key)
    logger.info(f"Grouped into {len(grouped)} {dimension.display_name} combinations")

    statistics = []
    for identifier, group in grouped.items():
        sent = sum(1 for row in group if is_sent(row))
        returned = sum(1 for row in group if is_returned(row))
        statistics.append(
            GroupStatistics(
                identifier=identifier,
                requested=len(group),
                sent=sent,
                returned=returned,
                return_percentage=percentage(returned, sent),
                party_breakdown=party_breakdown(group, is_sent, is_returned, party),
                details=dimension.describe(identifier) if dimension.describe else {},
            )
        )

    statistics.sort(key=lambda stats: dimension.sort_key(stats.identifier))
    return GroupedStatistics(dimension=dimension, groups=grouped, statistics=statistics)


@dataclass
class DailyReturnEntry:
    date: str
    returned: int
    cumulative: int
    party_returned: Dict[str, int]
    party_cumulative: Dict[str, int]


def daily_return_curve(
    rows: Iterable[Row],
    is_returned: RowPredicate = is_ballot_returned,
    party: Callable[[Row], str] = party_of,
    date_column: str = RECEIVED_DATE_COLUMN,
) -> List[DailyReturnEntry]:
    """
    Returned ballots per calendar day with running totals.

    Rows that are not returned, or whose return date does not parse, are
    skipped. Days are ordered ascending; ISO dates sort correctly as strings.
    """
    per_day: Dict[str, Dict[str, int]] = {}
    totals: Dict[str, int] = {}

    for row in rows:
        if not is_returned(row):
            continue
        day = normalize_date(row.get(date_column))
        if day is None:
            continue
        totals[day] = totals.get(day, 0) + 1
        by_party = per_day.setdefault(day, {code: 0 for code in PARTY_CODES})
        code = normalize_party(party(row))
        if code in by_party:
            by_party[code] += 1

    curve: List[DailyReturnEntry] = []
    running = 0
    running_by_party = {code: 0 for code in PARTY_CODES}
    for day in sorted(totals):
        running += totals[day]
        for code in PARTY_CODES:
            running_by_party[code] += per_day[day][code]
        curve.append(
            DailyReturnEntry(
                date=day,
                returned=totals[day],
                cumulative=running,
                party_returned=dict(per_day[day]),
                party_cumulative=dict(running_by_party),
            )
        )
    return curve


@dataclass(frozen=True)
class SummaryMetrics:
    requested: int
    sent: int
    returned: int
    return_rate: float


def summary_metrics(
    rows: Sequence[Row],
    is_sent: RowPredicate = is_ballot_sent,
    is_returned: RowPredicate = is_ballot_returned,
) -> SummaryMetrics:
    sent = sum(1 for row in rows if is_sent(row))
    returned = sum(1 for row in rows if is_returned(row))
    return SummaryMetrics(requested=len(rows), sent=sent, returned=returned, return_rate=percentage(returned, sent))


@dataclass
class AbsenteeStatistics:
    total_records: int
    summary: SummaryMetrics
    daily_returns: List[DailyReturnEntry]
    by_dimension: Dict[str, GroupedStatistics]

    def __getitem__(self, dimension_name: str) -> GroupedStatistics:
        return self.by_dimension[dimension_name]


def compute_absentee_statistics(
    rows: Sequence[Row],
    dimensions: Sequence[GroupingDimension] = ABSENTEE_DIMENSIONS,
) -> AbsenteeStatistics:
    """
    Everything the absentee workbook needs, computed in one pass per dimension.

    Raises:
        DataQualityError: If the rows fail the quality gate
    """
    logger.info(f"Calculating statistics for {len(rows)} records...")
    validate_rows(rows)

    result = AbsenteeStatistics(
        total_records=len(rows),
        summary=summary_metrics(rows),
        daily_returns=daily_return_curve(rows),
        by_dimension={dimension.name: compute_grouped_statistics(rows, dimension) for dimension in dimensions},
    )
    logger.info(
        f"Statistics calculated: requested={result.summary.requested}, returned={result.summary.returned}, "
        f"return rate={result.summary.return_rate}%"
    )
    return result
