"""
Tests for absentee ballot statistics.

Tests cover:
- percentage() bounds and rounding
- Ward/town identifiers and ordering
- Grouping, party breakdown and the unknown-party asymmetry
- Dataset validation
- Daily return curve
"""

import logging

import pytest

from voter_report_backend.errors import DataQualityError
from voter_report_backend.statistics import (
    DELIVERY_METHOD,
    PARTY_CODES,
    UNKNOWN_GROUP,
    WARD_TOWN,
    compute_absentee_statistics,
    compute_grouped_statistics,
    daily_return_curve,
    normalize_date,
    percentage,
    validate_rows,
)
from voter_report_backend.ward_town import (
    parse_ward_town_identifier,
    strip_leading_zeros,
    ward_sort_key,
    ward_town_identifier,
)


def row(ward="45", party="DEM", sent=True, returned=True, received_on="10/05/2026", **extra):
    data = {
        "Ward": ward,
        "Town": "Somewhere",
        "Party": party,
        "Ballot Last Issued Date": "10/01/2026" if sent else "",
        "Ballot Last Received Date": received_on if returned else "",
        "Last Received Delivery Status": "Received" if returned else "",
    }
    data.update(extra)
    return data


class TestPercentage:
    """Tests for percentage()."""

    def test_zero_denominator(self):
        assert percentage(5, 0) == 0

    def test_rounds_to_two_places(self):
        assert percentage(1, 3) == 33.33
        assert percentage(2, 3) == 66.67

    def test_halves_round_up(self):
        """Exact halves round away from zero, not to the even digit."""
        assert percentage(1, 32) == 3.13
        assert percentage(1, 800) == 0.13

    def test_bounds(self):
        for numerator in range(0, 8):
            assert 0 <= percentage(numerator, 7) <= 100

    def test_full(self):
        assert percentage(4, 4) == 100.0


class TestWardTown:
    """Tests for ward-to-town identifiers."""

    def test_leading_zeros_stripped(self):
        assert strip_leading_zeros("045") == "45"
        assert strip_leading_zeros("000") == "0"

    def test_known_ward(self):
        assert ward_town_identifier("45") == "Brighton (45)"
        assert ward_town_identifier("016") == "Rochester (16)"

    def test_unknown_ward(self):
        assert ward_town_identifier("99") == "Unknown Town (99)"

    def test_parse_round_trip(self):
        assert parse_ward_town_identifier("East Rochester (48)") == ("East Rochester", "48")

    def test_numeric_sort(self):
        identifiers = ["Greece (50)", "Rochester (16)", "Unknown", "Brighton (45)", "Rochester (9)"]
        assert sorted(identifiers, key=ward_sort_key) == [
            "Rochester (9)",
            "Rochester (16)",
            "Brighton (45)",
            "Greece (50)",
            "Unknown",
        ]


class TestGroupedStatistics:
    """Tests for compute_grouped_statistics()."""

    def test_brighton_example(self):
        """Two ward-45 rows: one returned DEM, one outstanding REP."""
        rows = [row("45", "DEM", returned=True), row("45", "REP", returned=False)]
        result = compute_grouped_statistics(rows, WARD_TOWN)

        assert result.group_count == 1
        stats = result.statistics[0]
        assert stats.identifier == "Brighton (45)"
        assert (stats.requested, stats.sent, stats.returned, stats.return_percentage) == (2, 2, 1, 50.0)
        assert stats.party_breakdown["DEM"].as_dict() == {"requested": 1, "sent": 1, "returned": 1, "percentage": 100.0}
        assert stats.party_breakdown["REP"].as_dict() == {"requested": 1, "sent": 1, "returned": 0, "percentage": 0}
        assert stats.details == {"town": "Brighton", "ward": "45"}

    def test_every_party_code_present(self):
        result = compute_grouped_statistics([row()], WARD_TOWN)
        assert list(result.statistics[0].party_breakdown) == list(PARTY_CODES)

    def test_party_normalized(self):
        result = compute_grouped_statistics([row(party=" dem ")], WARD_TOWN)
        assert result.statistics[0].party_breakdown["DEM"].requested == 1

    def test_unknown_party_counted_in_totals_only(self, caplog):
        """Rows with an unrecognized party count toward the group but no party."""
        rows = [row(party="DEM"), row(party="GRN"), row(party="")]
        with caplog.at_level(logging.WARNING):
            result = compute_grouped_statistics(rows, WARD_TOWN)

        stats = result.statistics[0]
        assert stats.requested == 3
        assert sum(party.requested for party in stats.party_breakdown.values()) == 1
        assert "2 rows with invalid party values" in caplog.text
        assert "GRN" in caplog.text

    def test_blank_key_goes_to_unknown_group(self):
        rows = [row(ward=""), row(ward="  "), row(ward="45")]
        result = compute_grouped_statistics(rows, WARD_TOWN)

        assert [stats.identifier for stats in result.statistics] == ["Brighton (45)", UNKNOWN_GROUP]
        assert len(result.groups[UNKNOWN_GROUP]) == 2

    def test_no_row_dropped(self):
        rows = [row(ward=str(ward)) for ward in (16, 45, 45, 99, 0, 7)]
        result = compute_grouped_statistics(rows, WARD_TOWN)
        assert sum(stats.requested for stats in result.statistics) == len(rows)

    def test_ward_order_is_numeric(self):
        rows = [row(ward="50"), row(ward="9"), row(ward="16")]
        result = compute_grouped_statistics(rows, WARD_TOWN)
        assert [stats.identifier for stats in result.statistics] == ["Unknown Town (9)", "Rochester (16)", "Greece (50)"]

    def test_column_dimension_is_lexicographic(self):
        rows = [row(**{"Delivery Method": method}) for method in ("Mail", "Early Voting", "In Person", "Mail")]
        result = compute_grouped_statistics(rows, DELIVERY_METHOD)
        assert [stats.identifier for stats in result.statistics] == ["Early Voting", "In Person", "Mail"]
        assert result.statistics[-1].requested == 2

    def test_not_sent_means_zero_percentage(self):
        result = compute_grouped_statistics([row(sent=False, returned=False)], WARD_TOWN)
        assert result.statistics[0].return_percentage == 0

    def test_empty_rows_rejected(self):
        with pytest.raises(DataQualityError):
            compute_grouped_statistics([], WARD_TOWN)


class TestValidation:
    """Tests for validate_rows()."""

    def test_valid_rows_pass(self):
        validate_rows([row()])

    def test_empty_dataset(self):
        with pytest.raises(DataQualityError, match="No data"):
            validate_rows([])

    def test_missing_required_column(self):
        bad = row()
        del bad["Last Received Delivery Status"]
        with pytest.raises(DataQualityError, match="Last Received Delivery Status"):
            validate_rows([row(), bad])

    def test_critical_column_blank_everywhere(self):
        with pytest.raises(DataQualityError, match="Party"):
            validate_rows([row(party=""), row(party="  ")])

    def test_critical_column_blank_in_some_rows_is_fine(self):
        validate_rows([row(party=""), row(party="DEM")])


class TestDates:
    """Tests for normalize_date()."""

    @pytest.mark.parametrize(
        "value",
        ["2026-10-05", "10/05/2026", "10/5/26", "10/05/2026 14:30:00", "2026-10-05T08:00:00Z", "Oct 05, 2026"],
    )
    def test_formats(self, value):
        assert normalize_date(value) == "2026-10-05"

    @pytest.mark.parametrize("value", ["", None, "not a date", "13/45/2026"])
    def test_unparseable(self, value):
        assert normalize_date(value) is None


class TestDailyReturnCurve:
    """Tests for daily_return_curve()."""

    def test_sorted_with_running_totals(self):
        rows = [
            row(party="DEM", received_on="10/06/2026"),
            row(party="REP", received_on="10/05/2026"),
            row(party="DEM", received_on="10/05/2026"),
            row(party="DEM", returned=False),
        ]
        curve = daily_return_curve(rows)

        assert [entry.date for entry in curve] == ["2026-10-05", "2026-10-06"]
        assert [entry.returned for entry in curve] == [2, 1]
        assert [entry.cumulative for entry in curve] == [2, 3]
        assert curve[0].party_returned["DEM"] == 1
        assert curve[-1].party_cumulative["DEM"] == 2
        assert curve[-1].party_cumulative["REP"] == 1

    def test_unparseable_dates_excluded(self):
        rows = [row(received_on="garbage"), row(received_on="10/05/2026")]
        curve = daily_return_curve(rows)
        assert [entry.cumulative for entry in curve] == [1]

    def test_cumulative_is_monotonic_and_totals_match(self):
        days = ["10/0%d/2026" % day for day in (3, 1, 2, 3, 3, 9, 1)]
        rows = [row(received_on=day) for day in days]
        curve = daily_return_curve(rows)

        cumulative = [entry.cumulative for entry in curve]
        assert cumulative == sorted(cumulative)
        assert cumulative[-1] == len(days)


class TestAbsenteeStatistics:
    """Tests for compute_absentee_statistics()."""

    def test_full_dataset(self):
        rows = [
            row("45", "DEM", **{"Delivery Method": "Mail", "St.Sen": "56", "St.Leg": "136", "Other1": "22"}),
            row("16", "REP", returned=False, **{"Delivery Method": "Mail", "St.Sen": "55", "St.Leg": "137", "Other1": ""}),
        ]
        result = compute_absentee_statistics(rows)

        assert result.total_records == 2
        assert (result.summary.requested, result.summary.sent, result.summary.returned) == (2, 2, 1)
        assert result.summary.return_rate == 50.0
        assert set(result.by_dimension) == {
            "ward_town",
            "delivery_method",
            "state_senate",
            "state_legislature",
            "county_legislature",
        }
        assert [s.identifier for s in result["county_legislature"].statistics] == ["22", UNKNOWN_GROUP]
        assert result.daily_returns[-1].cumulative == 1

    def test_gate_runs_first(self):
        with pytest.raises(DataQualityError):
            compute_absentee_statistics([{"Ward": "45"}])
