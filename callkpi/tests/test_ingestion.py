"""
Tests for the CSV ingestion service.

Covers NULL normalization, required and numeric cell checks, logical column
detection, encodings and the empty-file paths.
"""

import pytest

from callkpi.models import DataIssueType
from callkpi.services.ingestion import (
    parse_csv,
    validate_logical_fields,
)

HEADER = "Date,AgentName,CallHandled,AvgHandleTimeSeconds,CSAT,Issue_Type,Resolution_Status,WithinSLA"


def _csv(*lines: str, header: str = HEADER) -> bytes:
    return ("\n".join((header,) + lines) + "\n").encode("utf-8")


def _issues_of(issues, issue_type):
    return [i for i in issues if i.type == issue_type]


class TestParseCsv:
    """Rows and issues from a well-formed export."""

    def test_rows_keep_header_names(self):
        rows, issues = parse_csv(_csv(
            "2025-10-01,Akiko Tanaka,12,295,88,Billing,Resolved,true",
            "2025-10-01,Ken Sato,9,310,91,Tech,Open,false",
        ))

        assert len(rows) == 2
        assert rows[0]["AgentName"] == "Akiko Tanaka"
        assert rows[0]["CSAT"] == "88"
        assert rows[1]["Resolution_Status"] == "Open"
        assert issues == []

    def test_null_and_blank_cells_become_none(self):
        rows, issues = parse_csv(_csv(
            "2025-10-01,Akiko Tanaka,12,295,NULL,Billing,Resolved,true",
            "2025-10-01,Ken Sato,9,310,,Tech,Open,  ",
        ))

        assert rows[0]["CSAT"] is None
        assert rows[1]["CSAT"] is None
        assert rows[1]["WithinSLA"] is None

        missing = _issues_of(issues, DataIssueType.MISSING_REQUIRED)
        assert [(i.field, i.rowNumber) for i in missing] == [("CSAT", 1), ("CSAT", 2)]

    def test_headers_and_cells_are_trimmed(self):
        rows, _ = parse_csv(_csv(
            "2025-10-01 , Akiko Tanaka ,12,295,88,Billing,Resolved,true",
            header=" Date , AgentName ,CallHandled,AvgHandleTimeSeconds,CSAT,Issue_Type,Resolution_Status,WithinSLA",
        ))

        assert rows[0]["Date"] == "2025-10-01"
        assert rows[0]["AgentName"] == "Akiko Tanaka"

    def test_str_content_is_accepted(self):
        rows, _ = parse_csv(_csv("2025-10-01,Akiko Tanaka,12,295,88,Billing,Resolved,true").decode("utf-8"))
        assert len(rows) == 1


class TestNumericCells:
    """Strict plain-decimal check on numeric columns."""

    @pytest.mark.parametrize("value", ["300s", "-5", "1,200", "abc"])
    def test_unparsable_values(self, value):
        _, issues = parse_csv(_csv(f'2025-10-01,Akiko Tanaka,12,"{value}",88,Billing,Resolved,true'))
        unparsable = _issues_of(issues, DataIssueType.UNPARSABLE_VALUE)

        assert len(unparsable) == 1
        assert unparsable[0].field == "AvgHandleTimeSeconds"
        assert unparsable[0].rowNumber == 1
        assert value in unparsable[0].message

    @pytest.mark.parametrize("value", ["300", "87.5", "0"])
    def test_plain_decimals_pass(self, value):
        _, issues = parse_csv(_csv(f"2025-10-01,Akiko Tanaka,12,{value},88,Billing,Resolved,true"))
        assert _issues_of(issues, DataIssueType.UNPARSABLE_VALUE) == []

    def test_empty_numeric_cell_is_not_unparsable(self):
        _, issues = parse_csv(_csv("2025-10-01,Akiko Tanaka,12,,88,Billing,Resolved,true"))

        assert _issues_of(issues, DataIssueType.UNPARSABLE_VALUE) == []
        assert [i.field for i in _issues_of(issues, DataIssueType.MISSING_REQUIRED)] == ["AvgHandleTimeSeconds"]


class TestFieldCounts:
    """Rows whose field count differs from the header are kept and reported."""

    @pytest.fixture
    def ragged(self):
        return parse_csv(
            "Date,AgentName,CSAT\n"
            "2025-10-01,Ken,90\n"
            "2025-10-01,Mika\n"
            "2025-10-01,Aya,80,extra\n"
        )

    def test_every_row_is_kept(self, ragged):
        rows, _ = ragged

        assert [r["AgentName"] for r in rows] == ["Ken", "Mika", "Aya"]
        assert rows[1]["CSAT"] is None
        assert rows[2] == {"Date": "2025-10-01", "AgentName": "Aya", "CSAT": "80"}

    def test_short_and_long_rows_are_reported(self, ragged):
        _, issues = ragged
        mismatches = _issues_of(issues, DataIssueType.COLUMN_MISMATCH)

        assert [(i.field, i.rowNumber) for i in mismatches] == [("row", 2), ("row", 3)]
        assert "2 fields" in mismatches[0].message
        assert "4 fields" in mismatches[1].message

    def test_short_row_also_reports_empty_required_cell(self, ragged):
        _, issues = ragged
        missing = _issues_of(issues, DataIssueType.MISSING_REQUIRED)
        assert [(i.field, i.rowNumber) for i in missing] == [("CSAT", 2)]

    def test_matching_rows_have_no_mismatch(self):
        _, issues = parse_csv(_csv("2025-10-01,Akiko Tanaka,12,295,88,Billing,Resolved,true"))
        assert _issues_of(issues, DataIssueType.COLUMN_MISMATCH) == []

    def test_quoted_commas_do_not_count_as_fields(self):
        rows, issues = parse_csv('Date,AgentName,CSAT\n2025-10-01,"Tanaka, Akiko",90\n')

        assert rows[0]["AgentName"] == "Tanaka, Akiko"
        assert _issues_of(issues, DataIssueType.COLUMN_MISMATCH) == []

    def test_duplicate_header_names_are_suffixed(self):
        rows, _ = parse_csv("Date,CSAT,CSAT\n2025-10-01,90,80\n")
        assert rows[0] == {"Date": "2025-10-01", "CSAT": "90", "CSAT.1": "80"}


class TestLogicalColumns:
    """KPI fields without any accepted column."""

    def test_missing_sla(self):
        header = "Date,AgentName,CallHandled,AvgHandleTimeSeconds,CSAT,Issue_Type,Resolution_Status"
        _, issues = parse_csv(_csv("2025-10-01,Akiko Tanaka,12,295,88,Billing,Resolved", header=header))
        missing = _issues_of(issues, DataIssueType.MISSING_COLUMN)

        assert [i.field for i in missing] == ["SLA"]
        assert missing[0].rowNumber is None

    def test_aliases_satisfy_fields(self):
        issues = validate_logical_fields(["date", "agent", "csat", "aht_sec", "status", "ServiceLevel"])
        assert issues == []

    def test_every_field_missing(self):
        fields = [i.field for i in validate_logical_fields(["Other"])]
        assert fields == ["Date", "AgentName", "CSAT", "AHT", "Resolution_Status", "SLA"]


class TestEncodingsAndEmptyFiles:
    """BOM, CP932 and empty uploads."""

    def test_utf8_bom(self):
        content = b"\xef\xbb\xbf" + _csv("2025-10-01,Akiko Tanaka,12,295,88,Billing,Resolved,true")
        rows, _ = parse_csv(content)

        assert "Date" in rows[0]
        assert rows[0]["Date"] == "2025-10-01"

    def test_cp932_fallback(self):
        text = HEADER + "\n2025-10-01,田中,12,295,88,請求,Resolved,true\n"
        rows, issues = parse_csv(text.encode("cp932"))

        assert rows[0]["AgentName"] == "田中"
        assert rows[0]["Issue_Type"] == "請求"
        assert issues == []

    @pytest.mark.parametrize("content", [b"", b"   \n  ", None])
    def test_empty_file(self, content):
        rows, issues = parse_csv(content)

        assert rows == []
        assert len(issues) == 1
        assert issues[0].field == "file"
        assert issues[0].type == DataIssueType.MISSING_REQUIRED

    def test_header_only(self):
        rows, issues = parse_csv(_csv())

        assert rows == []
        assert all(i.field != "file" for i in issues)
