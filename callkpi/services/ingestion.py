"""
CSV Ingestion Service

Parses an uploaded call-center CSV into plain row dicts for the KPI pipeline
and reports data quality issues alongside. Nothing here rejects a file: every
problem becomes a DataIssue and the rows that could be read are returned.

Checks:
- missing_required: empty cell in a required column present in the header
- unparsable_value: a numeric column holding anything other than a plain
  non-negative decimal (no thousands separators, units or signs)
- missing_column: a logical KPI field with none of its aliases in the header
- column_mismatch: a row with more or fewer fields than the header; the row is
  kept, padded with None or cut to the header width

Cells that are blank, whitespace only or the literal "NULL" become None.
Exports from Japanese systems are often CP932, so decoding falls back to it
when UTF-8 fails.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from callkpi.models import DataIssue, DataIssueType
from callkpi.services.normalization import (
    AGENT_ALIASES,
    AHT_ALIASES,
    CSAT_ALIASES,
    DATE_ALIASES,
    RESOLUTION_ALIASES,
    SLA_PERCENT_ALIASES,
    WITHIN_SLA_ALIASES,
)

# Configure module logger
logger = logging.getLogger(__name__)

Row = Dict[str, Any]

# =============================================================================
# CONSTANTS - Column Checks
# =============================================================================

REQUIRED_COLUMNS: List[str] = [
    "Date",
    "AgentName",
    "CallHandled",
    "AvgHandleTimeSeconds",
    "CSAT",
    "Issue_Type",
    "Resolution_Status",
]

NUMERIC_COLUMNS: List[str] = [
    "CallHandled",
    "AvgHandleTimeSeconds",
    "CSAT",
    "Adherence",
    "Compliance",
]

# Logical field -> accepted header aliases
LOGICAL_FIELDS: Dict[str, Sequence[str]] = {
    "Date": DATE_ALIASES,
    "AgentName": AGENT_ALIASES,
    "CSAT": CSAT_ALIASES,
    "AHT": AHT_ALIASES,
    "Resolution_Status": RESOLUTION_ALIASES,
    "SLA": tuple(WITHIN_SLA_ALIASES) + tuple(SLA_PERCENT_ALIASES),
}

STRICT_NUMBER_PATTERN: str = r"\d+(\.\d+)?"

NULL_TOKENS = frozenset({"NULL"})

ENCODINGS: Sequence[str] = ("utf-8-sig", "cp932")


def _normalize_cell(value: Any) -> Optional[str]:
    """Blank, whitespace-only and NULL cells become None; anything else is trimmed."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    if not text or text.upper() in NULL_TOKENS:
        return None
    return text


def _decode(content: bytes) -> str:
    """Decode upload bytes, trying each encoding in turn."""
    last_error: Optional[UnicodeDecodeError] = None
    for encoding in ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError as e:
            logger.warning(f"CSV is not valid {encoding}; trying next encoding")
            last_error = e
    raise last_error


def _is_blank_record(record: List[str]) -> bool:
    return not record or (len(record) == 1 and not record[0].strip())


def _read_records(text: str) -> List[List[str]]:
    """Tokenise CSV text into records, skipping blank lines."""
    return [record for record in csv.reader(io.StringIO(text)) if not _is_blank_record(record)]


def _clean_header(raw_header: Sequence[str]) -> List[str]:
    """Trim header names; blank names become "Unnamed: i" and repeats get a ".n" suffix."""
    header: List[str] = []
    seen: Dict[str, int] = {}
    for position, raw in enumerate(raw_header):
        name = raw.strip() or f"Unnamed: {position}"
        if name in seen:
            seen[name] += 1
            name = f"{name}.{seen[name]}"
        else:
            seen[name] = 0
        header.append(name)
    return header


def _build_frame(header: List[str], records: Sequence[List[str]]) -> pd.DataFrame:
    """Fit every record to the header width and load them as an object frame."""
    width = len(header)
    fitted = [(list(record) + [None] * width)[:width] for record in records]
    return pd.DataFrame(fitted, columns=header, dtype=object)


# =============================================================================
# Validation
# =============================================================================


def validate_logical_fields(columns: Sequence[str]) -> List[DataIssue]:
    """Report every logical KPI field that has no alias in the header."""
    present = set(columns)
    issues: List[DataIssue] = []
    for field, aliases in LOGICAL_FIELDS.items():
        if not any(alias in present for alias in aliases):
            issues.append(DataIssue(
                type=DataIssueType.MISSING_COLUMN,
                field=field,
                message=f"No column for '{field}' (accepted: {', '.join(aliases)})",
            ))
    return issues


def validate_field_counts(header: Sequence[str], records: Sequence[List[str]]) -> List[DataIssue]:
    """One column_mismatch issue per record whose field count differs from the header."""
    issues: List[DataIssue] = []
    for index, record in enumerate(records):
        if len(record) == len(header):
            continue
        action = "missing fields set to NULL" if len(record) < len(header) else "extra fields dropped"
        issues.append(DataIssue(
            type=DataIssueType.COLUMN_MISMATCH,
            field="row",
            message=f"Row has {len(record)} fields but the header has {len(header)}; {action}",
            rowNumber=index + 1,
        ))
    return issues


def validate_required_cells(df: pd.DataFrame) -> List[DataIssue]:
    """One missing_required issue per empty cell in a required column."""
    issues: List[DataIssue] = []
    for col in REQUIRED_COLUMNS:
        if col not in df.columns:
            continue
        missing_mask = df[col].isna()
        for index in df.index[missing_mask]:
            issues.append(DataIssue(
                type=DataIssueType.MISSING_REQUIRED,
                field=col,
                message=f"Required field '{col}' is empty (treated as NULL)",
                # Convert 0-based DataFrame index to 1-based row number
                rowNumber=int(index) + 1,
            ))
    return issues


def validate_numeric_cells(df: pd.DataFrame) -> List[DataIssue]:
    """One unparsable_value issue per non-empty numeric cell that is not a plain decimal."""
    issues: List[DataIssue] = []
    for col in NUMERIC_COLUMNS:
        if col not in df.columns:
            continue
        values = df[col]
        strict = values.astype("string").str.fullmatch(STRICT_NUMBER_PATTERN).fillna(False).astype(bool)
        invalid_mask = values.notna() & ~strict
        for index in df.index[invalid_mask]:
            issues.append(DataIssue(
                type=DataIssueType.UNPARSABLE_VALUE,
                field=col,
                message=f"Numeric field '{col}' cannot be read as a number (value: \"{values[index]}\")",
                rowNumber=int(index) + 1,
            ))
    return issues


# =============================================================================
# Parsing
# =============================================================================


def parse_csv(content: Union[bytes, str, None]) -> Tuple[List[Row], List[DataIssue]]:
    """
    Parse CSV content into rows plus data issues.

    Args:
        content: Raw upload bytes (or already decoded text)

    Returns:
        Tuple of (rows, issues). Rows keep the original header names with
        every value either a trimmed string or None. An empty or unreadable
        file gives no rows and a single `file` issue.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    if not content or not content.strip():
        return [], [DataIssue(
            type=DataIssueType.MISSING_REQUIRED,
            field="file",
            message="CSV file is empty",
        )]

    try:
        records = _read_records(_decode(content))
    except (csv.Error, UnicodeDecodeError) as e:
        logger.warning(f"Failed to parse CSV upload: {e}")
        return [], [DataIssue(
            type=DataIssueType.UNPARSABLE_VALUE,
            field="file",
            message=f"Failed to parse CSV file: {e}",
        )]
    if not records:
        return [], [DataIssue(
            type=DataIssueType.MISSING_REQUIRED,
            field="file",
            message="CSV file is empty or has no header",
        )]

    header = _clean_header(records[0])
    data_records = records[1:]

    df = _build_frame(header, data_records)
    df = df.map(_normalize_cell).astype(object)
    df = df.where(df.notna(), None).reset_index(drop=True)

    issues: List[DataIssue] = []
    issues.extend(validate_logical_fields(list(df.columns)))
    issues.extend(validate_field_counts(header, data_records))
    issues.extend(validate_required_cells(df))
    issues.extend(validate_numeric_cells(df))

    rows: List[Row] = df.to_dict(orient="records")
    logger.info(f"Parsed CSV with {len(rows)} rows, {len(df.columns)} columns and {len(issues)} issues")
    return rows, issues
