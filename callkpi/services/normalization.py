"""
Row Normalization Service

Tolerant field extraction and typed value parsing for heterogeneous call-center
rows. Column names vary across CSV exports, so every logical field is looked up
through an ordered list of accepted aliases, first match wins.

Parsers never raise. A value that is missing or cannot be interpreted becomes
None (or ResolutionClass.UNKNOWN for resolution status), which is distinct
from zero/False and must be propagated by callers.

Rounding follows half-up semantics so that 0.05 rounds to 0.1 regardless of
binary representation quirks in Python's banker's rounding.
"""

from dataclasses import dataclass
import math
import re
from typing import Any, Iterable, Mapping, Optional, Sequence

from callkpi.models.enums import ResolutionClass


# =============================================================================
# CONSTANTS - Column Aliases
# =============================================================================
# Ordered by priority. Schema drift in the exports is handled by editing these.

ALIAS_SCHEMA_VERSION: str = "v1"

CSAT_ALIASES: Sequence[str] = ("CSAT", "csat", "Csat", "csat_score", "csatScore")

AHT_ALIASES: Sequence[str] = (
    "AHT",
    "aht",
    "Aht",
    "aht_sec",
    "ahtSec",
    "AHT_sec",
    "AHTSeconds",
    "aht_seconds",
    "AvgHandleTimeSeconds",
    "handle_time_sec",
    "HandleTimeSec",
    "Handle_Time_Sec",
    "Handle Time (sec)",
    "Handle Time",
)

RESOLUTION_ALIASES: Sequence[str] = (
    "Resolution_Status",
    "resolution_status",
    "resolutionStatus",
    "Resolution_Status_en",
    "status",
    "Status",
)

WITHIN_SLA_ALIASES: Sequence[str] = ("WithinSLA", "within_sla", "withinSla")

SLA_PERCENT_ALIASES: Sequence[str] = (
    "SLA",
    "sla",
    "ServiceLevel",
    "service_level",
    "serviceLevel",
)

AGENT_ALIASES: Sequence[str] = (
    "AgentName",
    "agentName",
    "Agent_Name",
    "agent_name",
    "AgentName_canonical",
    "Agent",
    "agent",
    "name",
)

DATE_ALIASES: Sequence[str] = ("Date", "date", "CallDate", "call_date", "callDate")

UNKNOWN_AGENT: str = "Unknown"

# =============================================================================
# CONSTANTS - Value Allow-lists
# =============================================================================

TRUE_VALUES = frozenset({"true", "t", "yes", "y", "1", "within", "met"})
FALSE_VALUES = frozenset({"false", "f", "no", "n", "0", "out", "miss"})

RESOLVED_VALUES = frozenset({"resolved", "solved", "complete", "completed", "done", "closed"})
NOT_RESOLVED_VALUES = frozenset(
    {"open", "pending", "in progress", "escalated", "transferred", "unresolved"}
)

ESCALATION_MARKERS: Sequence[str] = ("transfer to l2", "escalation", "escalated")

_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


# =============================================================================
# Capability Probe
# =============================================================================


@dataclass(frozen=True)
class ColumnCapabilities:
    """
    Which categorical columns a row set carries.

    Column presence is decided once for the whole file from a probe row,
    not per row. A later row carrying a column the probe lacked does not
    switch the metric on.

    Attributes:
        hasWithinSla: A boolean within-SLA flag column is present
        hasSlaPercent: A numeric SLA/service-level percentage column is present
        hasResolutionStatus: A resolution status column is present
    """
    hasWithinSla: bool = False
    hasSlaPercent: bool = False
    hasResolutionStatus: bool = False

    @property
    def hasSla(self) -> bool:
        return self.hasWithinSla or self.hasSlaPercent


def has_any(row: Optional[Mapping[str, Any]], aliases: Iterable[str]) -> bool:
    """Return True if the row carries any of the aliases as a key (value may be null)."""
    if not row:
        return False
    return any(key in row for key in aliases)


def probe_columns(rows: Sequence[Mapping[str, Any]]) -> ColumnCapabilities:
    """
    Derive column capabilities from the first row of a row set.

    Args:
        rows: Row set; an empty set yields no capabilities

    Returns:
        ColumnCapabilities for the file
    """
    probe = rows[0] if rows else {}
    return ColumnCapabilities(
        hasWithinSla=has_any(probe, WITHIN_SLA_ALIASES),
        hasSlaPercent=has_any(probe, SLA_PERCENT_ALIASES),
        hasResolutionStatus=has_any(probe, RESOLUTION_ALIASES),
    )


# =============================================================================
# Field Lookup
# =============================================================================


def pick(row: Optional[Mapping[str, Any]], aliases: Iterable[str]) -> Any:
    """
    Return the value of the first alias present in the row.

    A key that is present with a null value counts as found, so the lookup
    stops there. Returns None when no alias is present.
    """
    if not row:
        return None
    for key in aliases:
        if key in row:
            return row[key]
    return None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


# =============================================================================
# Value Parsers
# =============================================================================


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a numeric cell.

    Args:
        value: Raw cell value (string, number, bool or None)

    Returns:
        Finite float, or None for empty, non-numeric or non-finite input
    """
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None

    text = str(value).strip()
    if not _NUMBER_PATTERN.match(text):
        return None
    number = float(text)
    return number if math.isfinite(number) else None


def parse_seconds(value: Any) -> Optional[float]:
    """
    Parse a duration cell into seconds.

    Accepts "mm:ss" or "hh:mm:ss" (every part must be numeric, otherwise the
    whole value is None), falling back to a plain number of seconds.

    Examples:
        >>> parse_seconds("05:10")
        310.0
        >>> parse_seconds("1:00:05")
        3605.0
        >>> parse_seconds("295")
        295.0
        >>> parse_seconds("5:xx") is None
        True
    """
    if _is_blank(value):
        return None

    text = str(value).strip()
    if ":" in text:
        parts = [part.strip() for part in text.split(":")]
        numbers = [parse_number(part) for part in parts]
        if any(number is None for number in numbers):
            return None
        if len(numbers) == 2:
            minutes, seconds = numbers
            total = minutes * 60 + seconds
        elif len(numbers) == 3:
            hours, minutes, seconds = numbers
            total = hours * 3600 + minutes * 60 + seconds
        else:
            return None
        return total if math.isfinite(total) else None

    return parse_number(value)


def parse_bool(value: Any) -> Optional[bool]:
    """
    Parse a boolean-ish cell (true/yes/1/within/met vs false/no/0/out/miss).

    Anything outside both allow-lists is None, never False.
    """
    if _is_blank(value):
        return None
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    return None


def parse_status(value: Any) -> ResolutionClass:
    """Classify a resolution status cell as resolved, not resolved or unknown."""
    if _is_blank(value):
        return ResolutionClass.UNKNOWN
    text = str(value).strip().lower()
    if text in RESOLVED_VALUES:
        return ResolutionClass.RESOLVED
    if text in NOT_RESOLVED_VALUES:
        return ResolutionClass.NOT_RESOLVED
    return ResolutionClass.UNKNOWN


def detect_escalation(value: Any) -> Optional[bool]:
    """
    Decide whether a resolution status denotes an escalation.

    Returns:
        True if the status mentions an L2 transfer or escalation,
        False for any other present status, None when absent or empty
    """
    if _is_blank(value):
        return None
    text = str(value).strip().lower()
    return any(marker in text for marker in ESCALATION_MARKERS)


def agent_key(row: Optional[Mapping[str, Any]]) -> str:
    """
    Grouping key for per-agent aggregation.

    The raw name is used untrimmed and case-sensitive, so "Tanaka" and
    "Tanaka " form different groups. Rows without a name fall under
    the "Unknown" agent.
    """
    value = pick(row, AGENT_ALIASES)
    if _is_blank(value):
        return UNKNOWN_AGENT
    return value if isinstance(value, str) else str(value)


# =============================================================================
# Rounding Helpers
# =============================================================================


def round_half_up(value: float, digits: int = 1) -> float:
    """
    Round half away from floor, matching the dashboard's display rounding.

    Values too large to scale have no fractional digits left and are
    returned unchanged, as are non-finite values.
    """
    factor = 10 ** digits
    scaled = value * factor + 0.5
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled) / factor


def ratio_to_pct(numerator: int, denominator: int) -> Optional[float]:
    """Express a ratio as a percentage with one decimal, or None when undefined."""
    if denominator <= 0:
        return None
    return math.floor((numerator / denominator) * 1000 + 0.5) / 10


def mean_rounded(values: Sequence[float]) -> Optional[float]:
    """Arithmetic mean rounded to one decimal, or None for an empty sample."""
    if not values:
        return None
    count = len(values)
    mean = sum(values) / count
    if not math.isfinite(mean):
        # Sum overflowed; dividing first keeps a sample of finite values finite
        mean = math.fsum(value / count for value in values)
    return round_half_up(mean, 1)
