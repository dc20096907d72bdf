"""
Enumeration definitions for the CallKPI backend.

All enums inherit from both `str` and `Enum` so they serialize as plain strings
in Pydantic models and JSON responses consumed by the dashboard.
"""

from enum import Enum


class RangeKey(str, Enum):
    """
    Reporting window selected on the dashboard.

    - TODAY: the latest calendar day present in the data
    - WEEK: the 7 days ending on that day
    - MONTH: the 30 days ending on that day
    """
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class InsightLevel(str, Enum):
    """
    Severity of an insight.

    Principle overlay entries are always INFO; their ordering is driven by
    a separate boost value, never by severity.
    """
    INFO = "info"
    WARN = "warn"
    CRITICAL = "critical"


class Scope(str, Enum):
    """Whether a finding or task concerns the whole center or one agent."""
    CENTER = "center"
    AGENT = "agent"


class DueBucket(str, Enum):
    """Due-by bucket for a recommended task, derived from the window."""
    TODAY = "today"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"


class TaskPriority(str, Enum):
    """
    Task priority tier.

    Tiers are strictly ordered P0 < P1 < P2; task lists are always sorted
    ascending by tier with insertion order preserved inside a tier.
    """
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"


class MetricStatus(str, Enum):
    """
    Column availability for a categorical metric (FCR, SLA, Escalation).

    - OK: the probe row carried at least one accepted column alias
    - MISSING_COLUMNS: the probe row had none; the metric is not computed
    """
    OK = "ok"
    MISSING_COLUMNS = "missing_columns"


class ResolutionClass(str, Enum):
    """Three-valued resolution status parsed from a row."""
    RESOLVED = "resolved"
    NOT_RESOLVED = "not_resolved"
    UNKNOWN = "unknown"


class SlaMode(str, Enum):
    """
    How the SLA rate was computed.

    - WITHIN_SLA: ratio of rows flagged within SLA over eligible rows
    - PERCENT_MEAN: arithmetic mean of per-row SLA percentages
      (no met/eligible breakdown is available in this mode)
    - NONE: no SLA columns were found
    """
    WITHIN_SLA = "within_sla"
    PERCENT_MEAN = "percent_mean"
    NONE = "none"


class MetricKey(str, Enum):
    """Metric labels used in insight `metrics` payloads."""
    AHT = "AHT"
    CSAT = "CSAT"
    FCR = "FCR"
    ESCALATION = "ESCALATION"
    SLA = "SLA"
    UNKNOWN_FCR = "UNKNOWN_FCR"


class InsightSource(str, Enum):
    """Origin of an insight in the merged list."""
    RULE = "rule"
    PRINCIPLE_OVERLAY = "principle_overlay"
    SYNTHETIC = "synthetic"
    FALLBACK = "fallback"


class Lens(str, Enum):
    """Topic lens of a principle overlay entry."""
    CSAT = "csat"
    AHT = "aht"
    FCR = "fcr"
    SLA = "sla"
    ESCALATION = "escalation"
    QUALITY = "quality"
    OPS = "ops"


class ImpactConfidence(str, Enum):
    """
    Confidence attached to an impact estimate.

    Only LOW is produced today: no calibration data exists yet.
    """
    LOW = "low"
    MED = "med"
    HIGH = "high"


class DataIssueType(str, Enum):
    """
    Data quality issue categories reported alongside results.

    - MISSING_COLUMN: a logical field is absent file-wide
    - MISSING_REQUIRED: a required cell is empty
    - UNPARSABLE_VALUE: a present value could not be read as its type
    - INSUFFICIENT_SAMPLE: volume under the sample floor suppressed rules
    - COLUMN_MISMATCH: a CSV row has more or fewer fields than the header
    """
    MISSING_COLUMN = "missing_column"
    MISSING_REQUIRED = "missing_required"
    UNPARSABLE_VALUE = "unparsable_value"
    INSUFFICIENT_SAMPLE = "insufficient_sample"
    COLUMN_MISMATCH = "column_mismatch"
