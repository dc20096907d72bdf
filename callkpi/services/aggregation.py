"""
KPI Aggregation Service

Computes aggregate KPI snapshots from normalized call-center rows:
1. SUMMARY - one center-wide snapshot (counts, averages, FCR/SLA/Escalation rates)
2. AGENT STATS - the same snapshot partitioned by agent identity
3. CENTER AHT - summary AHT with a calls-weighted fallback from agent stats
4. WINDOW FILTER - today / week / month slices anchored on the latest row date
5. DAILY KPIS - per-day snapshots for the trend chart
6. CSAT DISTRIBUTION - Low / Mid / High CSAT bands and the FCR warning flag

Metric availability is decided once per file from a probe row (see
normalization.probe_columns) and threaded through every aggregation, so an
agent or a single day is always evaluated with the file-wide capabilities.

Metric definitions:
- FCR = resolved / (resolved + not_resolved); unknown statuses are excluded
  from the denominator
- SLA (within_sla mode) = rows within SLA / eligible rows
- SLA (percent_mean mode) = mean of per-row SLA percentages
- Escalation = rows whose status mentions an L2 transfer or escalation / eligible
"""

from collections import OrderedDict
from datetime import timedelta
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from callkpi.models import (
    AgentStat,
    CsatBucket,
    DailyKpi,
    MetricStatus,
    RangeKey,
    ResolutionClass,
    SlaMode,
    Summary,
)
from callkpi.services.normalization import (
    AHT_ALIASES,
    CSAT_ALIASES,
    DATE_ALIASES,
    RESOLUTION_ALIASES,
    SLA_PERCENT_ALIASES,
    WITHIN_SLA_ALIASES,
    ColumnCapabilities,
    agent_key,
    detect_escalation,
    mean_rounded,
    parse_bool,
    parse_number,
    parse_seconds,
    parse_status,
    pick,
    probe_columns,
    ratio_to_pct,
    round_half_up,
)

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]

# =============================================================================
# CONSTANTS - Metric Definitions
# =============================================================================

FCR_DEFINITION: str = "FCR(v1) = Resolved / (Resolved + NotResolved); unknown excluded from the denominator"
FCR_MISSING_DEFINITION: str = "FCR(v1) = missing columns (no Resolution_Status)"
SLA_WITHIN_DEFINITION: str = "SLA(v1) = WithinSLA(true) / eligible; unknown excluded from the denominator"
SLA_PERCENT_DEFINITION: str = "SLA(v1) = mean of SLA/ServiceLevel (%)"
SLA_MISSING_DEFINITION: str = "SLA(v1) = missing columns (no SLA, ServiceLevel or WithinSLA)"
ESCALATION_DEFINITION: str = (
    "Escalation(v1) = count(Transfer to L2 or Escalation) / eligible; unknown excluded from the denominator"
)
ESCALATION_MISSING_DEFINITION: str = "Escalation(v1) = missing columns (no Resolution_Status)"

# Days kept before the anchor day for each window
WINDOW_LOOKBACK_DAYS: Dict[RangeKey, int] = {
    RangeKey.TODAY: 0,
    RangeKey.WEEK: 6,
    RangeKey.MONTH: 29,
}

# Alternative summary keys for the average handle time
_SUMMARY_AHT_KEYS = ("avgAht", "avgAHT", "avg_handle_time", "avgHandleTime")

# (label, inclusive lower edge, exclusive upper edge)
CSAT_BANDS: Sequence[Tuple[str, Optional[float], Optional[float]]] = (
    ("Low", None, 70.0),
    ("Mid", 70.0, 85.0),
    ("High", 85.0, None),
)

FCR_WARN_BELOW: float = 70.0
FCR_UNKNOWN_SHARE_LIMIT: float = 0.2


# =============================================================================
# Summary Aggregator
# =============================================================================


def compute_summary(
    rows: Optional[Sequence[Row]],
    capabilities: Optional[ColumnCapabilities] = None,
) -> Summary:
    """
    Aggregate a row set into one KPI snapshot.

    Args:
        rows: Cleaned rows of arbitrary shape; None is treated as empty
        capabilities: File-wide column capabilities. When omitted they are
            probed from the first row of `rows`.

    Returns:
        Summary whose rowCount equals len(rows) and whose
        fcrEligibleCount + fcrUnknownCount equals rowCount
    """
    safe_rows: Sequence[Row] = rows if rows else []
    caps = capabilities if capabilities is not None else probe_columns(safe_rows)
    row_count = len(safe_rows)

    csat_values: List[float] = []
    aht_values: List[float] = []

    fcr_eligible = fcr_resolved = fcr_unknown = 0
    sla_eligible = sla_met = sla_unknown = 0
    sla_percent_values: List[float] = []
    esc_eligible = esc_count = esc_unknown = 0

    for row in safe_rows:
        csat = parse_number(pick(row, CSAT_ALIASES))
        if csat is not None:
            csat_values.append(csat)

        aht = parse_seconds(pick(row, AHT_ALIASES))
        if aht is not None:
            aht_values.append(aht)

        status_raw = pick(row, RESOLUTION_ALIASES) if caps.hasResolutionStatus else None

        status = parse_status(status_raw)
        if status is ResolutionClass.UNKNOWN:
            fcr_unknown += 1
        else:
            fcr_eligible += 1
            if status is ResolutionClass.RESOLVED:
                fcr_resolved += 1

        if caps.hasResolutionStatus:
            escalated = detect_escalation(status_raw)
            if escalated is None:
                esc_unknown += 1
            else:
                esc_eligible += 1
                if escalated:
                    esc_count += 1

        if caps.hasWithinSla:
            within = parse_bool(pick(row, WITHIN_SLA_ALIASES))
            if within is None:
                sla_unknown += 1
            else:
                sla_eligible += 1
                if within:
                    sla_met += 1
        elif caps.hasSlaPercent:
            pct = parse_number(pick(row, SLA_PERCENT_ALIASES))
            if pct is None:
                sla_unknown += 1
            else:
                sla_percent_values.append(pct)

    resolution_status = MetricStatus.OK if caps.hasResolutionStatus else MetricStatus.MISSING_COLUMNS

    if caps.hasWithinSla:
        sla_mode = SlaMode.WITHIN_SLA
        sla_rate = ratio_to_pct(sla_met, sla_eligible)
        sla_met_count: Optional[int] = sla_met
        sla_definition = SLA_WITHIN_DEFINITION
    elif caps.hasSlaPercent:
        sla_mode = SlaMode.PERCENT_MEAN
        sla_rate = mean_rounded(sla_percent_values)
        sla_eligible = len(sla_percent_values)
        sla_met_count = None
        sla_definition = SLA_PERCENT_DEFINITION
    else:
        sla_mode = SlaMode.NONE
        sla_rate = None
        sla_met_count = 0
        sla_definition = SLA_MISSING_DEFINITION

    return Summary(
        rowCount=row_count,
        totalCalls=row_count,
        avgCsat=mean_rounded(csat_values),
        avgAht=mean_rounded(aht_values),
        fcrRate=ratio_to_pct(fcr_resolved, fcr_eligible),
        fcrEligibleCount=fcr_eligible,
        fcrResolvedCount=fcr_resolved,
        fcrUnknownCount=fcr_unknown,
        fcrStatus=resolution_status,
        fcrDefinition=FCR_DEFINITION if caps.hasResolutionStatus else FCR_MISSING_DEFINITION,
        slaRate=sla_rate,
        slaMode=sla_mode,
        slaEligibleCount=sla_eligible,
        slaMetCount=sla_met_count,
        slaUnknownCount=sla_unknown,
        slaStatus=MetricStatus.OK if caps.hasSla else MetricStatus.MISSING_COLUMNS,
        slaDefinition=sla_definition,
        escalationRate=ratio_to_pct(esc_count, esc_eligible) if caps.hasResolutionStatus else None,
        escalationEligibleCount=esc_eligible,
        escalationCount=esc_count,
        escalationUnknownCount=esc_unknown,
        escalationStatus=resolution_status,
        escalationDefinition=(
            ESCALATION_DEFINITION if caps.hasResolutionStatus else ESCALATION_MISSING_DEFINITION
        ),
    )


# =============================================================================
# Per-Agent Aggregator
# =============================================================================


def group_rows_by_agent(rows: Optional[Sequence[Row]]) -> "OrderedDict[str, List[Row]]":
    """
    Partition rows by raw agent name, in order of first appearance.

    Every row lands in exactly one group; rows without a name go to "Unknown".
    """
    groups: "OrderedDict[str, List[Row]]" = OrderedDict()
    for row in rows or []:
        groups.setdefault(agent_key(row), []).append(row)
    return groups


def build_agent_stats(
    rows: Optional[Sequence[Row]],
    capabilities: Optional[ColumnCapabilities] = None,
) -> List[AgentStat]:
    """
    Compute one KPI snapshot per agent.

    Args:
        rows: Cleaned rows
        capabilities: File-wide capabilities; probed from the first row
            of the whole set when omitted

    Returns:
        AgentStat list in order of each agent's first row
    """
    safe_rows: Sequence[Row] = rows if rows else []
    caps = capabilities if capabilities is not None else probe_columns(safe_rows)

    stats: List[AgentStat] = []
    for name, agent_rows in group_rows_by_agent(safe_rows).items():
        summary = compute_summary(agent_rows, caps)
        stats.append(AgentStat(agentName=name, **summary.model_dump()))
    return stats


# =============================================================================
# Center AHT
# =============================================================================


def _summary_aht(summary: Union[Summary, Mapping[str, Any], None]) -> Any:
    if summary is None:
        return None
    if isinstance(summary, Mapping):
        for key in _SUMMARY_AHT_KEYS:
            if summary.get(key) is not None:
                return summary[key]
        return None
    return getattr(summary, "avgAht", None)


def weighted_agent_aht(agent_stats: Optional[Sequence[Any]]) -> Optional[float]:
    """
    Calls-weighted average of agent AHTs: sum(aht_i * calls_i) / sum(calls_i).

    Agents without a finite AHT or with zero calls are skipped.

    Returns:
        Weighted AHT rounded to one decimal, or None if no calls contribute
    """
    weighted_sum = 0.0
    calls_sum = 0
    for agent in agent_stats or []:
        if isinstance(agent, Mapping):
            aht = agent.get("avgAht")
            calls = agent.get("totalCalls") or 0
        else:
            aht = getattr(agent, "avgAht", None)
            calls = getattr(agent, "totalCalls", 0) or 0
        if isinstance(aht, bool) or not isinstance(aht, (int, float)) or not math.isfinite(aht):
            continue
        if calls > 0:
            weighted_sum += aht * calls
            calls_sum += calls

    if calls_sum == 0 or not math.isfinite(weighted_sum):
        return None
    return round_half_up(weighted_sum / calls_sum, 1)


def resolve_center_aht(
    summary: Union[Summary, Mapping[str, Any], None],
    agent_stats: Optional[Sequence[Any]],
) -> Optional[float]:
    """
    Center-level AHT used by the insight rules.

    Prefers the summary's own average when it is a finite number; otherwise
    falls back to the calls-weighted average of agent AHTs.
    """
    value = _summary_aht(summary)
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return float(value)
    return weighted_agent_aht(agent_stats)


# =============================================================================
# Window Filter and Daily Trend
# =============================================================================


def _row_days(rows: Sequence[Row]) -> pd.Series:
    """Calendar day of every row (NaT where the date is missing or unparseable)."""
    raw_dates = [pick(row, DATE_ALIASES) for row in rows]
    parsed = pd.to_datetime(
        pd.Series(raw_dates, dtype=object),
        errors="coerce",
        utc=True,
        format="mixed",
    )
    return parsed.dt.normalize()


def filter_rows_by_window(
    rows: Optional[Sequence[Row]],
    window: RangeKey,
) -> List[Row]:
    """
    Keep the rows that fall inside the reporting window.

    The window is anchored on the latest parseable row date: TODAY keeps
    that day, WEEK the 7 days ending on it, MONTH the 30 days ending on it.
    Rows with unparseable dates are dropped. When no row has a parseable
    date the rows are returned unchanged.
    """
    safe_rows: List[Row] = list(rows or [])
    if not safe_rows:
        return safe_rows

    days = _row_days(safe_rows)
    if days.notna().sum() == 0:
        logger.warning("No parseable dates found; window filter skipped")
        return safe_rows

    anchor = days.max()
    start = anchor - timedelta(days=WINDOW_LOOKBACK_DAYS[RangeKey(window)])
    mask = days.notna() & (days >= start) & (days <= anchor)

    kept = [row for row, keep in zip(safe_rows, mask.tolist()) if keep]
    logger.info(f"Window '{RangeKey(window).value}' kept {len(kept)} of {len(safe_rows)} rows")
    return kept


def build_daily_kpis(
    rows: Optional[Sequence[Row]],
    capabilities: Optional[ColumnCapabilities] = None,
) -> List[DailyKpi]:
    """
    Per-day KPI points for the trend chart, ordered by date.

    Rows without a parseable date are left out of the trend.
    """
    safe_rows: List[Row] = list(rows or [])
    if not safe_rows:
        return []
    caps = capabilities if capabilities is not None else probe_columns(safe_rows)

    by_day: Dict[str, List[Row]] = {}
    for row, day in zip(safe_rows, _row_days(safe_rows).tolist()):
        if pd.isna(day):
            continue
        by_day.setdefault(day.strftime("%Y-%m-%d"), []).append(row)

    points: List[DailyKpi] = []
    for day in sorted(by_day):
        summary = compute_summary(by_day[day], caps)
        points.append(
            DailyKpi(
                date=day,
                rowCount=summary.rowCount,
                avgCsat=summary.avgCsat,
                avgAht=summary.avgAht,
                fcrRate=summary.fcrRate,
                escalationRate=summary.escalationRate,
            )
        )
    return points


# =============================================================================
# CSAT Distribution and FCR Warning
# =============================================================================


def _in_band(value: float, lower: Optional[float], upper: Optional[float]) -> bool:
    return (lower is None or value >= lower) and (upper is None or value < upper)


def build_csat_distribution(rows: Optional[Sequence[Row]]) -> List[CsatBucket]:
    """
    Count rows per CSAT band.

    Every band is always present, in Low / Mid / High order. Rows without a
    readable CSAT are left out, so shares add up to about 100 whenever any
    row has one.
    """
    scores = [parse_number(pick(row, CSAT_ALIASES)) for row in (rows or [])]
    scores = [score for score in scores if score is not None]

    buckets: List[CsatBucket] = []
    for label, lower, upper in CSAT_BANDS:
        count = sum(1 for score in scores if _in_band(score, lower, upper))
        buckets.append(
            CsatBucket(
                label=label,
                lowerBound=lower,
                upperBound=upper,
                count=count,
                share=ratio_to_pct(count, len(scores)),
            )
        )
    return buckets


def fcr_needs_attention(summary: Summary) -> bool:
    """
    True when FCR is under 70% or more than 20% of rows have an unknown
    resolution status.
    """
    if summary.fcrRate is not None and summary.fcrRate < FCR_WARN_BELOW:
        return True
    if summary.rowCount <= 0:
        return False
    return summary.fcrUnknownCount / summary.rowCount > FCR_UNKNOWN_SHARE_LIMIT
