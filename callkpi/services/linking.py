"""
Insight-Task Linker

Connects recommended tasks to the insights they address, attaches a rough CSAT
impact guess to each task, and makes sure every insight a task points at exists
in the insight list (synthesizing a minimal one when it does not).

Matching is keyword based on titles. The keyword tables are ordered lists of
(predicate, result) pairs; the first matching predicate wins, so the order is
part of the behaviour.
"""

import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple, Union

from callkpi.models import (
    ImpactConfidence,
    Insight,
    InsightLevel,
    InsightSource,
    RangeKey,
    RecommendedTask,
    Scope,
    TaskImpact,
)

logger = logging.getLogger(__name__)

TitlePredicate = Callable[[str], bool]

# =============================================================================
# Constants - Well-known Insight Ids
# =============================================================================

CSAT_LOW_CENTER: str = "csat_low_center"
SLA_MISSING_COLUMNS: str = "sla_missing_columns"
ESCALATION_HIGH: str = "escalation_high"
FCR_UNKNOWN_HIGH: str = "fcr_unknown_high"
MISC_ID: str = "misc"

SLUG_MAX_LENGTH: int = 60

# Katakana for "escalation", as written in Japanese task titles.
ESCALATION_KATAKANA: str = "エスカ"


def _has(*words: str) -> TitlePredicate:
    return lambda title: any(word in title for word in words)


def _has_all(*words: str) -> TitlePredicate:
    return lambda title: all(word in title for word in words)


TASK_LINK_RULES: Sequence[Tuple[TitlePredicate, str]] = (
    (_has("csat"), CSAT_LOW_CENTER),
    (_has("sla", "withinsla", "servicelevel"), SLA_MISSING_COLUMNS),
    (_has("escalation", ESCALATION_KATAKANA), ESCALATION_HIGH),
    (_has_all("fcr", "unknown"), FCR_UNKNOWN_HIGH),
)

INSIGHT_LINK_RULES: Sequence[Tuple[TitlePredicate, str]] = (
    (_has("csat"), CSAT_LOW_CENTER),
    (_has("sla"), SLA_MISSING_COLUMNS),
    (_has("escalation", ESCALATION_KATAKANA), ESCALATION_HIGH),
    (_has_all("fcr", "unknown"), FCR_UNKNOWN_HIGH),
)

IMPACT_RULES: Sequence[Tuple[TitlePredicate, float]] = (
    (_has("csat"), 1.2),
    (_has("sla"), 0.4),
    (_has("escalation", ESCALATION_KATAKANA), 0.5),
    (_has("fcr"), 0.3),
)
DEFAULT_CSAT_DELTA: float = 0.2

_SLUG_BRACKETS = re.compile(r"[（）()\[\]【】]")
_SLUG_DISALLOWED = re.compile(r"[^a-z0-9ぁ-んァ-ン一-龠ー\s:_-]")
_SLUG_SPACES = re.compile(r"\s+")


def slugify(text: Optional[str]) -> str:
    """
    Lowercase slug keeping ASCII alphanumerics and Japanese script.

    Examples:
        >>> slugify("Center (Main)")
        'center_main'
        >>> slugify("")
        ''
    """
    s = (text or "").lower()
    s = _SLUG_BRACKETS.sub(" ", s)
    s = _SLUG_DISALLOWED.sub("", s)
    s = _SLUG_SPACES.sub("_", s.strip())
    return s[:SLUG_MAX_LENGTH]


def _first_match(rules, title: str):
    for predicate, result in rules:
        if predicate(title):
            return result
    return None


def _scope_text(scope: Union[Scope, str, None]) -> str:
    if scope is None:
        return ""
    return scope.value if isinstance(scope, Scope) else str(scope)


# =============================================================================
# Id Inference
# =============================================================================


def infer_insight_id_from_task(task: RecommendedTask) -> str:
    """
    Infer the insight id a task belongs to from its title.

    Falls back to `scope_{slug(scope)}` and then to "misc".
    """
    title = (task.title or "").lower()
    matched = _first_match(TASK_LINK_RULES, title)
    if matched:
        return matched

    scope = _scope_text(task.scope)
    if scope:
        return f"scope_{slugify(scope)}"
    return MISC_ID


def infer_insight_id_from_insight(insight: Insight) -> str:
    """Infer an id for an insight that has none, from its title or a slug of scope/who/level/title."""
    title = insight.title or ""
    matched = _first_match(INSIGHT_LINK_RULES, title.lower())
    if matched:
        return matched

    level = insight.level.value if isinstance(insight.level, InsightLevel) else str(insight.level or "")
    hint = f"{_scope_text(insight.scope)}_{insight.who or ''}_{level}_{title}"
    return slugify(hint) or MISC_ID


def infer_impact(task: RecommendedTask) -> TaskImpact:
    """Fixed per-keyword CSAT gain guess; confidence is always low."""
    title = (task.title or "").lower()
    delta = _first_match(IMPACT_RULES, title)
    return TaskImpact(
        csatDelta=delta if delta is not None else DEFAULT_CSAT_DELTA,
        confidence=ImpactConfidence.LOW,
    )


# =============================================================================
# Synthesis
# =============================================================================


def synthesize_insight(insight_id: str, csat_target: float, window: Union[RangeKey, str]) -> Insight:
    """Minimal insight for an id referenced by a task but missing from the list."""
    window = RangeKey(window)
    common = dict(id=insight_id, scope=Scope.CENTER, who="center", window=window, source=InsightSource.SYNTHETIC)

    if insight_id == CSAT_LOW_CENTER:
        return Insight(
            level=InsightLevel.WARN,
            title="CSAT is down (center)",
            why=f"Average CSAT is below the target ({csat_target:g}%).",
            impact="Top candidate for CSAT improvement",
            **common,
        )
    if insight_id == SLA_MISSING_COLUMNS:
        return Insight(
            level=InsightLevel.WARN,
            title="SLA columns missing / definition not settled",
            why="SLA cannot be measured yet; it has to be made measurable first.",
            impact="Visible SLA lifts operating quality across the board",
            **common,
        )
    if insight_id == ESCALATION_HIGH:
        return Insight(
            level=InsightLevel.WARN,
            title="Escalation control (check before handing back to L2)",
            why="Escalations keep occurring; a gate before hand-off is needed.",
            impact="Fewer complaints, less rework and lower churn",
            **common,
        )
    if insight_id == FCR_UNKNOWN_HIGH:
        return Insight(
            level=InsightLevel.INFO,
            title="Many FCR unknowns",
            why="A high unknown share makes decisions unstable; input or design needs fixing.",
            impact="More trustworthy FCR",
            **common,
        )
    return Insight(
        level=InsightLevel.INFO,
        title=f"Insight: {insight_id}",
        why="Generated automatically from related tasks.",
        impact="",
        **common,
    )


def synthesize_insights_from_tasks(
    tasks: Sequence[RecommendedTask],
    csat_target: float = 85.0,
    window: Union[RangeKey, str] = RangeKey.TODAY,
) -> List[Insight]:
    """One synthetic insight per distinct inferred id, in first-seen task order."""
    ids: List[str] = []
    for task in tasks:
        insight_id = infer_insight_id_from_task(task)
        if insight_id not in ids:
            ids.append(insight_id)
    return [synthesize_insight(insight_id, csat_target, window) for insight_id in ids]


# =============================================================================
# Linker
# =============================================================================


def decorate_tasks(tasks: Sequence[RecommendedTask]) -> List[RecommendedTask]:
    """Fill relatedInsightIds and impact where a task does not carry them yet."""
    decorated = []
    for task in tasks:
        update = {}
        if task.relatedInsightIds is None:
            update["relatedInsightIds"] = [infer_insight_id_from_task(task)]
        if task.impact is None:
            update["impact"] = infer_impact(task)
        decorated.append(task.model_copy(update=update) if update else task)
    return decorated


def link_tasks_and_insights(
    tasks: Sequence[RecommendedTask],
    insights: Sequence[Insight],
    csat_target: float = 85.0,
    window: Union[RangeKey, str] = RangeKey.TODAY,
) -> Tuple[List[RecommendedTask], List[Insight]]:
    """
    Link tasks to insights and complete the insight list.

    Args:
        tasks: Task mapper output
        insights: Insights after the principle overlay
        csat_target: Target quoted by the synthesized CSAT insight
        window: Reporting window for synthesized insights

    Returns:
        Tuple of (decorated tasks, merged insights). Real insights come
        first, then synthesized ones; duplicates by id keep the first
        occurrence; the result is stable-sorted by boost descending.
    """
    decorated_tasks = decorate_tasks(tasks)

    real = [it if it.id else it.model_copy(update={"id": infer_insight_id_from_insight(it)}) for it in insights]
    synthetic = synthesize_insights_from_tasks(decorated_tasks, csat_target, window)

    seen = set()
    merged: List[Insight] = []
    for insight in real + synthetic:
        if insight.id in seen:
            continue
        seen.add(insight.id)
        merged.append(insight)

    merged = sorted(merged, key=lambda it: -(it.boost or 0))

    logger.debug(
        f"Linked {len(decorated_tasks)} tasks to {len(merged)} insights "
        f"({sum(1 for it in merged if it.source == InsightSource.SYNTHETIC)} synthesized)"
    )
    return decorated_tasks, merged
