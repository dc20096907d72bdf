"""
Tests for the principle overlay and the insight-task linker.

The overlay decides which lens findings join the rule insights and in what
order; the linker attaches insight ids and impact guesses to tasks and fills
in synthetic insights for ids no rule produced.
"""

import pytest

from callkpi.models import (
    ImpactConfidence,
    Insight,
    InsightLevel,
    InsightSource,
    Lens,
    RangeKey,
    RecommendedTask,
    Scope,
    Summary,
    TaskImpact,
)
from callkpi.services.linking import (
    decorate_tasks,
    infer_impact,
    infer_insight_id_from_insight,
    infer_insight_id_from_task,
    link_tasks_and_insights,
    slugify,
    synthesize_insights_from_tasks,
)
from callkpi.services.principle_overlay import (
    FALLBACK_ID,
    PrincipleSeed,
    apply_principle_overlay,
)


def _task(title: str, scope: Scope = Scope.CENTER, **fields) -> RecommendedTask:
    return RecommendedTask(id=f"t_{slugify(title)}", scope=scope, title=title, **fields)


def _insight(insight_id, title="Something", boost=0, **fields) -> Insight:
    return Insight(id=insight_id, title=title, boost=boost, **fields)


# =============================================================================
# Principle Overlay
# =============================================================================

class TestPrincipleOverlay:
    """Seed gating, merge order and boost sort."""

    def test_ungated_seeds_lead_rule_insights(self):
        merged = apply_principle_overlay([_insight("ins_rule")], Summary(rowCount=40))

        assert [i.id for i in merged] == [
            "csat_median_over_mean",
            "aht_low_not_always_good",
            "escalation_mix_driver",
            "ins_rule",
        ]
        assert merged[0].source == InsightSource.PRINCIPLE_OVERLAY
        assert merged[0].lens == Lens.CSAT

    def test_fcr_unknown_seed_is_gated_and_boosted(self):
        summary = Summary(rowCount=40, fcrUnknownCount=10)
        merged = apply_principle_overlay([_insight("ins_rule")], summary)

        assert merged[0].id == "fcr_unknown_is_design"
        assert merged[0].boost == 2

    def test_fcr_unknown_ratio_boundary(self):
        at_threshold = apply_principle_overlay([], Summary(rowCount=40, fcrUnknownCount=8))
        assert "fcr_unknown_is_design" not in [i.id for i in at_threshold]

    def test_fcr_unknown_seed_needs_rows(self):
        merged = apply_principle_overlay([], Summary(rowCount=0, fcrUnknownCount=0))
        assert "fcr_unknown_is_design" not in [i.id for i in merged]

    def test_boost_sort_is_stable(self):
        insights = [_insight("a"), _insight("b", boost=1), _insight("c"), _insight("d", boost=1)]
        merged = apply_principle_overlay(insights, None, seeds=())
        assert [i.id for i in merged] == ["b", "d", "a", "c"]

    def test_missing_ids_are_filled(self):
        merged = apply_principle_overlay([_insight("x"), _insight(None)], None, seeds=())
        assert [i.id for i in merged] == ["x", "rule_1"]

    def test_collisions_are_kept(self):
        merged = apply_principle_overlay([_insight("csat_median_over_mean")], Summary())
        assert [i.id for i in merged].count("csat_median_over_mean") == 2

    def test_custom_seed_predicate(self):
        seed = PrincipleSeed(
            id="week_only",
            title="Weekly lens",
            why="Only for weekly views.",
            lens=Lens.OPS,
            when=lambda ctx: ctx.window == RangeKey.WEEK,
        )
        assert [i.id for i in apply_principle_overlay([], None, window="week", seeds=(seed,))] == ["week_only"]
        assert [i.id for i in apply_principle_overlay([], None, window="today", seeds=(seed,))] == [FALLBACK_ID]

    def test_fallback_when_empty(self):
        merged = apply_principle_overlay([], None, seeds=())

        assert len(merged) == 1
        assert merged[0].id == FALLBACK_ID
        assert merged[0].who == "system"
        assert merged[0].source == InsightSource.FALLBACK


# =============================================================================
# Id Inference and Impact
# =============================================================================

class TestInferInsightId:
    """Keyword rules checked in fixed priority order."""

    @pytest.mark.parametrize("title,expected", [
        ("CSAT drop: review 10 calls and tag root causes", "csat_low_center"),
        ("SLA columns missing: add SLA/WithinSLA to the export", "sla_missing_columns"),
        ("Add ServiceLevel to export", "sla_missing_columns"),
        ("Escalation: build a checklist", "escalation_high"),
        ("個別：エスカ削減", "escalation_high"),
        ("FCR unknown cleanup", "fcr_unknown_high"),
        ("CSAT and SLA both", "csat_low_center"),
    ])
    def test_keyword_match(self, title, expected):
        assert infer_insight_id_from_task(_task(title)) == expected

    def test_scope_fallback(self):
        assert infer_insight_id_from_task(_task("FCR: check the top not-resolved reasons")) == "scope_center"
        assert infer_insight_id_from_task(_task("Coaching: listen in", scope=Scope.AGENT)) == "scope_agent"

    def test_insight_title_keywords(self):
        untitled = Insight(id=None, title="Escalation rate is high (center)")
        assert infer_insight_id_from_insight(untitled) == "escalation_high"

    def test_insight_slug_fallback(self):
        insight = Insight(id=None, title="Queue note", scope=Scope.CENTER, who="center", level=InsightLevel.INFO)
        assert infer_insight_id_from_insight(insight) == "center_center_info_queue_note"


class TestInferImpact:
    """Fixed per-keyword CSAT deltas."""

    @pytest.mark.parametrize("title,delta", [
        ("CSAT drop", 1.2),
        ("SLA columns missing", 0.4),
        ("Escalation: checklist", 0.5),
        ("エスカ削減", 0.5),
        ("FCR: drill down", 0.3),
        ("Maintain: weekly review", 0.2),
    ])
    def test_deltas(self, title, delta):
        impact = infer_impact(_task(title))

        assert impact.csatDelta == delta
        assert impact.confidence == ImpactConfidence.LOW


class TestSlugify:
    """Slug helper."""

    def test_brackets_and_spaces(self):
        assert slugify("Center (Main)") == "center_main"
        assert slugify("  a   b  ") == "a_b"

    def test_japanese_kept(self):
        assert slugify("エスカ 削減") == "エスカ_削減"

    def test_length_limit(self):
        assert len(slugify("x" * 100)) == 60

    def test_empty(self):
        assert slugify("") == ""
        assert slugify(None) == ""


# =============================================================================
# Linker
# =============================================================================

class TestLinkTasksAndInsights:
    """Decoration, synthesis, dedupe and ordering."""

    @pytest.fixture
    def tasks(self):
        return [
            _task("CSAT drop: review 10 calls and tag root causes"),
            _task("SLA columns missing: add SLA/WithinSLA to the export"),
        ]

    def test_tasks_get_ids_and_impact(self, tasks):
        linked, _ = link_tasks_and_insights(tasks, [])

        assert linked[0].relatedInsightIds == ["csat_low_center"]
        assert linked[0].impact == TaskImpact(csatDelta=1.2, confidence=ImpactConfidence.LOW)
        assert linked[1].relatedInsightIds == ["sla_missing_columns"]
        assert linked[1].impact.csatDelta == 0.4

    def test_explicit_values_are_kept(self):
        task = _task(
            "CSAT drop",
            relatedInsightIds=["custom"],
            impact=TaskImpact(csatDelta=3.0),
        )
        decorated = decorate_tasks([task])[0]

        assert decorated.relatedInsightIds == ["custom"]
        assert decorated.impact.csatDelta == 3.0

    def test_synthesized_insights_follow_real_ones(self, tasks):
        real = [_insight("ins_center_csat_low_today", title="CSAT is low (center)")]
        _, insights = link_tasks_and_insights(tasks, real)

        assert [i.id for i in insights] == ["ins_center_csat_low_today", "csat_low_center", "sla_missing_columns"]
        assert insights[1].source == InsightSource.SYNTHETIC
        assert insights[1].level == InsightLevel.WARN

    def test_real_insight_wins_on_duplicate_id(self, tasks):
        real = [_insight("csat_low_center", title="Real one")]
        _, insights = link_tasks_and_insights(tasks, real)

        matches = [i for i in insights if i.id == "csat_low_center"]
        assert len(matches) == 1
        assert matches[0].title == "Real one"
        assert matches[0].source == InsightSource.RULE

    def test_insights_without_id_are_named(self, tasks):
        _, insights = link_tasks_and_insights(tasks, [Insight(id=None, title="Escalation rate is high")])
        assert insights[0].id == "escalation_high"

    def test_boosted_insights_lead(self, tasks):
        real = [_insight("plain"), _insight("boosted", boost=2)]
        _, insights = link_tasks_and_insights(tasks, real)
        assert [i.id for i in insights][:2] == ["boosted", "plain"]

    def test_generic_synthesis(self):
        synthetic = synthesize_insights_from_tasks([_task("Maintain: weekly review")], window="week")

        assert len(synthetic) == 1
        assert synthetic[0].id == "scope_center"
        assert synthetic[0].title == "Insight: scope_center"
        assert synthetic[0].window == RangeKey.WEEK

    def test_synthesis_dedupes_ids(self):
        synthetic = synthesize_insights_from_tasks([_task("CSAT a"), _task("CSAT b")])
        assert [i.id for i in synthetic] == ["csat_low_center"]

    def test_csat_target_in_synthesized_text(self, tasks):
        _, insights = link_tasks_and_insights(tasks, [], csat_target=90.0)
        csat = next(i for i in insights if i.id == "csat_low_center")
        assert "90%" in csat.why
