"""
End-to-end tests for the KPI pipeline.

Runs the full chain (summary, agent stats, rules, overlay, tasks, linker) over
the standard row sets and checks the guarantees a dashboard relies on:
deterministic output, never-empty insights and tasks, and graceful handling of
missing columns and failing enrichment stages.
"""

import math
from datetime import date

import pytest

from callkpi.models import (
    DataIssueType,
    InsightLevel,
    InsightSource,
    MetricStatus,
    Policy,
    RangeKey,
    Scope,
    Summary,
    TaskPriority,
)
from callkpi.services.pipeline import collect_data_issues, run_pipeline
from callkpi.tests.conftest import dated_rows, make_agent, make_row, make_rows

pytestmark = pytest.mark.scenario


def _issue_keys(result):
    return [(issue.type, issue.field) for issue in result.dataIssues]


class TestDeterminism:
    """Same rows, same output."""

    def test_ids_and_order_are_stable(self, csat_low_rows):
        first = run_pipeline(csat_low_rows)
        second = run_pipeline(csat_low_rows)

        assert [i.id for i in first.insights] == [i.id for i in second.insights]
        assert [t.id for t in first.tasks] == [t.id for t in second.tasks]
        assert first.model_dump() == second.model_dump()


class TestEmptyInput:
    """An empty row set still renders."""

    @pytest.mark.parametrize("rows", [[], None])
    def test_never_empty(self, rows):
        result = run_pipeline(rows)

        assert result.summary.rowCount == 0
        assert len(result.insights) >= 1
        assert len(result.tasks) >= 1
        assert result.agentStats == []
        assert result.dailyKpis == []
        assert [b.count for b in result.csatDistribution] == [0, 0, 0]
        assert result.fcrWarning is False

    def test_insufficient_sample_reported(self):
        result = run_pipeline([])
        assert (DataIssueType.INSUFFICIENT_SAMPLE, "rows") in _issue_keys(result)


class TestLowCsatScenario:
    """40 rows with CSAT 80: the CSAT rule, review task and link all fire."""

    def test_center_csat_insight(self, csat_low_rows):
        result = run_pipeline(csat_low_rows)
        rule = next(i for i in result.insights if i.id == "ins_center_csat_low_today")

        assert result.summary.avgCsat == 80.0
        assert rule.level == InsightLevel.WARN
        assert rule.source == InsightSource.RULE
        assert "CSAT is low (center)" in result.problems

    def test_review_task_leads(self, csat_low_rows):
        result = run_pipeline(csat_low_rows)

        assert result.tasks[0].priority == TaskPriority.P0
        assert "review 10 calls" in result.tasks[0].title
        assert result.tasks[0].relatedInsightIds == ["csat_low_center"]
        assert all(t.relatedInsightIds for t in result.tasks)
        assert all(t.impact is not None for t in result.tasks)

    def test_synthesized_insights_for_task_links(self, csat_low_rows):
        result = run_pipeline(csat_low_rows)
        ids = [i.id for i in result.insights]

        assert "csat_low_center" in ids
        # No SLA columns in the rows
        assert "sla_missing_columns" in ids
        assert len(ids) == len(set(ids))

    def test_every_link_resolves(self, csat_low_rows):
        result = run_pipeline(csat_low_rows)
        ids = {i.id for i in result.insights}

        for task in result.tasks:
            assert set(task.relatedInsightIds) <= ids

    def test_policy_target_changes_results(self, csat_low_rows):
        result = run_pipeline(csat_low_rows, policy=Policy(csatTarget=80.0))

        assert "ins_center_csat_low_today" not in [i.id for i in result.insights]
        assert all(t.priority != TaskPriority.P0 for t in result.tasks)

    def test_review_task_points_at_csat_distribution(self, csat_low_rows):
        result = run_pipeline(csat_low_rows)
        low = next(b for b in result.csatDistribution if b.label == "Low")

        assert "CSAT Distribution / Low bucket" in result.tasks[0].linkHint
        assert low.upperBound == 70.0
        assert [b.count for b in result.csatDistribution] == [0, 30, 0]


class TestHealthyScenario:
    """Nothing out of bounds."""

    def test_baseline_task_only(self, healthy_rows):
        result = run_pipeline(healthy_rows)

        assert len(result.tasks) == 1
        assert result.tasks[0].title.startswith("Maintain:")
        assert result.summary.slaStatus == MetricStatus.OK
        assert result.summary.slaRate == 100.0

    def test_no_findings_placeholder(self, healthy_rows):
        result = run_pipeline(healthy_rows)
        rule_ids = [i.id for i in result.insights if i.source == InsightSource.RULE]

        assert rule_ids == ["ins_no_findings_today"]
        assert result.dataIssues == []
        assert result.fcrWarning is False


class TestMissingResolutionColumn:
    """FCR and Escalation degrade to missing_columns, not zero."""

    def test_fcr_partition(self, no_resolution_rows):
        summary = run_pipeline(no_resolution_rows).summary

        assert summary.fcrEligibleCount == 0
        assert summary.fcrUnknownCount == summary.rowCount == 40
        assert summary.fcrRate is None
        assert summary.fcrStatus == MetricStatus.MISSING_COLUMNS
        assert summary.escalationRate is None

    def test_no_fcr_rule_or_task(self, no_resolution_rows):
        result = run_pipeline(no_resolution_rows)

        assert not any(
            "fcr" in (i.id or "") for i in result.insights if i.source == InsightSource.RULE
        )
        assert not any(t.title.startswith("FCR:") for t in result.tasks)

    def test_overlay_flags_unknown_fcr(self, no_resolution_rows):
        result = run_pipeline(no_resolution_rows)
        assert result.insights[0].id == "fcr_unknown_is_design"

    def test_missing_column_issues(self, no_resolution_rows):
        keys = _issue_keys(run_pipeline(no_resolution_rows))

        assert keys.count((DataIssueType.MISSING_COLUMN, "Resolution_Status")) == 2
        assert (DataIssueType.MISSING_COLUMN, "WithinSLA/SLA") not in keys

    def test_unknown_fcr_raises_warning(self, no_resolution_rows):
        assert run_pipeline(no_resolution_rows).fcrWarning is True


class TestHugeValues:
    """Values near the float limit still produce a complete result."""

    def test_pipeline_completes(self):
        result = run_pipeline(make_rows(40, csat="9e307", aht="1.5e308"))

        assert math.isfinite(result.summary.avgCsat)
        assert math.isfinite(result.summary.avgAht)
        assert result.insights
        assert result.tasks
        assert result.csatDistribution[2].count == 40

    def test_overflowing_cells_are_missing(self):
        rows = make_rows(40, csat=10 ** 400, aht="1e307:00")
        summary = run_pipeline(rows).summary

        assert summary.avgCsat is None
        assert summary.avgAht is None


class TestAgentScenario:
    """Per-agent AHT rules respect the sample floor."""

    def test_one_agent_insight(self):
        rows = make_rows(50, agent="Ken", aht="200") + make_rows(5, agent="Mika", aht="100")
        result = run_pipeline(rows)
        agent_insights = [i for i in result.insights if i.scope == Scope.AGENT]

        assert [a.agentName for a in result.agentStats] == ["Ken", "Mika"]
        assert len(agent_insights) == 1
        assert agent_insights[0].who == "Ken"
        assert (DataIssueType.INSUFFICIENT_SAMPLE, "AgentName") in _issue_keys(result)


class TestWindow:
    """Window ids, due buckets and the optional filter."""

    @pytest.fixture
    def october_rows(self):
        return dated_rows(date(2025, 10, 1), 31, csat="70")

    def test_no_filter_by_default(self, october_rows):
        result = run_pipeline(october_rows, window=RangeKey.WEEK)

        assert result.summary.rowCount == 31
        assert result.window == RangeKey.WEEK
        assert "ins_center_csat_low_week" in [i.id for i in result.insights]

    def test_filter_by_window(self, october_rows):
        result = run_pipeline(october_rows, window="week", filter_by_window=True)

        assert result.summary.rowCount == 7
        assert [p.date for p in result.dailyKpis][0] == "2025-10-25"
        assert len(result.dailyKpis) == 7

    def test_capabilities_come_from_whole_file(self):
        rows = [make_row(day="2025-10-01", WithinSLA="true")] + dated_rows(date(2025, 10, 2), 5)
        result = run_pipeline(rows, window=RangeKey.TODAY, filter_by_window=True)

        assert result.summary.rowCount == 1
        assert result.summary.slaStatus == MetricStatus.OK
        assert result.summary.slaUnknownCount == 1


class TestEnrichmentFailures:
    """A failing overlay or linker never breaks the result."""

    def test_overlay_failure_keeps_rule_insights(self, csat_low_rows, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("overlay down")

        monkeypatch.setattr("callkpi.services.pipeline.apply_principle_overlay", broken)
        result = run_pipeline(csat_low_rows)
        ids = [i.id for i in result.insights]

        assert "ins_center_csat_low_today" in ids
        assert "csat_median_over_mean" not in ids
        assert result.tasks[0].relatedInsightIds == ["csat_low_center"]

    def test_linker_failure_returns_unlinked_tasks(self, csat_low_rows, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("linker down")

        monkeypatch.setattr("callkpi.services.pipeline.link_tasks_and_insights", broken)
        result = run_pipeline(csat_low_rows)

        assert len(result.tasks) >= 1
        assert all(t.relatedInsightIds is None for t in result.tasks)
        assert "ins_center_csat_low_today" in [i.id for i in result.insights]


class TestCollectDataIssues:
    """Data issue derivation from summary and agent stats."""

    def test_under_sampled_agents(self, policy):
        summary = Summary(rowCount=40, fcrStatus=MetricStatus.OK, slaStatus=MetricStatus.OK,
                          escalationStatus=MetricStatus.OK)
        issues = collect_data_issues(summary, [make_agent("Ken"), make_agent("Mika", calls=3)], policy)

        assert len(issues) == 1
        assert issues[0].field == "AgentName"
        assert "1 agent(s)" in issues[0].message
