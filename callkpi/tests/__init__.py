"""
CallKPI Test Suite.

Test modules:
- test_normalization.py: alias lookup, value parsers, rounding helpers
- test_aggregation.py: summary, agent stats, center AHT, window filter, daily KPIs
- test_insight_rules.py: rule battery and the no-findings placeholder
- test_task_mapping.py: task triggers, fallback and priority ordering
- test_linking.py: principle overlay and insight-task linking
- test_outcome.py: task filtering and outcome estimate
- test_pipeline.py: end-to-end scenarios and determinism
- test_ingestion.py: CSV parsing and data issues
- test_api.py: HTTP surface through httpx

Dependencies:
- pytest
- pytest-asyncio
- httpx
"""
