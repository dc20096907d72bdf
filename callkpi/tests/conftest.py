"""
Pytest Configuration and Shared Fixtures for CallKPI Tests.

Provides:
- Custom markers
- Row factories producing cleaned call-center rows in the export shape
- Ready-made row sets for the standard scenarios (low CSAT, healthy center,
  missing resolution column)
- Default policy fixture
"""

from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence

import pytest

from callkpi.models import AgentStat, Policy


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - scenario: end-to-end scenarios over a full row set
    - api: tests driving the HTTP surface
    """
    config.addinivalue_line(
        'markers',
        'scenario: end-to-end pipeline scenarios over a full row set'
    )
    config.addinivalue_line(
        'markers',
        'api: tests that exercise the FastAPI application'
    )


# ============================================================
# HELPERS
# ============================================================

def make_row(
    agent: Optional[str] = "Akiko Tanaka",
    csat: Any = "90",
    aht: Any = "300",
    status: Any = "Resolved",
    day: str = "2025-10-01",
    drop: Sequence[str] = (),
    **extra: Any,
) -> Dict[str, Any]:
    """
    Build one cleaned row.

    Args:
        agent: AgentName value
        csat: CSAT value (string as in the export, or None)
        aht: AHT value in seconds or mm:ss
        status: Resolution_Status value
        day: Date value
        drop: Column names to leave out entirely
        **extra: Additional columns (e.g. WithinSLA="true")
    """
    row: Dict[str, Any] = {
        "Date": day,
        "AgentName": agent,
        "CSAT": csat,
        "AHT": aht,
        "Resolution_Status": status,
    }
    row.update(extra)
    for key in drop:
        row.pop(key, None)
    return row


def make_rows(count: int, **kwargs: Any) -> List[Dict[str, Any]]:
    """Build `count` identical rows; see make_row for arguments."""
    return [make_row(**kwargs) for _ in range(count)]


def make_agent(name: str, calls: int = 40, **fields: Any) -> AgentStat:
    """AgentStat with rowCount and totalCalls set to `calls`."""
    return AgentStat(agentName=name, rowCount=calls, totalCalls=calls, **fields)


def dated_rows(start: date, days: int, **kwargs: Any) -> List[Dict[str, Any]]:
    """One row per consecutive day starting at `start`."""
    return [
        make_row(day=(start + timedelta(days=offset)).isoformat(), **kwargs)
        for offset in range(days)
    ]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def policy() -> Policy:
    """Default policy (30 / 85 / 300 / 240 / 330 / 80)."""
    return Policy()


@pytest.fixture
def csat_low_rows() -> List[Dict[str, Any]]:
    """
    40 rows from one agent: 30 with CSAT 80, 10 with no CSAT.

    AHT 300s and every call resolved, so only CSAT (and missing SLA) stand out.
    """
    return make_rows(30, csat="80") + make_rows(10, csat=None)


@pytest.fixture
def healthy_rows() -> List[Dict[str, Any]]:
    """40 resolved rows within SLA, CSAT 95, AHT 300s: nothing should fire."""
    return make_rows(40, csat="95", WithinSLA="true")


@pytest.fixture
def no_resolution_rows() -> List[Dict[str, Any]]:
    """40 rows without any resolution-status column."""
    return make_rows(40, csat="95", drop=("Resolution_Status",), WithinSLA="true")
