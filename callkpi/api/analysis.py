"""
FastAPI router module for KPI analysis.

Implements POST /analysis (JSON rows), POST /analysis/csv (CSV upload) and
POST /analysis/outcome (task filtering plus CSAT outcome estimate).

The router is a thin layer over callkpi.services: it resolves the threshold
policy and window, runs the pipeline, and maps upload problems to HTTP errors.
Data quality problems inside a readable file are never errors; they are
returned as data issues next to the result.
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile
from pydantic import ValidationError

from callkpi.core.dependencies import PolicyDep, SettingsDep
from callkpi.models import (
    AnalysisRequest,
    CsvAnalysisResponse,
    IngestionSummary,
    OutcomeRequest,
    OutcomeResponse,
    PipelineResult,
    PolicyOverrides,
    RangeKey,
)
from callkpi.services.ingestion import parse_csv
from callkpi.services.outcome import estimate_outcome, filter_tasks_by_insight
from callkpi.services.pipeline import run_pipeline

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post("", response_model=PipelineResult)
async def analyze_rows(
    request: AnalysisRequest,
    settings: SettingsDep,
    policy: PolicyDep,
) -> PipelineResult:
    """
    Run the KPI pipeline over JSON rows.

    Request policy fields override the configured defaults one by one;
    a missing window falls back to the configured default window.
    """
    window = request.window or settings.default_window
    effective_policy = policy.with_overrides(request.policy)

    logger.info(f"Analyzing {len(request.rows)} rows for window '{RangeKey(window).value}'")
    return run_pipeline(
        request.rows,
        policy=effective_policy,
        window=window,
        filter_by_window=request.filterByWindow,
    )


@router.post("/csv", response_model=CsvAnalysisResponse)
async def analyze_csv(
    settings: SettingsDep,
    policy: PolicyDep,
    file: UploadFile = File(..., description="Call-center CSV export"),
    window: Optional[RangeKey] = Query(default=None, description="Reporting window"),
    filterByWindow: bool = Query(default=False, description="Slice rows to the window first"),
    policy_json: Optional[str] = Form(
        default=None,
        alias="policy",
        description='Policy overrides as JSON, e.g. {"csatTarget": 90}',
    ),
) -> CsvAnalysisResponse:
    """
    Parse an uploaded CSV and run the KPI pipeline over it.

    The optional `policy` form field carries the same overrides as the JSON
    endpoint's `policy` body field.

    Raises:
        HTTPException 422: If the policy field is not a valid override object
        HTTPException 413: If the upload exceeds max_upload_bytes
        HTTPException 400: If the file is empty or cannot be parsed as CSV
    """
    overrides: Optional[PolicyOverrides] = None
    if policy_json:
        try:
            overrides = PolicyOverrides.model_validate_json(policy_json)
        except ValidationError as e:
            raise HTTPException(
                status_code=422,
                detail=e.errors(include_url=False, include_context=False, include_input=False),
            )

    content = await file.read()

    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Upload is {len(content)} bytes; the limit is {settings.max_upload_bytes} bytes",
        )

    rows, issues = parse_csv(content)
    file_issues = [issue for issue in issues if issue.field == "file"]
    if file_issues:
        logger.warning(f"Rejected upload '{file.filename}': {file_issues[0].message}")
        raise HTTPException(
            status_code=400,
            detail=file_issues[0].message,
        )

    result = run_pipeline(
        rows,
        policy=policy.with_overrides(overrides),
        window=window or settings.default_window,
        filter_by_window=filterByWindow,
    )
    return CsvAnalysisResponse(
        ingestion=IngestionSummary(rowCount=len(rows), issues=issues),
        result=result,
    )


@router.post("/outcome", response_model=OutcomeResponse)
async def preview_outcome(
    request: OutcomeRequest,
    policy: PolicyDep,
) -> OutcomeResponse:
    """
    Filter tasks by the selected insight and estimate the CSAT outcome.

    Without a selection every task counts. The outcome is null when
    baseCsat is not supplied.
    """
    tasks = filter_tasks_by_insight(request.tasks, request.selectedInsightId)
    target = request.csatTarget if request.csatTarget is not None else policy.csatTarget
    return OutcomeResponse(
        tasks=tasks,
        outcome=estimate_outcome(request.baseCsat, tasks, target=target),
    )
