"""
CallKPI Backend Package.

FastAPI service layer for the contact-center operations dashboard.
Turns cleaned call-center rows into KPI snapshots, rule-based insights,
prioritized remediation tasks and a CSAT outcome projection.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration and dependencies
    - models: Pydantic schemas and enums
    - services: Pipeline stages (normalization, aggregation, insights, tasks)
"""

__version__ = "1.0.0"
