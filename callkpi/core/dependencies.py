"""
FastAPI dependency injection for the CallKPI service.

Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_policy: Default threshold policy built from settings
- SettingsDep / PolicyDep: Annotated aliases for endpoint signatures

Usage:
    @router.post("/analysis")
    async def analyze(request: AnalysisRequest, policy: PolicyDep):
        ...

Tests replace these through `app.dependency_overrides`.
"""

from typing import Annotated

from fastapi import Depends

from callkpi.core.config import Settings, get_settings
from callkpi.models import Policy


def get_settings_dependency() -> Settings:
    """Return the cached application settings."""
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


def get_policy(settings: SettingsDep) -> Policy:
    """Default policy for a request, before any per-request overrides."""
    return Policy.from_settings(settings)


PolicyDep = Annotated[Policy, Depends(get_policy)]
