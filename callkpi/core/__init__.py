"""
Core infrastructure package for the CallKPI service.

Provides configuration management via pydantic-settings and the FastAPI
dependencies built on it, re-exported for short imports:

    from callkpi.core import get_settings, SettingsDep, PolicyDep
"""

from callkpi.core.config import Settings, get_settings
from callkpi.core.dependencies import (
    get_settings_dependency,
    get_policy,
    SettingsDep,
    PolicyDep,
)

__all__ = [
    'Settings',
    'get_settings',
    'get_settings_dependency',
    'get_policy',
    'SettingsDep',
    'PolicyDep',
]
