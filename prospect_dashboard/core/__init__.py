"""
Core infrastructure package for the Prospect Dashboard backend.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- FastAPI dependency injection utilities

    from prospect_dashboard.core import get_settings, init_db, ConfigStoreDep
"""

from prospect_dashboard.core.config import Settings, get_settings
from prospect_dashboard.core.database import init_db, close_db, get_db_pool
from prospect_dashboard.core.dependencies import (
    get_settings_dependency,
    get_config_store,
    verify_api_key,
    SettingsDep,
    ConfigStoreDep,
)


__all__ = [
    # Configuration management
    'Settings',
    'get_settings',
    # Database pool lifecycle
    'init_db',
    'close_db',
    'get_db_pool',
    # FastAPI dependency injection
    'get_settings_dependency',
    'get_config_store',
    'verify_api_key',
    'SettingsDep',
    'ConfigStoreDep',
]
