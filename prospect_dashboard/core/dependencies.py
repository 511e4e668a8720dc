"""
FastAPI dependency injection module for the Prospect Dashboard backend.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_config_store: Returns the P&L configuration store bound to the repository
- verify_api_key: Guards write endpoints with the shared ingestion key
- SettingsDep / ConfigStoreDep: Annotated aliases for endpoints

Handlers receive the P&L configuration history through ConfigStoreDep rather
than reading a module-level list, so tests can override it with
`app.dependency_overrides[get_config_store] = lambda: store`.

Usage:
    @router.get("/pnl/config")
    async def read_config(store: ConfigStoreDep) -> PnLConfigHistory:
        return await store.get_history()
"""

import logging
import secrets
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import APIKeyHeader

from prospect_dashboard.core.config import Settings, get_settings
from prospect_dashboard.services.pnl import PnLConfigStore


logger = logging.getLogger(__name__)


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so endpoints can be overridden in tests.
    """
    return get_settings()


# =============================================================================
# P&L Configuration Store Dependency
# =============================================================================

def get_config_store() -> PnLConfigStore:
    """Return a P&L configuration store reading from the document repository."""
    settings = get_settings()
    return PnLConfigStore(default_effective_date=settings.default_config_effective_date)


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

ConfigStoreDep = Annotated[PnLConfigStore, Depends(get_config_store)]


# =============================================================================
# Ingestion API Key
# =============================================================================

# Accepts "Bearer <key>" as well as the bare key
INGEST_API_KEY_HEADER = APIKeyHeader(name="Authorization", auto_error=False)

BEARER_PREFIX: str = 'Bearer '


def verify_api_key(
    settings: SettingsDep,
    authorization: Optional[str] = Security(INGEST_API_KEY_HEADER),
) -> None:
    """
    Require the ingestion key on write endpoints.

    Raises:
        HTTPException 401: If no key is configured, the header is missing,
            or the key does not match.
    """
    expected = settings.ingest_api_key
    if not expected:
        logger.warning("Write request rejected: INGEST_API_KEY is not configured")
        raise HTTPException(
            status_code=401,
            detail="Unauthorized. Provide valid API key in Authorization header."
        )

    token = (authorization or '').strip()
    if token.startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX):].strip()

    if not token or not secrets.compare_digest(token.encode(), expected.encode()):
        logger.warning("Write request rejected: invalid or missing API key")
        raise HTTPException(
            status_code=401,
            detail="Unauthorized. Provide valid API key in Authorization header."
        )
