"""Dependency injection for FastAPI routes."""

import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from walletsync.config import get_settings, Settings
from walletsync.database import Database, get_db
from walletsync.services.job_ledger import JobLedger
from walletsync.services.sync_service import SyncOrchestrator, build_orchestrator


security = HTTPBearer(auto_error=False)


async def verify_api_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Check the bearer token against API_TOKEN.

    Endpoints stay open when no token is configured, which is how the
    service runs inside a private network next to its scheduler.
    """
    if not settings.api_token:
        return

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not secrets.compare_digest(credentials.credentials, settings.api_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_database() -> Database:
    """Get a Database helper bound to the shared store client."""
    return get_db()


async def get_ledger(db: Database = Depends(get_database)) -> JobLedger:
    return JobLedger(db)


async def get_orchestrator(
    settings: Settings = Depends(get_settings),
    db: Database = Depends(get_database),
) -> SyncOrchestrator:
    """Build a fresh orchestrator per request; components hold no shared state."""
    return build_orchestrator(settings=settings, db=db)
