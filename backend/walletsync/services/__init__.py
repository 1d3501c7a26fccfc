"""Business logic services."""

from walletsync.services.sync_service import SyncOrchestrator, build_orchestrator

__all__ = [
    "SyncOrchestrator",
    "build_orchestrator",
]
