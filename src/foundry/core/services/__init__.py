"""
Service layer for foundry.

Services compose the stores into one API surface. Any interface (CLI,
API, tests) calls service methods instead of reaching into the stores.

Modules:
    foundry: FoundryService, one method per logical operation.
    stats: StatsService for the liveness probe and table counts.
    models: Data models returned by services (StoreStats).
"""

from foundry.core.services.foundry import FoundryService
from foundry.core.services.models import StoreStats
from foundry.core.services.stats import HEALTHY, StatsService

__all__ = [
    "FoundryService",
    "HEALTHY",
    "StatsService",
    "StoreStats",
]
