"""Core Module Initialization."""

from idbridge.core.animap import AnimeMappingTable
from idbridge.core.id_cache import IdCacheStore
from idbridge.core.maintenance import IdCacheManager
from idbridge.core.metrics import MetricsChannel
from idbridge.core.resolver import IdResolver, SeedIdentifier

from idbridge.core.bridge import IdBridge  # isort:skip
from idbridge.core.sched import MaintenanceScheduler

__all__ = [
    "AnimeMappingTable",
    "IdBridge",
    "IdCacheManager",
    "IdCacheStore",
    "IdResolver",
    "MaintenanceScheduler",
    "MetricsChannel",
    "SeedIdentifier",
]
