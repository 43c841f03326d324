"""
Circulation core: the engine that applies transitions, the per-asset lock
arena it serializes them with, and the service facade outer layers call.
"""

from .engine import CirculationEngine
from .locks import AssetLockRegistry
from .service import CirculationService, get_circulation_service, reset_circulation_service

__all__ = [
    "AssetLockRegistry",
    "CirculationEngine",
    "CirculationService",
    "get_circulation_service",
    "reset_circulation_service",
]
