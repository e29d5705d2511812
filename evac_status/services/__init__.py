"""
Service layer for the evacuation status backend.

This package contains the logic that turns face API detections into
persisted on-site/evacuated statuses and runs it periodically.
"""

from .evacuation_refresh import EvacuationRefresher, RefreshScheduler, build_refresher
from .evacuation_store import EvacuationStatusStore

__all__ = ["EvacuationRefresher", "RefreshScheduler", "build_refresher", "EvacuationStatusStore"]
