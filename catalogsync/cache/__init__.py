"""Local persistence for catalogsync.

Provides:
- EntityStore: durable snapshot of the entity collection
- FreshnessStore: timestamp of the last successful full refresh
"""

from .entity_store import EntityStore
from .freshness import NEVER, FreshnessStore

__all__ = ["EntityStore", "FreshnessStore", "NEVER"]
