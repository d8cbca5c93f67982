"""catalogsync - cached catalog browser with a timestamp-driven sync engine."""

from .coordinator import SyncCoordinator
from .errors import CatalogError, DecodeError, NotFound, StorageError, TransportError
from .models import Entity

__version__ = "0.1.0"

__all__ = [
    "CatalogError",
    "DecodeError",
    "Entity",
    "NotFound",
    "StorageError",
    "SyncCoordinator",
    "TransportError",
]
