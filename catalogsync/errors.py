"""Error taxonomy for catalog synchronization."""


class CatalogError(Exception):
    """Base class for all catalogsync errors."""


class TransportError(CatalogError):
    """Remote source unreachable, timed out, or answered with a failure status."""


class DecodeError(CatalogError):
    """Remote payload could not be decoded into entities."""


class StorageError(CatalogError):
    """Local persistence is unavailable or a storage operation failed."""


class NotFound(CatalogError):
    """No cached entity has the requested identifier."""

    def __init__(self, uuid: int):
        super().__init__(f"No entity with uuid={uuid}")
        self.uuid = uuid
