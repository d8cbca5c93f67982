"""Entity model and remote payload decoding."""

from dataclasses import dataclass, replace
from typing import Any

from .errors import DecodeError

# JSON field name -> Entity attribute
FIELD_MAP = {
    "name": "name",
    "region": "region",
    "capital": "capital",
    "currency": "currency",
    "language": "language",
    "flag": "image_url",
}


@dataclass(frozen=True)
class Entity:
    """A single cataloged record (e.g. a country).

    ``uuid`` is 0 until the record has been persisted by the entity store.
    """

    name: str | None = None
    region: str | None = None
    capital: str | None = None
    currency: str | None = None
    language: str | None = None
    image_url: str | None = None
    uuid: int = 0

    def with_id(self, uuid: int) -> "Entity":
        """Return a copy carrying the given local identifier."""
        return replace(self, uuid=uuid)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "uuid": self.uuid,
            "name": self.name,
            "region": self.region,
            "capital": self.capital,
            "currency": self.currency,
            "language": self.language,
            "image_url": self.image_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Entity":
        """Create from a remote JSON object.

        Raises:
            DecodeError: If a known field holds a non-string value.
        """
        values = {}
        for key, attr in FIELD_MAP.items():
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise DecodeError(
                    f"Field {key!r} must be a string or null, got {type(value).__name__}"
                )
            values[attr] = value
        return cls(**values)


def decode_entities(payload: Any) -> list[Entity]:
    """Decode a full remote response body into entities.

    Args:
        payload: Parsed JSON body.

    Returns:
        Entities in payload order, all with ``uuid == 0``.

    Raises:
        DecodeError: If the body is not a list of objects.
    """
    if not isinstance(payload, list):
        raise DecodeError(f"Expected a JSON array, got {type(payload).__name__}")

    entities = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise DecodeError(
                f"Element {index} is {type(item).__name__}, expected an object"
            )
        entities.append(Entity.from_dict(item))
    return entities
