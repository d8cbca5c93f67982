"""HTTP client for the remote entity source."""

import json
import logging

import httpx

from .errors import DecodeError, TransportError
from .models import Entity, decode_entities

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://raw.githubusercontent.com/"
DEFAULT_PATH = "atilsamancioglu/IA19-DataSetCountries/master/countrydataset.json"


class RemoteSourceClient:
    """Fetches the full entity collection from the remote origin.

    No retries happen here; retry policy belongs to the caller.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        path: str = DEFAULT_PATH,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the remote client.

        Args:
            base_url: Origin URL.
            path: Path of the JSON collection relative to base_url.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = base_url.rstrip("/")
        self.path = "/" + path.lstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_all(self) -> list[Entity]:
        """Fetch the full collection.

        Returns:
            Decoded entities, all with ``uuid == 0``.

        Raises:
            TransportError: Network failure, timeout, or non-2xx status.
            DecodeError: Malformed payload or content encoding.
        """
        client = await self._get_client()

        try:
            response = await client.get(self.path)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request to {self.url} timed out") from e
        except httpx.DecodingError as e:
            raise DecodeError(f"Response from {self.url} could not be decoded: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {self.url} failed: {e}") from e

        if not response.is_success:
            raise TransportError(f"HTTP {response.status_code} from {self.url}")

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"Response from {self.url} is not JSON: {e}") from e

        entities = decode_entities(payload)
        logger.debug(f"Fetched {len(entities)} entities from {self.url}")
        return entities
