"""Entity catalog API client.

Uses httpx for async HTTP requests. Each entity type lives behind its own
endpoint family in the catalog service; this module owns that mapping so callers
only ever pass an EntityType.
"""

from functools import lru_cache
from typing import Any, assert_never
from urllib.parse import quote

import httpx

from refengine.core.config import get_settings
from refengine.core.logging import get_logger
from refengine.core.schemas_references import EntityType

logger = get_logger(__name__)

# Keys under which list endpoints wrap their items
_ITEM_KEYS = ("items", "rules", "traits", "feats", "spells")


class EntityClientError(Exception):
    """The catalog API could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def list_endpoint(
    entity_type: EntityType,
    query: str,
    limit: int,
    status: str | None,
) -> tuple[str, dict[str, Any]]:
    """Path and query params of a collection's search endpoint."""
    if entity_type is EntityType.RULE:
        path, params = "/api/rules", {"search": query, "limit": limit, "searchField": "name"}
    elif entity_type is EntityType.ABILITY:
        path, params = "/api/traits/search", {"q": query, "limit": limit}
    elif entity_type is EntityType.FEAT:
        path, params = "/api/feats/search", {"query": query, "limit": limit}
    elif entity_type is EntityType.SPELL:
        path, params = "/api/spells/search", {"q": query, "limit": limit}
    else:
        assert_never(entity_type)

    if status:
        params["status"] = status
    return path, params


def detail_endpoint(entity_type: EntityType, entity_id: str) -> str:
    """Path of a single entity's detail endpoint."""
    quoted = quote(str(entity_id), safe="")
    if entity_type is EntityType.RULE:
        return f"/api/rules/{quoted}"
    elif entity_type is EntityType.ABILITY:
        return f"/api/traits/{quoted}"
    elif entity_type is EntityType.FEAT:
        return f"/api/feats/{quoted}"
    elif entity_type is EntityType.SPELL:
        return f"/api/spells/{quoted}"
    else:
        assert_never(entity_type)


def extract_items(data: Any) -> list[dict[str, Any]]:
    """Pull the item list out of a list response, whatever its envelope."""
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict):
        for key in _ITEM_KEYS:
            items = data.get(key)
            if isinstance(items, list):
                return [item for item in items if isinstance(item, dict)]
    return []


class EntityClient:
    """Async client for the entity catalog API."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Catalog API base URL (defaults to ENTITY_API_BASE_URL)
            timeout: Request timeout in seconds (defaults to ENTITY_API_TIMEOUT)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.ENTITY_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.ENTITY_API_TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            async with self._client() as client:
                response = await client.get(path, params=params)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise EntityClientError(
                f"Entity API returned {e.response.status_code} for {path}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise EntityClientError(f"Entity API timeout for {path}") from e
        except httpx.RequestError as e:
            raise EntityClientError(f"Entity API unreachable for {path}: {e}") from e
        except ValueError as e:
            raise EntityClientError(f"Entity API returned invalid JSON for {path}") from e

    async def list_entities(
        self,
        entity_type: EntityType,
        query: str = "",
        limit: int | None = None,
        status: str | None = "active",
    ) -> list[dict[str, Any]]:
        """
        Search one collection.

        Args:
            entity_type: Collection to search
            query: Free-text search (empty = everything)
            limit: Max items requested (defaults to SEARCH_PROVIDER_LIMIT)
            status: Status filter; None requests every status

        Returns:
            Raw item dicts as returned by the catalog

        Raises:
            EntityClientError: On transport failure or non-2xx status
        """
        if limit is None:
            limit = get_settings().SEARCH_PROVIDER_LIMIT
        path, params = list_endpoint(entity_type, query, limit, status)

        data = await self._get_json(path, params)
        items = extract_items(data)
        logger.debug(f"Listed {len(items)} {entity_type.value} items for query '{query}'")
        return items

    async def get_entity(self, entity_type: EntityType, entity_id: str) -> dict[str, Any] | None:
        """
        Fetch one entity's detail.

        Returns:
            Entity dict, or None when the catalog answers 404

        Raises:
            EntityClientError: On transport failure, non-404 error status or bad payload
        """
        path = detail_endpoint(entity_type, entity_id)
        try:
            data = await self._get_json(path)
        except EntityClientError as e:
            if e.status_code == 404:
                logger.info(f"{entity_type.value} {entity_id} not found")
                return None
            raise

        if not isinstance(data, dict):
            raise EntityClientError(f"Unexpected detail payload for {path}")
        return data


@lru_cache(maxsize=1)
def get_entity_client() -> EntityClient:
    """
    Get the shared entity client (cached singleton).

    Returns:
        EntityClient configured from settings
    """
    return EntityClient()
