"""Multi-collection reference search.

One call queries every entity collection concurrently, normalizes the raw items
to SearchCandidate, drops the entity being edited, then ranks everything under a
single fuzzy score. Search is an editor convenience, so failures degrade to
fewer (or no) candidates instead of raising.
"""

import asyncio
import logging
import uuid
from typing import Any, assert_never

from refengine.core.config import get_settings
from refengine.core.logging import get_logger, log_with_context
from refengine.core.reference_codec import plain_text
from refengine.core.schemas_references import ENTITY_TYPE_ORDER, EntityType, SearchCandidate
from refengine.core.similarity import SimilarityMatcher, normalize_text
from refengine.services.entity_client import EntityClient, EntityClientError

logger = get_logger(__name__)


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def item_ids(item: dict[str, Any]) -> set[str]:
    """Every identifier an item is known by (catalogs mix ``id`` and ``_id``)."""
    return {str(item[key]) for key in ("id", "_id") if item.get(key) is not None}


def normalize_candidate(entity_type: EntityType, item: dict[str, Any]) -> SearchCandidate | None:
    """
    Normalize one raw catalog item to a SearchCandidate.

    Returns:
        The candidate, or None when the item has no id or no name
    """
    entity_id = _as_str(item.get("id")) or _as_str(item.get("_id"))
    label = _as_str(item.get("label")) or _as_str(item.get("name"))
    if not entity_id or not label:
        return None

    metadata = item.get("metadata") if isinstance(item.get("metadata"), dict) else {}
    fields: dict[str, Any] = {
        "id": entity_id,
        "label": label,
        "entity_type": entity_type,
        "description": _as_str(item.get("description")),
        "source": _as_str(item.get("source")),
        "status": _as_str(item.get("status")) or "active",
    }

    if entity_type is EntityType.RULE:
        pass
    elif entity_type is EntityType.ABILITY:
        pass
    elif entity_type is EntityType.FEAT:
        fields["description"] = fields["description"] or _as_str(metadata.get("description"))
        fields["level"] = _as_int(item.get("level", metadata.get("level")))
    elif entity_type is EntityType.SPELL:
        fields["school"] = _as_str(item.get("school"))
        fields["circle"] = _as_int(item.get("circle"))
    else:
        assert_never(entity_type)

    return SearchCandidate(**fields)


def default_order_key(candidate: SearchCandidate) -> tuple[int, str]:
    return (candidate.entity_type.sort_order, candidate.label.casefold())


class SearchAggregator:
    """Ranked search across all referenceable collections."""

    def __init__(
        self,
        client: EntityClient | None = None,
        matcher: SimilarityMatcher | None = None,
        entity_types: list[EntityType] | None = None,
    ):
        """
        Initialize the aggregator.

        Args:
            client: Entity catalog client
            matcher: Fuzzy matcher (defaults to one using SEARCH_SECONDARY_WEIGHT)
            entity_types: Collections to search (defaults to all, in display order)
        """
        settings = get_settings()
        self.client = client or EntityClient()
        self.matcher = matcher or SimilarityMatcher(secondary_weight=settings.SEARCH_SECONDARY_WEIGHT)
        self.entity_types = entity_types or list(ENTITY_TYPE_ORDER)
        self.provider_limit = settings.SEARCH_PROVIDER_LIMIT
        self.min_score = settings.SEARCH_MIN_SCORE
        self.default_limit = settings.SEARCH_DEFAULT_LIMIT

    async def _fetch(
        self,
        entity_type: EntityType,
        query: str,
        exclude_id: str | None,
    ) -> list[SearchCandidate]:
        """Query one collection. Failures yield no candidates."""
        try:
            items = await self.client.list_entities(
                entity_type, query=query, limit=self.provider_limit, status="active"
            )
        except EntityClientError as e:
            logger.warning(f"Search failed for {entity_type.value}: {e}")
            return []

        candidates = []
        for item in items:
            if exclude_id is not None and str(exclude_id) in item_ids(item):
                continue
            candidate = normalize_candidate(entity_type, item)
            if candidate is None or candidate.status != "active":
                continue
            candidates.append(candidate)
        return candidates

    def rank(self, query: str, candidates: list[SearchCandidate]) -> list[SearchCandidate]:
        """Score and order candidates. A query with nothing to match on keeps the default order."""
        if not normalize_text(query):
            return sorted(candidates, key=default_order_key)

        ranked = []
        for candidate in candidates:
            secondary = plain_text(candidate.description) if candidate.description else None
            score, _ = self.matcher.score(query, candidate.label, secondary)
            if score < self.min_score:
                continue
            ranked.append(candidate.model_copy(update={"score": round(score, 2)}))

        ranked.sort(key=lambda c: (-c.score, *default_order_key(c)))
        return ranked

    async def search(
        self,
        query: str,
        limit: int | None = None,
        exclude_id: str | None = None,
    ) -> list[SearchCandidate]:
        """
        Search every collection and return the best candidates.

        Args:
            query: Free text typed after the trigger character
            limit: Max candidates (defaults to SEARCH_DEFAULT_LIMIT)
            exclude_id: Entity being edited; never suggested

        Returns:
            Ranked candidates; [] on total failure
        """
        query = query or ""
        if limit is None:
            limit = self.default_limit
        if limit <= 0:
            return []

        request_id = uuid.uuid4().hex[:8]
        try:
            results = await asyncio.gather(
                *[self._fetch(t, query.strip(), exclude_id) for t in self.entity_types],
                return_exceptions=True,
            )

            merged: list[SearchCandidate] = []
            seen: set[tuple[EntityType, str]] = set()
            for entity_type, result in zip(self.entity_types, results):
                if isinstance(result, BaseException):
                    logger.warning(f"Search failed for {entity_type.value}: {result}")
                    continue
                for candidate in result:
                    key = (candidate.entity_type, candidate.id)
                    if key not in seen:
                        seen.add(key)
                        merged.append(candidate)

            ranked = self.rank(query, merged)[:limit]

            log_with_context(
                logger,
                logging.INFO,
                "Reference search completed",
                request_id=request_id,
                query=query,
                merged=len(merged),
                returned=len(ranked),
            )
            return ranked

        except Exception as e:
            logger.error(f"Reference search failed: {e}", exc_info=True)
            return []
