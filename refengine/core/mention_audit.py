"""Mention audit: find descriptions with '@' references that were never linked.

Authors sometimes type "@Fireball" and move on without picking a suggestion, or
paste text from elsewhere. Those '@'s end up as plain text instead of reference
tokens. The audit scans every collection and lists the entities whose
description still has such unlinked mentions, so they can be fixed by hand.
"""

import asyncio

from pydantic import BaseModel

from refengine.core.config import get_settings
from refengine.core.logging import get_logger
from refengine.core.reference_codec import decode, strip_tags
from refengine.core.schemas_references import ENTITY_TYPE_ORDER, EntityType, TextSegment
from refengine.services.entity_client import EntityClient, EntityClientError

logger = get_logger(__name__)


class MentionAuditEntry(BaseModel):
    """An entity whose description needs its mentions reviewed."""

    id: str
    entity_type: EntityType
    name: str
    source: str | None = None
    status: str | None = None
    unlinked_count: int


def count_unlinked_mentions(document: str | None) -> int:
    """Number of '@' characters in the document text outside reference tokens."""
    count = 0
    for segment in decode(document):
        if isinstance(segment, TextSegment):
            count += strip_tags(segment.text).count("@")
    return count


def needs_review(document: str | None) -> bool:
    return count_unlinked_mentions(document) > 0


async def _audit_collection(
    client: EntityClient,
    entity_type: EntityType,
    limit: int,
) -> list[MentionAuditEntry]:
    try:
        items = await client.list_entities(entity_type, query="", limit=limit, status=None)
    except EntityClientError as e:
        logger.warning(f"Mention audit skipped {entity_type.value}: {e}")
        return []

    entries = []
    for item in items:
        description = item.get("description")
        if not isinstance(description, str) or "@" not in description:
            continue
        unlinked = count_unlinked_mentions(description)
        if unlinked == 0:
            continue
        entries.append(
            MentionAuditEntry(
                id=str(item.get("id") or item.get("_id") or ""),
                entity_type=entity_type,
                name=str(item.get("name") or item.get("label") or ""),
                source=item.get("source"),
                status=item.get("status"),
                unlinked_count=unlinked,
            )
        )
    return entries


async def audit_entities(
    client: EntityClient | None = None,
    entity_types: list[EntityType] | None = None,
    limit: int | None = None,
) -> list[MentionAuditEntry]:
    """
    Scan collections for descriptions with unlinked mentions.

    Args:
        client: Entity catalog client
        entity_types: Collections to scan (defaults to all)
        limit: Max items per collection (defaults to AUDIT_COLLECTION_LIMIT)

    Returns:
        Entries ordered by entity type, then name
    """
    client = client or EntityClient()
    entity_types = entity_types or list(ENTITY_TYPE_ORDER)
    if limit is None:
        limit = get_settings().AUDIT_COLLECTION_LIMIT

    results = await asyncio.gather(
        *[_audit_collection(client, t, limit) for t in entity_types]
    )
    entries = [entry for result in results for entry in result]
    entries.sort(key=lambda e: (e.entity_type.sort_order, e.name.casefold()))

    logger.info(f"Mention audit found {len(entries)} entities with unlinked mentions")
    return entries
