"""Admin API endpoints for reference maintenance."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from refengine.core.logging import get_logger
from refengine.core.mention_audit import MentionAuditEntry, audit_entities
from refengine.services.entity_client import EntityClient, get_entity_client

logger = get_logger(__name__)

router = APIRouter(prefix="/admin")


class MentionAuditResponse(BaseModel):
    """Entities whose descriptions contain unlinked mentions."""

    entries: list[MentionAuditEntry]
    total: int


@router.get("/mention-audit", response_model=MentionAuditResponse)
async def mention_audit(
    client: EntityClient = Depends(get_entity_client),
) -> MentionAuditResponse:
    """
    List entities with '@' mentions that are not reference tokens.

    Collections that cannot be reached are skipped.
    """
    try:
        entries = await audit_entities(client=client)
        return MentionAuditResponse(entries=entries, total=len(entries))

    except Exception as e:
        logger.error(f"Error running mention audit: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to run mention audit") from e
