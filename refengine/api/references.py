"""API endpoints for cross-entity references."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, Field

from refengine.core.logging import get_logger
from refengine.core.preview_cache import ResolutionCache, preview_content
from refengine.core.reference_codec import decode, encode, render
from refengine.core.reference_render import render_badges
from refengine.core.schemas_references import (
    EntityPreview,
    EntityType,
    Resolution,
    SearchCandidate,
    Segment,
)
from refengine.core.search_aggregator import SearchAggregator
from refengine.services.entity_client import EntityClient, get_entity_client

logger = get_logger(__name__)

router = APIRouter(prefix="/references")


# ============================================================================
# Pydantic Models
# ============================================================================


class DecodeRequest(BaseModel):
    """Request body for decoding a stored document."""

    document: str = Field(..., description="Stored rich-text markup")


class DecodeResponse(BaseModel):
    segments: list[Segment]


class EncodeRequest(BaseModel):
    """Request body for building a reference token."""

    entity_type: EntityType = Field(..., description="Target entity type (wire value)")
    id: str = Field(..., min_length=1, description="Target entity id")
    label: str = Field(..., min_length=1, description="Display label")


class EncodeResponse(BaseModel):
    token: str


class RenderRequest(BaseModel):
    """Request body for rendering a stored document."""

    document: str = Field(..., description="Stored rich-text markup")
    mode: Literal["canonical", "badges"] = Field(
        "badges", description="canonical re-encodes tokens; badges renders for reading"
    )


class RenderResponse(BaseModel):
    html: str


class SearchResponse(BaseModel):
    candidates: list[SearchCandidate]
    total: int


class PreviewResponse(BaseModel):
    resolution: Resolution
    preview: EntityPreview | None = None
    message: str | None = None


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/decode", response_model=DecodeResponse)
async def decode_document(body: DecodeRequest) -> DecodeResponse:
    """Decode a stored document into text, reference and image segments."""
    return DecodeResponse(segments=decode(body.document))


@router.post("/encode", response_model=EncodeResponse)
async def encode_reference(body: EncodeRequest) -> EncodeResponse:
    """Build the canonical token for a reference."""
    return EncodeResponse(token=encode(body.entity_type, body.id, body.label))


@router.post("/render", response_model=RenderResponse)
async def render_document(body: RenderRequest) -> RenderResponse:
    """Render a stored document as canonical markup or as read-only badges."""
    if body.mode == "canonical":
        return RenderResponse(html=render(decode(body.document)))
    return RenderResponse(html=render_badges(body.document))


@router.get("/search", response_model=SearchResponse)
async def search_references(
    q: str = Query("", description="Text typed after the trigger character"),
    limit: int | None = Query(None, ge=1, le=50, description="Max candidates"),
    exclude_id: str | None = Query(None, description="Entity being edited"),
    client: EntityClient = Depends(get_entity_client),
) -> SearchResponse:
    """
    Search every referenceable collection.

    Args:
        q: Query text
        limit: Max candidates (defaults to SEARCH_DEFAULT_LIMIT)
        exclude_id: Entity id never to suggest

    Returns:
        Ranked candidates; empty when the catalog is unreachable
    """
    candidates = await SearchAggregator(client=client).search(q, limit=limit, exclude_id=exclude_id)
    return SearchResponse(candidates=candidates, total=len(candidates))


@router.get("/{entity_type}/{entity_id}/preview", response_model=PreviewResponse)
async def preview_reference(
    entity_type: str = Path(..., description="Entity type (wire value or English name)"),
    entity_id: str = Path(..., description="Entity id"),
    client: EntityClient = Depends(get_entity_client),
) -> PreviewResponse:
    """
    Resolve a reference and build its preview.

    Not-found and unreachable entities are normal responses with no preview.
    """
    parsed = EntityType.parse(entity_type)
    if parsed is None:
        raise HTTPException(status_code=422, detail=f"Unknown entity type: {entity_type}")

    try:
        resolution = await ResolutionCache(client=client).resolve(parsed, entity_id)
        content = preview_content(resolution)
        return PreviewResponse(
            resolution=resolution,
            preview=content.preview,
            message=content.message,
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error building preview for {entity_type} {entity_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e
