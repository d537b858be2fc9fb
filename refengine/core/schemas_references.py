"""Pydantic schemas for cross-entity references.

A stored description (RichDocument) is a plain markup string. Everything in this
module is either embedded in that string (reference and image tokens) or derived
from it on demand (segments, candidates, resolutions, previews). Nothing here is
persisted on its own.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Union, assert_never

from pydantic import BaseModel, Field


# =============================================================================
# Entity types
# =============================================================================


class EntityType(str, Enum):
    """Catalog entity kinds that can be referenced.

    Values are the wire values stored in ``data-entity-type`` attributes.
    """

    RULE = "Regra"
    ABILITY = "Habilidade"
    FEAT = "Talento"
    SPELL = "Magia"

    @property
    def display_name(self) -> str:
        if self is EntityType.RULE:
            return "Rule"
        elif self is EntityType.ABILITY:
            return "Ability"
        elif self is EntityType.FEAT:
            return "Feat"
        elif self is EntityType.SPELL:
            return "Spell"
        else:
            assert_never(self)

    @property
    def sort_order(self) -> int:
        return ENTITY_TYPE_ORDER.index(self)

    @classmethod
    def parse(cls, value: Any) -> "EntityType | None":
        """Parse a wire value or an English name ("Spell", "spell"). None if unknown."""
        if isinstance(value, EntityType):
            return value
        if not isinstance(value, str):
            return None
        text = value.strip()
        for member in cls:
            if text == member.value or text.casefold() == member.display_name.casefold():
                return member
        return None


# Display / default ordering: rules first, spells last
ENTITY_TYPE_ORDER: list[EntityType] = [
    EntityType.RULE,
    EntityType.ABILITY,
    EntityType.FEAT,
    EntityType.SPELL,
]

# Type assumed for tokens written before multi-type references existed
DEFAULT_ENTITY_TYPE = EntityType.RULE


# =============================================================================
# Embedded tokens
# =============================================================================


class ReferenceToken(BaseModel):
    """Typed pointer to another entity, embedded in a document."""

    id: str = Field(..., description="Target entity identifier")
    label: str = Field(..., description="Display text; may itself contain tokens")
    entity_type: EntityType = Field(default=DEFAULT_ENTITY_TYPE, description="Target entity type")


class ImageToken(BaseModel):
    """Inline image embedded in a document."""

    src: str = Field(..., description="Image URL")


# =============================================================================
# Segments (decode-time view of a document)
# =============================================================================


class TextSegment(BaseModel):
    """Verbatim text/markup between tokens."""

    kind: Literal["text"] = "text"
    text: str


class ReferenceSegment(BaseModel):
    """A decoded reference token."""

    kind: Literal["reference"] = "reference"
    id: str
    label: str
    entity_type: EntityType = DEFAULT_ENTITY_TYPE
    label_segments: list["Segment"] = Field(
        default_factory=list, description="Recursive decode of the label"
    )

    def to_token(self) -> ReferenceToken:
        return ReferenceToken(id=self.id, label=self.label, entity_type=self.entity_type)


class ImageSegment(BaseModel):
    """A decoded image token."""

    kind: Literal["image"] = "image"
    src: str


Segment = Annotated[
    Union[TextSegment, ReferenceSegment, ImageSegment],
    Field(discriminator="kind"),
]

ReferenceSegment.model_rebuild()


# =============================================================================
# Search
# =============================================================================


class SearchCandidate(BaseModel):
    """A search hit normalized across entity types."""

    id: str
    label: str
    entity_type: EntityType
    description: str | None = None
    source: str | None = None
    status: str = "active"

    # Type-specific display hints
    school: str | None = Field(None, description="Spell school")
    circle: int | None = Field(None, description="Spell circle (0 = cantrip)")
    level: int | None = Field(None, description="Feat level")

    score: float = Field(default=0.0, description="Fuzzy rank score (0-100)")


# =============================================================================
# Resolution & preview
# =============================================================================


class ResolutionStatus(str, Enum):
    """Outcome of fetching a referenced entity."""

    PENDING = "pending"
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    ERROR = "error"


class Resolution(BaseModel):
    """Fetched detail (or failure) for one (entity_type, id) pair."""

    entity_type: EntityType
    entity_id: str
    status: ResolutionStatus
    entity: dict[str, Any] | None = None
    error: str | None = None

    @property
    def is_final(self) -> bool:
        return self.status != ResolutionStatus.PENDING


class PreviewProperty(BaseModel):
    """One labelled property line in a preview card."""

    name: str
    value: str


class EntityPreview(BaseModel):
    """Typed preview card content for a referenced entity."""

    entity_type: EntityType
    entity_id: str
    title: str
    title_segments: list[Segment] = Field(default_factory=list)
    subtitle: str
    status_label: str | None = None
    properties: list[PreviewProperty] = Field(default_factory=list)
    description_segments: list[Segment] = Field(default_factory=list)
    source: str | None = None


class PreviewContent(BaseModel):
    """What a preview popover shows right now."""

    kind: Literal["loading", "unavailable", "entity"]
    message: str | None = None
    preview: EntityPreview | None = None
