"""Read-only rendering of documents with reference badges."""

import html

from refengine.core.reference_codec import decode, encode_image
from refengine.core.schemas_references import (
    ImageSegment,
    ReferenceSegment,
    Segment,
    TextSegment,
)


def _badge(segment: ReferenceSegment) -> str:
    label_html = _render_segments(segment.label_segments, escape_text=True)
    return (
        f'<span class="mention-badge"'
        f' data-entity-type="{html.escape(segment.entity_type.value)}"'
        f' data-id="{html.escape(segment.id)}" tabindex="0">'
        f'<span class="mention-badge__type">{html.escape(segment.entity_type.display_name)}</span>'
        f'<span class="mention-badge__label">{label_html}</span>'
        f"</span>"
    )


def _render_segments(segments: list[Segment], escape_text: bool) -> str:
    parts = []
    for segment in segments:
        if isinstance(segment, TextSegment):
            # Label text is already entity-decoded; document text is markup
            parts.append(html.escape(segment.text, quote=False) if escape_text else segment.text)
        elif isinstance(segment, ReferenceSegment):
            parts.append(_badge(segment))
        elif isinstance(segment, ImageSegment):
            parts.append(encode_image(segment.src))
    return "".join(parts)


def render_badge_segments(segments: list[Segment]) -> str:
    """Render decoded document segments with each reference turned into a badge."""
    return _render_segments(segments, escape_text=False)


def render_badges(document: str | None) -> str:
    """Render a stored document for reading; badges carry what the preview needs."""
    return render_badge_segments(decode(document))
