"""Reference codec: typed entity references and images inside stored documents.

Stored descriptions are HTML produced by the editor. A reference is an inline
span carrying the target's id, label and type, with the label repeated as inner
text so the markup stays readable:

    <span data-type="mention" data-id="r1" data-label="Grapple"
          data-entity-type="Regra">Grapple</span>

Images are plain ``<img src="...">`` tags.

The short ``<ref type=Rule id=r1 label='Grapple'/>`` form written by import
scripts is also accepted on decode. encode() and render() always produce the
span form.

decode() walks the document tag by tag and never raises: anything it cannot
make sense of stays in the output as verbatim text.
"""

import html
import re

from refengine.core.config import get_settings
from refengine.core.logging import get_logger
from refengine.core.schemas_references import (
    DEFAULT_ENTITY_TYPE,
    EntityType,
    ImageSegment,
    ReferenceSegment,
    ReferenceToken,
    Segment,
    TextSegment,
)

logger = get_logger(__name__)

MENTION_TYPE = "mention"

# One markup tag. Quoted attribute values may contain '>'.
_TAG_RE = re.compile(r"""<(/?)([A-Za-z][\w:-]*)((?:"[^"]*"|'[^']*'|[^'">])*)>""")

_ATTR_RE = re.compile(
    r"""([^\s=/>"']+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+)))?"""
)


class LabelDepthExceeded(Exception):
    """A label nests references deeper than the configured bound."""


# =============================================================================
# Tokenizer helpers
# =============================================================================


def _parse_attributes(attr_text: str) -> dict[str, str]:
    """Parse tag attributes into a dict (names lowercased, values raw)."""
    attrs: dict[str, str] = {}
    for match in _ATTR_RE.finditer(attr_text):
        name = match.group(1).lower()
        value = next((g for g in match.group(2, 3, 4) if g is not None), "")
        # First occurrence wins, like browsers
        attrs.setdefault(name, value)
    return attrs


def _is_self_closing(attr_text: str) -> bool:
    return attr_text.rstrip().endswith("/")


def _find_tag_end(document: str, start: int, tag: str) -> tuple[int, int] | None:
    """
    Find the closing tag matching a ``tag`` element opened just before ``start``.

    Returns:
        (inner_end, close_end) offsets, or None when the element is never closed
    """
    depth = 1
    for match in _TAG_RE.finditer(document, start):
        if match.group(2).lower() != tag:
            continue
        if match.group(1):
            depth -= 1
            if depth == 0:
                return match.start(), match.end()
        elif not _is_self_closing(match.group(3)):
            depth += 1
    return None


def _inner_text(markup: str) -> str:
    """Text content of a markup fragment."""
    return html.unescape(_TAG_RE.sub("", markup)).strip()


# =============================================================================
# Decode
# =============================================================================


def _reference_attributes(tag: str, attrs: dict[str, str]) -> dict[str, str] | None:
    """Reference attributes of a tag in span form, or None if it is not a reference."""
    if tag == "span":
        return attrs if attrs.get("data-type") == MENTION_TYPE else None

    # <ref type=.. id=.. label=..>
    mapped = {"data-id": attrs.get("id", ""), "data-entity-type": attrs.get("type", "")}
    if "label" in attrs:
        mapped["data-label"] = attrs["label"]
    return mapped


def _build_reference(
    attrs: dict[str, str],
    inner: str,
    depth: int,
    max_depth: int,
) -> ReferenceSegment | None:
    entity_id = html.unescape(attrs.get("data-id", "")).strip()
    if not entity_id:
        return None

    if "data-label" in attrs:
        label = html.unescape(attrs["data-label"])
    else:
        # Hand-written and legacy markup only carries the label as inner text
        label = _inner_text(inner)
    if not label:
        label = entity_id

    entity_type = EntityType.parse(html.unescape(attrs.get("data-entity-type", "")))
    if entity_type is None:
        entity_type = DEFAULT_ENTITY_TYPE

    try:
        label_segments = _decode(label, depth + 1, max_depth)
    except LabelDepthExceeded:
        logger.debug(f"Label nesting exceeds {max_depth} levels for reference {entity_id}")
        label_segments = [TextSegment(text=label)]

    return ReferenceSegment(
        id=entity_id,
        label=label,
        entity_type=entity_type,
        label_segments=label_segments,
    )


def _decode(document: str, depth: int, max_depth: int) -> list[Segment]:
    if depth > max_depth:
        raise LabelDepthExceeded(depth)

    segments: list[Segment] = []
    text_start = 0
    cursor = 0

    def flush(end: int) -> None:
        text = document[text_start:end]
        if not text:
            return
        if segments and isinstance(segments[-1], TextSegment):
            segments[-1] = TextSegment(text=segments[-1].text + text)
        else:
            segments.append(TextSegment(text=text))

    while True:
        match = _TAG_RE.search(document, cursor)
        if match is None:
            break

        closing, name, attr_text = match.group(1), match.group(2).lower(), match.group(3)
        cursor = match.end()
        if closing:
            continue

        if name in ("span", "ref"):
            attrs = _reference_attributes(name, _parse_attributes(attr_text))
            if attrs is None:
                continue

            if _is_self_closing(attr_text):
                inner, token_end = "", match.end()
            else:
                bounds = _find_tag_end(document, match.end(), name)
                if bounds is None:
                    logger.debug(f"Unterminated reference token at offset {match.start()}")
                    continue
                inner, token_end = document[match.end():bounds[0]], bounds[1]

            segment = _build_reference(attrs, inner, depth, max_depth)
            if segment is None:
                logger.debug(f"Reference token without id at offset {match.start()}")
                continue

            flush(match.start())
            segments.append(segment)
            text_start = cursor = token_end

        elif name == "img":
            src = html.unescape(_parse_attributes(attr_text).get("src", "")).strip()
            if not src:
                continue
            flush(match.start())
            segments.append(ImageSegment(src=src))
            text_start = match.end()

    flush(len(document))
    return segments


def decode(document: str | None, max_depth: int | None = None) -> list[Segment]:
    """
    Decode a stored document into text, reference and image segments.

    Never raises. Malformed tokens stay in the output as text, and labels nested
    deeper than ``max_depth`` are kept as plain text.

    Args:
        document: Stored markup (None and "" decode to no segments)
        max_depth: Label recursion bound (defaults to MAX_LABEL_DEPTH)

    Returns:
        Ordered segments; adjacent text is merged into one segment
    """
    if not document:
        return []
    if max_depth is None:
        max_depth = get_settings().MAX_LABEL_DEPTH

    try:
        return _decode(str(document), 0, max_depth)
    except Exception as e:
        logger.warning(f"Failed to decode document, rendering as text: {e}")
        return [TextSegment(text=str(document))]


# =============================================================================
# Encode
# =============================================================================


def encode(entity_type: EntityType | str, entity_id: str, label: str) -> str:
    """
    Build the canonical markup for a reference token.

    Unknown type strings fall back to the default entity type. The id is
    whitespace-trimmed and an empty label becomes the id, as decode() reads them.
    """
    parsed = EntityType.parse(entity_type) or DEFAULT_ENTITY_TYPE
    entity_id = str(entity_id).strip()
    label = label or entity_id
    return (
        f'<span data-type="{MENTION_TYPE}"'
        f' data-id="{html.escape(entity_id)}"'
        f' data-label="{html.escape(label)}"'
        f' data-entity-type="{html.escape(parsed.value)}">'
        f"{html.escape(label, quote=False)}</span>"
    )


def encode_image(src: str) -> str:
    """Build the canonical markup for an image token."""
    return f'<img src="{html.escape(src)}">'


def render(segments: list[Segment]) -> str:
    """Re-encode segments to canonical markup."""
    parts = []
    for segment in segments:
        if isinstance(segment, TextSegment):
            parts.append(segment.text)
        elif isinstance(segment, ReferenceSegment):
            parts.append(encode(segment.entity_type, segment.id, segment.label))
        elif isinstance(segment, ImageSegment):
            parts.append(encode_image(segment.src))
    return "".join(parts)


# =============================================================================
# Queries over a document
# =============================================================================


def extract_references(document: str | None) -> list[ReferenceToken]:
    """Top-level references of a document, in document order."""
    return [
        segment.to_token()
        for segment in decode(document)
        if isinstance(segment, ReferenceSegment)
    ]


def strip_tags(markup: str) -> str:
    """Replace every tag with a space, leaving text (still entity-encoded)."""
    return _TAG_RE.sub(" ", markup)


def segments_text(segments: list[Segment]) -> str:
    """Readable text of decoded segments; references contribute their labels."""
    parts = []
    for segment in segments:
        if isinstance(segment, TextSegment):
            parts.append(html.unescape(strip_tags(segment.text)))
        elif isinstance(segment, ReferenceSegment):
            parts.append(segments_text(segment.label_segments))
    return " ".join("".join(parts).split())


def plain_text(document: str | None) -> str:
    """Text content of a document, with references replaced by their labels."""
    return segments_text(decode(document))
