"""Reference resolution and hover previews.

ResolutionCache fetches the detail of a referenced entity on demand and keeps
the outcome (found, not found or failed) for the lifetime of one rendering
context, e.g. one page view. It never runs two fetches for the same key.

PreviewController drives the popover of a single reference badge: it waits a
short delay after hover/focus before opening (and fetching), and another short
delay after the pointer leaves before closing, so the pointer can travel from
the badge into the popover.
"""

import asyncio
import logging
from typing import Any, Callable, assert_never

from refengine.core.config import get_settings
from refengine.core.logging import get_logger, log_with_context
from refengine.core.reference_codec import decode, plain_text
from refengine.core.schemas_references import (
    EntityPreview,
    EntityType,
    PreviewContent,
    PreviewProperty,
    Resolution,
    ResolutionStatus,
)
from refengine.services.entity_client import EntityClient, EntityClientError

logger = get_logger(__name__)

LOADING_MESSAGE = "Loading details..."
UNAVAILABLE_MESSAGE = "No information available"


# =============================================================================
# Resolution cache
# =============================================================================


class ResolutionCache:
    """Per-rendering-context cache of fetched entity details."""

    def __init__(self, client: EntityClient | None = None):
        self.client = client or EntityClient()
        self._results: dict[tuple[EntityType, str], Resolution] = {}
        self._inflight: dict[tuple[EntityType, str], asyncio.Task] = {}

    def peek(self, entity_type: EntityType, entity_id: str) -> Resolution | None:
        """Current outcome for a key without fetching. None if never requested."""
        key = (entity_type, str(entity_id))
        if key in self._results:
            return self._results[key]
        if key in self._inflight:
            return Resolution(
                entity_type=entity_type,
                entity_id=str(entity_id),
                status=ResolutionStatus.PENDING,
            )
        return None

    def ensure(self, entity_type: EntityType, entity_id: str) -> asyncio.Task | None:
        """
        Start fetching a key unless it is cached or already being fetched.

        Returns:
            The in-flight task, or None when the outcome is already cached
        """
        key = (entity_type, str(entity_id))
        if key in self._results:
            return None
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch(entity_type, str(entity_id)))
            self._inflight[key] = task
        return task

    async def resolve(self, entity_type: EntityType, entity_id: str) -> Resolution:
        """
        Resolve a reference, fetching at most once per key.

        Never raises: failures come back as NOT_FOUND or ERROR resolutions.
        """
        task = self.ensure(entity_type, entity_id)
        if task is not None:
            # A cancelled caller must not cancel the shared fetch
            return await asyncio.shield(task)
        return self._results[(entity_type, str(entity_id))]

    async def _fetch(self, entity_type: EntityType, entity_id: str) -> Resolution:
        key = (entity_type, entity_id)
        try:
            entity = await self.client.get_entity(entity_type, entity_id)
        except EntityClientError as e:
            logger.warning(f"Failed to resolve {entity_type.value} {entity_id}: {e}")
            resolution = Resolution(
                entity_type=entity_type,
                entity_id=entity_id,
                status=ResolutionStatus.ERROR,
                error=str(e),
            )
        except Exception as e:
            logger.error(f"Unexpected error resolving {entity_type.value} {entity_id}: {e}", exc_info=True)
            resolution = Resolution(
                entity_type=entity_type,
                entity_id=entity_id,
                status=ResolutionStatus.ERROR,
                error=str(e),
            )
        else:
            resolution = Resolution(
                entity_type=entity_type,
                entity_id=entity_id,
                status=ResolutionStatus.RESOLVED if entity is not None else ResolutionStatus.NOT_FOUND,
                entity=entity,
            )

        log_with_context(
            logger,
            logging.DEBUG,
            "Reference resolved",
            entity_type=entity_type.value,
            entity_id=entity_id,
            status=resolution.status.value,
        )
        self._results[key] = resolution
        self._inflight.pop(key, None)
        return resolution


# =============================================================================
# Preview building
# =============================================================================


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def _format_dice(value: Any) -> str | None:
    if not isinstance(value, dict):
        return None
    quantity = value.get("quantidade", value.get("quantity"))
    die = value.get("tipo", value.get("type"))
    if not quantity or not die:
        return None
    return f"{quantity}{die}"


def _status_label(status: Any) -> str | None:
    if status == "active":
        return "Active"
    if status == "inactive":
        return "Inactive"
    return None


def build_preview(entity_type: EntityType, entity_id: str, detail: dict[str, Any]) -> EntityPreview:
    """Build the typed preview card for a fetched entity."""
    title = str(detail.get("name") or detail.get("label") or entity_id)
    description = detail.get("description") if isinstance(detail.get("description"), str) else None
    properties: list[PreviewProperty] = []
    status_label = _status_label(detail.get("status"))

    if entity_type is EntityType.RULE:
        subtitle = "System rule"
    elif entity_type is EntityType.ABILITY:
        subtitle = "Ability"
    elif entity_type is EntityType.FEAT:
        subtitle = "Feat"
        if detail.get("level") is not None:
            properties.append(PreviewProperty(name="Level", value=str(detail["level"])))
        raw_prerequisites = detail.get("prerequisites")
        if isinstance(raw_prerequisites, str):
            raw_prerequisites = [raw_prerequisites]
        if isinstance(raw_prerequisites, list):
            prerequisites = [plain_text(p) for p in raw_prerequisites if isinstance(p, str)]
            prerequisites = [p for p in prerequisites if p]
            if prerequisites:
                properties.append(PreviewProperty(name="Prerequisites", value="; ".join(prerequisites)))
    elif entity_type is EntityType.SPELL:
        subtitle = "Spell"
        circle = _as_int(detail.get("circle"))
        if circle is not None:
            value = "Cantrip" if circle == 0 else f"Circle {circle}"
            properties.append(PreviewProperty(name="Circle", value=value))
        if detail.get("school"):
            properties.append(PreviewProperty(name="School", value=str(detail["school"])))
        if detail.get("saveAttribute"):
            properties.append(PreviewProperty(name="Save", value=str(detail["saveAttribute"])))
        base_dice = _format_dice(detail.get("baseDice"))
        if base_dice:
            properties.append(PreviewProperty(name="Base dice", value=base_dice))
        extra_dice = _format_dice(detail.get("extraDicePerLevel"))
        if extra_dice:
            properties.append(PreviewProperty(name="Extra dice per level", value=extra_dice))
    else:
        assert_never(entity_type)

    return EntityPreview(
        entity_type=entity_type,
        entity_id=entity_id,
        title=title,
        title_segments=decode(title),
        subtitle=subtitle,
        status_label=status_label,
        properties=properties,
        description_segments=decode(description),
        source=str(detail["source"]) if detail.get("source") else None,
    )


def preview_content(resolution: Resolution | None) -> PreviewContent:
    """Popover content for a resolution state."""
    if resolution is None or resolution.status == ResolutionStatus.PENDING:
        return PreviewContent(kind="loading", message=LOADING_MESSAGE)
    if resolution.status == ResolutionStatus.RESOLVED and resolution.entity is not None:
        try:
            preview = build_preview(resolution.entity_type, resolution.entity_id, resolution.entity)
        except Exception as e:
            log_with_context(
                logger,
                logging.WARNING,
                f"Could not build preview: {e}",
                entity_type=resolution.entity_type.value,
                entity_id=resolution.entity_id,
            )
        else:
            return PreviewContent(kind="entity", preview=preview)
    return PreviewContent(kind="unavailable", message=UNAVAILABLE_MESSAGE)


# =============================================================================
# Hover lifecycle
# =============================================================================


class PreviewController:
    """Open/close lifecycle of one reference badge's popover."""

    def __init__(
        self,
        cache: ResolutionCache,
        entity_type: EntityType,
        entity_id: str,
        *,
        open_delay: float | None = None,
        close_delay: float | None = None,
        on_change: Callable[[bool, PreviewContent], None] | None = None,
    ):
        settings = get_settings()
        self.cache = cache
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.open_delay = open_delay if open_delay is not None else settings.PREVIEW_OPEN_DELAY_SECONDS
        self.close_delay = close_delay if close_delay is not None else settings.PREVIEW_CLOSE_DELAY_SECONDS
        self._on_change = on_change

        self._is_open = False
        self._timer: asyncio.TimerHandle | None = None

    @property
    def is_open(self) -> bool:
        return self._is_open

    def content(self) -> PreviewContent:
        return preview_content(self.cache.peek(self.entity_type, self.entity_id))

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self._is_open, self.content())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def pointer_enter(self) -> None:
        """Pointer entered the badge or the popover."""
        self._cancel_timer()
        if self._is_open:
            return
        self._timer = asyncio.get_running_loop().call_later(self.open_delay, self._open)

    def pointer_leave(self) -> None:
        """Pointer left the badge or the popover."""
        self._cancel_timer()
        if not self._is_open:
            return
        self._timer = asyncio.get_running_loop().call_later(self.close_delay, self._close)

    def focus(self) -> None:
        self.pointer_enter()

    def blur(self) -> None:
        self.pointer_leave()

    def close(self) -> None:
        """Tear down immediately (badge unmounted)."""
        self._cancel_timer()
        if self._is_open:
            self._is_open = False
            self._notify()

    def _open(self) -> None:
        self._timer = None
        self._is_open = True
        task = self.cache.ensure(self.entity_type, self.entity_id)
        if task is not None:
            task.add_done_callback(lambda _: self._on_resolved())
        self._notify()

    def _on_resolved(self) -> None:
        if self._is_open:
            self._notify()

    def _close(self) -> None:
        self._timer = None
        self._is_open = False
        self._notify()
