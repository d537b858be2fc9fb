"""Suggestion controller for "type @ to reference" autocomplete.

The editing surface calls into one controller per editor instance:

    start()        trigger character typed       IDLE -> TRIGGERED
    update()       every keystroke afterwards    (re-debounces the search)
    on_key_down()  arrows / Enter / Escape
    select()       pointer pick                  -> COMMITTED
    exit()/blur()  mention context gone          -> CANCELLED

Searches are debounced with ``loop.call_later``. Every keystroke and every
teardown bumps a generation counter, and a search response is applied only if
its generation is still current, so the list always reflects the most recently
issued query and nothing changes after the list is closed. In-flight requests
are not aborted; their results are simply dropped.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Protocol

from pydantic import BaseModel, Field

from refengine.core.config import get_settings
from refengine.core.logging import get_logger
from refengine.core.reference_codec import encode
from refengine.core.schemas_references import SearchCandidate

logger = get_logger(__name__)


class SuggestionState(str, Enum):
    """Lifecycle of one mention context."""

    IDLE = "idle"
    TRIGGERED = "triggered"  # List visible, waiting for results
    POPULATED = "populated"  # Results for the latest query are shown
    COMMITTED = "committed"
    CANCELLED = "cancelled"


ACTIVE_STATES = {SuggestionState.TRIGGERED, SuggestionState.POPULATED}


@dataclass(frozen=True)
class TextRange:
    """Document range covered by the trigger character and the typed query."""

    start: int
    end: int


class EditingSurface(Protocol):
    """What the controller needs from the rich-text editor."""

    def insert_reference(self, token: str, text_range: TextRange) -> None: ...


SearchFn = Callable[[str, int | None, str | None], Awaitable[list[SearchCandidate]]]


class SuggestionView(BaseModel):
    """Snapshot of the floating candidate list."""

    state: SuggestionState
    query: str = ""
    items: list[SearchCandidate] = Field(default_factory=list)
    loading: bool = False
    selected_index: int = 0

    @property
    def visible(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def empty(self) -> bool:
        """True when the list should show "no results" rather than a spinner."""
        return self.visible and not self.loading and not self.items


class SuggestionController:
    """Debounced, keyboard-navigable reference suggestions for one editor."""

    def __init__(
        self,
        search: SearchFn,
        surface: EditingSurface,
        *,
        exclude_id: str | None = None,
        limit: int | None = None,
        debounce_seconds: float | None = None,
        on_change: Callable[[SuggestionView], None] | None = None,
    ):
        """
        Initialize the controller.

        Args:
            search: Async search callable, usually SearchAggregator.search
            surface: Editor that receives committed reference tokens
            exclude_id: Entity being edited, never suggested
            limit: Max candidates per query (defaults to SEARCH_DEFAULT_LIMIT)
            debounce_seconds: Quiet period before searching (defaults to SEARCH_DEBOUNCE_SECONDS)
            on_change: Called with a fresh SuggestionView after every change
        """
        settings = get_settings()
        self._search = search
        self._surface = surface
        self.exclude_id = exclude_id
        self.limit = limit if limit is not None else settings.SEARCH_DEFAULT_LIMIT
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else settings.SEARCH_DEBOUNCE_SECONDS
        )
        self._on_change = on_change

        self._state = SuggestionState.IDLE
        self._query = ""
        self._range: TextRange | None = None
        self._items: list[SearchCandidate] = []
        self._loading = False
        self._selected = 0

        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SuggestionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state in ACTIVE_STATES

    @property
    def view(self) -> SuggestionView:
        return SuggestionView(
            state=self._state,
            query=self._query,
            items=list(self._items),
            loading=self._loading,
            selected_index=self._selected,
        )

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.view)

    # ------------------------------------------------------------------
    # Editor events
    # ------------------------------------------------------------------

    def start(self, query: str, text_range: TextRange) -> None:
        """Trigger character detected: show a loading list and search."""
        if self.is_active:
            self.update(query, text_range)
            return

        self._state = SuggestionState.TRIGGERED
        self._items = []
        self._selected = 0
        self._set_query(query, text_range)

    def update(self, query: str, text_range: TextRange | None = None) -> None:
        """Query text changed while the list is open."""
        if not self.is_active:
            return
        self._state = SuggestionState.TRIGGERED
        self._set_query(query, text_range or self._range)

    def _set_query(self, query: str, text_range: TextRange | None) -> None:
        self._query = query
        self._range = text_range
        self._loading = True
        self._schedule(query)
        self._notify()

    def on_key_down(self, key: str) -> bool:
        """
        Handle a key while the list is open.

        Returns:
            True if the key was consumed by the list
        """
        if not self.is_active:
            return False

        if key == "ArrowUp":
            if self._items:
                self._selected = (self._selected + len(self._items) - 1) % len(self._items)
                self._notify()
            return True

        if key == "ArrowDown":
            if self._items:
                self._selected = (self._selected + 1) % len(self._items)
                self._notify()
            return True

        if key == "Enter":
            if self._items:
                self.commit(self._selected)
            return True

        if key == "Escape":
            self.cancel()
            return True

        return False

    def select(self, index: int) -> str | None:
        """Pointer selection of a candidate."""
        return self.commit(index)

    def commit(self, index: int) -> str | None:
        """
        Insert the candidate at ``index`` as a reference token.

        Returns:
            The inserted token, or None if nothing was committed
        """
        if not self.is_active or not 0 <= index < len(self._items):
            return None

        candidate = self._items[index]
        token = encode(candidate.entity_type, candidate.id, candidate.label)
        text_range = self._range

        self._teardown(SuggestionState.COMMITTED)
        if text_range is not None:
            self._surface.insert_reference(token, text_range)
        logger.info(f"Inserted reference to {candidate.entity_type.value} {candidate.id}")
        self._notify()
        return token

    def cancel(self) -> None:
        """Close the list without inserting anything."""
        if not self.is_active:
            return
        self._teardown(SuggestionState.CANCELLED)
        self._notify()

    def blur(self) -> None:
        """Editor lost focus."""
        self.cancel()

    def exit(self) -> None:
        """Text at the cursor is no longer a mention context."""
        self.cancel()

    def _teardown(self, state: SuggestionState) -> None:
        self._cancel_timer()
        self._generation += 1
        self._state = state
        self._items = []
        self._loading = False
        self._selected = 0
        self._range = None

    # ------------------------------------------------------------------
    # Debounced search
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule(self, query: str) -> None:
        self._cancel_timer()
        self._generation += 1
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._dispatch, self._generation, query)

    def _dispatch(self, generation: int, query: str) -> None:
        self._timer = None
        if generation != self._generation or not self.is_active:
            return
        task = asyncio.get_running_loop().create_task(self._run_search(generation, query))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_search(self, generation: int, query: str) -> None:
        logger.debug(f"Dispatching reference search for '{query}' (generation {generation})")
        try:
            items = await self._search(query, self.limit, self.exclude_id)
        except Exception as e:
            logger.warning(f"Reference search failed for '{query}': {e}")
            items = []

        if generation != self._generation or not self.is_active:
            logger.debug(f"Dropping stale results for '{query}' (generation {generation})")
            return

        self._items = list(items)
        self._selected = 0
        self._loading = False
        self._state = SuggestionState.POPULATED
        self._notify()

    async def wait_idle(self) -> None:
        """Wait for searches already dispatched to finish (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
