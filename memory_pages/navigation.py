"""
Navigation between pages.

Tracks the current page index and the direction of the last move. Moving
forward past the last page creates a new blank page through the sync
engine; this is the only place the collection grows implicitly.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

from .pages import Page
from .sync import LoadResult, PageSyncEngine

logger = logging.getLogger(__name__)


class Direction(Enum):
    """Direction of the last navigation, used for slide transitions."""

    FORWARD = "forward"
    BACKWARD = "backward"


@dataclass(frozen=True)
class NavigationState:
    """Where the user is in the slideshow.

    Attributes:
        current_index: 0-based index into the page collection
        direction: Direction of the last move
        transition_token: Incremented on every move, so repeated moves to the
            same index are still distinguishable
    """

    current_index: int = 0
    direction: Direction = Direction.FORWARD
    transition_token: int = 0


NavigationListener = Callable[[NavigationState], None]


class NavigationController:
    """Moves through the page collection one page at a time.

    ``next`` and ``previous`` return True when they moved and False when they
    were no-ops (at the first page, or while a load or a page creation is in
    flight).
    """

    def __init__(self, engine: PageSyncEngine) -> None:
        self.engine = engine
        self._state = NavigationState()
        self._in_flight = False
        self.listeners: list[NavigationListener] = []

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def current_index(self) -> int:
        return self._state.current_index

    @property
    def busy(self) -> bool:
        return self._in_flight

    @property
    def current_page(self) -> Page | None:
        pages = self.engine.pages
        if not pages:
            return None
        return pages[min(self._state.current_index, len(pages) - 1)]

    async def load(self) -> LoadResult | None:
        """Load the collection, keeping the index within bounds.

        Returns None if another load or creation is already in flight.
        """
        if self._in_flight:
            return None
        self._in_flight = True
        try:
            result = await self.engine.load_all()
        finally:
            self._in_flight = False

        last_index = max(len(result.pages) - 1, 0)
        if self._state.current_index > last_index:
            self._state = replace(self._state, current_index=last_index)
        return result

    async def next(self) -> bool:
        """Move forward, creating a blank page when at the last page."""
        if self._in_flight:
            return False

        pages = self.engine.pages
        if self._state.current_index < len(pages) - 1:
            self._move(self._state.current_index + 1, Direction.FORWARD)
            return True

        self._in_flight = True
        try:
            result = await self.engine.create(text="", image=None)
        finally:
            self._in_flight = False

        self._move(self.engine.index_of(result.page.id), Direction.FORWARD)
        return True

    async def previous(self) -> bool:
        """Move backward; a no-op on the first page."""
        if self._in_flight or self._state.current_index == 0:
            return False
        self._move(self._state.current_index - 1, Direction.BACKWARD)
        return True

    def _move(self, index: int, direction: Direction) -> None:
        self._state = NavigationState(
            current_index=index,
            direction=direction,
            transition_token=self._state.transition_token + 1,
        )
        logger.debug(f"Navigated {direction.value} to page index {index}")
        for listener in self.listeners:
            listener(self._state)
