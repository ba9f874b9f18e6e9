"""Interactive navigation over the board cache.

Navigation is a stack of immutable :class:`View` objects:

    BOARD_LIST -> LIST_VIEW(board) -> CARD_VIEW(list) -> CARD_DETAIL(card)

``View`` transitions (cursor moves, filtering, re-reading) are pure and
return new views. :class:`NavigationController` owns the stack and performs
the side effects: reading from the cache, refreshing a board, evicting
entities that vanished remotely.
"""

import logging
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from functools import cached_property

from src.trello.cache import BoardCache
from src.trello.errors import FilterError, NotFound
from src.trello.models import Entity

logger = logging.getLogger(__name__)


class ViewKind(Enum):
    """Navigation state."""

    BOARD_LIST = "boards"
    LIST_VIEW = "lists"
    CARD_VIEW = "cards"
    CARD_DETAIL = "card"


# Child state reached by selecting an item in each state
CHILD_KIND = {
    ViewKind.BOARD_LIST: ViewKind.LIST_VIEW,
    ViewKind.LIST_VIEW: ViewKind.CARD_VIEW,
    ViewKind.CARD_VIEW: ViewKind.CARD_DETAIL,
}


def compile_filter(pattern: str, ignore_case: bool = False) -> re.Pattern | None:
    """Compile a name filter; the empty pattern means no filter.

    Raises:
        FilterError: pattern is not a valid regular expression
    """
    if not pattern:
        return None
    try:
        return re.compile(pattern, re.IGNORECASE if ignore_case else 0)
    except re.error as e:
        raise FilterError(f"Invalid filter /{pattern}/: {e}") from e


class FilteredSequence(Sequence):
    """Entities whose display name matches a regex, in source order.

    Iteration is lazy and can be restarted any number of times; indexing
    and len() materialise the matches once.
    """

    def __init__(self, source: tuple[Entity, ...], regex: re.Pattern | None = None):
        self._source = source
        self._regex = regex

    def __iter__(self) -> Iterator[Entity]:
        if self._regex is None:
            return iter(self._source)
        regex = self._regex
        return (e for e in self._source if regex.search(e.display_name))

    @cached_property
    def _items(self) -> tuple[Entity, ...]:
        return tuple(iter(self))

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index):
        return self._items[index]

    def __repr__(self) -> str:
        names = ", ".join(e.display_name for e in self)
        return f"FilteredSequence([{names}])"


def clamp(index: int, length: int) -> int:
    """Clamp a cursor into [0, length - 1] (0 for an empty sequence)."""
    if length <= 0:
        return 0
    return max(0, min(index, length - 1))


@dataclass(frozen=True)
class View:
    """One navigation state: what is listed, the active filter and the cursor."""

    kind: ViewKind
    parent_id: str | None
    source: tuple[Entity, ...]
    pattern: str = ""
    ignore_case: bool = False
    cursor: int = 0

    @cached_property
    def items(self) -> FilteredSequence:
        """Displayed entities after filtering."""
        return FilteredSequence(self.source, compile_filter(self.pattern, self.ignore_case))

    @property
    def selected(self) -> Entity | None:
        """Entity under the cursor, or None if nothing is displayed."""
        items = self.items
        return items[self.cursor] if len(items) else None

    def move(self, delta: int) -> "View":
        """Move the cursor, stopping at the first and last item."""
        return replace(self, cursor=clamp(self.cursor + delta, len(self.items)))

    def cursor_to(self, index: int) -> "View":
        return replace(self, cursor=clamp(index, len(self.items)))

    def with_filter(self, pattern: str, ignore_case: bool = False) -> "View":
        """Apply a new filter, keeping the cursor on the same entity if still shown.

        Raises:
            FilterError: invalid pattern; this view is not modified
        """
        compile_filter(pattern, ignore_case)
        updated = replace(self, pattern=pattern, ignore_case=ignore_case, cursor=0)
        return updated._follow(self.selected)

    def with_source(self, source: tuple[Entity, ...]) -> "View":
        """Same view over freshly read entities."""
        return replace(self, source=source, cursor=0)._follow(self.selected, self.cursor)

    def _follow(self, entity: Entity | None, fallback: int = 0) -> "View":
        if entity is not None:
            for i, candidate in enumerate(self.items):
                if candidate.id == entity.id:
                    return replace(self, cursor=i)
        return replace(self, cursor=clamp(fallback, len(self.items)))


class NavigationController:
    """State machine over the cache for one interactive session."""

    def __init__(self, cache: BoardCache):
        self.cache = cache
        self._stack: list[View] = []

    @property
    def current(self) -> View:
        if not self._stack:
            raise RuntimeError("Navigation has not been started; call open_board_list()")
        return self._stack[-1]

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def items(self) -> FilteredSequence:
        return self.current.items

    @property
    def path(self) -> list[str]:
        """Names of the entities selected to reach the current view."""
        names = []
        for view in self._stack[:-1]:
            entity = view.selected
            if entity is not None:
                names.append(entity.display_name)
        return names

    def selected(self) -> Entity | None:
        """Entity under the cursor (the card itself in CARD_DETAIL)."""
        return self.current.selected

    def board_id(self) -> str | None:
        """Board the navigation is currently inside, if any."""
        if len(self._stack) < 2:
            return None
        return self._stack[1].parent_id

    # Transitions

    def open_board_list(self) -> View:
        """Start (or restart) navigation at the list of boards."""
        boards = self.cache.load_boards()
        self._stack = [View(ViewKind.BOARD_LIST, None, tuple(boards))]
        return self.current

    def move(self, delta: int) -> View:
        self._stack[-1] = self.current.move(delta)
        return self.current

    def cursor_to(self, index: int) -> View:
        self._stack[-1] = self.current.cursor_to(index)
        return self.current

    def filter(self, pattern: str, ignore_case: bool = False) -> View:
        """Filter the current view by display name.

        Raises:
            FilterError: invalid pattern; view and cursor stay as they were
        """
        self._stack[-1] = self.current.with_filter(pattern, ignore_case)
        logger.debug("Filter /%s/ -> %d items", pattern, len(self.current.items))
        return self.current

    def select(self, index: int | None = None) -> View:
        """Enter the entity at ``index`` (default: the cursor).

        Raises:
            IndexError: index outside the displayed items
            NotFound: the entity vanished; it is evicted and the current
                view is re-read from the cache
        """
        view = self.current
        if view.kind is ViewKind.CARD_DETAIL:
            return view

        items = view.items
        position = view.cursor if index is None else index
        if not 0 <= position < len(items):
            raise IndexError(f"No item {position} (showing {len(items)})")

        entity = items[position]
        self._stack[-1] = view.cursor_to(position)

        try:
            child = self._enter(CHILD_KIND[view.kind], entity)
        except NotFound:
            logger.info("%s disappeared; evicting it", entity.display_name)
            self.cache.evict(entity.id)
            self._resync()
            raise

        self._stack.append(child)
        return child

    def back(self) -> View:
        """Return to the previous state; no-op at the board list."""
        if len(self._stack) > 1:
            self._stack.pop()
            self._resync()
        return self.current

    def reload(self) -> View:
        """Re-fetch the board being browsed (or the board list) and re-read views."""
        board_id = self.board_id()
        if board_id is None:
            pattern, ignore_case = self.current.pattern, self.current.ignore_case
            self.open_board_list()
            if pattern:
                self.filter(pattern, ignore_case)
            return self.current

        try:
            self.cache.refresh(board_id)
        except NotFound:
            self.cache.evict(board_id)
            self._resync()
            raise
        self._resync()
        return self.current

    def sync(self) -> View:
        """Re-read every view from the cache (after a write-back)."""
        self._resync()
        return self.current

    # Internals

    def _enter(self, kind: ViewKind, entity: Entity) -> View:
        if kind is ViewKind.LIST_VIEW:
            self.cache.refresh(entity.id)
            return View(kind, entity.id, self.cache.children_of(entity.id))
        if kind is ViewKind.CARD_VIEW:
            return View(kind, entity.id, self.cache.children_of(entity.id))
        card = self.cache.get(entity.id)
        return View(kind, card.list_id, (card,))

    def _read(self, view: View) -> tuple[Entity, ...]:
        if view.kind is ViewKind.BOARD_LIST:
            return self.cache.boards()
        if view.kind is ViewKind.CARD_DETAIL:
            return (self.cache.get(view.source[0].id),)
        return self.cache.children_of(view.parent_id)

    def _resync(self) -> None:
        """Re-read the stack top-down, truncating at the first view that vanished."""
        rebuilt: list[View] = []
        for view in self._stack:
            try:
                rebuilt.append(view.with_source(self._read(view)))
            except NotFound:
                break
        self._stack = rebuilt or [View(ViewKind.BOARD_LIST, None, self.cache.boards())]
