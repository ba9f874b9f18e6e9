"""The running session: one client, one cache, navigation and editing.

:class:`TroSession` is the explicit context object for an invocation. It
owns the cache and hands the same instance to the navigation controller
and the edit session; closing the session closes the HTTP client once.
"""

from src.trello.cache import BoardCache
from src.trello.client import TrelloClient
from src.trello.editor import EditHandle, EditOutcome, EditSession, EditStatus, InvokeEditor
from src.trello.errors import NotFound
from src.trello.models import Card, Entity
from src.trello.navigation import NavigationController, View


class TroSession:
    """Entry points consumed by the command layer."""

    def __init__(self, client: TrelloClient, invoke_editor: InvokeEditor):
        self.client = client
        self.cache = BoardCache(client)
        self.navigation = NavigationController(self.cache)
        self.editor = EditSession(client, self.cache, invoke_editor)
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.client.close()

    def __enter__(self) -> "TroSession":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # Navigation

    def open_board_list(self) -> View:
        return self.navigation.open_board_list()

    def select(self, index: int | None = None) -> View:
        return self.navigation.select(index)

    def back(self) -> View:
        return self.navigation.back()

    def filter(self, pattern: str, ignore_case: bool = False) -> View:
        return self.navigation.filter(pattern, ignore_case)

    def move(self, delta: int) -> View:
        return self.navigation.move(delta)

    def reload(self) -> View:
        return self.navigation.reload()

    @property
    def view(self) -> View:
        return self.navigation.current

    # Editing

    def begin_edit(self, entity: Entity, field: str = "desc") -> EditHandle:
        return self.editor.begin(entity, field)

    def submit_edit(self, handle: EditHandle) -> EditOutcome:
        """Submit an edit and keep the cache and views in step with the result.

        A card deleted remotely while it was being edited is evicted and the
        views are re-read, so navigation falls back to the card's list.
        """
        try:
            outcome = self.editor.submit(handle)
        except NotFound:
            self.cache.evict(handle.card.id)
            if self.navigation.depth:
                self.navigation.sync()
            raise
        if outcome.status is EditStatus.UPDATED and self.navigation.depth:
            self.navigation.sync()
        return outcome

    def edit_selected(self, field: str = "desc") -> EditOutcome:
        """Edit a field of the card under the cursor (or shown in detail)."""
        entity = self.navigation.selected()
        if not isinstance(entity, Card):
            raise ValueError("Select a card to edit it")
        entity = self.cache.get(entity.id)
        with self.begin_edit(entity, field) as handle:
            self.editor.edit(handle)
            return self.submit_edit(handle)
