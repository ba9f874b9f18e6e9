"""Round-trip of one card field through an external editor.

An :class:`EditHandle` owns a temporary file pre-populated with the field's
current value. The version marker the edit is based on is kept on the
handle, never in the file. Submitting either does nothing (content
unchanged), reports a conflict (remote version moved on; the file is kept
for manual recovery) or writes the new value back conditionally and
updates the cache.

The temporary file is removed on every exit path except a conflict, text
that is not valid UTF-8 or a ``KeyboardInterrupt``; the path is reported
so no edit is lost.
"""

import logging
import os
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from src.trello.cache import BoardCache
from src.trello.client import TrelloClient
from src.trello.errors import Conflict, EditorError
from src.trello.models import Card, Entity

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("desc", "name")

InvokeEditor = Callable[[Path], int]


class EditStatus(Enum):
    """Outcome of submitting an edit."""

    UPDATED = "updated"
    NOOP = "noop"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class EditOutcome:
    """Result of :meth:`EditSession.submit`.

    ``path`` is only set for conflicts: the preserved file with the user's text.
    """

    status: EditStatus
    card: Card
    path: Path | None = None

    @property
    def message(self) -> str:
        if self.status is EditStatus.UPDATED:
            return f"Updated '{self.card.name}'"
        if self.status is EditStatus.NOOP:
            return f"No changes to '{self.card.name}'"
        return (
            f"'{self.card.name}' was changed remotely; nothing was written. "
            f"Your text is saved in {self.path}"
        )


class EditHandle:
    """A temporary file holding one field of one card.

    Use as a context manager; leaving the block removes the file unless the
    edit ended in a conflict, left undecodable text or was interrupted.
    """

    def __init__(self, card: Card, field: str, path: Path, original: bytes):
        self.card = card
        self.field = field
        self.path = path
        self.original = original
        self.version = card.version
        self.preserve = False
        self.closed = False

    def read(self) -> bytes:
        return self.path.read_bytes()

    def discard(self) -> None:
        """Delete the temporary file unless it must be preserved."""
        if self.closed:
            return
        self.closed = True
        if self.preserve:
            logger.info("Keeping %s for recovery", self.path)
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def __enter__(self) -> "EditHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None and issubclass(exc_type, KeyboardInterrupt):
            self.preserve = True
        self.discard()

    def __repr__(self) -> str:
        return f"EditHandle(card={self.card.id!r}, field={self.field!r}, path={str(self.path)!r})"


class EditSession:
    """Edits card fields through an external editor with conflict-safe write-back.

    The cache is borrowed from the running session and only updated in
    place for the single card that was written.
    """

    def __init__(self, client: TrelloClient, cache: BoardCache, invoke_editor: InvokeEditor):
        self.client = client
        self.cache = cache
        self.invoke_editor = invoke_editor

    def begin(self, entity: Entity, field: str = "desc") -> EditHandle:
        """Create the temporary file for ``field`` of ``entity``.

        Raises:
            ValueError: entity is not a card or the field is not editable
        """
        if not isinstance(entity, Card):
            raise ValueError(f"Only cards can be edited, not {type(entity).__name__}")
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Field '{field}' is not editable (choose from {EDITABLE_FIELDS})")

        original = getattr(entity, field).encode("utf-8")
        fd, tmp_path = tempfile.mkstemp(prefix=f"tro-{entity.id}-{field}-", suffix=".md")
        try:
            os.write(fd, original)
        except OSError:
            os.close(fd)
            os.unlink(tmp_path)
            raise
        os.close(fd)

        logger.debug("Editing %s of card %s in %s", field, entity.id, tmp_path)
        return EditHandle(entity, field, Path(tmp_path), original)

    def edit(self, handle: EditHandle) -> None:
        """Run the external editor on the handle's file and wait for it.

        Raises:
            EditorError: the editor exited with a non-zero status
        """
        code = self.invoke_editor(handle.path)
        logger.debug("Editor exited with %s", code)
        if code != 0:
            handle.discard()
            raise EditorError(f"Editor exited with status {code}; the edit was discarded")

    def submit(self, handle: EditHandle) -> EditOutcome:
        """Write the edited value back if it changed and nobody else changed the card.

        Returns:
            EditOutcome with status NOOP, CONFLICT or UPDATED
        """
        if handle.closed:
            raise ValueError("Edit session is already finished")

        try:
            outcome = self._submit(handle)
        except KeyboardInterrupt:
            handle.preserve = True
            handle.discard()
            raise
        except Exception:
            handle.discard()
            raise

        if outcome.status is EditStatus.CONFLICT:
            handle.preserve = True
        handle.discard()
        return outcome

    def _submit(self, handle: EditHandle) -> EditOutcome:
        content = handle.read()
        try:
            new_value = content.decode("utf-8").rstrip()
        except UnicodeDecodeError as e:
            handle.preserve = True
            raise EditorError(
                f"The edited text is not valid UTF-8 ({e.reason} at byte {e.start}); "
                "nothing was written",
                hint=f"Your text is saved in {handle.path}",
            ) from e
        old_value = getattr(handle.card, handle.field)

        # Editors commonly append a trailing newline; that alone is not a change
        if content == handle.original or new_value == old_value.rstrip():
            return EditOutcome(EditStatus.NOOP, handle.card)

        remote = self.client.get_card(handle.card.id)
        if remote.version != handle.version:
            logger.warning(
                "Card %s changed remotely (%s -> %s)", remote.id, handle.version, remote.version
            )
            return EditOutcome(EditStatus.CONFLICT, remote, handle.path)

        try:
            updated = self.client.update_card(
                handle.card.id,
                {handle.field: new_value},
                expected_version=handle.version,
                check_version=False,
            )
        except Conflict:
            return EditOutcome(EditStatus.CONFLICT, remote, handle.path)

        self.cache.replace_card(updated)
        logger.info("Updated %s of card %s", handle.field, updated.id)
        return EditOutcome(EditStatus.UPDATED, updated)

    def run(self, entity: Entity, field: str = "desc") -> EditOutcome:
        """Begin, edit and submit in one scope."""
        with self.begin(entity, field) as handle:
            self.edit(handle)
            return self.submit(handle)
