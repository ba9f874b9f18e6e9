"""Tests for editing card fields through the external editor."""

import httpx
import pytest

from src.trello.editor import EditSession, EditStatus
from src.trello.errors import EditorError, NetworkError
from src.trello.retry import RetryPolicy

from .fakes import ScriptedEditor


@pytest.fixture
def loaded(cache):
    cache.refresh("b1")
    return cache


def edit_session(client, cache, editor: ScriptedEditor) -> EditSession:
    return EditSession(client, cache, editor)


class TestBegin:
    """Tests for EditSession.begin()."""

    def test_file_holds_current_value(self, client, loaded):
        session = edit_session(client, loaded, ScriptedEditor())
        card = loaded.get("c1")

        with session.begin(card, "desc") as handle:
            assert handle.path.read_text() == "Users cannot log in with SSO."
            assert handle.version == card.version
            assert "c1" in handle.path.name

        assert not handle.path.exists()

    def test_version_is_not_in_file(self, client, loaded):
        session = edit_session(client, loaded, ScriptedEditor())
        card = loaded.get("c1")

        with session.begin(card, "name") as handle:
            assert card.version not in handle.path.read_text()

    def test_only_cards_can_be_edited(self, client, loaded):
        session = edit_session(client, loaded, ScriptedEditor())
        with pytest.raises(ValueError):
            session.begin(loaded.get("l1"))

    def test_unknown_field(self, client, loaded):
        session = edit_session(client, loaded, ScriptedEditor())
        with pytest.raises(ValueError):
            session.begin(loaded.get("c1"), "idList")


class TestSubmit:
    """Tests for EditSession.run() / submit()."""

    def test_unchanged_file_is_noop(self, client, loaded, fake):
        """Saving the file unchanged makes no update call."""
        editor = ScriptedEditor()

        outcome = edit_session(client, loaded, editor).run(loaded.get("c1"), "desc")

        assert outcome.status is EditStatus.NOOP
        assert fake.calls("PUT") == []
        assert not editor.paths[0].exists()

    def test_trailing_newline_only_is_noop(self, client, loaded, fake):
        editor = ScriptedEditor(text="Users cannot log in with SSO.\n")

        outcome = edit_session(client, loaded, editor).run(loaded.get("c1"), "desc")

        assert outcome.status is EditStatus.NOOP
        assert fake.calls("PUT") == []

    def test_changed_text_updates_card_and_cache(self, client, loaded, fake):
        before = loaded.get("c1")
        editor = ScriptedEditor(text="Fixed by rotating the SSO cert.\n")

        outcome = edit_session(client, loaded, editor).run(before, "desc")

        assert outcome.status is EditStatus.UPDATED
        assert len(fake.calls("PUT", "/cards/c1")) == 1
        assert fake.cards["c1"]["desc"] == "Fixed by rotating the SSO cert."
        cached = loaded.get("c1")
        assert cached.desc == "Fixed by rotating the SSO cert."
        assert cached.version != before.version
        assert cached.version == fake.cards["c1"]["dateLastActivity"]
        assert not editor.paths[0].exists()

    def test_edit_name(self, client, loaded, fake):
        editor = ScriptedEditor(text="Fix SSO login")

        outcome = edit_session(client, loaded, editor).run(loaded.get("c1"), "name")

        assert outcome.status is EditStatus.UPDATED
        assert fake.cards["c1"]["name"] == "Fix SSO login"
        assert [c.name for c in loaded.children_of("l2")] == ["Fix SSO login", "Write docs"]

    def test_remote_change_is_conflict(self, client, loaded, fake):
        """A version bump while editing keeps the file and the cache entry."""
        before = loaded.get("c1")
        editor = ScriptedEditor(
            text="My version",
            on_edit=lambda path: fake.touch("c1", desc="Their version"),
        )

        outcome = edit_session(client, loaded, editor).run(before, "desc")

        assert outcome.status is EditStatus.CONFLICT
        assert outcome.path == editor.paths[0]
        assert outcome.path.exists()
        assert outcome.path.read_text() == "My version"
        assert str(outcome.path) in outcome.message
        assert outcome.card.desc == "Their version"
        assert loaded.get("c1") == before
        assert fake.calls("PUT") == []
        assert fake.cards["c1"]["desc"] == "Their version"
        outcome.path.unlink()

    def test_editor_failure_discards_edit(self, client, loaded, fake):
        editor = ScriptedEditor(text="half-written", exit_code=1)

        with pytest.raises(EditorError):
            edit_session(client, loaded, editor).run(loaded.get("c1"))

        assert not editor.paths[0].exists()
        assert fake.calls("PUT") == []

    def test_network_failure_removes_file(self, client, loaded, fake):
        client.retry_policy = RetryPolicy(max_attempts=1)
        editor = ScriptedEditor(
            text="New text",
            on_edit=lambda path: fake.fail_next(httpx.Response(503)),
        )

        with pytest.raises(NetworkError):
            edit_session(client, loaded, editor).run(loaded.get("c1"))

        assert not editor.paths[0].exists()

    def test_undecodable_text_preserves_file(self, client, loaded, fake):
        editor = ScriptedEditor(on_edit=lambda path: path.write_bytes(b"\xff\xfe bad"))

        with pytest.raises(EditorError) as exc_info:
            edit_session(client, loaded, editor).run(loaded.get("c1"))

        path = editor.paths[0]
        assert str(path) in exc_info.value.hint
        assert path.read_bytes() == b"\xff\xfe bad"
        assert fake.calls("GET", "/cards/c1") == []
        assert fake.calls("PUT") == []
        path.unlink()

    def test_interrupt_preserves_file(self, client, loaded):
        session = edit_session(client, loaded, ScriptedEditor())

        with pytest.raises(KeyboardInterrupt):
            with session.begin(loaded.get("c1")) as handle:
                handle.path.write_text("unsaved work")
                raise KeyboardInterrupt

        assert handle.path.exists()
        assert handle.path.read_text() == "unsaved work"
        handle.path.unlink()

    def test_submit_twice_rejected(self, client, loaded):
        session = edit_session(client, loaded, ScriptedEditor())
        handle = session.begin(loaded.get("c1"))
        session.submit(handle)

        with pytest.raises(ValueError):
            session.submit(handle)