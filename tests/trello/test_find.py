"""Tests for resolving names given on the command line."""

import pytest

from src.trello.errors import FilterError, NotFound, TroError
from src.trello.find import find_label, get_object_by_name, resolve
from src.trello.models import Board


def boards(*names: str) -> list[Board]:
    return [Board(id=f"b{i}", name=name) for i, name in enumerate(names)]


class TestGetObjectByName:
    """Tests for get_object_by_name()."""

    def test_single_match(self):
        assert get_object_by_name(boards("Sprint 7", "Personal"), "Spr").name == "Sprint 7"

    def test_exact_match_breaks_tie(self):
        found = get_object_by_name(boards("Sprint", "Sprint 7"), "Sprint")
        assert found.name == "Sprint"

    def test_ambiguous(self):
        with pytest.raises(TroError) as exc_info:
            get_object_by_name(boards("Sprint 7", "Sprint 8"), "Sprint")
        assert "Sprint 7" in str(exc_info.value)
        assert exc_info.value.hint

    def test_no_match(self):
        with pytest.raises(NotFound):
            get_object_by_name(boards("Sprint 7"), "Ops")

    def test_empty_pattern(self):
        with pytest.raises(NotFound):
            get_object_by_name(boards("Sprint 7"), "")

    def test_ignore_case(self):
        assert get_object_by_name(boards("Sprint 7"), "sprint", ignore_case=True).id == "b0"

    def test_invalid_pattern(self):
        with pytest.raises(FilterError):
            get_object_by_name(boards("Sprint 7"), "[")


class TestResolve:
    """Tests for resolve()."""

    def test_nothing_named(self, cache, fake):
        selection = resolve(cache)
        assert selection.board is None
        assert fake.requests == []

    def test_board_list_card(self, cache):
        selection = resolve(cache, "Sprint", "Doing", "login")

        assert selection.board.id == "b1"
        assert selection.list.id == "l2"
        assert selection.card.id == "c1"
        assert selection.board.list_ids == ("l1", "l2", "l3")

    def test_board_only(self, cache):
        selection = resolve(cache, "Personal")
        assert selection.board.name == "Personal"
        assert selection.list is None

    def test_missing_list(self, cache):
        with pytest.raises(NotFound):
            resolve(cache, "Sprint", "Backlog")

    def test_find_label_by_color(self, cache):
        cache.refresh("b1")
        assert find_label(cache.labels_of("b1"), "green").id == "lb2"
