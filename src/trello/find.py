"""Resolve board / list / card names given on the command line.

Names are regular expressions matched against display names. A pattern
that matches several entities is accepted when exactly one of them matches
the whole name.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from src.trello.cache import BoardCache
from src.trello.errors import NotFound, TroError
from src.trello.models import Board, Card, Entity, Label, TrelloList
from src.trello.navigation import compile_filter


@dataclass(frozen=True)
class Selection:
    """Entities named on the command line; deeper levels may be unset."""

    board: Board | None = None
    list: TrelloList | None = None
    card: Card | None = None


def get_object_by_name(entities: Iterable[Entity], pattern: str, ignore_case: bool = False) -> Entity:
    """Find the single entity whose name matches ``pattern``.

    Raises:
        FilterError: invalid pattern
        NotFound: nothing matches
        TroError: several entities match and none matches exactly
    """
    candidates = list(entities)
    regex = compile_filter(pattern, ignore_case)
    if regex is None:
        raise NotFound("An empty name matches nothing")

    matches = [e for e in candidates if regex.search(e.display_name)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NotFound(f"Nothing named like '{pattern}'")

    exact = [e for e in matches if regex.fullmatch(e.display_name)]
    if len(exact) == 1:
        return exact[0]

    names = ", ".join(f"'{e.display_name}'" for e in matches)
    raise TroError(
        f"'{pattern}' matches several entries: {names}",
        hint="Use a more specific pattern, e.g. anchor it with ^ and $.",
    )


def resolve(
    cache: BoardCache,
    board: str | None = None,
    list_name: str | None = None,
    card: str | None = None,
    ignore_case: bool = False,
) -> Selection:
    """Resolve names into entities, fetching the named board's hierarchy."""
    if board is None:
        return Selection()

    found_board = get_object_by_name(cache.load_boards(), board, ignore_case)
    cache.refresh(found_board.id)
    found_board = cache.get(found_board.id)
    if list_name is None:
        return Selection(board=found_board)

    found_list = get_object_by_name(cache.children_of(found_board.id), list_name, ignore_case)
    if card is None:
        return Selection(board=found_board, list=found_list)

    found_card = get_object_by_name(cache.children_of(found_list.id), card, ignore_case)
    return Selection(board=found_board, list=found_list, card=found_card)


def find_label(labels: Iterable[Label], name: str, ignore_case: bool = False) -> Label:
    """Find a board label by name (or color for unnamed labels)."""
    return get_object_by_name(labels, name, ignore_case)
