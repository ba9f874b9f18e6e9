"""In-process cache of fetched board hierarchies.

The cache holds one immutable :class:`Snapshot`. Every change (a refresh,
an eviction, a card write-back) assembles a complete new snapshot and then
swaps it in with a single assignment, so readers never observe a partially
built hierarchy and a failed refresh leaves the previous snapshot intact.

Parent -> child indices live on the entities themselves
(``Board.list_ids`` and ``TrelloList.card_ids``) and are rebuilt together
with the entities.
"""

import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any

from src.trello.errors import MalformedResponse, NotFound
from src.trello.models import Board, BoardTree, Card, Entity, Label, TrelloList, sort_key

if TYPE_CHECKING:
    from src.trello.client import TrelloClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of everything fetched so far.

    Dict insertion order is fetch order for boards; lists and cards are
    ordered through their parent's child-id tuple.
    """

    boards: dict[str, Board] = field(default_factory=dict)
    lists: dict[str, TrelloList] = field(default_factory=dict)
    cards: dict[str, Card] = field(default_factory=dict)
    labels: dict[str, Label] = field(default_factory=dict)
    loaded_boards: frozenset[str] = frozenset()

    def find(self, entity_id: str) -> Entity | None:
        """Look up any entity by id."""
        for table in (self.cards, self.lists, self.boards, self.labels):
            if entity_id in table:
                return table[entity_id]
        return None

    def to_dict(self) -> dict[str, Any]:
        """Deterministic, JSON-serialisable dump of the snapshot."""
        return {
            "boards": [_plain(b) for b in self.boards.values()],
            "lists": [_plain(self.lists[k]) for k in sorted(self.lists)],
            "cards": [_plain(self.cards[k]) for k in sorted(self.cards)],
            "labels": [_plain(self.labels[k]) for k in sorted(self.labels)],
            "loaded_boards": sorted(self.loaded_boards),
        }


def _plain(entity: Entity) -> dict[str, Any]:
    result = asdict(entity)
    for key, value in result.items():
        if isinstance(value, frozenset):
            result[key] = sorted(value)
        elif isinstance(value, tuple):
            result[key] = list(value)
        elif isinstance(value, datetime):
            result[key] = value.isoformat()
    return result


def assemble_board(tree: BoardTree) -> tuple[Board, list[TrelloList], list[Card], list[Label]]:
    """Order and cross-link a fetched board hierarchy.

    Cards whose list is not among the board's open lists (cards left in an
    archived list) are skipped, so every cached card resolves to a cached list.

    Raises:
        MalformedResponse: a list, card or label claims a different board
    """
    board_id = tree.board.id
    for entity in (*tree.lists, *tree.cards, *tree.labels):
        if entity.board_id != board_id:
            raise MalformedResponse(
                f"{type(entity).__name__} {entity.id} belongs to board "
                f"{entity.board_id}, not {board_id}"
            )

    lists = sorted(tree.lists, key=sort_key)
    by_list: dict[str, list[Card]] = {lst.id: [] for lst in lists}
    for card in tree.cards:
        if card.list_id not in by_list:
            logger.debug("Skipping card %s in closed list %s", card.id, card.list_id)
            continue
        by_list[card.list_id].append(card)

    ordered_cards: list[Card] = []
    linked_lists: list[TrelloList] = []
    for lst in lists:
        cards = sorted(by_list[lst.id], key=sort_key)
        ordered_cards.extend(cards)
        linked_lists.append(replace(lst, card_ids=tuple(c.id for c in cards)))

    board = replace(tree.board, list_ids=tuple(lst.id for lst in lists))
    return board, linked_lists, ordered_cards, list(tree.labels)


class BoardCache:
    """Per-invocation cache of Trello entities.

    Owned by the running session; navigation and edit sessions hold a
    reference to it but never replace or close it.
    """

    def __init__(self, client: "TrelloClient"):
        self.client = client
        self._snapshot = Snapshot()

    @property
    def snapshot(self) -> Snapshot:
        """The current snapshot."""
        return self._snapshot

    # Loading

    def load_boards(self) -> list[Board]:
        """Fetch the member's open boards.

        Boards whose hierarchy was already refreshed keep it; boards that
        disappeared remotely are dropped together with their subtree.
        """
        fetched = self.client.list_boards()
        old = self._snapshot
        fetched_ids = {b.id for b in fetched}

        boards = {}
        for board in fetched:
            previous = old.boards.get(board.id)
            boards[board.id] = replace(board, list_ids=previous.list_ids) if previous else board

        lists = {k: v for k, v in old.lists.items() if v.board_id in fetched_ids}
        cards = {k: v for k, v in old.cards.items() if v.board_id in fetched_ids}
        labels = {k: v for k, v in old.labels.items() if v.board_id in fetched_ids}

        self._snapshot = Snapshot(
            boards=boards,
            lists=lists,
            cards=cards,
            labels=labels,
            loaded_boards=old.loaded_boards & fetched_ids,
        )
        logger.debug("Loaded %d boards", len(boards))
        return list(boards.values())

    def refresh(self, board_id: str) -> Snapshot:
        """Fetch a board hierarchy and swap it into the cache atomically.

        Until the new hierarchy is fully fetched and validated the previous
        snapshot remains the current one; on any error it is left untouched.

        Returns:
            The new snapshot
        """
        tree = self.client.get_board_tree(board_id)
        board, lists, cards, labels = assemble_board(tree)

        old = self._snapshot
        boards = dict(old.boards)
        boards[board.id] = board  # keeps its position if it was already known

        new = Snapshot(
            boards=boards,
            lists={
                **{k: v for k, v in old.lists.items() if v.board_id != board.id},
                **{lst.id: lst for lst in lists},
            },
            cards={
                **{k: v for k, v in old.cards.items() if v.board_id != board.id},
                **{c.id: c for c in cards},
            },
            labels={
                **{k: v for k, v in old.labels.items() if v.board_id != board.id},
                **{lbl.id: lbl for lbl in labels},
            },
            loaded_boards=old.loaded_boards | {board.id},
        )
        self._snapshot = new
        logger.debug(
            "Refreshed board %s: %d lists, %d cards, %d labels",
            board.name,
            len(lists),
            len(cards),
            len(labels),
        )
        return new

    # Queries

    def boards(self) -> tuple[Board, ...]:
        """Boards in fetch order."""
        return tuple(self._snapshot.boards.values())

    def get(self, entity_id: str) -> Entity:
        """Get an entity by id.

        Raises:
            NotFound: the entity is not (or no longer) in the cache
        """
        entity = self._snapshot.find(entity_id)
        if entity is None:
            raise NotFound(f"No cached entity with id {entity_id}", entity_id=entity_id)
        return entity

    def children_of(self, parent_id: str) -> tuple[TrelloList, ...] | tuple[Card, ...]:
        """Ordered children of a board (its lists) or of a list (its cards)."""
        snap = self._snapshot
        if parent_id in snap.boards:
            return tuple(snap.lists[i] for i in snap.boards[parent_id].list_ids)
        if parent_id in snap.lists:
            return tuple(snap.cards[i] for i in snap.lists[parent_id].card_ids)
        raise NotFound(f"No cached board or list with id {parent_id}", entity_id=parent_id)

    def labels_of(self, board_id: str) -> tuple[Label, ...]:
        """Labels defined on a board, ordered by name."""
        labels = [lbl for lbl in self._snapshot.labels.values() if lbl.board_id == board_id]
        return tuple(sorted(labels, key=lambda lbl: (lbl.display_name, lbl.id)))

    # Mutation

    def evict(self, entity_id: str) -> None:
        """Remove an entity, its subtree and its id from the parent index."""
        snap = self._snapshot
        boards, lists = dict(snap.boards), dict(snap.lists)
        cards, labels = dict(snap.cards), dict(snap.labels)
        loaded = snap.loaded_boards

        if entity_id in cards:
            card = cards.pop(entity_id)
            if card.list_id in lists:
                parent = lists[card.list_id]
                lists[parent.id] = replace(
                    parent, card_ids=tuple(i for i in parent.card_ids if i != entity_id)
                )
        elif entity_id in lists:
            lst = lists.pop(entity_id)
            for card_id in lst.card_ids:
                cards.pop(card_id, None)
            if lst.board_id in boards:
                parent = boards[lst.board_id]
                boards[parent.id] = replace(
                    parent, list_ids=tuple(i for i in parent.list_ids if i != entity_id)
                )
        elif entity_id in boards:
            boards.pop(entity_id)
            lists = {k: v for k, v in lists.items() if v.board_id != entity_id}
            cards = {k: v for k, v in cards.items() if v.board_id != entity_id}
            labels = {k: v for k, v in labels.items() if v.board_id != entity_id}
            loaded = loaded - {entity_id}
        elif entity_id in labels:
            labels.pop(entity_id)
        else:
            return

        logger.debug("Evicted %s from cache", entity_id)
        self._snapshot = Snapshot(
            boards=boards, lists=lists, cards=cards, labels=labels, loaded_boards=loaded
        )

    def replace_card(self, card: Card) -> None:
        """Replace a single cached card after a successful write-back.

        A card moved to a list that is not cached is evicted instead.

        Raises:
            NotFound: the card is not cached
        """
        snap = self._snapshot
        old = snap.cards.get(card.id)
        if old is None:
            raise NotFound(f"Card {card.id} is not cached", entity_id=card.id)
        if card.list_id not in snap.lists:
            self.evict(card.id)
            return

        cards = dict(snap.cards)
        cards[card.id] = card
        lists = dict(snap.lists)

        if old.list_id != card.list_id or old.pos != card.pos:
            if old.list_id in lists:
                source = lists[old.list_id]
                lists[source.id] = replace(
                    source, card_ids=tuple(i for i in source.card_ids if i != card.id)
                )
            target = lists[card.list_id]
            siblings = [cards[i] for i in target.card_ids if i != card.id] + [card]
            lists[target.id] = replace(
                target, card_ids=tuple(c.id for c in sorted(siblings, key=sort_key))
            )

        self._snapshot = replace(snap, cards=cards, lists=lists)
