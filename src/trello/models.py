"""Data models for Trello boards, lists, cards and labels."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class EntityKind(Enum):
    """Kind of Trello entity."""

    BOARD = "board"
    LIST = "list"
    CARD = "card"
    LABEL = "label"

    @property
    def endpoint(self) -> str:
        """REST collection name, e.g. 'cards'."""
        return f"{self.value}s"


@dataclass(frozen=True)
class EntityRef:
    """Reference to a remote entity by kind and id."""

    kind: EntityKind
    id: str


@dataclass(frozen=True)
class Label:
    """A board label."""

    id: str
    name: str
    color: str | None
    board_id: str

    @property
    def display_name(self) -> str:
        """Name shown in views; unnamed labels fall back to their color."""
        return self.name or self.color or ""


@dataclass(frozen=True)
class Board:
    """A Trello board with the ordered ids of its open lists."""

    id: str
    name: str
    list_ids: tuple[str, ...] = ()
    closed: bool = False
    url: str = ""

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def ref(self) -> EntityRef:
        return EntityRef(EntityKind.BOARD, self.id)


@dataclass(frozen=True)
class TrelloList:
    """A list (column) on a board."""

    id: str
    name: str
    board_id: str  # back-reference, the board does not own the list object
    pos: float
    card_ids: tuple[str, ...] = ()
    closed: bool = False

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def ref(self) -> EntityRef:
        return EntityRef(EntityKind.LIST, self.id)


@dataclass(frozen=True)
class Card:
    """A card in a list.

    ``version`` is the service's ``dateLastActivity`` value and is used as
    the optimistic concurrency marker for updates.
    """

    id: str
    name: str
    desc: str
    list_id: str
    board_id: str
    pos: float
    version: str
    due: datetime | None = None
    label_ids: frozenset[str] = field(default_factory=frozenset)
    closed: bool = False
    url: str = ""

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def ref(self) -> EntityRef:
        return EntityRef(EntityKind.CARD, self.id)


@dataclass(frozen=True)
class Attachment:
    """A file uploaded to a card, or a link attached to it."""

    id: str
    name: str
    url: str
    size: int | None = None
    mime_type: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.url


Entity = Board | TrelloList | Card | Label


def sort_key(entity: TrelloList | Card) -> tuple[float, str]:
    """Total ordering among siblings: position, then id to break ties."""
    return (entity.pos, entity.id)


@dataclass(frozen=True)
class SearchResult:
    """Result of a search across the member's boards."""

    boards: tuple[Board, ...] = ()
    cards: tuple[Card, ...] = ()

    @property
    def empty(self) -> bool:
        """True if nothing matched."""
        return not self.boards and not self.cards


@dataclass(frozen=True)
class BoardTree:
    """A board fetched together with its open lists, open cards and labels."""

    board: Board
    lists: tuple[TrelloList, ...]
    cards: tuple[Card, ...]
    labels: tuple[Label, ...]
