"""Wire schemas for Trello REST payloads.

Each entity has a strict pydantic model. Payloads are validated here and
turned into the frozen dataclasses from ``src.trello.models``; any missing
required field or wrong type becomes :class:`MalformedResponse` instead of
a silently defaulted value. Extra fields returned by the service are
ignored.
"""

from datetime import datetime
from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError

from src.trello.errors import MalformedResponse
from src.trello.models import (
    Attachment,
    Board,
    BoardTree,
    Card,
    Label,
    SearchResult,
    TrelloList,
)

NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]

# Fields requested from the service for each entity kind.
BOARD_FIELDS = "id,name,closed,url"
LIST_FIELDS = "id,name,idBoard,pos,closed"
CARD_FIELDS = "id,name,desc,idList,idBoard,pos,dateLastActivity,due,idLabels,closed,url"
LABEL_FIELDS = "id,name,color,idBoard"
ATTACHMENT_FIELDS = "id,name,url,bytes,mimeType"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class MemberPayload(_Payload):
    id: NonEmptyStr
    username: str


class BoardPayload(_Payload):
    id: NonEmptyStr
    name: str
    closed: bool = False
    url: str = ""


class ListPayload(_Payload):
    id: NonEmptyStr
    name: str
    idBoard: NonEmptyStr
    pos: float
    closed: bool = False


class CardPayload(_Payload):
    id: NonEmptyStr
    name: str
    desc: str
    idList: NonEmptyStr
    idBoard: NonEmptyStr
    pos: float
    dateLastActivity: NonEmptyStr
    due: datetime | None = None
    idLabels: list[str]
    closed: bool = False
    url: str = ""


class LabelPayload(_Payload):
    id: NonEmptyStr
    name: str
    color: str | None = None
    idBoard: NonEmptyStr


class AttachmentPayload(_Payload):
    id: NonEmptyStr
    name: str
    url: NonEmptyStr
    size: int | None = Field(default=None, alias="bytes")
    mimeType: str | None = None


class SearchPayload(_Payload):
    boards: list[BoardPayload] = []
    cards: list[CardPayload] = []


P = TypeVar("P", bound=_Payload)


def _validate(schema: type[P], data: Any, kind: str) -> P:
    if not isinstance(data, dict):
        raise MalformedResponse(f"Expected a JSON object for {kind}, got {type(data).__name__}")
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MalformedResponse(
            f"Malformed {kind} payload (problem fields: {fields})",
            hint="The Trello API returned an unexpected shape; try again or report it.",
        ) from e


def _validate_many(schema: type[P], data: Any, kind: str) -> list[P]:
    if not isinstance(data, list):
        raise MalformedResponse(f"Expected a JSON array of {kind}s, got {type(data).__name__}")
    return [_validate(schema, item, kind) for item in data]


def to_board(p: BoardPayload) -> Board:
    return Board(id=p.id, name=p.name, closed=p.closed, url=p.url)


def to_list(p: ListPayload) -> TrelloList:
    return TrelloList(id=p.id, name=p.name, board_id=p.idBoard, pos=p.pos, closed=p.closed)


def to_card(p: CardPayload) -> Card:
    return Card(
        id=p.id,
        name=p.name,
        desc=p.desc,
        list_id=p.idList,
        board_id=p.idBoard,
        pos=p.pos,
        version=p.dateLastActivity,
        due=p.due,
        label_ids=frozenset(p.idLabels),
        closed=p.closed,
        url=p.url,
    )


def to_label(p: LabelPayload) -> Label:
    return Label(id=p.id, name=p.name, color=p.color, board_id=p.idBoard)


def to_attachment(p: AttachmentPayload) -> Attachment:
    return Attachment(id=p.id, name=p.name, url=p.url, size=p.size, mime_type=p.mimeType or "")


def parse_member(data: Any) -> MemberPayload:
    """Parse a member payload (used to verify credentials)."""
    return _validate(MemberPayload, data, "member")


def parse_board(data: Any) -> Board:
    """Parse a single board payload."""
    return to_board(_validate(BoardPayload, data, "board"))


def parse_boards(data: Any) -> list[Board]:
    """Parse an array of board payloads."""
    return [to_board(p) for p in _validate_many(BoardPayload, data, "board")]


def parse_list(data: Any) -> TrelloList:
    """Parse a single list payload."""
    return to_list(_validate(ListPayload, data, "list"))


def parse_lists(data: Any) -> list[TrelloList]:
    """Parse an array of list payloads."""
    return [to_list(p) for p in _validate_many(ListPayload, data, "list")]


def parse_card(data: Any) -> Card:
    """Parse a single card payload."""
    return to_card(_validate(CardPayload, data, "card"))


def parse_cards(data: Any) -> list[Card]:
    """Parse an array of card payloads."""
    return [to_card(p) for p in _validate_many(CardPayload, data, "card")]


def parse_labels(data: Any) -> list[Label]:
    """Parse an array of label payloads."""
    return [to_label(p) for p in _validate_many(LabelPayload, data, "label")]


def parse_attachment(data: Any) -> Attachment:
    """Parse a single attachment payload."""
    return to_attachment(_validate(AttachmentPayload, data, "attachment"))


def parse_attachments(data: Any) -> list[Attachment]:
    """Parse an array of attachment payloads."""
    return [to_attachment(p) for p in _validate_many(AttachmentPayload, data, "attachment")]


def parse_search(data: Any) -> SearchResult:
    """Parse a search response with boards and cards."""
    payload = _validate(SearchPayload, data, "search result")
    return SearchResult(
        boards=tuple(to_board(b) for b in payload.boards),
        cards=tuple(to_card(c) for c in payload.cards),
    )


class BoardTreePayload(BoardPayload):
    lists: list[ListPayload]
    cards: list[CardPayload]
    labels: list[LabelPayload]


def parse_board_tree(data: Any) -> BoardTree:
    """Parse a board fetched together with its lists, cards and labels."""
    payload = _validate(BoardTreePayload, data, "board")
    return BoardTree(
        board=to_board(payload),
        lists=tuple(to_list(p) for p in payload.lists),
        cards=tuple(to_card(p) for p in payload.cards),
        labels=tuple(to_label(p) for p in payload.labels),
    )
