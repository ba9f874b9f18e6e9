"""Trello client core: API client, cache, navigation and editing.

Provides the pieces behind the tro CLI for browsing Trello boards and
editing cards through an external editor.
"""

from src.trello.cache import BoardCache, Snapshot
from src.trello.client import TrelloClient
from src.trello.config import Credentials, load_credentials
from src.trello.editor import EditHandle, EditOutcome, EditSession, EditStatus
from src.trello.errors import (
    ApiError,
    AuthError,
    Conflict,
    FilterError,
    MalformedResponse,
    NetworkError,
    NotFound,
    RateLimited,
    TroError,
)
from src.trello.models import Attachment, Board, Card, EntityKind, EntityRef, Label, TrelloList
from src.trello.navigation import NavigationController, View, ViewKind
from src.trello.retry import RetryPolicy
from src.trello.session import TroSession

__all__ = [
    "ApiError",
    "Attachment",
    "AuthError",
    "Board",
    "BoardCache",
    "Card",
    "Conflict",
    "Credentials",
    "EditHandle",
    "EditOutcome",
    "EditSession",
    "EditStatus",
    "EntityKind",
    "EntityRef",
    "FilterError",
    "Label",
    "MalformedResponse",
    "NavigationController",
    "NetworkError",
    "NotFound",
    "RateLimited",
    "RetryPolicy",
    "Snapshot",
    "TrelloClient",
    "TrelloList",
    "TroError",
    "TroSession",
    "View",
    "ViewKind",
    "load_credentials",
]
