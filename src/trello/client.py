"""Trello REST API client.

All calls go through :meth:`TrelloClient._request`, which authenticates with
the key/token query parameters, retries transient failures according to a
:class:`RetryPolicy`, maps HTTP failures onto the ``src.trello.errors``
hierarchy and decodes JSON. Payloads are validated by ``src.trello.schemas``.
"""

import logging
import mimetypes
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
from pydantic import SecretStr

from src.trello import schemas
from src.trello.api_logging import create_logging_client
from src.trello.config import DEFAULT_HOST, Credentials
from src.trello.errors import (
    ApiError,
    AuthError,
    Conflict,
    MalformedResponse,
    NetworkError,
    NotFound,
    RateLimited,
)
from src.trello.models import (
    Attachment,
    Board,
    BoardTree,
    Card,
    Entity,
    EntityKind,
    EntityRef,
    Label,
    SearchResult,
    TrelloList,
    sort_key,
)
from src.trello.retry import RetryPolicy, is_retryable_status, parse_retry_after

logger = logging.getLogger(__name__)

# Card fields that update_card accepts in a patch
PATCHABLE_CARD_FIELDS = frozenset({"name", "desc", "due", "closed", "idList", "pos"})


def require_id(value: str, what: str = "id") -> str:
    """Reject empty ids before any request is built."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{what} must be a non-empty string")
    return value


class TrelloClient:
    """Client for the Trello REST API."""

    API_VERSION = "1"

    def __init__(
        self,
        credentials: Credentials | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 30.0,
    ):
        """Initialize the client.

        Args:
            credentials: API key, token and host; may be supplied later via
                authenticate()
            retry_policy: Backoff policy for transient failures
            transport: httpx transport override (used by tests)
            sleep: Function used to wait between retries
            timeout: Per-request timeout in seconds
        """
        self.credentials = credentials
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._client = create_logging_client(
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "TrelloClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def host(self) -> str:
        return (self.credentials.host if self.credentials else DEFAULT_HOST).rstrip("/")

    # Transport

    def _auth_params(self) -> dict[str, str]:
        if self.credentials is None:
            raise AuthError(
                "No Trello credentials configured",
                hint="Set TRELLO_API_KEY and TRELLO_TOKEN or run 'tro config'.",
            )
        return {
            "key": self.credentials.api_key,
            "token": self.credentials.token.get_secret_value(),
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send a request with retries and return the decoded JSON body.

        Raises:
            AuthError: 401 or 403 from the service
            NotFound: 404 (or Trello's 400 "invalid id")
            Conflict: 409/412
            RateLimited: still 429 after the last attempt
            NetworkError: transport errors or 5xx after the last attempt
            ApiError: any other 4xx
            MalformedResponse: body is not JSON
        """
        url = f"{self.host}/{self.API_VERSION}{path}"
        query = {**self._auth_params(), **(params or {})}
        policy = self.retry_policy

        for attempt in range(1, policy.max_attempts + 1):
            started = time.monotonic()
            retry_after: float | None = None
            try:
                resp = self._client.request(
                    method, url, params=query, json=json, data=data, files=files
                )
            except httpx.TransportError as e:
                rate_limited = False
                reason = f"{type(e).__name__}: {e}"
            else:
                if resp.status_code < 400:
                    return self._decode(resp)
                if not is_retryable_status(resp.status_code):
                    raise self._error_for(resp, path)
                rate_limited = resp.status_code == 429
                retry_after = parse_retry_after(resp)
                reason = f"HTTP {resp.status_code}"

            elapsed = time.monotonic() - started
            if attempt == policy.max_attempts:
                break

            delay = policy.delay_for(attempt, retry_after)
            logger.warning(
                "%s %s failed (%s after %.2fs); retry %d/%d in %.1fs",
                method,
                path,
                reason,
                elapsed,
                attempt,
                policy.max_attempts - 1,
                delay,
            )
            self._sleep(delay)

        if rate_limited:
            raise RateLimited(
                f"Trello rate limit hit for {method} {path} after {policy.max_attempts} attempts",
                hint="Wait a little and try again.",
            )
        raise NetworkError(
            f"{method} {path} failed after {policy.max_attempts} attempts ({reason})",
            hint="Check your network connection.",
        )

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponse(f"Response from {resp.request.url.path} is not JSON") from e

    @staticmethod
    def _error_for(resp: httpx.Response, path: str) -> Exception:
        status = resp.status_code
        text = resp.text.strip()
        if status in (401, 403):
            return AuthError(
                f"Trello rejected the credentials: {text or 'unauthorized'}",
                hint="Check TRELLO_API_KEY / TRELLO_TOKEN; tokens can expire.",
            )
        if status == 404 or (status == 400 and "invalid id" in text.lower()):
            return NotFound(f"Not found: {path}", entity_id=path.rsplit("/", 1)[-1])
        if status in (409, 412):
            return Conflict(f"Trello refused the update of {path}: {text or status}")
        return ApiError(f"HTTP {status} for {path}: {text}", status_code=status)

    # Authentication

    def authenticate(self, key: str, token: str) -> str:
        """Use the given key/token and verify them.

        Returns:
            The username of the authenticated member

        Raises:
            AuthError: if the service rejects the credentials
        """
        require_id(key, "key")
        require_id(token, "token")
        self.credentials = Credentials(api_key=key, token=SecretStr(token), host=self.host)
        member = schemas.parse_member(
            self._request("GET", "/members/me", params={"fields": "id,username"})
        )
        logger.info("Authenticated as %s", member.username)
        return member.username

    # Boards

    def list_boards(self) -> list[Board]:
        """Get the open boards of the authenticated member."""
        data = self._request(
            "GET",
            "/members/me/boards",
            params={"filter": "open", "fields": schemas.BOARD_FIELDS},
        )
        return schemas.parse_boards(data)

    def get_board(self, board_id: str) -> Board:
        """Get a single board."""
        require_id(board_id, "board_id")
        data = self._request(
            "GET", f"/boards/{board_id}", params={"fields": schemas.BOARD_FIELDS}
        )
        return schemas.parse_board(data)

    def get_board_tree(self, board_id: str) -> BoardTree:
        """Get a board with its open lists, open cards and labels in one request."""
        require_id(board_id, "board_id")
        data = self._request(
            "GET",
            f"/boards/{board_id}",
            params={
                "fields": schemas.BOARD_FIELDS,
                "lists": "open",
                "list_fields": schemas.LIST_FIELDS,
                "cards": "open",
                "card_fields": schemas.CARD_FIELDS,
                "labels": "all",
                "label_fields": schemas.LABEL_FIELDS,
            },
        )
        return schemas.parse_board_tree(data)

    def create_board(self, name: str) -> Board:
        """Create a board with the service's default lists."""
        if not name:
            raise ValueError("name must be non-empty")
        return schemas.parse_board(self._request("POST", "/boards", json={"name": name}))

    # Lists

    def list_lists(self, board_id: str) -> list[TrelloList]:
        """Get the open lists of a board ordered by position."""
        require_id(board_id, "board_id")
        data = self._request(
            "GET",
            f"/boards/{board_id}/lists",
            params={"filter": "open", "fields": schemas.LIST_FIELDS},
        )
        return sorted(schemas.parse_lists(data), key=sort_key)

    def create_list(self, board_id: str, name: str) -> TrelloList:
        """Create a list at the bottom of a board."""
        require_id(board_id, "board_id")
        if not name:
            raise ValueError("name must be non-empty")
        data = self._request(
            "POST", "/lists", json={"idBoard": board_id, "name": name, "pos": "bottom"}
        )
        return schemas.parse_list(data)

    # Cards

    def list_cards(self, list_id: str) -> list[Card]:
        """Get the open cards of a list ordered by position."""
        require_id(list_id, "list_id")
        data = self._request(
            "GET",
            f"/lists/{list_id}/cards",
            params={"filter": "open", "fields": schemas.CARD_FIELDS},
        )
        return sorted(schemas.parse_cards(data), key=sort_key)

    def get_card(self, card_id: str) -> Card:
        """Get the current remote state of a card."""
        require_id(card_id, "card_id")
        data = self._request(
            "GET", f"/cards/{card_id}", params={"fields": schemas.CARD_FIELDS}
        )
        return schemas.parse_card(data)

    def update_card(
        self,
        card_id: str,
        patch: Mapping[str, Any],
        expected_version: str,
        *,
        check_version: bool = True,
    ) -> Card:
        """Conditionally update a card.

        The card is re-read first; if its version no longer matches
        ``expected_version`` nothing is written. Callers that have just
        re-read the card themselves pass ``check_version=False``.

        Args:
            card_id: Card to update
            patch: Only the changed fields (name, desc, due, closed, idList, pos)
            expected_version: Version marker the change was based on

        Returns:
            The updated card, carrying the new version marker

        Raises:
            Conflict: the remote version differs from expected_version
            ValueError: empty id, empty patch or unknown fields
        """
        require_id(card_id, "card_id")
        require_id(expected_version, "expected_version")
        if not patch:
            raise ValueError("patch must contain at least one changed field")
        unknown = set(patch) - PATCHABLE_CARD_FIELDS
        if unknown:
            raise ValueError(f"Unsupported card fields in patch: {', '.join(sorted(unknown))}")

        if check_version:
            current = self.get_card(card_id)
            if current.version != expected_version:
                raise Conflict(
                    f"Card '{current.name}' changed remotely "
                    f"(expected {expected_version}, found {current.version})"
                )

        body = {k: v.isoformat() if isinstance(v, datetime) else v for k, v in patch.items()}
        logger.debug("Updating card %s fields: %s", card_id, sorted(body))
        return schemas.parse_card(self._request("PUT", f"/cards/{card_id}", json=body))

    def create_card(
        self,
        list_id: str,
        name: str,
        desc: str = "",
        due: datetime | None = None,
        label_ids: Iterable[str] = (),
    ) -> Card:
        """Create a card at the bottom of a list."""
        require_id(list_id, "list_id")
        if not name:
            raise ValueError("name must be non-empty")
        body: dict[str, Any] = {"idList": list_id, "name": name, "desc": desc, "pos": "bottom"}
        if due is not None:
            body["due"] = due.isoformat()
        labels = list(label_ids)
        if labels:
            body["idLabels"] = ",".join(labels)
        return schemas.parse_card(self._request("POST", "/cards", json=body))

    # Labels

    def list_labels(self, board_id: str) -> list[Label]:
        """Get the labels defined on a board."""
        require_id(board_id, "board_id")
        data = self._request(
            "GET", f"/boards/{board_id}/labels", params={"fields": schemas.LABEL_FIELDS}
        )
        return schemas.parse_labels(data)

    def apply_label(self, card_id: str, label_id: str) -> None:
        """Attach a board label to a card."""
        require_id(card_id, "card_id")
        require_id(label_id, "label_id")
        self._request("POST", f"/cards/{card_id}/idLabels", params={"value": label_id})

    def remove_label(self, card_id: str, label_id: str) -> None:
        """Detach a label from a card."""
        require_id(card_id, "card_id")
        require_id(label_id, "label_id")
        self._request("DELETE", f"/cards/{card_id}/idLabels/{label_id}")

    # Attachments

    def list_attachments(self, card_id: str) -> list[Attachment]:
        """Get the files and links attached to a card."""
        require_id(card_id, "card_id")
        data = self._request(
            "GET",
            f"/cards/{card_id}/attachments",
            params={"fields": schemas.ATTACHMENT_FIELDS},
        )
        return schemas.parse_attachments(data)

    def attach(self, card_id: str, path: Path) -> Attachment:
        """Upload a local file to a card.

        The file is read up front so a retried request sends the same bytes.

        Raises:
            FileNotFoundError: path does not exist
        """
        require_id(card_id, "card_id")
        path = Path(path)
        content = path.read_bytes()
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        data = self._request(
            "POST",
            f"/cards/{card_id}/attachments",
            data={"name": path.name, "mimeType": mime_type},
            files={"file": (path.name, content, mime_type)},
        )
        attachment = schemas.parse_attachment(data)
        logger.info("Attached %s (%d bytes) to card %s", path.name, len(content), card_id)
        return attachment

    # Archiving

    def archive(self, ref: EntityRef) -> Entity:
        """Close (archive) a board, list or card."""
        return self._set_closed(ref, True)

    def reopen(self, ref: EntityRef) -> Entity:
        """Reopen an archived board, list or card."""
        return self._set_closed(ref, False)

    def _set_closed(self, ref: EntityRef, closed: bool) -> Entity:
        require_id(ref.id, f"{ref.kind.value} id")
        parsers = {
            EntityKind.BOARD: schemas.parse_board,
            EntityKind.LIST: schemas.parse_list,
            EntityKind.CARD: schemas.parse_card,
        }
        if ref.kind not in parsers:
            raise ValueError(f"Cannot archive a {ref.kind.value}")
        data = self._request("PUT", f"/{ref.kind.endpoint}/{ref.id}", json={"closed": closed})
        logger.info("%s %s %s", "Archived" if closed else "Reopened", ref.kind.value, ref.id)
        return parsers[ref.kind](data)

    # Search

    def search(self, query: str, partial: bool = False) -> SearchResult:
        """Search boards and cards of the member."""
        if not query:
            raise ValueError("query must be non-empty")
        data = self._request(
            "GET",
            "/search",
            params={
                "query": query,
                "modelTypes": "boards,cards",
                "partial": str(partial).lower(),
                "board_fields": schemas.BOARD_FIELDS,
                "card_fields": schemas.CARD_FIELDS,
            },
        )
        return schemas.parse_search(data)
