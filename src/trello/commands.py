"""CLI command implementations.

Each function implements a tro subcommand and returns an exit code.
``TroError`` subclasses propagate to the entry point, which prints them.
"""

import logging
import os
import shlex
import subprocess
from collections.abc import Callable
from pathlib import Path

from pydantic import SecretStr
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from src.trello import config
from src.trello.client import TrelloClient
from src.trello.config import Credentials, load_credentials, save_credentials
from src.trello.editor import EditStatus
from src.trello.errors import ConfigError, TroError
from src.trello.find import find_label, resolve
from src.trello.interactive import run_loop
from src.trello.models import EntityKind, EntityRef
from src.trello.session import TroSession

logger = logging.getLogger(__name__)

console = Console()


def invoke_editor(path: Path) -> int:
    """Open ``path`` in $VISUAL / $EDITOR (default vi) and wait for it to exit."""
    editor = os.environ.get("VISUAL") or os.environ.get("EDITOR") or "vi"
    logger.debug("Using editor: %s", editor)
    return subprocess.run([*shlex.split(editor), str(path)]).returncode


def open_session(
    credentials: Credentials | None = None,
    invoke: Callable[[Path], int] = invoke_editor,
) -> TroSession:
    """Create a session from configured credentials."""
    client = TrelloClient(credentials or load_credentials())
    return TroSession(client, invoke)


def cmd_browse(session: TroSession | None = None) -> int:
    """Browse boards interactively."""
    with session or open_session() as s:
        return run_loop(s, console)


def cmd_show(
    board: str | None = None,
    list_name: str | None = None,
    card: str | None = None,
    *,
    label: str | None = None,
    ignore_case: bool = False,
    session: TroSession | None = None,
) -> int:
    """Show boards, a board, a list, or open a card in the editor.

    Args:
        board: Board name pattern
        list_name: List name pattern
        card: Card name pattern (opens the editor on its description)
        label: Only show cards carrying this label
        ignore_case: Match names case-insensitively
    """
    with session or open_session() as s:
        if board is None:
            console.print("[bold]Open Boards[/]")
            for b in s.cache.load_boards():
                console.print(f"  • {escape(b.name)}")
            return 0

        selection = resolve(s.cache, board, list_name, card, ignore_case)
        if selection.card is not None:
            outcome = s.editor.run(selection.card, "desc")
            _print_outcome(outcome)
            return 1 if outcome.status is EditStatus.CONFLICT else 0

        label_id = None
        if label is not None:
            label_id = find_label(s.cache.labels_of(selection.board.id), label, ignore_case).id

        lists = [selection.list] if selection.list else list(s.cache.children_of(selection.board.id))
        console.print(f"[bold blue]{escape(selection.board.name)}[/]")
        for lst in lists:
            table = Table(title=escape(lst.name), title_justify="left", show_header=False)
            table.add_column()
            table.add_column(style="magenta")
            labels = s.cache.labels_of(selection.board.id)
            for c in s.cache.children_of(lst.id):
                if label_id and label_id not in c.label_ids:
                    continue
                names = [lbl.display_name for lbl in labels if lbl.id in c.label_ids]
                table.add_row(escape(c.name), escape(", ".join(names)))
            console.print(table)
        return 0


def cmd_edit(
    board: str,
    list_name: str,
    card: str,
    *,
    field: str = "desc",
    ignore_case: bool = False,
    session: TroSession | None = None,
) -> int:
    """Edit a card field in the external editor."""
    with session or open_session() as s:
        selection = resolve(s.cache, board, list_name, card, ignore_case)
        outcome = s.editor.run(selection.card, field)
        _print_outcome(outcome)
        return 1 if outcome.status is EditStatus.CONFLICT else 0


def _print_outcome(outcome) -> None:
    if outcome.status is EditStatus.CONFLICT:
        console.print(f"[yellow]![/] {escape(outcome.message)}")
    else:
        console.print(f"[green]✓[/] {escape(outcome.message)}")


def cmd_create(
    board: str | None = None,
    list_name: str | None = None,
    *,
    name: str | None = None,
    ignore_case: bool = False,
    edit: bool = False,
    session: TroSession | None = None,
) -> int:
    """Create a board, a list on a board, or a card in a list."""
    with session or open_session() as s:
        selection = resolve(s.cache, board, list_name, None, ignore_case)

        if selection.list is not None:
            card_name = name or console.input("Card name: ")
            card = s.client.create_card(selection.list.id, card_name)
            console.print(f"[green]✓[/] Created card: {escape(card.name)}")
            console.print(f"[dim]id: {card.id}[/]")
            if edit:
                s.cache.refresh(card.board_id)
                _print_outcome(s.editor.run(s.cache.get(card.id), "desc"))
        elif selection.board is not None:
            list_title = name or console.input("List name: ")
            created = s.client.create_list(selection.board.id, list_title)
            console.print(f"[green]✓[/] Created list: {escape(created.name)}")
            console.print(f"[dim]id: {created.id}[/]")
        else:
            board_name = name or console.input("Board name: ")
            created_board = s.client.create_board(board_name)
            console.print(f"[green]✓[/] Created board: {escape(created_board.name)}")
            console.print(f"[dim]id: {created_board.id}[/]")
        return 0


def cmd_close(
    board: str,
    list_name: str | None = None,
    card: str | None = None,
    *,
    ignore_case: bool = False,
    session: TroSession | None = None,
) -> int:
    """Archive the deepest named entity."""
    with session or open_session() as s:
        selection = resolve(s.cache, board, list_name, card, ignore_case)
        target = selection.card or selection.list or selection.board
        s.client.archive(target.ref)
        s.cache.evict(target.id)
        console.print(f"[green]✓[/] Closed {target.ref.kind.value}: {escape(target.display_name)}")
        console.print(f"[dim]id: {target.id}[/]")
        return 0


def cmd_open(kind: str, entity_id: str, *, session: TroSession | None = None) -> int:
    """Reopen an archived board, list or card by id."""
    with session or open_session() as s:
        entity = s.client.reopen(EntityRef(EntityKind(kind), entity_id))
        console.print(f"[green]✓[/] Opened {kind}: {escape(entity.display_name)}")
        console.print(f"[dim]id: {entity.id}[/]")
        return 0


def cmd_search(query: str, *, partial: bool = False, session: TroSession | None = None) -> int:
    """Search cards and boards."""
    with session or open_session() as s:
        result = s.client.search(query, partial=partial)
        if result.empty:
            console.print("[dim]No matches[/]")
            return 0

        if result.cards:
            table = Table(title="Cards", title_justify="left")
            table.add_column("Name", style="green")
            table.add_column("Id", style="dim")
            table.add_column("State")
            for card in result.cards:
                table.add_row(escape(card.name), card.id, "[red]Closed[/]" if card.closed else "")
            console.print(table)

        if result.boards:
            table = Table(title="Boards", title_justify="left")
            table.add_column("Name", style="green")
            table.add_column("Id", style="dim")
            for b in result.boards:
                table.add_row(escape(b.name), b.id)
            console.print(table)
        return 0


def cmd_url(
    board: str,
    list_name: str | None = None,
    card: str | None = None,
    *,
    ignore_case: bool = False,
    session: TroSession | None = None,
) -> int:
    """Print the web URL of a card, or of the board (lists have no URL)."""
    with session or open_session() as s:
        selection = resolve(s.cache, board, list_name, card, ignore_case)
        url = selection.card.url if selection.card else selection.board.url
        console.print(url, highlight=False, soft_wrap=True)
        return 0


def cmd_label(
    board: str,
    list_name: str,
    card: str,
    label: str,
    *,
    delete: bool = False,
    ignore_case: bool = False,
    session: TroSession | None = None,
) -> int:
    """Apply a board label to a card, or remove it with delete=True."""
    with session or open_session() as s:
        selection = resolve(s.cache, board, list_name, card, ignore_case)
        found = find_label(s.cache.labels_of(selection.board.id), label, ignore_case)
        target = selection.card
        tag = escape(f"[{found.display_name}]")
        has_label = found.id in target.label_ids

        if delete:
            if not has_label:
                console.print(f"Label {tag} does not exist on '{escape(target.name)}'")
                return 0
            s.client.remove_label(target.id, found.id)
            console.print(f"[green]✓[/] Removed {tag} label from '{escape(target.name)}'")
        elif has_label:
            console.print(f"Label {tag} already exists on '{escape(target.name)}'")
        else:
            s.client.apply_label(target.id, found.id)
            console.print(f"[green]✓[/] Applied {tag} label to '{escape(target.name)}'")
        return 0


def cmd_attachments(
    board: str,
    list_name: str,
    card: str,
    *,
    ignore_case: bool = False,
    session: TroSession | None = None,
) -> int:
    """Print the URL of every attachment on a card."""
    with session or open_session() as s:
        selection = resolve(s.cache, board, list_name, card, ignore_case)
        attachments = s.client.list_attachments(selection.card.id)
        if not attachments:
            console.print(f"[dim]No attachments on '{escape(selection.card.name)}'[/]")
            return 0
        for attachment in attachments:
            console.print(attachment.url, highlight=False, soft_wrap=True)
        return 0


def cmd_attach(
    board: str,
    list_name: str,
    card: str,
    path: str | Path,
    *,
    ignore_case: bool = False,
    session: TroSession | None = None,
) -> int:
    """Upload a local file to a card."""
    path = Path(path).expanduser()
    if not path.is_file():
        raise TroError(f"No such file: {path}", hint="Give the path of a regular file to upload.")

    with session or open_session() as s:
        selection = resolve(s.cache, board, list_name, card, ignore_case)
        attachment = s.client.attach(selection.card.id, path)
        console.print(
            f"[green]✓[/] Attached '{escape(attachment.display_name)}' "
            f"to '{escape(selection.card.name)}'"
        )
        console.print(f"[dim]{escape(attachment.url)}[/]")
        return 0


def cmd_config(*, key: str | None = None, token: str | None = None) -> int:
    """Show the configuration, or verify and store a new key/token."""
    if key or token:
        if not (key and token):
            raise ConfigError("Provide both --key and --token")
        with TrelloClient() as client:
            username = client.authenticate(key, token)
        save_credentials(Credentials(api_key=key, token=SecretStr(token)))
        console.print(f"[green]✓[/] Authenticated as {escape(username)}")
        console.print(f"[dim]Saved to {config.CONFIG_FILE}[/]")
        return 0

    console.print("[bold]Configuration[/]")
    console.print(f"  File: {config.CONFIG_FILE}")
    try:
        credentials = load_credentials()
    except ConfigError as e:
        console.print("  [yellow]Credentials not configured[/]")
        console.print(f"  [dim]{escape(e.hint or '')}[/]")
        return 1
    console.print(f"  Host:  {credentials.host}")
    console.print(f"  Key:   {credentials.api_key}")
    console.print(f"  Token: {credentials.masked_token}")
    return 0

