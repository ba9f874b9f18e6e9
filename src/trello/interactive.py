"""Interactive browse loop.

A single-threaded read -> dispatch -> render loop. :func:`parse_command`
is a pure function from an input line to a :class:`Command`; :func:`dispatch`
applies it to the session (at most one network round trip per input).
Recoverable errors are shown inline and the loop continues; ``AuthError``
ends the loop.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from src.trello.errors import AuthError, TroError
from src.trello.models import Card, Label
from src.trello.navigation import ViewKind
from src.trello.session import TroSession

logger = logging.getLogger(__name__)

PROMPT = "tro> "

HELP_TEXT = """\
[bold]Keys[/]
  [cyan]<number>[/]   open the numbered entry
  [cyan]<enter>[/]    open the entry under the cursor
  [cyan]j[/] / [cyan]k[/]      move the cursor down / up
  [cyan]b[/]          back to the previous view
  [cyan]/regex[/]     filter by name ([cyan]/(?i)regex[/] ignores case, [cyan]/[/] clears)
  [cyan]e[/]          edit the card description
  [cyan]n[/]          edit the card name
  [cyan]r[/]          reload from Trello
  [cyan]q[/]          quit"""


class CommandKind(Enum):
    SELECT = "select"
    MOVE = "move"
    BACK = "back"
    FILTER = "filter"
    EDIT = "edit"
    RELOAD = "reload"
    HELP = "help"
    QUIT = "quit"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    arg: int | str | None = None


SIMPLE_COMMANDS = {
    "j": Command(CommandKind.MOVE, 1),
    "k": Command(CommandKind.MOVE, -1),
    "b": Command(CommandKind.BACK),
    "e": Command(CommandKind.EDIT, "desc"),
    "n": Command(CommandKind.EDIT, "name"),
    "r": Command(CommandKind.RELOAD),
    "?": Command(CommandKind.HELP),
    "q": Command(CommandKind.QUIT),
}


def parse_command(line: str) -> Command:
    """Translate one line of input into a Command.

    Entries are numbered from 1 on screen; SELECT carries the 0-based index.
    """
    if line.startswith("/"):
        return Command(CommandKind.FILTER, line[1:].rstrip("\n"))

    text = line.strip()
    if not text:
        return Command(CommandKind.SELECT, None)
    if text.isdigit():
        return Command(CommandKind.SELECT, int(text) - 1)
    return SIMPLE_COMMANDS.get(text.lower(), Command(CommandKind.UNKNOWN, text))


def dispatch(session: TroSession, command: Command) -> str | None:
    """Apply a command to the session; returns a message to show, if any."""
    kind = command.kind
    if kind is CommandKind.SELECT:
        index = command.arg if isinstance(command.arg, int) else None
        session.select(index)
    elif kind is CommandKind.MOVE:
        session.move(int(command.arg or 0))
    elif kind is CommandKind.BACK:
        session.back()
    elif kind is CommandKind.FILTER:
        session.filter(str(command.arg or ""))
    elif kind is CommandKind.RELOAD:
        session.reload()
    elif kind is CommandKind.EDIT:
        outcome = session.edit_selected(str(command.arg))
        return outcome.message
    elif kind is CommandKind.UNKNOWN:
        return f"Unknown command '{command.arg}' (? for help)"
    return None


def run_loop(
    session: TroSession,
    console: Console,
    read_line: Callable[[str], str] | None = None,
) -> int:
    """Run the browse loop until the user quits or input ends.

    Returns:
        Exit code (0 on quit / end of input)

    Raises:
        AuthError: credentials were rejected; the session cannot continue
    """
    read = read_line or console.input
    session.open_board_list()
    render(console, session)

    while True:
        try:
            line = read(PROMPT)
        except EOFError:
            return 0

        command = parse_command(line)
        logger.debug("Command: %s", command)
        if command.kind is CommandKind.QUIT:
            return 0
        if command.kind is CommandKind.HELP:
            console.print(HELP_TEXT)
            continue

        message = None
        try:
            message = dispatch(session, command)
        except AuthError:
            raise
        except TroError as e:
            print_error(console, e)
        except (IndexError, ValueError) as e:
            console.print(f"[yellow]{escape(str(e))}[/]")

        render(console, session)
        if message:
            console.print(f"[green]{escape(message)}[/]")


def print_error(console: Console, error: TroError) -> None:
    """Print an error and its hint."""
    console.print(f"[red]Error:[/] {escape(str(error))}")
    if error.hint:
        console.print(f"[dim]{escape(error.hint)}[/]")


# Rendering


def label_names(card: Card, labels: tuple[Label, ...]) -> list[str]:
    by_id = {lbl.id: lbl for lbl in labels}
    return [by_id[i].display_name for i in sorted(card.label_ids) if i in by_id]


def render_card(console: Console, card: Card, labels: tuple[Label, ...] = ()) -> None:
    """Print a card with its description."""
    lines = []
    names = label_names(card, labels)
    if names:
        lines.append("[magenta]" + " ".join(escape(f"[{n}]") for n in names) + "[/]")
    if card.due:
        lines.append(f"[yellow]Due: {card.due:%Y-%m-%d %H:%M}[/]")
    if lines:
        lines.append("")
    lines.append(escape(card.desc) or "[dim](no description)[/]")
    if card.url:
        lines.extend(["", f"[dim]{card.url}[/]"])
    console.print(Panel("\n".join(lines), title=f"[bold]{escape(card.name)}[/]", expand=False))


def render(console: Console, session: TroSession) -> None:
    """Print the current view."""
    nav = session.navigation
    view = nav.current

    crumbs = " / ".join(["Boards", *nav.path])
    header = f"[bold blue]{escape(crumbs)}[/]"
    if view.pattern:
        header += f"  [dim]filter /{escape(view.pattern)}/[/]"
    console.print(header)

    if view.kind is ViewKind.CARD_DETAIL:
        card = view.source[0]
        render_card(console, card, session.cache.labels_of(card.board_id))
        return

    items = view.items
    if not len(items):
        console.print("[dim](nothing to show)[/]")
        return

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column(justify="right", style="dim")
    table.add_column()
    for i, entity in enumerate(items):
        marker = "[bold cyan]>[/]" if i == view.cursor else " "
        table.add_row(f"{marker} {i + 1}", escape(entity.display_name))
    console.print(table)
