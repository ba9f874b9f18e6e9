"""CLI entry point for tro, an interactive Trello client.

Usage:
    python -m src                              # Browse boards interactively
    python -m src show                         # List open boards
    python -m src show Sprint Doing            # Show a list
    python -m src show Sprint Doing "Fix login"  # Edit a card description
    python -m src config --key KEY --token TOK # Verify and store credentials

Or via the installed command:
    tro browse
    tro edit Sprint Doing "Fix login" --field name
    tro search "login" --partial
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from dotenv import load_dotenv
from rich.console import Console

from src._version import get_full_version_string
from src.trello import commands
from src.trello.errors import AuthError, TroError
from src.trello.interactive import print_error

console = Console(stderr=True)


def configure_logging() -> None:
    """Configure the root logger from LOG_LEVEL (default WARNING)."""
    level_name = os.environ.get("LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO; only show it when debugging
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def _add_path_args(parser: argparse.ArgumentParser, depth: int, required: int = 0) -> None:
    """Add board / list / card name arguments."""
    names = [
        ("board", "Board name (regex)"),
        ("list_name", "List name (regex)"),
        ("card", "Card name (regex)"),
    ]
    for i, (dest, help_text) in enumerate(names[:depth]):
        parser.add_argument(dest, nargs=None if i < required else "?", default=None, help=help_text)
    parser.add_argument(
        "--ignore-case",
        "-i",
        action="store_true",
        help="Match names case-insensitively",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tro",
        description="tro - browse and edit Trello boards from the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  tro                                    Browse boards interactively
  tro show Sprint                        Show all lists of the board 'Sprint...'
  tro show Sprint Doing --label bug      Show cards labelled 'bug' in 'Doing'
  tro edit Sprint Doing "Fix login"      Edit a card description in $EDITOR
  tro create Sprint Todo                 Create a card (prompts for a name)
  tro close Sprint Done "Old card"       Archive a card
  tro attach Sprint Doing login log.txt  Upload a file to a card

Configuration:
  Set TRELLO_API_KEY and TRELLO_TOKEN (a .env file works), or run
    tro config --key KEY --token TOKEN
  to store them in ~/.tro/config.toml. LOG_LEVEL=DEBUG shows debug logs and
  TRO_LOG_API=1 records API traffic to ~/.tro/api_logs/.
""",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="store_true",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("browse", help="Browse boards interactively (default)")

    show_parser = subparsers.add_parser("show", help="Show boards, lists and cards")
    _add_path_args(show_parser, 3)
    show_parser.add_argument("--label", "-l", default=None, help="Only show cards with this label")

    edit_parser = subparsers.add_parser("edit", help="Edit a card field in your editor")
    _add_path_args(edit_parser, 3, required=3)
    edit_parser.add_argument(
        "--field",
        "-f",
        choices=["desc", "name"],
        default="desc",
        help="Field to edit (default: desc)",
    )

    create_parser = subparsers.add_parser("create", help="Create a board, list or card")
    _add_path_args(create_parser, 2)
    create_parser.add_argument("--name", "-n", default=None, help="Name (prompted if omitted)")
    create_parser.add_argument(
        "--edit", "-e", action="store_true", help="Open a new card's description in the editor"
    )

    close_parser = subparsers.add_parser("close", help="Archive a board, list or card")
    _add_path_args(close_parser, 3, required=1)

    open_parser = subparsers.add_parser("open", help="Reopen an archived entity by id")
    open_parser.add_argument("type", choices=["board", "list", "card"], help="Entity type")
    open_parser.add_argument("id", help="Entity id")

    search_parser = subparsers.add_parser("search", help="Search cards and boards")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument(
        "--partial", "-p", action="store_true", help="Match partial words"
    )

    url_parser = subparsers.add_parser("url", help="Print the URL of a board or card")
    _add_path_args(url_parser, 3, required=1)

    label_parser = subparsers.add_parser("label", help="Apply or remove a card label")
    _add_path_args(label_parser, 3, required=3)
    label_parser.add_argument("label_name", help="Label name (regex)")
    label_parser.add_argument(
        "--delete", "-d", action="store_true", help="Remove the label instead"
    )

    attachments_parser = subparsers.add_parser(
        "attachments", help="List the attachment URLs of a card"
    )
    _add_path_args(attachments_parser, 3, required=3)

    attach_parser = subparsers.add_parser("attach", help="Upload a file to a card")
    _add_path_args(attach_parser, 3, required=3)
    attach_parser.add_argument("path", help="File to upload")

    config_parser = subparsers.add_parser("config", help="Show or set credentials")
    config_parser.add_argument("--key", default=None, help="Trello API key")
    config_parser.add_argument("--token", default=None, help="Trello API token")

    return parser


def run_command(args: argparse.Namespace) -> int:
    """Dispatch parsed arguments to the command implementation."""
    ignore_case = getattr(args, "ignore_case", False)

    if args.command in (None, "browse"):
        return commands.cmd_browse()
    if args.command == "show":
        return commands.cmd_show(
            args.board, args.list_name, args.card, label=args.label, ignore_case=ignore_case
        )
    if args.command == "edit":
        return commands.cmd_edit(
            args.board, args.list_name, args.card, field=args.field, ignore_case=ignore_case
        )
    if args.command == "create":
        return commands.cmd_create(
            args.board, args.list_name, name=args.name, edit=args.edit, ignore_case=ignore_case
        )
    if args.command == "close":
        return commands.cmd_close(args.board, args.list_name, args.card, ignore_case=ignore_case)
    if args.command == "open":
        return commands.cmd_open(args.type, args.id)
    if args.command == "search":
        return commands.cmd_search(args.query, partial=args.partial)
    if args.command == "url":
        return commands.cmd_url(args.board, args.list_name, args.card, ignore_case=ignore_case)
    if args.command == "label":
        return commands.cmd_label(
            args.board,
            args.list_name,
            args.card,
            args.label_name,
            delete=args.delete,
            ignore_case=ignore_case,
        )
    if args.command == "attachments":
        return commands.cmd_attachments(
            args.board, args.list_name, args.card, ignore_case=ignore_case
        )
    if args.command == "attach":
        return commands.cmd_attach(
            args.board, args.list_name, args.card, args.path, ignore_case=ignore_case
        )
    if args.command == "config":
        return commands.cmd_config(key=args.key, token=args.token)

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(get_full_version_string())
        return 0

    load_dotenv()
    configure_logging()

    try:
        return run_command(args)
    except AuthError as e:
        print_error(console, e)
        console.print("[red]Session ended.[/]")
        return 1
    except TroError as e:
        print_error(console, e)
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
