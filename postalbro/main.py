"""
postalbro: test, manage and organise HTTP APIs from the terminal.

Workflow:
    1. Try an API:      postalbro test GET https://api.example.com/users
       Sends the request and keeps it in recent history (last 10).

    2. Save it:         postalbro save POST https://api.example.com/data -d '{"name":"John"}' -c users
       Stores the definition without sending it.

    3. Replay:          postalbro run --id 1a2b
                        postalbro run --category users

    4. Manage:          postalbro list --all | detail -c users | recent --all
                        postalbro search users | delete --id 1a2b

Data lives in ~/.postalbro (override with POSTALBRO_HOME).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from postalbro import __version__, output
from postalbro.commands.manage import delete_apis, list_apis, recent_apis, search_apis
from postalbro.commands.requests import run_apis, save_api, show_details, try_api
from postalbro.config import DATA_DIR
from postalbro.errors import NothingToDo, PostalbroError
from postalbro.storage.store import Store

log = logging.getLogger("postalbro")


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="[%(name)s] %(message)s",
        handlers=[logging.StreamHandler()],
    )


def _request_options(args) -> dict:
    return {
        "data": args.data,
        "header": args.header,
        "query": args.query,
        "category": args.category,
        "encoded": args.encoded,
        "multipart": args.multipart,
        "file": args.file or [],
    }


# ── Subcommands ───────────────────────────────────────────────────────────────


def cmd_test(args, store: Store):
    """Send a request and record it in recent history."""
    asyncio.run(try_api(store, args.method, args.url, _request_options(args)))


def cmd_save(args, store: Store):
    """Save a request definition without sending it."""
    save_api(store, args.method, args.url, _request_options(args))


def cmd_run(args, store: Store):
    """Replay a saved/recent API by id, or every distinct one in a category."""
    asyncio.run(run_apis(store, api_id=args.id, category=args.category))


def cmd_detail(args, store: Store):
    show_details(store, api_id=args.id, category=args.category)


def cmd_list(args, store: Store):
    list_apis(store, category=args.category, method=args.method, host=args.host, all_=args.all)


def cmd_delete(args, store: Store):
    delete_apis(
        store,
        api_id=args.id,
        category=args.category,
        all_=args.all,
        recent=args.recent,
        yes=args.yes,
    )


def cmd_recent(args, store: Store):
    recent_apis(store, category=args.category, all_=args.all)


def cmd_search(args, store: Store):
    search_apis(store, args.query)


# ── Argument parser ───────────────────────────────────────────────────────────


def _add_request_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("method", help="HTTP method (GET, POST, PUT, PATCH, DELETE, ...)")
    p.add_argument("url", help="Full request URL")
    p.add_argument(
        "--data", "-d", type=str, default="",
        help="Request body as JSON or {key:value} (default: none)",
    )
    p.add_argument(
        "--header", "-H", type=str, default="",
        help="Request headers as JSON or {key:value}",
    )
    p.add_argument(
        "--query", "-q", type=str, default="",
        help="Query parameters as JSON or {key:value}",
    )
    p.add_argument(
        "--category", "-c", type=str, default="",
        help="Category used to group related APIs",
    )
    p.add_argument("--encoded", "-e", action="store_true", help="Send data as x-www-form-urlencoded")
    p.add_argument("--multipart", "-m", action="store_true", help="Send data as multipart/form-data")
    p.add_argument(
        "--file", "-f", action="append", default=None, metavar="NAME:PATH",
        help="Attach a local file under form field NAME (repeatable, needs --multipart)",
    )


def _add_verbose(p: argparse.ArgumentParser, default=False) -> None:
    p.add_argument("--verbose", "-v", action="store_true", default=default, help="Debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="postalbro",
        description="Test, manage, and organize your APIs easily from the terminal.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  postalbro test GET http://api.example.com/users
  postalbro test POST http://localhost:2025/upload -m -f "avatar:./me.png" -d '{"name":"Nikesh"}'
  postalbro save POST http://localhost:2025/data -d '{"name":"Nikesh"}' -c users
  postalbro run --id 1a2b
  postalbro run --category users
  postalbro detail --category users
  postalbro list --all
  postalbro delete --category temp
  postalbro search users
""",
    )
    parser.add_argument("--version", "-V", action="version", version=f"%(prog)s {__version__}")
    _add_verbose(parser)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # -- test ------------------------------------------------------------------
    p_test = subparsers.add_parser("test", help="Send a request now (kept in recent history)")
    _add_request_options(p_test)
    _add_verbose(p_test, default=argparse.SUPPRESS)
    p_test.set_defaults(func=cmd_test)

    # -- save ------------------------------------------------------------------
    p_save = subparsers.add_parser("save", help="Save a request for later use")
    _add_request_options(p_save)
    _add_verbose(p_save, default=argparse.SUPPRESS)
    p_save.set_defaults(func=cmd_save)

    # -- run / detail ----------------------------------------------------------
    for name, func, help_text in (
        ("run", cmd_run, "Replay saved/recent APIs by id or category"),
        ("detail", cmd_detail, "Show stored APIs by id or category without sending"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("--id", "-i", type=str, default="", help="API id")
        p.add_argument("--category", "-c", type=str, default="", help="Every distinct API in this category")
        _add_verbose(p, default=argparse.SUPPRESS)
        p.set_defaults(func=func)

    # -- list ------------------------------------------------------------------
    p_list = subparsers.add_parser("list", help="List saved APIs")
    p_list.add_argument("--category", "-c", type=str, default="", help="Only this category")
    p_list.add_argument("--method", "-m", type=str, default="", help="Only this HTTP method")
    p_list.add_argument("--host", type=str, default="", help="Only this origin, e.g. https://api.example.com")
    p_list.add_argument("--all", "-a", action="store_true", help="List every saved API")
    _add_verbose(p_list, default=argparse.SUPPRESS)
    p_list.set_defaults(func=cmd_list)

    # -- delete ----------------------------------------------------------------
    p_delete = subparsers.add_parser("delete", help="Delete saved APIs or recent history")
    p_delete.add_argument("--id", "-i", type=str, default="", help="Delete one API by id")
    p_delete.add_argument("--category", "-c", type=str, default="", help="Delete every API in a category")
    p_delete.add_argument("--all", "-a", action="store_true", help="Delete every saved API")
    p_delete.add_argument("--recent", "-r", action="store_true", help="Clear recent history")
    p_delete.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation prompt")
    _add_verbose(p_delete, default=argparse.SUPPRESS)
    p_delete.set_defaults(func=cmd_delete)

    # -- recent ----------------------------------------------------------------
    p_recent = subparsers.add_parser("recent", help="Show recently tested APIs")
    p_recent.add_argument("--category", "-c", type=str, default="", help="Only this category")
    p_recent.add_argument("--all", "-a", action="store_true", help="Show every recent API")
    _add_verbose(p_recent, default=argparse.SUPPRESS)
    p_recent.set_defaults(func=cmd_recent)

    # -- search ----------------------------------------------------------------
    p_search = subparsers.add_parser("search", help="Fuzzy search APIs by url, method or category")
    p_search.add_argument("query", help="Search text")
    _add_verbose(p_search, default=argparse.SUPPRESS)
    p_search.set_defaults(func=cmd_search)

    return parser


def _print_welcome() -> None:
    output.message("POSTALBRO CLI")
    output.message("Test, manage, and organize your APIs easily from the terminal.\n")
    output.response("Quick Start:")
    output.info("  - Test an API:    postalbro test GET https://api.example.com")
    output.info("  - Save an API:    postalbro save POST https://api.example.com/data -d '{\"key\":\"value\"}'")
    output.info("  - List APIs:      postalbro list --all")
    output.info("  - Run saved API:  postalbro run --id 9804\n")
    output.info("Run 'postalbro --help' or 'postalbro <command> --help' for details.")


# ── Entry point ───────────────────────────────────────────────────────────────


def run(argv: Optional[list[str]] = None, store: Optional[Store] = None) -> int:
    """Parse *argv*, dispatch, and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if not args.command:
        _print_welcome()
        return 0

    store = store or Store(DATA_DIR)
    try:
        store.initialize()
        args.func(args, store)
    except NothingToDo as exc:
        output.warn(str(exc))
        return exc.exit_code
    except PostalbroError as exc:
        log.debug("command %s failed", args.command, exc_info=True)
        output.error(str(exc))
        return exc.exit_code
    except OSError as exc:
        output.error(f"Storage error: {exc}")
        return 1
    except KeyboardInterrupt:
        output.warn("Interrupted.")
        return 130
    return 0


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
