"""
Terminal output helpers (rich).

Message styles: info plain, success green, response magenta, warn yellow,
error red, message blue.  Warnings and errors go to stderr.
"""

from __future__ import annotations

import json

from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def _emit(target: Console, msg: str, style: str | None = None) -> None:
    target.print(msg, style=style, markup=False, highlight=False, soft_wrap=True)


def info(msg: str) -> None:
    _emit(console, msg)


def success(msg: str) -> None:
    _emit(console, msg, "green")


def response(msg: str) -> None:
    _emit(console, msg, "bright_magenta")


def message(msg: str) -> None:
    _emit(console, msg, "bright_blue")


def warn(msg: str) -> None:
    _emit(err_console, msg, "yellow")


def error(msg: str) -> None:
    _emit(err_console, msg, "red")


def status_style(code: int) -> str:
    if 200 <= code < 300:
        return "green"
    if 300 <= code < 400:
        return "yellow"
    if code >= 400:
        return "red"
    return "white"


# ── Tables & details ─────────────────────────────────────────────────────────


def print_api_table(apis, title: str) -> None:
    """ID / Method / URL / Category table for list, recent and search."""
    table = Table(title=title, title_style="bright_magenta", title_justify="left")
    table.add_column("ID", style="bold")
    table.add_column("Method")
    table.add_column("URL", overflow="fold")
    table.add_column("Category")
    for api in apis:
        table.add_row(api.id, api.method.upper(), api.url, api.category or "")
    console.print(table)


def _pretty(value) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def print_details(apis: list[dict]) -> None:
    """Print id, method, url, query, headers, data and files per API."""
    total = len(apis)
    for count, api in enumerate(apis, start=1):
        info(f"API {count}/{total}")
        info(f"   > ID       : {api.get('id', '')}")
        info(f"   > Method   : {api['method'].upper()}")
        info(f"   > URL      : {api['url']}")
        if api.get("query"):
            info(f"   > Query Params: {_pretty(api['query'])}")
        if api.get("header"):
            info(f"   > Headers: {_pretty(api['header'])}")
        if api.get("data"):
            info(f"   > Data: {_pretty(api['data'])}")
        if api.get("file"):
            info("   > Files:")
            for idx, f in enumerate(api["file"], start=1):
                info(f"      - File {idx}")
                info(f"        Filename : {f['filename']}")
                info(f"        Path     : {f['filePath']}")
        info("-" * 72 + "\n")
