"""Commands that read or prune storage: list, delete, recent, search."""

from __future__ import annotations

import logging
from typing import Callable, Optional
from urllib.parse import urlsplit

from rapidfuzz import fuzz

from postalbro import output
from postalbro.config import SEARCH_KEYS, SEARCH_LIMIT, SEARCH_THRESHOLD
from postalbro.errors import NothingToDo, ValidationError
from postalbro.models.request_def import Collection, RequestDefinition
from postalbro.storage.store import Store

log = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def extract_origin(url: str) -> str:
    """``scheme://host[:port]`` of *url*, default ports dropped.

    Raises ValueError for URLs without a scheme or host.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"not an absolute URL: {url!r}")
    host = parts.hostname
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme):
        host = f"{host}:{port}"
    return f"{parts.scheme}://{host}"


def _ask_confirmation(count: int) -> bool:
    try:
        answer = output.console.input(f"Are you sure you want to delete {count} API(s)? (y/N): ")
    except EOFError:
        # stdin closed: treat as "no"
        output.info("")
        return False
    return answer.strip().lower() == "y"


# ── list ─────────────────────────────────────────────────────────────────────


def list_apis(
    store: Store,
    category: str = "",
    method: str = "",
    host: str = "",
    all_: bool = False,
) -> list[RequestDefinition]:
    """Saved APIs matching every given filter."""
    apis = store.load_saved().apis
    if not apis:
        raise NothingToDo("No saved APIs found.")
    if not (all_ or category or method or host):
        raise NothingToDo("No filter provided. Use --all to list everything.")

    if category:
        apis = [api for api in apis if api.category == category]
    if method:
        apis = [api for api in apis if api.method.lower() == method.lower()]
    if host:
        wanted = host.rstrip("/")
        matched = []
        for api in apis:
            try:
                origin = extract_origin(api.url)
            except ValueError:
                log.error("invalid URL found in saved APIs: %s", api.url)
                continue
            if origin == wanted:
                matched.append(api)
        apis = matched

    if not apis:
        raise NothingToDo("No matching saved APIs found.")

    output.print_api_table(apis, f"Saved APIs ({len(apis)})")
    return apis


# ── delete ───────────────────────────────────────────────────────────────────


def delete_apis(
    store: Store,
    api_id: str = "",
    category: str = "",
    all_: bool = False,
    recent: bool = False,
    yes: bool = False,
    confirm: Optional[Callable[[int], bool]] = None,
) -> int:
    """Delete saved APIs by id, category or all, or wipe recent history.

    Returns the number of deleted entries.
    """
    selected = sum(bool(flag) for flag in (api_id, category, all_, recent))
    if selected > 1:
        raise ValidationError("Options --id, --category, --all and --recent cannot be used together.")
    if selected == 0:
        raise NothingToDo("No filter provided. Use --all, --id, --category or --recent to delete.")

    confirm = confirm or _ask_confirmation

    if recent:
        history = store.load_recent()
        if not history.apis:
            raise NothingToDo("No recently called APIs found.")
        _show_selection(history.apis)
        if not yes and not confirm(len(history.apis)):
            raise NothingToDo("Aborted deletion.")
        store.save_recent(Collection(apis=[]))
        output.success(f"Deleted {len(history.apis)} recent API(s).")
        return len(history.apis)

    saved = store.load_saved()
    if not saved.apis:
        raise NothingToDo("No saved APIs found.")

    if all_:
        doomed = list(saved.apis)
    elif api_id:
        match = next((api for api in saved.apis if api.id == api_id), None)
        if match is None:
            raise NothingToDo(f"No API found with id: {api_id}")
        doomed = [match]
    else:
        doomed = [api for api in saved.apis if api.category == category]
        if not doomed:
            raise NothingToDo(f"No APIs found in category: {category}")

    _show_selection(doomed)
    if not yes and not confirm(len(doomed)):
        raise NothingToDo("Aborted deletion.")

    # identity, not equality: entries may share an id
    doomed_ids = {id(api) for api in doomed}
    saved.apis = [api for api in saved.apis if id(api) not in doomed_ids]
    store.save_saved(saved)

    output.success(f"Deleted {len(doomed)} API(s). Remaining: {len(saved.apis)}")
    return len(doomed)


def _show_selection(apis: list[RequestDefinition]) -> None:
    output.print_api_table(apis, "API(s) selected to be deleted")


# ── recent ───────────────────────────────────────────────────────────────────


def recent_apis(store: Store, category: str = "", all_: bool = False) -> list[RequestDefinition]:
    apis = store.load_recent().apis
    if not apis:
        raise NothingToDo("No recently called APIs found.")

    if all_:
        title = f"All recent APIs ({len(apis)})"
    elif category:
        apis = [api for api in apis if api.category == category]
        if not apis:
            raise NothingToDo(f"No recently called APIs found for category: {category}")
        title = f'All recent APIs of category "{category}" ({len(apis)})'
    else:
        raise NothingToDo("No filter provided. Use --all or --category to view recent APIs.")

    output.print_api_table(apis, title)
    return apis


# ── search ───────────────────────────────────────────────────────────────────


def _score(query: str, api: RequestDefinition) -> float:
    best = 0.0
    for key in SEARCH_KEYS:
        value = str(getattr(api, key, "") or "").lower()
        if value:
            best = max(best, fuzz.partial_ratio(query, value))
    return best


def search_apis(store: Store, query: str) -> list[RequestDefinition]:
    """Fuzzy match url, method and category across recent + saved.

    Results are ranked by best score and capped at SEARCH_LIMIT.
    """
    if not query or not isinstance(query, str) or not query.strip():
        raise ValidationError("Search query must be a non-empty string.")

    apis = [*store.load_recent().apis, *store.load_saved().apis]
    if not apis:
        raise NothingToDo("No APIs found in storage.")

    needle = query.strip().lower()
    min_score = (1 - SEARCH_THRESHOLD) * 100
    scored = [(score, api) for api in apis if (score := _score(needle, api)) >= min_score]
    # sorted() is stable, so equal scores keep storage order
    scored = sorted(scored, key=lambda pair: pair[0], reverse=True)[:SEARCH_LIMIT]

    if not scored:
        raise NothingToDo("No matches found for your query.")

    results = [api for _, api in scored]
    log.debug("search %r matched %d of %d APIs", query, len(results), len(apis))
    output.print_api_table(results, f"Search results ({len(results)})")
    return results
