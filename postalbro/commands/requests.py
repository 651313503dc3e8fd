"""
Commands that create or replay requests: test, save, run, detail.

Handlers raise postalbro.errors exceptions; main() turns them into
messages and exit codes.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

import httpx

from postalbro import output
from postalbro.errors import (
    NothingToDo,
    RequestBuildError,
    TransportError,
    ValidationError,
)
from postalbro.models.request_def import RequestDefinition, RequestOptions
from postalbro.requester.executor import send_request
from postalbro.storage.store import Store
from postalbro.storage.unique import get_unique_apis, replay_options

log = logging.getLogger(__name__)


def _require_one(api_id: str, category: str, action: str) -> None:
    if api_id and category:
        raise ValidationError(f"Use either an API id (-i) or a category (-c) to {action}, not both.")
    if not api_id and not category:
        raise ValidationError(f"You must provide either an API id (-i) or a category (-c) to {action}.")


def _find_by_id(store: Store, api_id: str) -> RequestDefinition:
    recent = store.load_recent().apis
    saved = store.load_saved().apis
    if not recent and not saved:
        raise NothingToDo("No APIs found in storage.")
    for api in [*recent, *saved]:
        if api.id == api_id:
            return api
    raise NothingToDo(f"No API found with id: {api_id}")


def _unique_in_category(store: Store, category: str):
    recent = store.load_recent().apis
    saved = store.load_saved().apis
    if not recent and not saved:
        raise NothingToDo("No APIs found in storage.")
    apis = get_unique_apis(recent, saved, category)
    if not apis:
        raise NothingToDo(f"No APIs found for category: {category}")
    return apis


# ── save / test ──────────────────────────────────────────────────────────────


def save_api(
    store: Store,
    method: str,
    url: str,
    options: Union[dict, RequestOptions, None] = None,
    target: str = "saved",
) -> RequestDefinition:
    """Validate options, build a definition and store it in saved or recent."""
    opts = options if isinstance(options, RequestOptions) else RequestOptions.from_options(options)
    api = opts.build(method, url, store.generate_id())

    if target == "recent":
        store.save_recent(api)
        output.success(">> API saved in recents\n")
    else:
        saved = store.load_saved()
        saved.apis.insert(0, api)
        store.save_saved(saved)
        output.success(">> API saved successfully\n")

    log.debug("stored %s %s as %s in %s", api.method, api.url, api.id, target)
    return api


async def try_api(
    store: Store,
    method: str,
    url: str,
    options: Union[dict, RequestOptions, None] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
):
    """Record the request in recent history, then send it."""
    if not method or not isinstance(method, str):
        raise ValidationError("HTTP method is required and must be a string.")
    if not url or not isinstance(url, str):
        raise ValidationError("API URL is required and must be a string.")

    api = save_api(store, method, url, options, target="recent")
    output.response(f"\nTesting API: {api.method.upper()} {api.url}\n")
    return await send_request(api, transport=transport)


# ── run / detail ─────────────────────────────────────────────────────────────


async def run_apis(
    store: Store,
    api_id: str = "",
    category: str = "",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """Replay one API by id, or every distinct API in a category.

    Category runs are sequential and keep going after a failed request.
    Returns the number of requests sent.
    """
    _require_one(api_id, category, "run")

    if api_id:
        api = _find_by_id(store, api_id)
        output.info(f"Testing single API: {api.method.upper()} {api.url}")
        await try_api(store, api.method, api.url, replay_options(api), transport=transport)
        return 1

    apis = _unique_in_category(store, category)
    total = len(apis)
    output.info(f"Running {total} API(s) of category: {category}")

    failures = 0
    for count, api in enumerate(apis, start=1):
        output.info(f"{count}/{total} Testing API: {api.method.upper()} {api.url}")
        try:
            await try_api(store, api.method, api.url, api.created_options, transport=transport)
        except (TransportError, RequestBuildError, ValidationError) as exc:
            failures += 1
            log.debug("request %d/%d failed: %s", count, total, exc)
            output.error(str(exc))

    if failures:
        raise TransportError(f"{failures} of {total} API(s) in category {category!r} failed.")
    return total


def show_details(store: Store, api_id: str = "", category: str = "") -> list[dict]:
    """Print stored definitions without sending anything."""
    _require_one(api_id, category, "show details")

    if api_id:
        details = [_find_by_id(store, api_id).to_json()]
        output.info(f"\nDisplaying details of API with id: {api_id}\n")
    else:
        details = [
            {"id": api.id, "method": api.method, "url": api.url, **api.created_options}
            for api in _unique_in_category(store, category)
        ]
        output.info(f"\nDisplaying details of {len(details)} API(s) in category: {category}\n")

    output.print_details(details)
    return details
