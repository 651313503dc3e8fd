"""
Build and send one HTTP request from a stored API definition.

Body encoding is picked in this order:
  1. encoded    -> application/x-www-form-urlencoded body from ``data``
  2. multipart  -> multipart/form-data with file streams, then ``data`` fields
  3. otherwise  -> JSON body when ``data`` is non-empty

Error responses (4xx/5xx) are printed and returned like any other response.
No response at all raises TransportError.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from contextlib import ExitStack
from pathlib import Path
from typing import Optional

import httpx

from postalbro import output
from postalbro.config import FORM_CONTENT_TYPE, JSON_CONTENT_TYPE, REQUEST_TIMEOUT
from postalbro.errors import RequestBuildError, TransportError
from postalbro.models.request_def import RequestDefinition
from postalbro.parsing.object_parser import encode_query, form_value

log = logging.getLogger(__name__)

_TAG_RE = re.compile(r"</?[^>]+(>|$)")


def _has_header(headers: dict, name: str) -> bool:
    name = name.lower()
    return any(key.lower() == name for key in headers)


def _without_header(headers: dict, name: str) -> dict:
    name = name.lower()
    return {key: value for key, value in headers.items() if key.lower() != name}


def _mapping(value, field: str) -> dict:
    """Stored *field* as a dict.  Non-mapping values cannot be sent as fields."""
    if isinstance(value, Mapping):
        return dict(value)
    raise ValueError(f"stored {field} is not an object: {value!r}")


def _with_query(url: str, query: str) -> str:
    """Append an encoded query string, keeping any existing query and fragment."""
    base, hash_mark, fragment = url.partition("#")
    separator = "" if base.endswith(("?", "&")) else ("&" if "?" in base else "?")
    return f"{base}{separator}{query}{hash_mark}{fragment}"


# ── Request construction ─────────────────────────────────────────────────────


def build_request(api: RequestDefinition, stack: ExitStack) -> dict:
    """Return keyword arguments for ``httpx.AsyncClient.request``.

    File handles opened for multipart bodies are registered on *stack*;
    keep it open until the request has been sent.
    """
    if not api.method or not api.url:
        raise RequestBuildError("HTTP method and URL are required")

    headers = {str(key): form_value(value) for key, value in _mapping(api.header, "header").items()}
    url = api.url
    if api.query:
        # passed in the URL, not as params, so httpx keeps this encoding
        url = _with_query(url, encode_query(_mapping(api.query, "query")))
    kwargs: dict = {"method": api.method.upper(), "url": url}

    if api.encoded:
        if not _has_header(headers, "content-type"):
            headers["Content-Type"] = FORM_CONTENT_TYPE
        kwargs["content"] = encode_query(_mapping(api.data, "data"))

    elif api.multipart:
        parts = []
        for attachment in api.file:
            path = Path(attachment.file_path)
            if not path.exists():
                log.warning("skipping missing file %s", path)
                output.warn(f"File not found: {path}")
                continue
            handle = stack.enter_context(open(path, "rb"))
            parts.append((attachment.filename, (os.path.basename(path), handle)))
        for key, value in _mapping(api.data, "data").items():
            # filename None makes httpx send a plain form field
            parts.append((str(key), (None, form_value(value))))
        if parts:
            kwargs["files"] = parts
        # httpx supplies Content-Type with the multipart boundary
        headers = _without_header(headers, "content-type")

    elif api.data:
        if not _has_header(headers, "content-type"):
            headers["Content-Type"] = JSON_CONTENT_TYPE
        kwargs["content"] = json.dumps(api.data)

    kwargs["headers"] = headers
    return kwargs


# ── Response rendering ───────────────────────────────────────────────────────


def _response_body(resp: httpx.Response):
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _show_success(resp: httpx.Response, body) -> None:
    output.console.print(
        f"Status: {resp.status_code} {resp.reason_phrase}",
        style=output.status_style(resp.status_code),
        markup=False,
        highlight=False,
    )
    output.info("Response:")
    if isinstance(body, (dict, list)):
        output.success(json.dumps(body, indent=2, ensure_ascii=False) + "\n")
    else:
        output.success(f"{body}\n")

    cookies = resp.headers.get_list("set-cookie")
    if cookies:
        output.message("Cookie received:")
        output.info(cookies[0].split(";", 1)[0].strip() + "\n")


def _show_error(resp: httpx.Response, body) -> None:
    if isinstance(body, (dict, list)):
        msg = json.dumps(body, indent=2, ensure_ascii=False)
    else:
        msg = _TAG_RE.sub("", str(body)).strip()
    output.error(f"Response error: {resp.status_code} {resp.reason_phrase}")
    output.error(f"{msg}\n")


# ── Public API ───────────────────────────────────────────────────────────────


async def send_request(
    api: RequestDefinition,
    transport: Optional[httpx.AsyncBaseTransport] = None,
):
    """Send *api*, print the outcome and return the response body."""
    with ExitStack() as stack:
        try:
            kwargs = build_request(api, stack)
        except (OSError, TypeError, ValueError) as exc:
            raise RequestBuildError(f"Request setup error: {exc}") from exc

        log.debug("sending %s %s", kwargs["method"], kwargs["url"])
        try:
            async with httpx.AsyncClient(transport=transport, timeout=REQUEST_TIMEOUT) as client:
                resp = await client.request(**kwargs)
        except (httpx.UnsupportedProtocol, httpx.InvalidURL, TypeError, ValueError) as exc:
            raise RequestBuildError(f"Request setup error: {exc}") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"No response received from server: {exc}") from exc

    body = _response_body(resp)
    if resp.is_error:
        _show_error(resp, body)
    else:
        _show_success(resp, body)
    return body
