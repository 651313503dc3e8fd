"""Deduplicate recent + saved APIs for run/detail by category."""

from __future__ import annotations

import json
import os
from typing import Iterable

from postalbro.models.request_def import RequestDefinition, UniqueApi


def _normalize_files(files: Iterable) -> list[dict]:
    """Normalize path separators and sort by field name so order doesn't matter."""
    normalized = []
    for f in files or []:
        if isinstance(f, dict):
            filename, path = f.get("filename", ""), f.get("filePath", "")
        else:
            filename, path = f.filename, f.file_path
        normalized.append({
            "filename": filename,
            "filePath": os.path.normpath(path.replace("\\", "/")) if path else "",
        })
    return sorted(normalized, key=lambda item: item["filename"])


def _canonical(value) -> str:
    return json.dumps(value or {}, default=str)


def _same_api(a: RequestDefinition, b: RequestDefinition) -> bool:
    return (
        a.method == b.method
        and a.url == b.url
        and _canonical(a.data) == _canonical(b.data)
        and _canonical(a.query) == _canonical(b.query)
        and _canonical(a.header) == _canonical(b.header)
        and _normalize_files(a.file) == _normalize_files(b.file)
    )


def replay_options(api: RequestDefinition) -> dict:
    """Options that rebuild *api* exactly when passed back through test."""
    return {
        "data": api.data or {},
        "query": api.query or {},
        "header": api.header or {},
        "file": [f.model_dump(by_alias=True) for f in api.file],
        "multipart": api.multipart or False,
        "encoded": api.encoded or False,
        "category": api.category or "",
    }


def get_unique_apis(
    recent_apis: list[RequestDefinition],
    saved_apis: list[RequestDefinition],
    category: str = "",
) -> list[UniqueApi]:
    """Distinct APIs across recent then saved, first occurrence wins.

    Two APIs are the same when method, url, data, query, header and the
    file set all match.  *category*, when given, must match exactly.
    """
    if not isinstance(recent_apis, list) or not isinstance(saved_apis, list):
        raise TypeError("recent_apis and saved_apis must be lists.")

    accepted: list[RequestDefinition] = []
    unique: list[UniqueApi] = []

    for api in [*recent_apis, *saved_apis]:
        if category and api.category != category:
            continue
        if not api.method or not api.url:
            continue
        if any(_same_api(seen, api) for seen in accepted):
            continue
        accepted.append(api)
        unique.append(UniqueApi(
            id=api.id,
            method=api.method,
            url=api.url,
            created_options=replay_options(api),
        ))

    return unique
