"""
JSON-file storage for saved and recent APIs.

Two files live under one directory (``~/.postalbro`` unless configured):
  - db.json      saved APIs, unbounded
  - recent.json  the last RECENT_LIMIT tested APIs, newest first

Both hold ``{"apis": [...], "createdAt": "..."}``.  Files are rewritten in
full on every change with no locking, so concurrent runs race and the last
writer wins.
"""

from __future__ import annotations

import json
import logging
import secrets
from pathlib import Path
from typing import Union

from pydantic import ValidationError as PydanticValidationError

from postalbro.config import DATA_DIR, ID_BYTES, RECENT_FILENAME, RECENT_LIMIT, SAVED_FILENAME
from postalbro.errors import StorageError
from postalbro.models.request_def import Collection, RequestDefinition, utc_now

log = logging.getLogger(__name__)


def generate_id() -> str:
    """Short random hex id.  Not checked against existing entries."""
    return secrets.token_hex(ID_BYTES)


class Store:
    """Load and save the two collections under *base_dir*."""

    generate_id = staticmethod(generate_id)

    def __init__(self, base_dir: Union[str, Path] = DATA_DIR) -> None:
        self.base_dir = Path(base_dir)
        self.saved_path = self.base_dir / SAVED_FILENAME
        self.recent_path = self.base_dir / RECENT_FILENAME

    def initialize(self) -> None:
        """Create the directory and files.  Safe to call on every run."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        if self.saved_path.exists() and self.recent_path.exists():
            return
        # Either file missing: start both from scratch
        empty = json.dumps(Collection().to_json(), indent=2)
        self.saved_path.write_text(empty, encoding="utf-8")
        self.recent_path.write_text(empty, encoding="utf-8")
        log.info("initialised storage in %s", self.base_dir)

    # ── Saved ─────────────────────────────────────────────────────────

    def load_saved(self) -> Collection:
        try:
            raw = json.loads(self.saved_path.read_text(encoding="utf-8"))
            collection = Collection.model_validate(raw)
        except (OSError, ValueError, PydanticValidationError) as exc:
            raise StorageError(f"Failed to read DB file: {exc}") from exc
        log.debug("loaded %d saved APIs from %s", len(collection.apis), self.saved_path)
        return collection

    def save_saved(self, collection: Collection) -> None:
        try:
            self._write(self.saved_path, collection)
        except OSError as exc:
            raise StorageError(f"Failed to save DB file: {exc}") from exc
        log.debug("wrote %d saved APIs", len(collection.apis))

    # ── Recent ────────────────────────────────────────────────────────

    def load_recent(self) -> Collection:
        """Recent history is disposable.

        A file that cannot be read or parsed loads as empty.  Single entries
        that fail validation are dropped and the rest are kept.
        """
        try:
            raw = json.loads(self.recent_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("recent history unreadable, treating as empty: %s", exc)
            return Collection()
        if not isinstance(raw, dict) or not isinstance(raw.get("apis", []), list):
            log.warning("recent history malformed, treating as empty")
            return Collection()

        apis = []
        for entry in raw.get("apis", []):
            try:
                apis.append(RequestDefinition.model_validate(entry))
            except PydanticValidationError as exc:
                log.warning("dropping unreadable recent entry: %s", exc)
        return Collection(apis=apis, created_at=str(raw.get("createdAt") or utc_now()))

    def save_recent(self, payload: Union[Collection, RequestDefinition]) -> Collection:
        """Write recent history.

        An empty Collection replaces the file as-is (wipe).  Anything else
        adds one entry: a RequestDefinition, or the first entry of a
        Collection.  The entry is prepended to what is on disk and the
        list is cut to RECENT_LIMIT.
        """
        if isinstance(payload, Collection) and not payload.apis:
            result = payload
        else:
            entry = payload.apis[0] if isinstance(payload, Collection) else payload
            current = self.load_recent().apis
            result = Collection(apis=[entry, *current][:RECENT_LIMIT], created_at=utc_now())

        try:
            self._write(self.recent_path, result)
        except OSError as exc:
            raise StorageError(f"Failed to save recent APIs: {exc}") from exc
        log.debug("wrote %d recent APIs", len(result.apis))
        return result

    @staticmethod
    def _write(path: Path, collection: Collection) -> None:
        path.write_text(json.dumps(collection.to_json(), indent=2), encoding="utf-8")
