"""
Centralised configuration: all tunables in one place.
Override via environment variables where noted.
"""

import os
from pathlib import Path

# ── Storage ────────────────────────────────────────────────────────
DATA_DIR = Path(os.getenv("POSTALBRO_HOME", str(Path.home() / ".postalbro")))
SAVED_FILENAME = "db.json"
RECENT_FILENAME = "recent.json"

RECENT_LIMIT = 10              # entries kept in recent.json, newest first
ID_BYTES = 2                   # random bytes per API id (4 hex chars)

# ── Requests ───────────────────────────────────────────────────────
REQUEST_TIMEOUT = None         # no timeout, a hung server hangs the command
FILE_METHODS = ("post", "put", "patch")

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# ── Search ─────────────────────────────────────────────────────────
SEARCH_THRESHOLD = float(os.getenv("POSTALBRO_SEARCH_THRESHOLD", "0.35"))  # 0 = exact only
SEARCH_LIMIT = 10
SEARCH_KEYS = ("url", "method", "category")
