import json
import re

import pytest

from postalbro.errors import StorageError
from postalbro.models.request_def import Collection, RequestOptions
from postalbro.storage.store import Store, generate_id


def _api(store, url="https://api.example.com/users", **options):
    return RequestOptions.from_options(options).build("get", url, store.generate_id())


# ── initialize ───────────────────────────────────────────────────────────────


def test_initialize_creates_both_files(tmp_path):
    store = Store(tmp_path / "data")
    store.initialize()
    for path in (store.saved_path, store.recent_path):
        payload = json.loads(path.read_text())
        assert payload["apis"] == []
        assert payload["createdAt"]


def test_initialize_is_idempotent(store):
    saved = store.load_saved()
    saved.apis.append(_api(store))
    store.save_saved(saved)

    store.initialize()
    assert len(store.load_saved().apis) == 1


def test_initialize_resets_both_when_one_is_missing(store):
    saved = store.load_saved()
    saved.apis.append(_api(store))
    store.save_saved(saved)
    store.recent_path.unlink()

    store.initialize()
    assert store.load_saved().apis == []
    assert store.recent_path.exists()


# ── saved ────────────────────────────────────────────────────────────────────


def test_saved_round_trip(store, tmp_path):
    upload = tmp_path / "a.txt"
    upload.write_text("hello")
    api = RequestOptions.from_options({
        "data": '{"name": "John"}',
        "header": "{X-Key: 1}",
        "query": "{page: 2}",
        "category": "users",
        "multipart": True,
        "file": [f"doc:{upload}"],
    }).build("POST", "https://api.example.com/data", "beef")

    saved = store.load_saved()
    saved.apis.insert(0, api)
    store.save_saved(saved)

    loaded = store.load_saved().apis[0]
    for field in ("method", "url", "data", "header", "query", "category", "file"):
        assert getattr(loaded, field) == getattr(api, field)


def test_saved_file_is_pretty_printed(store):
    store.save_saved(Collection(apis=[_api(store)]))
    assert store.saved_path.read_text().startswith("{\n  ")


def test_load_saved_raises_on_corrupt_file(store):
    store.saved_path.write_text("{not json")
    with pytest.raises(StorageError, match="Failed to read DB file"):
        store.load_saved()


def test_load_saved_raises_when_missing(tmp_path):
    with pytest.raises(StorageError):
        Store(tmp_path / "nowhere").load_saved()


def test_extra_keys_survive_round_trip(store):
    raw = {"apis": [{"id": "1", "method": "get", "url": "https://x.io", "note": "keep"}], "createdAt": "t"}
    store.saved_path.write_text(json.dumps(raw))
    store.save_saved(store.load_saved())
    assert json.loads(store.saved_path.read_text())["apis"][0]["note"] == "keep"


def test_load_saved_keeps_entries_with_array_data(store):
    raw = {
        "apis": [
            {"id": "a1", "method": "post", "url": "https://x.io/items", "data": [1, 2]},
            {"id": "b2", "method": "get", "url": "https://x.io/users", "data": {}},
        ],
        "createdAt": "t",
    }
    store.saved_path.write_text(json.dumps(raw))

    apis = store.load_saved().apis
    assert [api.id for api in apis] == ["a1", "b2"]
    assert apis[0].data == [1, 2]

    store.save_saved(store.load_saved())
    assert json.loads(store.saved_path.read_text())["apis"][0]["data"] == [1, 2]


# ── recent ───────────────────────────────────────────────────────────────────


def test_load_recent_degrades_to_empty(store):
    store.recent_path.write_text("garbage")
    assert store.load_recent().apis == []


def test_recent_is_capped_and_newest_first(store):
    urls = [f"https://api.example.com/{n}" for n in range(15)]
    for url in urls:
        store.save_recent(_api(store, url=url))
        assert store.load_recent().apis[0].url == url

    apis = store.load_recent().apis
    assert len(apis) == 10
    assert [a.url for a in apis] == list(reversed(urls))[:10]


def test_save_recent_with_collection_appends_first_entry(store):
    store.save_recent(_api(store, url="https://a.io"))
    store.save_recent(Collection(apis=[_api(store, url="https://b.io"), _api(store, url="https://c.io")]))
    assert [a.url for a in store.load_recent().apis] == ["https://b.io", "https://a.io"]


def test_save_recent_with_empty_collection_wipes(store):
    store.save_recent(_api(store))
    store.save_recent(Collection(apis=[]))
    assert store.load_recent().apis == []


def test_save_recent_recovers_from_corrupt_file(store):
    store.recent_path.write_text("[[[")
    store.save_recent(_api(store))
    assert len(store.load_recent().apis) == 1


def _raw_recent(n, index=None, **fields):
    entries = [{"id": f"{i:04x}", "method": "get", "url": f"https://x.io/{i}"} for i in range(n)]
    if index is not None:
        entries[index].update(fields)
    return {"apis": entries, "createdAt": "t"}


def test_save_recent_keeps_entries_with_odd_data(store):
    store.recent_path.write_text(json.dumps(_raw_recent(6, index=2, data="oops")))
    store.save_recent(_api(store, url="https://x.io/new"))

    apis = store.load_recent().apis
    assert len(apis) == 7
    assert apis[0].url == "https://x.io/new"
    assert apis[3].data == "oops"


def test_load_recent_drops_only_invalid_entries(store):
    store.recent_path.write_text(json.dumps(_raw_recent(4, index=1, file=5)))
    assert [a.url for a in store.load_recent().apis] == ["https://x.io/0", "https://x.io/2", "https://x.io/3"]

    store.save_recent(_api(store, url="https://x.io/new"))
    assert len(store.load_recent().apis) == 4


# ── ids ──────────────────────────────────────────────────────────────────────


def test_generate_id_is_short_hex():
    for _ in range(20):
        assert re.fullmatch(r"[0-9a-f]{4}", generate_id())
    assert re.fullmatch(r"[0-9a-f]{4}", Store.generate_id())
