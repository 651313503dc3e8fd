import json
from contextlib import ExitStack

import httpx
import pytest

from postalbro.errors import RequestBuildError, TransportError
from postalbro.models.request_def import FileAttachment, RequestDefinition
from postalbro.requester.executor import build_request, send_request


def _api(**fields):
    fields.setdefault("method", "post")
    fields.setdefault("url", "https://api.example.com/data")
    return RequestDefinition(id="0001", **fields)


# ── Request construction ─────────────────────────────────────────────────────


async def test_json_body(transport):
    api = _api(data={"name": "John", "age": 30}, header={"Content-Type": "application/json"})
    body = await send_request(api, transport=transport)

    sent = transport.requests[0]
    assert body == {"ok": True}
    assert sent.method == "POST"
    assert sent.headers["content-type"] == "application/json"
    assert json.loads(sent.content) == {"name": "John", "age": 30}


async def test_json_body_respects_custom_content_type(transport):
    api = _api(data={"a": 1}, header={"content-type": "application/vnd.api+json"})
    await send_request(api, transport=transport)
    assert transport.requests[0].headers["content-type"] == "application/vnd.api+json"


async def test_empty_data_sends_no_body(transport):
    await send_request(_api(method="get"), transport=transport)
    sent = transport.requests[0]
    assert sent.method == "GET"
    assert sent.content == b""


async def test_query_parameters_are_attached(transport):
    await send_request(_api(method="get", query={"page": 2, "q": "a b"}), transport=transport)
    url = transport.requests[0].url
    assert url.params["page"] == "2"
    assert url.params["q"] == "a b"


async def test_query_keeps_form_encoding_on_the_wire(transport):
    await send_request(_api(method="get", query={"q": "x~y*z"}), transport=transport)
    assert str(transport.requests[0].url) == "https://api.example.com/data?q=x%7Ey*z"


async def test_query_is_appended_to_existing_query(transport):
    await send_request(
        _api(method="get", url="https://api.example.com/data?a=1", query={"b": 2}),
        transport=transport,
    )
    assert transport.requests[0].url.params.multi_items() == [("a", "1"), ("b", "2")]


async def test_array_body_is_sent_as_json(transport):
    await send_request(_api(data=[1, 2]), transport=transport)
    sent = transport.requests[0]
    assert sent.headers["content-type"] == "application/json"
    assert json.loads(sent.content) == [1, 2]


async def test_array_body_cannot_be_form_encoded(transport):
    with pytest.raises(RequestBuildError, match="not an object"):
        await send_request(_api(encoded=True, data=[1, 2]), transport=transport)
    assert transport.requests == []


async def test_url_encoded_body(transport):
    api = _api(encoded=True, data={"user": "john", "id": 5})
    await send_request(api, transport=transport)

    sent = transport.requests[0]
    assert sent.headers["content-type"] == "application/x-www-form-urlencoded"
    assert sent.content == b"user=john&id=5"


async def test_multipart_body_with_files_and_fields(tmp_path, transport):
    upload = tmp_path / "avatar.txt"
    upload.write_bytes(b"file-bytes")
    api = _api(
        multipart=True,
        data={"name": "John", "age": 30},
        header={"Content-Type": "application/json", "X-Key": "k"},
        file=[FileAttachment(filename="avatar", file_path=str(upload))],
    )
    await send_request(api, transport=transport)

    sent = transport.requests[0]
    assert sent.headers["content-type"].startswith("multipart/form-data; boundary=")
    assert sent.headers["x-key"] == "k"
    assert b'name="avatar"; filename="avatar.txt"' in sent.content
    assert b"file-bytes" in sent.content
    assert b'name="name"' in sent.content
    assert b"John" in sent.content
    assert b'name="age"' in sent.content


async def test_multipart_skips_missing_file(tmp_path, transport, capsys):
    present = tmp_path / "a.txt"
    present.write_text("here")
    api = _api(
        multipart=True,
        file=[
            FileAttachment(filename="gone", file_path=str(tmp_path / "gone.txt")),
            FileAttachment(filename="a", file_path=str(present)),
        ],
    )
    await send_request(api, transport=transport)

    sent = transport.requests[0]
    assert b'name="gone"' not in sent.content
    assert b'name="a"' in sent.content
    assert "File not found" in capsys.readouterr().err


def test_build_request_requires_method_and_url():
    with ExitStack() as stack, pytest.raises(RequestBuildError):
        build_request(_api(url=""), stack)


# ── Response handling ────────────────────────────────────────────────────────


async def test_success_output_and_cookie(make_transport, capsys):
    def handler(request):
        return httpx.Response(
            201,
            json={"id": 7},
            headers=[("set-cookie", "sid=abc123; Path=/; HttpOnly"), ("set-cookie", "other=1")],
        )

    body = await send_request(_api(data={"a": 1}), transport=make_transport(handler))
    out = capsys.readouterr().out
    assert body == {"id": 7}
    assert "Status: 201 Created" in out
    assert '"id": 7' in out
    assert "sid=abc123" in out
    assert "other=1" not in out


async def test_plain_text_body_is_returned_raw(make_transport):
    transport = make_transport(lambda request: httpx.Response(200, text="pong"))
    assert await send_request(_api(method="get"), transport=transport) == "pong"


async def test_error_status_is_not_raised(make_transport, capsys):
    def handler(request):
        return httpx.Response(404, text="<html><body><h1>Not Found</h1></body></html>")

    body = await send_request(_api(method="get"), transport=make_transport(handler))
    err = capsys.readouterr().err
    assert body.startswith("<html>")
    assert "Response error: 404 Not Found" in err
    assert "Not Found" in err
    assert "<h1>" not in err


async def test_connection_failure_raises_transport_error(make_transport):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="No response received"):
        await send_request(_api(method="get"), transport=make_transport(handler))


async def test_unsupported_scheme_is_a_build_error():
    with pytest.raises(RequestBuildError):
        await send_request(_api(method="get", url="ftp://example.com/file"))
