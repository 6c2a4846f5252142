import json
import threading

import pytest
import requests

from manifest_utils.errors import FetchCancelled, FetchFailed, ManifestNotFound
from manifest_utils.fetch_utils import (
    WELL_KNOWN_MANIFEST_FILENAMES,
    ManifestFetcher,
    UnparsedContent,
    auto_parse,
    fetch_manifest,
    resolve_manifest,
)
from manifest_utils.processor_utils import NormalizedManifest

from conftest import make_response

MANIFEST = json.dumps({"name": "Demo", "start_url": "/", "icons": [{"src": "icon.png", "sizes": "192x192"}]})


# ── classification ──────────────────────────────────────────────────


def test_auto_parse_json_text():
    parsed = auto_parse('{"name": "x"}', doc_url="https://ex.com/")
    assert parsed.is_manifest
    assert parsed.json == {"name": "x"}
    assert parsed.doc_url == "https://ex.com/"


def test_auto_parse_object():
    parsed = auto_parse({"name": "x"})
    assert parsed.is_manifest
    assert parsed.text == '{"name": "x"}'


@pytest.mark.parametrize("body", ["<!DOCTYPE html><p>x", "<html><BODY>hi</BODY></html>"])
def test_auto_parse_html_markers(body):
    parsed = auto_parse(body, doc_url="https://ex.com/")
    assert parsed.is_document
    assert parsed.doc_url == "https://ex.com/"


def test_auto_parse_html_by_content_type():
    resp = make_response("https://ex.com/page", "<p>fragment</p>", content_type="text/html; charset=utf-8")
    parsed = auto_parse(resp.text, resp)
    assert parsed.is_document
    assert parsed.doc_url == "https://ex.com/page"


def test_auto_parse_json_array_is_not_a_manifest():
    parsed = auto_parse("[1, 2, 3]")
    assert not parsed.is_manifest
    assert not parsed.is_document


def test_plain_text_is_unparsed():
    result = fetch_manifest("just some words", "https://ex.com/")
    assert isinstance(result, UnparsedContent)
    d = result.to_dict()
    assert d["processed_valid_manifest"] is False
    assert d["processed_raw_manifest"] == "just some words"
    assert d["processed_document_url"] == "https://ex.com/"


# ── raw content ─────────────────────────────────────────────────────


def test_raw_json_content():
    m = resolve_manifest(MANIFEST, "https://ex.com/")
    assert isinstance(m, NormalizedManifest)
    assert m["name"] == "Demo"
    assert m["processed_valid_manifest"] is True


def test_raw_html_with_title_only_is_synthesized():
    m = resolve_manifest("<!doctype html><html><head><title>Foo</title></head><body></body></html>", "https://ex.com/")
    d = m.to_dict()
    assert d["name"] == "Foo"
    assert d["icons"] == []
    assert d["processed_valid_manifest"] is False
    assert d["processed_manifest_url"] is None
    assert d["processed_final_manifest_url"] is None
    assert d["start_url"] == "https://ex.com/"
    assert "<title>Foo</title>" in d["processed_raw_document_html"]


# ── remote fetches ──────────────────────────────────────────────────


def test_remote_json_manifest(web):
    web.add_json("https://ex.com/m.json", MANIFEST)
    m = resolve_manifest("https://ex.com/m.json")
    assert m["icons"][0]["src"] == "https://ex.com/icon.png"
    assert m["start_url"] == "https://ex.com/"
    assert m["processed_manifest_url"] == "https://ex.com/m.json"


def test_redirected_manifest_resolves_against_final_url(web):
    web.redirect("https://ex.com/m.json", "https://static.ex.com/app/m.json")
    web.add_json("https://static.ex.com/app/m.json", MANIFEST)
    m = resolve_manifest("https://ex.com/m.json")
    assert m["icons"][0]["src"] == "https://static.ex.com/app/icon.png"
    assert m["processed_manifest_url"] == "https://ex.com/m.json"
    assert m["processed_final_manifest_url"] == "https://static.ex.com/app/m.json"


def test_https_404_retries_over_http(web):
    web.add_json("http://ex.com/x", MANIFEST)
    m = resolve_manifest("https://ex.com/x")
    assert web.calls == ["https://ex.com/x", "http://ex.com/x"]
    assert m["processed_manifest_url"] == "http://ex.com/x"
    assert m["name"] == "Demo"


def test_http_retry_happens_once(web):
    with pytest.raises(FetchFailed) as exc:
        resolve_manifest("https://ex.com/x")
    assert exc.value.status_code == 404
    assert web.calls == ["https://ex.com/x", "http://ex.com/x"]


def test_other_errors_are_not_retried(web):
    web.add("https://ex.com/x", "boom", status=500)
    with pytest.raises(FetchFailed) as exc:
        resolve_manifest("https://ex.com/x")
    assert exc.value.status_code == 500
    assert str(exc.value) == "500"
    assert web.calls == ["https://ex.com/x"]


def test_http_404_is_not_retried(web):
    with pytest.raises(FetchFailed):
        resolve_manifest("http://ex.com/x")
    assert web.calls == ["http://ex.com/x"]


def test_transport_errors_become_fetch_failed(web):
    web.fail("https://ex.com/x", requests.ConnectionError("connection refused"))
    with pytest.raises(FetchFailed) as exc:
        resolve_manifest("https://ex.com/x")
    assert exc.value.status_code is None
    assert "connection refused" in str(exc.value)


def test_last_manifest_link_wins(web):
    web.add(
        "https://ex.com/",
        """<!doctype html><html><head>
        <link rel="manifest" href="/first.json">
        <link rel="manifest" href="/second.json">
        </head><body></body></html>""",
    )
    web.add_json("https://ex.com/first.json", json.dumps({"name": "First"}))
    web.add_json("https://ex.com/second.json", json.dumps({"name": "Second"}))
    m = resolve_manifest("https://ex.com/")
    assert m["name"] == "Second"
    assert "https://ex.com/first.json" not in web.calls
    assert m["processed_document_url"] == "https://ex.com/"
    assert m["processed_manifest_url"] == "https://ex.com/second.json"


def test_document_without_manifest_link_is_synthesized(web):
    web.add("https://ex.com/", "<!doctype html><title>Foo</title><link rel=icon href=/f.ico>")
    m = resolve_manifest("https://ex.com/")
    assert m["name"] == "Foo"
    assert m["processed_valid_manifest"] is False
    assert m.best_favicon["src"] == "https://ex.com/f.ico"


def test_manifest_link_404_is_surfaced(web):
    web.add("https://ex.com/", '<!doctype html><link rel="manifest" href="/gone.json">')
    with pytest.raises(FetchFailed) as exc:
        resolve_manifest("https://ex.com/")
    assert exc.value.url == "https://ex.com/gone.json"
    assert "http://ex.com/" not in web.calls


def test_manifest_link_loop_gives_up(web):
    web.add("https://ex.com/a", '<!doctype html><link rel="manifest" href="/b">')
    web.add("https://ex.com/b", '<!doctype html><link rel="manifest" href="/a">')
    with pytest.raises(ManifestNotFound):
        resolve_manifest("https://ex.com/a")


# ── well-known filenames ────────────────────────────────────────────


def test_well_known_filenames_order():
    assert WELL_KNOWN_MANIFEST_FILENAMES[:2] == ("manifest.webmanifest", "manifest.json")
    assert len(WELL_KNOWN_MANIFEST_FILENAMES) == 8


def test_guessing_stops_at_first_hit(web):
    web.add("https://ex.com/app/page", "<!doctype html><title>Foo</title>")
    web.add("https://ex.com/manifest.webmanifest", "<!doctype html><p>soft 404</p>")
    web.add_json("https://ex.com/manifest.webapp", json.dumps({"name": "Guessed"}))
    web.add_json("https://ex.com/webapp.json", json.dumps({"name": "Too late"}))
    m = resolve_manifest("https://ex.com/app/page", guess=True)
    assert m["name"] == "Guessed"
    assert m["processed_manifest_url"] == "https://ex.com/manifest.webapp"
    assert web.calls == [
        "https://ex.com/app/page",
        "https://ex.com/manifest.webmanifest",
        "https://ex.com/manifest.json",
        "https://ex.com/manifest.webappmanifest",
        "https://ex.com/manifest.webapp",
    ]


def test_guessing_exhausted(web):
    web.add("https://ex.com/", "<!doctype html><title>Foo</title>")
    with pytest.raises(ManifestNotFound):
        resolve_manifest("https://ex.com/", guess=True)
    assert len(web.calls) == 1 + len(WELL_KNOWN_MANIFEST_FILENAMES)


def test_declared_link_beats_guessing(web):
    web.add("https://ex.com/", '<!doctype html><link rel="manifest" href="m.json">')
    web.add_json("https://ex.com/m.json", json.dumps({"name": "Declared"}))
    m = resolve_manifest("https://ex.com/", guess=True)
    assert m["name"] == "Declared"


# ── cancellation and timeouts ───────────────────────────────────────


def test_timeout_is_passed_to_every_fetch(web):
    web.add("https://ex.com/", "<!doctype html><title>Foo</title>")
    with pytest.raises(ManifestNotFound):
        resolve_manifest("https://ex.com/", guess=True, timeout=2.5)
    assert set(web.timeouts) == {2.5}


def test_cancelled_before_start(web):
    event = threading.Event()
    event.set()
    with pytest.raises(FetchCancelled):
        resolve_manifest("https://ex.com/", cancel_event=event)
    assert web.calls == []


def test_cancel_unwinds_guessing(web):
    web.add("https://ex.com/", "<!doctype html><title>Foo</title>")
    fetcher = ManifestFetcher(guess=True)
    original_get = web.get

    def get_then_cancel(url, **kwargs):
        if url.endswith("manifest.json"):
            fetcher.cancel()
        return original_get(url, **kwargs)

    web.get = get_then_cancel
    with pytest.raises(FetchCancelled):
        fetcher.resolve("https://ex.com/")
    assert web.calls[-1] == "https://ex.com/manifest.json"


def test_cancel_skips_protocol_retry(web):
    fetcher = ManifestFetcher()
    original_get = web.get

    def get_then_cancel(url, **kwargs):
        fetcher.cancel()
        return original_get(url, **kwargs)

    web.get = get_then_cancel
    with pytest.raises(FetchCancelled):
        fetcher.resolve("https://ex.com/x")
    assert web.calls == ["https://ex.com/x"]


def test_cancel_closes_owned_session_mid_request(web, monkeypatch):
    fetcher = ManifestFetcher()
    closed = []
    monkeypatch.setattr(fetcher.session, "close", lambda: closed.append(True))

    def cancel_while_waiting(url, **kwargs):
        web.calls.append(url)
        fetcher.cancel()
        raise requests.ConnectionError("connection pool closed")

    web.get = cancel_while_waiting
    with pytest.raises(FetchCancelled):
        fetcher.resolve("https://ex.com/")
    assert closed == [True]
    assert web.calls == ["https://ex.com/"]


def test_cancel_leaves_borrowed_session_open():
    session = requests.Session()
    closed = []
    session.close = lambda: closed.append(True)
    fetcher = ManifestFetcher(session=session)
    fetcher.cancel()
    assert fetcher.cancelled
    assert closed == []


# ── hostile input ───────────────────────────────────────────────────


def test_deeply_nested_json_is_unparsed_content():
    result = resolve_manifest("[" * 200000, "https://ex.com/")
    assert isinstance(result, UnparsedContent)
    assert result.to_dict()["processed_valid_manifest"] is False


def test_auto_parse_survives_deeply_nested_json():
    parsed = auto_parse("[" * 200000, doc_url="https://ex.com/")
    assert not parsed.is_manifest
    assert not parsed.is_document
