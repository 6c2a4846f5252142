"""Fetch a URL (or take raw content) and turn it into a processed manifest.

A response is classified as a manifest (JSON object), a document (HTML) or
neither. Documents are followed to their last `<link rel="manifest">`; when
they declare none the manifest is either guessed from well-known filenames or
synthesized from the page's metadata.
"""

import json
import logging
import threading
from dataclasses import dataclass

import requests

from manifest_utils.document_utils import HtmlDocument
from manifest_utils.errors import (
    FetchCancelled,
    FetchFailed,
    ManifestNotFound,
    UnexpectedContentType,
)
from manifest_utils.fallback_utils import get_manifest_fallback
from manifest_utils.processor_utils import ManifestProcessor
from manifest_utils.url_utils import downgrade_to_http, is_remote_url, origin_of, resolve_url

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/118.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "application/manifest+json,application/json;q=0.9,"
        "text/html,application/xhtml+xml;q=0.8,*/*;q=0.5"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}

DEFAULT_TIMEOUT = 10

# Tried in order; the first one that answers with JSON wins.
WELL_KNOWN_MANIFEST_FILENAMES = (
    "manifest.webmanifest",
    "manifest.json",
    "manifest.webappmanifest",
    "manifest.webapp",
    "webapp.webmanifest",
    "webapp.json",
    "webapp.webappmanifest",
    "webapp.manifest",
)

MANIFEST_LINK_SELECTOR = 'link[rel~="manifest"]'

# Document -> manifest -> document ... chains stop here.
MAX_DEPTH = 5


@dataclass
class ParsedBody:
    """One classified payload: `json` for a manifest, `dom` for a document."""

    manifest_url: str | None = None
    final_manifest_url: str | None = None
    doc_url: str | None = None
    json: dict | None = None
    html: str | None = None
    dom: HtmlDocument | None = None
    text: str | None = None

    @property
    def is_manifest(self) -> bool:
        return self.json is not None

    @property
    def is_document(self) -> bool:
        return self.json is None and self.dom is not None


class UnparsedContent:
    """Content that was neither a manifest nor a document."""

    is_valid = False

    def __init__(self, parsed):
        self.parsed = parsed

    def to_dict(self) -> dict:
        p = self.parsed
        return {
            "processed_valid_manifest": False,
            "processed_manifest_url": p.manifest_url,
            "processed_final_manifest_url": p.final_manifest_url or p.manifest_url,
            "processed_document_url": p.doc_url,
            "processed_final_document_url": p.doc_url,
            "processed_raw_manifest": p.text,
            "processed_raw_document_html": p.html,
        }


def _preview(text) -> str:
    first_line = (text or "").split("\n", 1)[0]
    return first_line[:30] + " …" if len(first_line) > 30 else first_line


def _looks_like_html(body, response) -> bool:
    lower = (body or "").lower() if isinstance(body, str) else ""
    if "doctype" in lower or "<body" in lower:
        return True
    if response is not None:
        return "html" in (response.headers.get("Content-Type") or "").lower()
    return False


def auto_parse(body, response=None, doc_url=None, doc_html=None, doc_dom=None, requested_url=None):
    """Classify `body` (response text or raw content) without touching the network."""
    url = requested_url or (response.url if response is not None else None)
    final_url = response.url if response is not None else None
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", "replace")

    data = None
    text = body
    if isinstance(body, dict):
        data = body
        try:
            text = json.dumps(body)
        except (TypeError, ValueError):
            logger.debug("Could not serialize manifest object as JSON")
            text = None
    elif isinstance(body, str):
        try:
            data = json.loads(body)
        except (ValueError, RecursionError):
            logger.debug("Could not parse text as JSON: %s", _preview(body))

    if isinstance(data, dict):
        return ParsedBody(
            manifest_url=url,
            final_manifest_url=final_url,
            doc_url=doc_url,
            json=data,
            html=doc_html,
            dom=doc_dom,
            text=text,
        )

    if _looks_like_html(body, response):
        return ParsedBody(
            doc_url=final_url or doc_url,
            html=body,
            dom=HtmlDocument(body),
            text=text,
        )

    return ParsedBody(doc_url=final_url or doc_url, html=doc_html, dom=None, text=text if isinstance(text, str) else None)


class ManifestFetcher:
    """Runs one resolution chain: fetches, follows manifest links, guesses.

    `cancel()` (or setting `cancel_event`) makes the next network step raise
    FetchCancelled, which unwinds retries and guessing alike. `cancel()` also
    closes an owned session so a GET already in flight is torn down.
    """

    def __init__(self, session=None, timeout=DEFAULT_TIMEOUT, guess=False, cancel_event=None, processor=None):
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.guess = guess
        self.cancel_event = cancel_event or threading.Event()
        self.processor = processor or ManifestProcessor()

    def close(self):
        if self._owns_session:
            self.session.close()

    def cancel(self):
        self.cancel_event.set()
        # closing the pool aborts a GET that is still waiting on the socket
        if self._owns_session:
            self.session.close()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def _check_cancelled(self, url):
        if self.cancelled:
            raise FetchCancelled("Fetch cancelled", url=url)

    def get(self, url):
        self._check_cancelled(url)
        logger.debug("GET %s", url)
        try:
            resp = self.session.get(url, headers=HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            if self.cancelled:
                raise FetchCancelled("Fetch cancelled", url=url) from e
            raise FetchFailed(str(e), url=url) from e
        self._check_cancelled(url)
        if resp.status_code >= 400:
            raise FetchFailed(str(resp.status_code), url=url, status_code=resp.status_code)
        return resp

    def fetch_manifest(self, target, doc_url=None, doc_dom=None, doc_html=None, depth=0):
        """Resolve `target`, a URL or raw manifest/document content."""
        if depth > MAX_DEPTH:
            raise ManifestNotFound(f"Gave up following manifest links after {MAX_DEPTH} hops")
        if is_remote_url(target):
            resp = self.get(target)
            parsed = auto_parse(resp.text, resp, doc_url, doc_html, doc_dom, requested_url=target)
        else:
            parsed = auto_parse(target, None, doc_url, doc_html, doc_dom)
        return self.auto_parse_manifest(parsed, depth)

    def auto_parse_manifest(self, parsed, depth=0):
        if parsed.is_manifest:
            return self.processor.process(
                parsed.json,
                parsed.manifest_url,
                parsed.doc_url,
                final_manifest_url=parsed.final_manifest_url,
            )
        if parsed.is_document:
            links = [
                href
                for href in (parsed.dom.attribute(n, "href") for n in parsed.dom.query(MANIFEST_LINK_SELECTOR))
                if href and href.strip()
            ]
            if links:
                # Later declarations override earlier ones.
                manifest_url = resolve_url(parsed.doc_url, links[-1].strip())
                logger.debug("Found manifest link %s in %s", manifest_url, parsed.doc_url)
                return self.fetch_manifest(manifest_url, parsed.doc_url, parsed.dom, parsed.html, depth + 1)
            if self.guess:
                return self.guess_manifest(parsed)
            return self.synthesize_manifest(parsed)
        logger.info("Content at %s is neither a manifest nor a document", parsed.doc_url)
        return UnparsedContent(parsed)

    def guess_manifest(self, parsed):
        origin = origin_of(parsed.doc_url or "")
        if not origin:
            raise ManifestNotFound("No manifest link and no document origin to guess from")
        for filename in WELL_KNOWN_MANIFEST_FILENAMES:
            url = f"{origin}/{filename}"
            try:
                resp = self.get(url)
                candidate = auto_parse(resp.text, resp, parsed.doc_url, requested_url=url)
                if not candidate.is_manifest:
                    raise UnexpectedContentType(f"{url} did not return a JSON object")
            except FetchCancelled:
                raise
            except (FetchFailed, UnexpectedContentType) as e:
                logger.debug("Well-known manifest %s failed: %s", url, e)
                continue
            logger.info("Guessed manifest %s for %s", url, parsed.doc_url)
            return self.processor.process(
                candidate.json,
                url,
                parsed.doc_url,
                final_manifest_url=candidate.final_manifest_url,
            )
        raise ManifestNotFound(f"No manifest found for {parsed.doc_url}")

    def synthesize_manifest(self, parsed):
        raw = get_manifest_fallback(parsed.dom, parsed.doc_url)
        if not raw:
            raise ManifestNotFound(f"No manifest or page metadata for {parsed.doc_url}")
        return self.processor.process(
            raw,
            parsed.doc_url,
            parsed.doc_url,
            declared=False,
            document_html=parsed.html,
        )

    def resolve(self, target, doc_url=None):
        """`fetch_manifest`, retrying a 404ing `https:` URL once over `http:`."""
        try:
            return self.fetch_manifest(target, doc_url)
        except FetchCancelled:
            raise
        except FetchFailed as e:
            if not (e.is_not_found and e.url == target and target.lower().startswith("https:")):
                raise
            fallback = downgrade_to_http(target)
            logger.info("%s returned 404; retrying as %s", target, fallback)
            return self.fetch_manifest(fallback, doc_url)


def fetch_manifest(target, doc_url=None, **kwargs):
    fetcher = ManifestFetcher(**kwargs)
    try:
        return fetcher.fetch_manifest(target, doc_url)
    finally:
        fetcher.close()


def resolve_manifest(target, doc_url=None, **kwargs):
    """Resolve a URL or raw content into a NormalizedManifest (or UnparsedContent).

    Keyword arguments go to ManifestFetcher (`session`, `timeout`, `guess`,
    `cancel_event`).
    """
    fetcher = ManifestFetcher(**kwargs)
    try:
        return fetcher.resolve(target, doc_url)
    finally:
        fetcher.close()
