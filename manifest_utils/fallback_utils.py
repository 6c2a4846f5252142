"""Build a manifest-shaped dict from page metadata when a site declares none.

Sources, roughly in order of trust: app-specific meta tags (Apple, Microsoft),
OpenGraph, Twitter Cards, then plain HTML (`<title>`, `<html lang>`, icon links).
"""

import logging

from manifest_utils import mime_utils
from manifest_utils.document_utils import QueryableDocument
from manifest_utils.icon_utils import BACKGROUND_COLOR_ALIASES, BORDER_RADIUS_ALIASES, THEME_COLOR_ALIASES
from manifest_utils.url_utils import resolve_url

logger = logging.getLogger(__name__)

ICON_LINK_SELECTOR = (
    'link[rel~="icon"], link[rel~="favicon"], link[rel$="-icon"], '
    'link[rel~="apple-touch-icon-precomposed"]'
)

APP_NAME_SELECTORS = ('meta[name="application-name"]', 'meta[name="apple-mobile-web-app-title"]')
SHORT_NAME_SELECTORS = ('meta[name="apple-mobile-web-app-title"]',)
OG_SITE_NAME = 'meta[property="og:site_name"], meta[name="og:site_name"]'
OG_TITLE = 'meta[property="og:title"], meta[name="og:title"]'
OG_URL = 'meta[property="og:url"], meta[name="og:url"]'
OG_DESCRIPTION = 'meta[property="og:description"], meta[name="og:description"]'
OG_IMAGE = 'meta[property="og:image"], meta[name="og:image"]'
OG_LANG = 'meta[property="og:lang"], meta[name="og:lang"]'
TWITTER_APP_NAME = (
    'meta[name="twitter:app:name"], meta[name="twitter:app:name:iphone"], '
    'meta[name="twitter:app:name:ipad"], meta[name="twitter:app:name:googleplay"]'
)
TWITTER_SITE_NAME = 'meta[property="twitter:site_name"], meta[name="twitter:site_name"]'
TWITTER_TITLE = 'meta[name="twitter:title"], meta[property="twitter:title"]'
TWITTER_URL = 'meta[name="twitter:url"], meta[property="twitter:url"]'
TWITTER_DESCRIPTION = 'meta[name="twitter:description"], meta[property="twitter:description"]'
TWITTER_IMAGE = 'meta[name="twitter:image"], meta[property="twitter:image"]'
START_URL_META = 'meta[name="msapplication-starturl"], meta[name="start_url"]'
THEME_COLOR_META = (
    'meta[name="theme-color"], meta[name="theme_color"], '
    'meta[name="msapplication-TileColor"], meta[name="msapplication-navbutton-color"]'
)
BACKGROUND_COLOR_META = 'meta[name="background-color"], meta[name="background_color"]'
STATUS_BAR_STYLE_META = 'meta[name="apple-mobile-web-app-status-bar-style"]'
# http://l20n.org/
DEFAULT_LANGUAGE_META = 'meta[name="defaultLanguage"]'


def _attr(doc, selector, name):
    for node in doc.query(selector):
        value = doc.attribute(node, name)
        if value and value.strip():
            return value.strip()
    return ""


def _content(doc, selector):
    return _attr(doc, selector, "content")


def _text(doc, selector):
    nodes = doc.query(selector)
    return " ".join(doc.text(nodes[0]).split()) if nodes else ""


def _first(*values) -> str:
    for value in values:
        if value:
            return value
    return ""


def _node_attr(doc, node, *names):
    for name in names:
        # html.parser lower-cases attribute names
        for candidate in (name, name.lower()):
            value = doc.attribute(node, candidate)
            if value and value.strip():
                return value.strip()
    return ""


def status_bar_color(style):
    """Apple status bar style as a theme color ('' when it carries none)."""
    style = (style or "").strip()
    if style.endswith("-translucent"):
        style = style[: -len("-translucent")]
    if style == "default":
        return ""
    if style == "black":
        return "#000"
    return style


def _icon_info(icon):
    if icon.get("src") and not icon.get("type"):
        icon["type"] = mime_utils.lookup(icon["src"])
    return {k: v for k, v in icon.items() if v}


def _link_icon(doc, node, doc_url):
    href = _node_attr(doc, node, "href")
    return _icon_info({
        "src": resolve_url(doc_url, href) if href else "",
        "sizes": _node_attr(doc, node, "sizes", "size"),
        "type": _node_attr(doc, node, "type"),
        "density": _node_attr(doc, node, "density"),
        "color": _node_attr(doc, node, "color"),
        "purpose": _node_attr(doc, node, "purpose"),
        "background_color": _node_attr(doc, node, *BACKGROUND_COLOR_ALIASES),
        "theme_color": _node_attr(doc, node, *THEME_COLOR_ALIASES),
        "border_radius": _node_attr(doc, node, *BORDER_RADIUS_ALIASES),
    })


def get_manifest_fallback(doc: QueryableDocument | None, doc_url: str | None) -> dict:
    """Synthesize a raw manifest from `doc`; `{}` for a missing or empty page."""
    if doc is None or not doc.query("*"):
        return {}

    app_name = _first(*(_content(doc, s) for s in APP_NAME_SELECTORS))
    name = _first(
        app_name,
        _content(doc, OG_SITE_NAME),
        _content(doc, OG_TITLE),
        _content(doc, TWITTER_APP_NAME),
        _content(doc, TWITTER_SITE_NAME),
        _content(doc, TWITTER_TITLE),
        _text(doc, "title"),
    )
    short_name = _first(*(_content(doc, s) for s in SHORT_NAME_SELECTORS), name)
    description = _first(
        _content(doc, 'meta[name="description"]'),
        _content(doc, OG_DESCRIPTION),
        _content(doc, TWITTER_DESCRIPTION),
    )
    start_url = _first(
        _attr(doc, 'link[rel~="canonical"]', "href"),
        _content(doc, START_URL_META),
        _content(doc, TWITTER_URL),
        _content(doc, OG_URL),
        doc_url,
    )
    theme_color = _first(
        _content(doc, THEME_COLOR_META),
        status_bar_color(_content(doc, STATUS_BAR_STYLE_META)),
    )
    background_color = _first(
        _content(doc, BACKGROUND_COLOR_META),
        _attr(doc, "body[bgcolor]", "bgcolor"),
    )
    lang = _first(
        _attr(doc, "html[lang]", "lang"),
        _content(doc, DEFAULT_LANGUAGE_META),
        _content(doc, OG_LANG),
        *(doc.attribute(node, "xml:lang") or "" for node in doc.query("html")),
    )

    candidates = [_link_icon(doc, node, doc_url) for node in doc.query(ICON_LINK_SELECTOR)]
    for selector in (OG_IMAGE, TWITTER_IMAGE):
        image = _content(doc, selector)
        if image:
            candidates.append(_icon_info({"src": resolve_url(doc_url, image)}))

    icons = []
    seen = set()
    for icon in candidates:
        src = icon.get("src")
        if not src or src in seen:
            continue
        seen.add(src)
        icons.append(icon)

    manifest = {
        "name": name,
        "short_name": short_name,
        "start_url": resolve_url(doc_url, start_url) if start_url else start_url,
        "icons": icons,
    }
    if lang:
        manifest["lang"] = lang.strip()
    if description:
        manifest["description"] = description
    if theme_color:
        manifest["theme_color"] = theme_color
    if background_color:
        manifest["background_color"] = background_color

    logger.debug("Synthesized manifest for %s with %d icon(s)", doc_url, len(icons))
    return manifest
