"""Turn raw, untrusted manifest JSON into a clean web app manifest.

Field rules follow the W3C manifest processing steps as browsers apply them,
plus the legacy members older manifests still ship (`homepage`,
`default_locale`).
"""

import copy
import json
import logging
from functools import cached_property

from manifest_utils.errors import MalformedManifest
from manifest_utils.icon_utils import process_icons
from manifest_utils.selector_utils import IconSelector
from manifest_utils.url_utils import resolve_url

logger = logging.getLogger(__name__)

DISPLAY_MODES = frozenset({"fullscreen", "standalone", "minimal-ui", "browser"})
ORIENTATION_TYPES = frozenset({
    "any",
    "natural",
    "landscape",
    "portrait",
    "portrait-primary",
    "portrait-secondary",
    "landscape-primary",
    "landscape-secondary",
})
TEXT_DIRECTIONS = frozenset({"ltr", "rtl", "auto"})

DEFAULT_DISPLAY_MODE = "browser"
DEFAULT_TEXT_DIRECTION = "auto"
DEFAULT_LANG = "en"

# Candidate members in precedence order; the first non-empty one wins.
START_URL_MEMBERS = ("start_url", "homepage")
LANG_MEMBERS = ("lang", "default_locale")


def _trimmed(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _first_member(raw, members):
    for member in members:
        value = _trimmed(raw.get(member))
        if value:
            return value
    return ""


class NormalizedManifest(IconSelector):
    """A processed manifest plus where it came from.

    `fields` is the raw manifest overlaid with the normalized members. The
    `best_*` selections are computed lazily, once.
    """

    def __init__(
        self,
        fields,
        raw,
        *,
        manifest_url,
        final_manifest_url,
        document_url,
        final_document_url,
        declared=True,
        document_html=None,
    ):
        self.fields = fields
        self.raw = raw
        self.manifest_url = manifest_url
        self.final_manifest_url = final_manifest_url
        self.document_url = document_url
        self.final_document_url = final_document_url
        self.declared = declared
        self.document_html = document_html

    @property
    def icons(self) -> list:
        return self.fields["icons"]

    @property
    def is_valid(self) -> bool:
        return self.declared and bool(self.raw)

    @cached_property
    def diagnostics(self) -> dict:
        d = {
            "processed_valid_manifest": self.is_valid,
            "processed_best_icon": self.best_icon,
            "processed_best_favicon": self.best_favicon,
            "processed_best_badge": self.best_badge,
            "processed_best_svg_icon": self.best_svg_icon,
            "processed_best_bitmap_icon": self.best_bitmap_icon,
            "processed_best_gltf_icon": self.best_gltf_icon,
            "processed_gltf_icons": self.gltf_icons,
        }
        if not self.declared:
            d["processed_manifest_url"] = None
            d["processed_final_manifest_url"] = None
        elif self.manifest_url:
            d["processed_manifest_url"] = self.manifest_url
            d["processed_final_manifest_url"] = self.final_manifest_url or self.manifest_url
        d["processed_document_url"] = self.document_url or self.fields.get("start_url")
        if self.final_document_url:
            d["processed_final_document_url"] = self.final_document_url
        d["processed_raw_manifest"] = self.raw
        if self.document_html is not None:
            d["processed_raw_document_html"] = self.document_html
        return d

    def to_dict(self) -> dict:
        out = dict(self.fields)
        out.update(self.diagnostics)
        return copy.deepcopy(out)

    def __getitem__(self, key):
        if key in self.fields:
            return self.fields[key]
        return self.diagnostics[key]

    def __contains__(self, key):
        return key in self.fields or key in self.diagnostics

    def get(self, key, default=None):
        try:
            return self[key]
        except KeyError:
            return default

    def __repr__(self):
        return f"<NormalizedManifest {self.fields.get('name')!r} manifest_url={self.manifest_url!r}>"


class ManifestProcessor:
    display_modes = DISPLAY_MODES
    orientation_types = ORIENTATION_TYPES
    text_directions = TEXT_DIRECTIONS
    default_display_mode = DEFAULT_DISPLAY_MODE

    def parse(self, manifest) -> dict:
        """Raw manifest object from JSON text or an already parsed value.

        Unparseable text counts as `{}`; parsed JSON that isn't an object
        raises MalformedManifest.
        """
        if isinstance(manifest, (str, bytes, bytearray)):
            try:
                manifest = json.loads(manifest)
            except (ValueError, RecursionError) as e:
                logger.debug("Manifest text is not JSON (%s); using an empty manifest", e)
                manifest = {}
        elif manifest is None:
            manifest = {}
        if not isinstance(manifest, dict):
            raise MalformedManifest(f"Manifest should be an object, got {type(manifest).__name__}")
        return manifest

    def process(
        self,
        manifest,
        manifest_url=None,
        doc_url=None,
        *,
        final_manifest_url=None,
        final_doc_url=None,
        declared=True,
        document_html=None,
    ):
        """Process a manifest (JSON text or dict) into a NormalizedManifest.

        `manifest_url` is the base for relative URLs (its post-redirect form,
        `final_manifest_url`, when given); `doc_url` is the owning document.
        `declared=False` marks a manifest synthesized from page metadata.
        """
        raw = self.parse(manifest)
        snapshot = copy.deepcopy(raw)

        base_url = final_manifest_url or manifest_url
        start_url = self.process_start_url(raw, base_url)
        manifest_url = manifest_url or start_url
        base_url = base_url or manifest_url
        doc_url = doc_url or start_url

        processed = {
            "dir": self.process_dir(raw),
            "lang": self.process_lang(raw),
            "start_url": start_url,
            "display": self.process_display(raw),
            "orientation": self.process_orientation(raw),
            "name": _trimmed(raw.get("name")),
            "short_name": _trimmed(raw.get("short_name")),
            "icons": process_icons(raw, base_url, "icons"),
            "theme_color": _trimmed(raw.get("theme_color")),
            "background_color": _trimmed(raw.get("background_color")),
            "scope": self.process_scope(raw, base_url, start_url),
        }

        fields = copy.deepcopy(raw)
        fields.update(processed)
        if fields["orientation"] is None:
            del fields["orientation"]

        return NormalizedManifest(
            fields,
            snapshot,
            manifest_url=manifest_url,
            final_manifest_url=final_manifest_url,
            document_url=doc_url,
            final_document_url=final_doc_url or doc_url,
            declared=declared,
            document_html=document_html,
        )

    def process_start_url(self, raw, base_url):
        value = _first_member(raw, START_URL_MEMBERS)
        if not value:
            return base_url
        return resolve_url(base_url, value)

    def process_scope(self, raw, base_url, start_url):
        value = _trimmed(raw.get("scope"))
        if not value:
            return start_url
        return resolve_url(base_url, value)

    def process_dir(self, raw):
        value = _trimmed(raw.get("dir"))
        return value if value in self.text_directions else DEFAULT_TEXT_DIRECTION

    def process_display(self, raw):
        value = _trimmed(raw.get("display")).lower()
        return value if value in self.display_modes else self.default_display_mode

    def process_orientation(self, raw):
        value = _trimmed(raw.get("orientation")).lower()
        return value if value in self.orientation_types else None

    def process_lang(self, raw):
        return _first_member(raw, LANG_MEMBERS) or DEFAULT_LANG
