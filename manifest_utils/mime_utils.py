import mimetypes

from manifest_utils.url_utils import get_ext_name

# Extensions the platform table gets wrong or doesn't know about.
EXTRA_TYPES = {
    "ico": "image/x-icon",
    "svg": "image/svg+xml",
    "svgz": "image/svg+xml",
    "webp": "image/webp",
    "gltf": "model/gltf+json",
    "glb": "model/gltf-binary",
    "webmanifest": "application/manifest+json",
    "webapp": "application/x-web-app-manifest+json",
}


def lookup(filename) -> str:
    """MIME type for a filename/URL by extension, or '' when unknown."""
    ext = get_ext_name(filename)
    if not ext:
        return ""
    if ext in EXTRA_TYPES:
        return EXTRA_TYPES[ext]
    guessed, _ = mimetypes.guess_type("file." + ext, strict=False)
    return guessed or ""
