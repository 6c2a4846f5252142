import re
from urllib.parse import urljoin, urlparse

KNOWN_HOST_MARKERS = (".com", ".org", ".net", ".io", ".rocks", ".co.")

_QUERY_OR_FRAGMENT = re.compile(r"[?#].*$", re.DOTALL)
_SQUASHED_SCHEME = re.compile(r"^(https?:)/*", re.IGNORECASE)


def resolve_url(base_url, reference):
    """Resolve `reference` against `base_url`.

    Non-string references and ``data:`` URIs come back untouched, and so does
    anything ``urljoin`` cannot make sense of.
    """
    if not isinstance(reference, str) or reference[:5].lower() == "data:":
        return reference
    if not isinstance(base_url, str) or not base_url:
        return reference
    try:
        return urljoin(base_url, reference)
    except ValueError:
        return reference


def is_remote_url(value) -> bool:
    return isinstance(value, str) and value.lower().startswith(("http:", "https:"))


def origin_of(url: str) -> str | None:
    p = urlparse(url)
    if not p.scheme or not p.netloc:
        return None
    return f"{p.scheme}://{p.netloc}"


def get_ext_name(filename) -> str:
    if not isinstance(filename, str):
        return ""
    filename = _QUERY_OR_FRAGMENT.sub("", filename.strip())
    filename = "".join(filename.split()).rsplit("/", 1)[-1]
    if "." not in filename:
        return ""
    return filename[filename.rfind(".") + 1:].lower()


def downgrade_to_http(url: str) -> str:
    return re.sub(r"^https:", "http:", url, flags=re.IGNORECASE)


def fix_manifest_url(target: str) -> str | None:
    """Turn a loosely typed target (``example.com/app``) into a fetchable URL.

    Returns None when the target doesn't look like a URL at all.
    """
    target = (target or "").lstrip("/")
    # proxies and path routing like to squash `https://` into `https:/`
    target = _SQUASHED_SCHEME.sub(r"\1//", target)
    if "/" not in target and not any(m in target for m in KNOWN_HOST_MARKERS):
        return None

    if not target.lower().startswith(("https:", "http:")):
        target = "https://" + target

    p = urlparse(target)
    if not p.netloc:
        return None
    path = p.path or "/"
    if p.query:
        path += "?" + p.query
    return f"{p.scheme or 'https'}://{p.netloc}{path}"
