import logging
import re
import sys

from manifest_utils.url_utils import resolve_url

logger = logging.getLogger(__name__)

# Area given to `sizes="any"`; beats every finite size.
ANY_SIZE_AREA = sys.float_info.max
NO_SIZE_AREA = -1

BACKGROUND_COLOR_ALIASES = ("background_color", "background-color", "backgroundColor")
THEME_COLOR_ALIASES = ("theme_color", "theme-color", "themeColor")
BORDER_RADIUS_ALIASES = ("border_radius", "border-radius", "borderRadius")

_WHITESPACE = re.compile(r"\s+")


def _fold(key):
    return str(key).replace("_", "").replace("-", "").lower()


def lookup_member(obj, *aliases):
    """First non-empty value among `aliases`, exact keys before folded ones.

    Folded means case and `_`/`-` are ignored, so `BorderRadius` answers for
    `border_radius`.
    """
    if not isinstance(obj, dict):
        return None
    for alias in aliases:
        value = obj.get(alias)
        if value not in (None, ""):
            return value
    folded = {_fold(k): v for k, v in reversed(list(obj.items()))}
    for alias in aliases:
        value = folded.get(_fold(alias))
        if value not in (None, ""):
            return value
    return None


def clean_text(value) -> str:
    if not isinstance(value, str):
        return ""
    return _WHITESPACE.sub(" ", value.strip())


def parse_density(value) -> float | None:
    if isinstance(value, bool) or value in (None, ""):
        return None
    try:
        density = float(value)
    except (TypeError, ValueError):
        return None
    if density != density or density <= 0 or density == float("inf"):
        return None
    return density


def _process_src(image, base_url):
    if not isinstance(image, dict):
        return None
    src = image.get("src")
    if not isinstance(src, str) or not src.strip():
        return None
    src = src.strip()
    return resolve_url(base_url, src)


def to_image_object(image, base_url):
    icon = {
        "src": _process_src(image, base_url),
        "type": clean_text(image.get("type")),
        "sizes": clean_text(image.get("sizes")),
    }
    density = parse_density(lookup_member(image, "density"))
    if density is not None:
        icon["density"] = density
    extras = (
        ("purpose", ("purpose",)),
        ("color", ("color",)),
        ("background_color", BACKGROUND_COLOR_ALIASES),
        ("theme_color", THEME_COLOR_ALIASES),
        ("border_radius", BORDER_RADIUS_ALIASES),
    )
    for key, aliases in extras:
        value = clean_text(lookup_member(image, *aliases))
        if value:
            icon[key] = value
    return icon


def process_icons(container, base_url, member_name="icons"):
    """Normalise `container[member_name]` into image descriptors, in input order."""
    value = container.get(member_name) if isinstance(container, dict) else None
    if not isinstance(value, list):
        return []
    images = [to_image_object(item, base_url) for item in value if _process_src(item, base_url)]
    dropped = len(value) - len(images)
    if dropped:
        logger.debug("Dropped %d %s entries without a usable src", dropped, member_name)
    return images


def _to_int(part):
    # negative or non-numeric parts count as 0
    try:
        return max(int(part.strip()), 0)
    except ValueError:
        return 0


def get_area(icon) -> float:
    """Ranking area: the largest declared WxH raised to the icon's density.

    `any` wins over everything; no usable size token gives -1.
    """
    if not isinstance(icon, dict):
        return NO_SIZE_AREA
    density = parse_density(icon.get("density")) or 1.0
    sizes = clean_text(icon.get("sizes")).lower()
    tokens = sizes.split()
    if "any" in tokens:
        return ANY_SIZE_AREA

    best = NO_SIZE_AREA
    for token in tokens:
        if "x" not in token:
            continue
        w, _, h = token.partition("x")
        try:
            area = float(_to_int(w) * _to_int(h)) ** density
        except OverflowError:
            area = ANY_SIZE_AREA
        if area > best:
            best = area
    return best
