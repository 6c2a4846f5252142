"""Best-asset selection over a normalized icon list.

Selections refer to each other (best icon falls back to best badge, which is
the best icon again), so each one is cached per instance and a selection that
is asked for while it is still being computed answers None.
"""

from manifest_utils.icon_utils import ANY_SIZE_AREA, NO_SIZE_AREA, get_area
from manifest_utils.url_utils import get_ext_name

SVG_EXTENSIONS = frozenset({"svg", "svgz"})
BITMAP_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "webp", "bmp"})
GLTF_EXTENSIONS = frozenset({"gltf", "glb"})


def _type_of(icon) -> str:
    return (icon.get("type") or "").lower()


def is_svg(icon) -> bool:
    return get_ext_name(icon.get("src")) in SVG_EXTENSIONS or "svg" in _type_of(icon)


def is_bitmap(icon) -> bool:
    if get_ext_name(icon.get("src")) in BITMAP_EXTENSIONS:
        return True
    subtype = _type_of(icon).rpartition("/")[2]
    return subtype in BITMAP_EXTENSIONS


def is_favicon(icon) -> bool:
    return get_ext_name(icon.get("src")) == "ico" or "ico" in _type_of(icon)


def is_gltf(icon) -> bool:
    return get_ext_name(icon.get("src")) in GLTF_EXTENSIONS or "gltf" in _type_of(icon)


def max_area(icons):
    best = None
    best_area = None
    for icon in icons:
        area = get_area(icon)
        if best is None or area > best_area:
            best, best_area = icon, area
    return best


def memoized(method):
    """Compute-once property. Re-entry answers None, and whatever was computed
    on top of that None answer is not cached."""
    name = method.__name__

    def getter(self):
        memo, stack, tainted = self._selection_state
        if name in stack:
            tainted.update(stack[stack.index(name) + 1:])
            return None
        if name in memo:
            return memo[name]
        stack.append(name)
        try:
            value = method(self)
        finally:
            stack.pop()
        if name in tainted:
            tainted.discard(name)
        else:
            memo[name] = value
        return value

    getter.__name__ = name
    getter.__doc__ = method.__doc__
    return property(getter)


class IconSelector:
    """Mixin giving `best_*` selections over `self.icons`."""

    icons: list

    @property
    def _selection_state(self) -> tuple[dict, list, set]:
        return self.__dict__.setdefault("_selection", ({}, [], set()))

    @memoized
    def best_svg_icon(self):
        return max_area(i for i in self.icons if is_svg(i))

    @memoized
    def best_bitmap_icon(self):
        return max_area(i for i in self.icons if is_bitmap(i))

    @memoized
    def best_icon(self):
        """Vector first, replaced only by something strictly larger."""
        best = self.best_svg_icon
        best_area = NO_SIZE_AREA
        if best is not None:
            best_area = get_area(best)
            # A vector with no declared size scales to anything.
            if best_area == NO_SIZE_AREA:
                best_area = ANY_SIZE_AREA
        for icon in self.icons:
            area = get_area(icon)
            if area > best_area:
                best, best_area = icon, area
        if best is not None:
            return best
        badge = self.best_badge
        if badge is not None:
            return badge
        return self.icons[0] if self.icons else None

    @memoized
    def best_favicon(self):
        return max_area(i for i in self.icons if is_favicon(i)) or self.best_icon

    @memoized
    def best_badge(self):
        # No badge-specific ranking yet.
        return self.best_icon

    @memoized
    def gltf_icons(self):
        return [i for i in self.icons if is_gltf(i)]

    @memoized
    def best_gltf_icon(self):
        return max_area(self.gltf_icons)
