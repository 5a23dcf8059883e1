"""
Colour normalisation and resolution.

Every colour that enters a Feature Set is reduced to one canonical form:
``#RRGGBB`` with upper-case hex digits and no alpha channel.
"""

import re
from typing import Iterable, Mapping, Optional

HEX_COLOR_RE = re.compile(r"^#?[0-9A-Fa-f]{6}$")
KML_COLOR_RE = re.compile(r"^#?[0-9A-Fa-f]{8}$")


def normalize_hex(value: object) -> Optional[str]:
    """
    Normalise a 6-digit hex colour.

    Args:
        value: Candidate such as ``"e51b23"`` or ``"#E51B23"``.

    Returns:
        ``"#E51B23"`` style string, or None if the value is not 6-digit hex.
    """
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not HEX_COLOR_RE.match(value):
        return None
    return "#" + value.lstrip("#").upper()


def resolve_color(
    candidates: Iterable[object],
    palette: Mapping[str, str],
    default: str,
) -> str:
    """
    Pick the first candidate that resolves to a colour.

    Each candidate is tried as a hex value first, then as an exact
    (case-sensitive) palette name. Candidates matching neither are skipped,
    so resolution always succeeds by falling through to ``default``.

    Args:
        candidates: Ordered colour-like values; None entries are allowed.
        palette: Mapping of palette name to hex value.
        default: Colour returned when nothing resolves.

    Returns:
        Canonical ``#RRGGBB`` colour.
    """
    for candidate in candidates:
        if candidate is None:
            continue
        hex_value = normalize_hex(candidate)
        if hex_value:
            return hex_value
        if isinstance(candidate, str) and candidate in palette:
            named = normalize_hex(palette[candidate])
            if named:
                return named
    return normalize_hex(default) or default


def kml_to_css(kml_color: object) -> Optional[str]:
    """Convert a KML ``AABBGGRR`` colour to ``#RRGGBB``, dropping alpha."""
    if not isinstance(kml_color, str):
        return None
    value = kml_color.strip()
    if not KML_COLOR_RE.match(value):
        return None
    value = value.lstrip("#")
    bb, gg, rr = value[2:4], value[4:6], value[6:8]
    return f"#{rr}{gg}{bb}".upper()


def css_to_kml(css_color: str) -> str:
    """Convert ``#RRGGBB`` to a fully opaque KML ``AABBGGRR`` colour."""
    value = normalize_hex(css_color)
    if value is None:
        raise ValueError(f"Not a 6-digit hex colour: {css_color!r}")
    rr, gg, bb = value[1:3], value[3:5], value[5:7]
    return f"FF{bb}{gg}{rr}"


def gpx_color(text: object) -> Optional[str]:
    """
    Read a colour from a GPX extension element.

    GPX tools write bare ``RRGGBB``; the alpha-prefixed ``#AARRGGBB`` form
    this package also emits is accepted by dropping the alpha byte.
    """
    if not isinstance(text, str):
        return None
    value = text.strip()
    if KML_COLOR_RE.match(value):
        value = value.lstrip("#")[2:]
    return normalize_hex(value)


def extract_palette_name(value: object, prefix: str) -> Optional[str]:
    """
    Extract a palette name from a style URL or icon reference.

    Matches ``#<prefix>-<name>`` (style URL fragments) and
    ``<prefix>-<name>.<ext>`` (icon file names), e.g. ``#placemark-red`` or
    ``.../placemark-blue.png``.
    """
    if not isinstance(value, str) or not value:
        return None
    escaped = re.escape(prefix)
    match = re.search(rf"#{escaped}-(\w+)", value, re.IGNORECASE)
    if match is None:
        match = re.search(rf"{escaped}-(\w+)\.\w+", value, re.IGNORECASE)
    return match.group(1) if match else None


def palette_with_aliases(palette: Mapping[str, str]) -> dict[str, str]:
    """Return ``palette`` extended with lower-case aliases of every name."""
    aliased = {name.lower(): hex_value for name, hex_value in palette.items()}
    aliased.update(palette)
    return aliased
