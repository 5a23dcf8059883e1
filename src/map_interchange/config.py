"""Interchange configuration.

A single immutable ``InterchangeConfig`` is passed into every converter and
into the share codec, so calls stay reentrant and tests can run with varied
palettes or precisions side by side.

Fail-fast validation:
    Construction raises ``ConfigValidationError`` for a default colour or
    palette entry that is not 6-digit hex, a precision outside 1..10, or a
    provenance key that cannot be used as an XML element name.
"""

import os
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from map_interchange.colors import normalize_hex
from map_interchange.exceptions import InterchangeError

#: The 16 Organic Maps bookmark colours.
ORGANIC_MAPS_PALETTE: Mapping[str, str] = MappingProxyType(
    {
        "Red": "#E51B23",
        "Pink": "#FF4182",
        "Purple": "#9B24B2",
        "DeepPurple": "#6639BF",
        "Blue": "#0066CC",
        "LightBlue": "#249CF2",
        "Cyan": "#14BECD",
        "Teal": "#00A58C",
        "Green": "#3C8C3C",
        "Lime": "#93BF39",
        "Yellow": "#FFC800",
        "Orange": "#FF9600",
        "DeepOrange": "#F06432",
        "Brown": "#804633",
        "Gray": "#737373",
        "BlueGray": "#597380",
    }
)

DEFAULT_COLOR = "#E51B23"
DEFAULT_PRECISION = 5
DEFAULT_PROVENANCE_KEY = "stravaId"
DEFAULT_ICON_HREF = "https://maps.google.com/mapfiles/kml/pushpin/wht-pushpin.png"

# Provenance IDs are written as GPX extension elements named after the key.
XML_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9._-]*$")


class ConfigValidationError(InterchangeError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
    """

    default_code = "CONFIG_VALIDATION_FAILED"
    category = "config"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True)
class InterchangeConfig:
    """Immutable interchange configuration.

    Attributes:
        default_color: Colour applied when no candidate resolves.
        palette: Named colours accepted as colour candidates.
        precision: Decimal digits kept by the share codec.
        provenance_key: Property, GPX element and KML ``Data`` name that
            carries the provenance ID.
        style_prefix: Prefix of palette-bearing style URLs and icon names.
        line_width: ``<width>`` written into KML line styles.
        icon_href: Icon written into KML marker styles.
    """

    default_color: str = DEFAULT_COLOR
    palette: Mapping[str, str] = field(default_factory=lambda: dict(ORGANIC_MAPS_PALETTE))
    precision: int = DEFAULT_PRECISION
    provenance_key: str = DEFAULT_PROVENANCE_KEY
    style_prefix: str = "placemark"
    line_width: int = 5
    icon_href: str = DEFAULT_ICON_HREF

    def __post_init__(self) -> None:
        canonical = normalize_hex(self.default_color)
        if canonical is None:
            raise ConfigValidationError(
                "default_color", self.default_color, "must be a 6-digit hex colour"
            )
        object.__setattr__(self, "default_color", canonical)

        for name, value in self.palette.items():
            if normalize_hex(value) is None:
                raise ConfigValidationError(
                    f"palette[{name}]", value, "must be a 6-digit hex colour"
                )

        if not 1 <= self.precision <= 10:
            raise ConfigValidationError("precision", self.precision, "must be in [1, 10]")
        if not XML_NAME_PATTERN.match(self.provenance_key):
            raise ConfigValidationError(
                "provenance_key", self.provenance_key, "must be a plain XML element name"
            )
        if self.line_width <= 0:
            raise ConfigValidationError("line_width", self.line_width, "must be > 0")

    @classmethod
    def from_env(cls) -> "InterchangeConfig":
        """Load configuration from ``MAPX_*`` environment variables.

        Raises:
            ConfigValidationError: If a value is out of range.
            ValueError: If ``MAPX_PRECISION`` is not an integer.
        """
        return cls(
            default_color=os.getenv("MAPX_DEFAULT_COLOR", DEFAULT_COLOR),
            precision=int(os.getenv("MAPX_PRECISION", str(DEFAULT_PRECISION))),
            provenance_key=os.getenv("MAPX_PROVENANCE_KEY", DEFAULT_PROVENANCE_KEY),
        )
