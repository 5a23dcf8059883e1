"""
Feature Set data model.

Only atomic geometries (Point, LineString, Polygon) exist here. Multi
geometries and collections are parse-time transients handled by
``map_interchange.exploder`` on GeoJSON-shaped dictionaries and never
reach these types.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional, Sequence, Union

# Feature origins, used to partition KMZ exports.
ORIGIN_DRAWN = "drawn"
ORIGIN_ROUTE = "route"
ORIGIN_GEOJSON = "geojson"
ORIGIN_GPX = "gpx"
ORIGIN_KML = "kml"
ORIGIN_KMZ = "kmz"
ORIGIN_STRAVA = "strava"
ORIGIN_SHARE = "share"

ORIGINS = (
    ORIGIN_DRAWN,
    ORIGIN_ROUTE,
    ORIGIN_GEOJSON,
    ORIGIN_GPX,
    ORIGIN_KML,
    ORIGIN_KMZ,
    ORIGIN_STRAVA,
    ORIGIN_SHARE,
)

SUPPORTED_GEOMETRY_TYPES = ("Point", "LineString", "Polygon")


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 position with optional elevation in metres."""

    lon: float
    lat: float
    elevation: Optional[float] = None

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lon) and -180.0 <= self.lon <= 180.0):
            raise ValueError(f"Longitude {self.lon} is out of range [-180, 180]")
        if not (math.isfinite(self.lat) and -90.0 <= self.lat <= 90.0):
            raise ValueError(f"Latitude {self.lat} is out of range [-90, 90]")
        if self.elevation is not None and not math.isfinite(self.elevation):
            raise ValueError(f"Elevation {self.elevation} is not finite")

    @classmethod
    def from_sequence(cls, values: Sequence[Any]) -> "Coordinate":
        """Build from a GeoJSON position ``[lon, lat]`` or ``[lon, lat, ele]``."""
        if not isinstance(values, (list, tuple)) or len(values) < 2:
            raise ValueError(f"Invalid position: {values!r}")
        lon, lat = _to_float(values[0]), _to_float(values[1])
        elevation = None
        if len(values) > 2 and values[2] is not None:
            elevation = _to_float(values[2])
            if not math.isfinite(elevation):
                elevation = None
        return cls(lon, lat, elevation)

    def to_list(self) -> list[float]:
        if self.elevation is None:
            return [self.lon, self.lat]
        return [self.lon, self.lat, self.elevation]


def _to_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Coordinate value is not a number: {value!r}")
    return float(value)


def _coords(values: Any) -> tuple[Coordinate, ...]:
    if not isinstance(values, (list, tuple)) or not values:
        raise ValueError("Coordinate array is empty or not a list")
    return tuple(Coordinate.from_sequence(v) for v in values)


@dataclass(frozen=True)
class Point:
    coord: Coordinate

    type = "Point"

    @property
    def coords(self) -> tuple[Coordinate, ...]:
        return (self.coord,)

    def to_geojson(self) -> dict[str, Any]:
        return {"type": "Point", "coordinates": self.coord.to_list()}


@dataclass(frozen=True)
class LineString:
    coords: tuple[Coordinate, ...]

    type = "LineString"

    def to_geojson(self) -> dict[str, Any]:
        return {"type": "LineString", "coordinates": [c.to_list() for c in self.coords]}


@dataclass(frozen=True)
class Polygon:
    """Single outer ring, stored open (no repeated closing vertex)."""

    ring: tuple[Coordinate, ...]

    type = "Polygon"

    def __post_init__(self) -> None:
        ring = tuple(self.ring)
        if len(ring) > 1 and ring[0] == ring[-1]:
            ring = ring[:-1]
        object.__setattr__(self, "ring", ring)

    @property
    def coords(self) -> tuple[Coordinate, ...]:
        return self.ring

    def closed_ring(self) -> tuple[Coordinate, ...]:
        """The ring with its first vertex repeated at the end."""
        if not self.ring:
            return self.ring
        return self.ring + (self.ring[0],)

    def to_geojson(self) -> dict[str, Any]:
        return {"type": "Polygon", "coordinates": [[c.to_list() for c in self.closed_ring()]]}


Geometry = Union[Point, LineString, Polygon]


def geometry_from_geojson(geometry: Any) -> Geometry:
    """
    Build an atomic geometry from a GeoJSON geometry object.

    Polygon holes are dropped; only the outer ring is kept.

    Raises:
        ValueError: If the type is not Point/LineString/Polygon or the
            coordinates are malformed.
    """
    if not isinstance(geometry, dict):
        raise ValueError("Geometry is missing")
    geom_type = geometry.get("type")
    coordinates = geometry.get("coordinates")

    if geom_type == "Point":
        if not isinstance(coordinates, (list, tuple)):
            raise ValueError("Point coordinates must be a position")
        return Point(Coordinate.from_sequence(coordinates))
    if geom_type == "LineString":
        return LineString(_coords(coordinates))
    if geom_type == "Polygon":
        if not isinstance(coordinates, (list, tuple)) or not coordinates:
            raise ValueError("Polygon has no rings")
        return Polygon(_coords(coordinates[0]))

    raise ValueError(f"Unsupported geometry type: {geom_type}")


@dataclass
class Feature:
    """A single atomic map feature."""

    geometry: Geometry
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    """Canonical ``#RRGGBB``; None means the caller's default applies."""

    provenance_id: Optional[str] = None
    """Opaque external-activity identifier, preserved verbatim."""

    source_path: Optional[str] = None
    """Originating KMZ sub-document, used only for KMZ re-export grouping."""

    origin: str = ORIGIN_DRAWN
    extra: dict[str, Any] = field(default_factory=dict)
    """Other user properties, carried through GeoJSON."""

    @property
    def geometry_type(self) -> str:
        return self.geometry.type


@dataclass
class FeatureSet:
    """Ordered features plus opaque KMZ pass-through attachments."""

    features: list[Feature] = field(default_factory=list)
    attachments: dict[str, bytes] = field(default_factory=dict)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __len__(self) -> int:
        return len(self.features)

    def __getitem__(self, index: int) -> Feature:
        return self.features[index]

    def extend(self, features: Iterable[Feature]) -> None:
        self.features.extend(features)


def as_feature_set(features: Union[FeatureSet, Iterable[Feature]]) -> FeatureSet:
    """Wrap a plain iterable of features in a FeatureSet."""
    if isinstance(features, FeatureSet):
        return features
    return FeatureSet(list(features))
