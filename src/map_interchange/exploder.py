"""
Explode composite geometries into atomic features.

Works on GeoJSON-shaped feature dictionaries, the intermediate tree every
parser builds before the typed model is created. Two independent naming
policies apply:

- GeometryCollection children are labelled by type ("Path", "Area",
  "Marker"); a number is appended from the second occurrence of a
  repeated type: ``Trip (Path)``, ``Trip (Path 2)``, ``Trip (Marker)``.
- Multi* elements are numbered by position, every element except the
  first: ``Ride``, ``Ride 2``, ``Ride 3``.

Unnamed sources produce unnamed children.
"""

from typing import Any, Iterable, Optional

from map_interchange.models import SUPPORTED_GEOMETRY_TYPES

TYPE_LABELS = {
    "LineString": "Path",
    "Polygon": "Area",
    "Point": "Marker",
}

MULTI_TYPES = {
    "MultiPoint": "Point",
    "MultiLineString": "LineString",
    "MultiPolygon": "Polygon",
}


def explode(feature: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Decompose one feature into atomic single-geometry features.

    Args:
        feature: GeoJSON Feature dictionary, possibly with a multi geometry
            or a GeometryCollection.

    Returns:
        List of features whose geometry type is Point, LineString or
        Polygon. Atomic input is returned as ``[feature]``; unsupported or
        missing geometry yields ``[]``.

    Raises:
        ValueError: If a multi geometry or collection holds something other
            than an array of members.
    """
    geometry = feature.get("geometry")
    if not isinstance(geometry, dict):
        return []

    geom_type = geometry.get("type")
    base_name = feature_properties(feature).get("name")

    if geom_type == "GeometryCollection":
        members = geometry.get("geometries") or []
        if not isinstance(members, list):
            raise ValueError("GeometryCollection 'geometries' must be an array")
        type_counts: dict[str, int] = {}
        exploded = []
        for child in members:
            if not isinstance(child, dict):
                continue
            child_type = child.get("type")
            if not isinstance(child_type, str):
                continue
            type_counts[child_type] = type_counts.get(child_type, 0) + 1
            if child_type not in SUPPORTED_GEOMETRY_TYPES:
                continue
            count = type_counts[child_type]
            label = TYPE_LABELS[child_type] + (f" {count}" if count > 1 else "")
            name = f"{base_name} ({label})" if base_name else None
            exploded.append(_child_feature(feature, child, name))
        return exploded

    if geom_type in MULTI_TYPES:
        elements = geometry.get("coordinates") or []
        if not isinstance(elements, list):
            raise ValueError(f"{geom_type} 'coordinates' must be an array")
        single_type = MULTI_TYPES[geom_type]
        exploded = []
        for index, coordinates in enumerate(elements):
            suffix = f" {index + 1}" if len(elements) > 1 and index > 0 else ""
            name = f"{base_name}{suffix}" if base_name else None
            child = {"type": single_type, "coordinates": coordinates}
            exploded.append(_child_feature(feature, child, name))
        return exploded

    if geom_type in SUPPORTED_GEOMETRY_TYPES:
        return [feature]

    return []


def explode_all(
    features: Iterable[dict[str, Any]],
    warnings: Optional[list[str]] = None,
) -> list[dict[str, Any]]:
    """
    Explode every feature, concatenating results in encounter order.

    A feature whose composite geometry is malformed is skipped; the reason
    is appended to ``warnings`` when a list is given.
    """
    exploded: list[dict[str, Any]] = []
    for feature in features:
        if not isinstance(feature, dict):
            continue
        try:
            exploded.extend(explode(feature))
        except ValueError as e:
            if warnings is not None:
                label = feature_properties(feature).get("name") or "unnamed feature"
                warnings.append(f"Skipped '{label}': {e}")
    return exploded


def feature_properties(feature: dict[str, Any]) -> dict[str, Any]:
    """The feature's ``properties`` member, or an empty dict when it is not an object."""
    properties = feature.get("properties")
    return properties if isinstance(properties, dict) else {}


def _child_feature(
    parent: dict[str, Any],
    geometry: dict[str, Any],
    name: str | None,
) -> dict[str, Any]:
    properties = dict(feature_properties(parent))
    properties.pop("name", None)
    if name:
        properties["name"] = name
    return {"type": "Feature", "geometry": geometry, "properties": properties}
