"""
GPX (GPS Exchange Format) converter.

Colours and provenance IDs live in ``<extensions>``: the colour in a
``gpx_style:color`` element (6 hex digits) plus a plain ``<color>`` with an
alpha prefix for other readers, the provenance ID in a sibling element named
after ``InterchangeConfig.provenance_key``.
"""

from typing import Any, Iterable, Optional, Union

import gpxpy
import gpxpy.gpx
from lxml import etree

from map_interchange.colors import gpx_color
from map_interchange.converters._xml import format_number, local_name, sub_element, to_xml_string
from map_interchange.converters.base import BaseConverter, ConversionResult, FeaturesInput
from map_interchange.converters.registry import register_converter
from map_interchange.exceptions import ParseError
from map_interchange.exploder import explode_all
from map_interchange.models import (
    ORIGIN_GPX,
    Coordinate,
    Feature,
    Point,
    Polygon,
    as_feature_set,
)

GPX_NAMESPACE = "http://www.topografix.com/GPX/1/1"
GPX_STYLE_NAMESPACE = "http://www.topografix.com/GPX/gpx_style/0/2"
GARMIN_NAMESPACE = "http://www.garmin.com/xmlschemas/GpxExtensions/v3"

XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

NSMAP = {
    None: GPX_NAMESPACE,
    "gpxx": GARMIN_NAMESPACE,
    "gpx_style": GPX_STYLE_NAMESPACE,
    "xsi": XSI_NAMESPACE,
}

SCHEMA_LOCATION = " ".join(
    [
        GPX_NAMESPACE,
        "https://www.topografix.com/GPX/1/1/gpx.xsd",
        GPX_STYLE_NAMESPACE,
        "https://www.topografix.com/GPX/gpx_style/0/2/gpx_style.xsd",
        GARMIN_NAMESPACE,
        "https://www.garmin.com/xmlschemas/GpxExtensionsv3.xsd",
    ]
)


@register_converter
class GPXConverter(BaseConverter):
    """Converter for GPX files."""

    format_name = "GPX"
    file_extensions = [".gpx"]
    mime_types = ["application/gpx+xml"]
    requires_packages = ["gpxpy"]

    def parse(
        self,
        data: Union[bytes, str],
        include_tracks: bool = True,
        include_routes: bool = True,
        include_waypoints: bool = True,
    ) -> ConversionResult:
        """
        Parse GPX into features.

        Tracks, routes and waypoints are read in that order. A track with
        several segments becomes one path per segment.

        Args:
            data: GPX bytes or text.
            include_tracks: Include track data as LineStrings.
            include_routes: Include route data as LineStrings.
            include_waypoints: Include waypoint data as Points.

        Returns:
            ConversionResult with the parsed features.
        """
        if isinstance(data, bytes):
            try:
                data = data.decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise ParseError(f"GPX is not valid UTF-8: {e}", source_format=self.format_name) from e

        try:
            gpx = gpxpy.parse(data)
        except (gpxpy.gpx.GPXException, ValueError) as e:
            raise ParseError(f"Failed to parse GPX: {e}", source_format=self.format_name) from e

        warnings: list[str] = []
        raw_features: list[dict[str, Any]] = []
        metadata = {"tracks": 0, "routes": 0, "waypoints": 0}

        if include_tracks:
            for track in gpx.tracks:
                segments = [
                    [self._point_coords(pt) for pt in segment.points]
                    for segment in track.segments
                    if segment.points
                ]
                if not segments:
                    warnings.append(f"Empty track '{track.name}' skipped")
                    continue

                if len(segments) == 1:
                    geometry = {"type": "LineString", "coordinates": segments[0]}
                else:
                    geometry = {"type": "MultiLineString", "coordinates": segments}
                raw_features.append(self._raw_feature(track, geometry))
                metadata["tracks"] += 1

        if include_routes:
            for route in gpx.routes:
                if not route.points:
                    warnings.append(f"Empty route '{route.name}' skipped")
                    continue

                coords = [self._point_coords(pt) for pt in route.points]
                geometry = {"type": "LineString", "coordinates": coords}
                raw_features.append(self._raw_feature(route, geometry))
                metadata["routes"] += 1

        if include_waypoints:
            for wpt in gpx.waypoints:
                geometry = {"type": "Point", "coordinates": self._point_coords(wpt)}
                raw_features.append(self._raw_feature(wpt, geometry))
                metadata["waypoints"] += 1

        features = self._build_features(
            explode_all(raw_features, warnings),
            ORIGIN_GPX,
            lambda props: [props.get("color")],
            warnings,
        )

        if not features:
            warnings.append("No features found in GPX file")

        return ConversionResult(
            features=as_feature_set(features),
            source_format=self.format_name,
            warnings=warnings,
            metadata=metadata,
        )

    def _raw_feature(self, element: Any, geometry: dict[str, Any]) -> dict[str, Any]:
        """Build a GeoJSON-shaped feature carrying the element's sidecar data."""
        props: dict[str, Any] = {
            "name": element.name,
            "description": element.description,
            "color": self._extension_value(element.extensions, "color", gpx_color),
            self.config.provenance_key: self._extension_value(
                element.extensions, self.config.provenance_key
            ),
        }
        props = {k: v for k, v in props.items() if v is not None}
        return {"type": "Feature", "geometry": geometry, "properties": props}

    def _extension_value(
        self,
        extensions: Iterable[Any],
        name: str,
        convert: Any = None,
    ) -> Optional[str]:
        """Text of the first extension element named ``name`` in any namespace."""
        for extension in extensions or []:
            for node in extension.iter():
                if local_name(node) != name or node.text is None:
                    continue
                text = node.text.strip()
                if convert is not None:
                    return convert(text)
                return text or None
        return None

    def _point_coords(self, point: Any) -> list[float]:
        """Extract coordinates from GPX point."""
        if point.elevation is not None:
            return [point.longitude, point.latitude, point.elevation]
        return [point.longitude, point.latitude]

    def serialize(
        self,
        features: FeaturesInput,
        default_name: str = "Exported Feature",
        **options: Any,
    ) -> str:
        """
        Serialize features to a GPX 1.1 document.

        Points become ``<wpt>``; lines and polygons become ``<trk>`` with a
        single segment (polygons closed by repeating the first vertex).

        Args:
            features: Features to write.
            default_name: Name used for unnamed features.

        Returns:
            GPX text.
        """
        feature_set = as_feature_set(features)
        root = etree.Element(
            _gpx_tag("gpx"),
            {
                "version": "1.1",
                "creator": "map-interchange",
                f"{{{XSI_NAMESPACE}}}schemaLocation": SCHEMA_LOCATION,
            },
            nsmap=NSMAP,
        )

        for feature in feature_set:
            if isinstance(feature.geometry, Point):
                self._waypoint(root, feature, default_name)
        for feature in feature_set:
            if not isinstance(feature.geometry, Point):
                self._track(root, feature, default_name)

        return to_xml_string(root)

    def _color_hex(self, feature: Feature) -> str:
        return (feature.color or self.config.default_color).lstrip("#").upper()

    def _extensions(self, parent: Any, feature: Feature, line_style: bool = False) -> None:
        """``<extensions>`` with the colour sidecars and the provenance ID."""
        extensions = sub_element(parent, "extensions")
        if line_style:
            line = sub_element(extensions, f"{{{GPX_STYLE_NAMESPACE}}}line")
            sub_element(line, "color", self._color_hex(feature))
        sub_element(extensions, "color", f"#FF{self._color_hex(feature)}")
        if feature.provenance_id:
            sub_element(extensions, self.config.provenance_key, feature.provenance_id)

    def _describe(self, parent: Any, feature: Feature, default_name: str) -> None:
        sub_element(parent, "name", feature.name or default_name)
        if feature.description:
            sub_element(parent, "desc", feature.description)

    def _waypoint(self, root: Any, feature: Feature, default_name: str) -> None:
        coord = feature.geometry.coord
        wpt = sub_element(root, "wpt", attrib=_lat_lon(coord))
        if coord.elevation is not None:
            sub_element(wpt, "ele", format_number(coord.elevation))
        self._describe(wpt, feature, default_name)
        self._extensions(wpt, feature)

    def _track(self, root: Any, feature: Feature, default_name: str) -> None:
        geometry = feature.geometry
        if isinstance(geometry, Polygon):
            coords = geometry.closed_ring()
        else:
            coords = geometry.coords

        trk = sub_element(root, "trk")
        self._describe(trk, feature, default_name)
        self._extensions(trk, feature, line_style=True)

        segment = sub_element(trk, "trkseg")
        for coord in coords:
            point = sub_element(segment, "trkpt", attrib=_lat_lon(coord))
            if coord.elevation is not None:
                sub_element(point, "ele", format_number(coord.elevation))


def _gpx_tag(name: str) -> str:
    return f"{{{GPX_NAMESPACE}}}{name}"


def _lat_lon(coord: Coordinate) -> dict[str, str]:
    return {"lat": format_number(coord.lat), "lon": format_number(coord.lon)}
