"""
KML converter.

Parsing walks the lxml element tree into GeoJSON-shaped features, then
augments that tree in place before explosion:

- inline ``IconStyle`` colours are copied onto Point features, pairing the
  n-th marker placemark with the n-th Point feature;
- provenance IDs in ``<Data name="...">`` are copied onto features, pairing
  the n-th placemark with the n-th feature.

Both passes require the two counts to match exactly and do nothing
otherwise (for example when a placemark without geometry was dropped). The
pairing is positional and best effort.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from lxml import etree

from map_interchange.colors import (
    css_to_kml,
    extract_palette_name,
    kml_to_css,
    palette_with_aliases,
)
from map_interchange.converters._xml import (
    child,
    child_text,
    children,
    descendants,
    format_number,
    local_name,
    parse_xml,
    sub_element,
    to_xml_string,
)
from map_interchange.converters.base import BaseConverter, ConversionResult, FeaturesInput
from map_interchange.converters.registry import register_converter
from map_interchange.exceptions import ParseError
from map_interchange.exploder import explode_all
from map_interchange.models import (
    ORIGIN_KML,
    Coordinate,
    Feature,
    Point,
    Polygon,
    as_feature_set,
)

logger = logging.getLogger(__name__)

KML_NAMESPACE = "http://www.opengis.net/kml/2.2"


@dataclass(frozen=True)
class _Style:
    line_color: Optional[str] = None
    icon_href: Optional[str] = None


@register_converter
class KMLConverter(BaseConverter):
    """Converter for KML documents."""

    format_name = "KML"
    file_extensions = [".kml"]
    mime_types = ["application/vnd.google-earth.kml+xml"]
    requires_packages = ["lxml"]

    def parse(self, data: Union[bytes, str], origin: str = ORIGIN_KML) -> ConversionResult:
        """
        Parse a single KML document.

        Args:
            data: KML bytes or text.
            origin: Origin recorded on every feature.

        Returns:
            ConversionResult with exploded atomic features.
        """
        try:
            root = parse_xml(data)
        except etree.XMLSyntaxError as e:
            raise ParseError(f"Failed to parse KML: {e}", source_format=self.format_name) from e

        warnings: list[str] = []
        placemarks = list(descendants(root, "Placemark"))
        if local_name(root) == "Placemark":
            placemarks.insert(0, root)

        styles = self._collect_styles(root)
        raw_features = []
        for placemark in placemarks:
            try:
                raw = self._placemark_to_geojson(placemark, styles)
            except ValueError as e:
                name = child_text(placemark, "name") or "unnamed placemark"
                warnings.append(f"Skipped placemark '{name}': {e}")
                continue
            if raw is not None:
                raw_features.append(raw)

        self._apply_provenance_ids(placemarks, raw_features)
        self._apply_icon_colors(placemarks, raw_features)

        palette = palette_with_aliases(self.config.palette)
        prefix = self.config.style_prefix
        features = self._build_features(
            explode_all(raw_features, warnings),
            origin,
            lambda props: [
                props.get("color"),
                props.get("stroke"),
                extract_palette_name(props.get("styleUrl"), prefix),
                extract_palette_name(props.get("icon"), prefix),
            ],
            warnings,
            reserved_keys=("stroke", "styleUrl", "icon"),
            palette=palette,
        )

        return ConversionResult(
            features=as_feature_set(features),
            source_format=self.format_name,
            warnings=warnings,
            metadata={"placemarks": len(placemarks)},
        )

    # ------------------------------------------------------------------
    # Parsing helpers
    # ------------------------------------------------------------------

    def _collect_styles(self, root: Any) -> dict[str, _Style]:
        """Shared styles by id, with StyleMaps resolved to their normal style."""
        styles: dict[str, _Style] = {}
        for style in descendants(root, "Style"):
            style_id = style.get("id")
            if style_id:
                styles[style_id] = self._read_style(style)

        for style_map in descendants(root, "StyleMap"):
            map_id = style_map.get("id")
            if not map_id:
                continue
            for pair in children(style_map, "Pair"):
                if child_text(pair, "key") != "normal":
                    continue
                target = (child_text(pair, "styleUrl") or "").lstrip("#")
                inline = child(pair, "Style")
                if inline is not None:
                    styles[map_id] = self._read_style(inline)
                elif target in styles:
                    styles[map_id] = styles[target]
        return styles

    def _read_style(self, style: Any) -> _Style:
        line_color = None
        line_style = child(style, "LineStyle")
        if line_style is not None:
            line_color = kml_to_css(child_text(line_style, "color"))

        icon_href = None
        icon_style = child(style, "IconStyle")
        if icon_style is not None:
            icon = child(icon_style, "Icon")
            if icon is not None:
                icon_href = child_text(icon, "href")
        return _Style(line_color, icon_href)

    def _placemark_to_geojson(
        self, placemark: Any, styles: dict[str, _Style]
    ) -> Optional[dict[str, Any]]:
        geometries = []
        for node in placemark:
            geometries.extend(self._geometries(node))
        if not geometries:
            return None
        if len(geometries) == 1:
            geometry = geometries[0]
        else:
            geometry = {"type": "GeometryCollection", "geometries": geometries}

        props: dict[str, Any] = {}
        name = child_text(placemark, "name")
        if name:
            props["name"] = name
        description = child_text(placemark, "description")
        if description:
            props["description"] = description

        style_url = child_text(placemark, "styleUrl")
        shared = _Style()
        if style_url:
            props["styleUrl"] = style_url
            shared = styles.get(style_url.lstrip("#"), _Style())

        inline_node = child(placemark, "Style")
        inline = self._read_style(inline_node) if inline_node is not None else _Style()
        stroke = inline.line_color or shared.line_color
        icon = inline.icon_href or shared.icon_href
        if stroke:
            props["stroke"] = stroke
        if icon:
            props["icon"] = icon

        props.update(self._extended_data(placemark))
        return {"type": "Feature", "geometry": geometry, "properties": props}

    def _geometries(self, node: Any) -> list[dict[str, Any]]:
        """GeoJSON geometries for one KML geometry element (flattening multis)."""
        name = local_name(node)
        if name == "Point":
            coords = self._coordinates(child_text(node, "coordinates"))
            if not coords:
                raise ValueError("Point has no coordinates")
            return [{"type": "Point", "coordinates": coords[0]}]
        if name in ("LineString", "LinearRing"):
            coords = self._coordinates(child_text(node, "coordinates"))
            return [{"type": "LineString", "coordinates": coords}]
        if name == "Polygon":
            rings = []
            for boundary in ("outerBoundaryIs", "innerBoundaryIs"):
                for wrapper in children(node, boundary):
                    ring = child(wrapper, "LinearRing")
                    if ring is not None:
                        rings.append(self._coordinates(child_text(ring, "coordinates")))
            return [{"type": "Polygon", "coordinates": rings}]
        if name == "MultiGeometry":
            geometries = []
            for part in node:
                geometries.extend(self._geometries(part))
            return geometries
        if name == "Track":
            return [{"type": "LineString", "coordinates": self._track_coordinates(node)}]
        if name == "MultiTrack":
            return [
                {"type": "LineString", "coordinates": self._track_coordinates(track)}
                for track in children(node, "Track")
            ]
        return []

    def _coordinates(self, text: Optional[str]) -> list[list[float]]:
        """Parse ``lon,lat[,alt]`` tuples separated by whitespace."""
        coords = []
        for token in (text or "").split():
            parts = [p for p in token.split(",") if p != ""]
            if len(parts) < 2:
                raise ValueError(f"Invalid coordinate tuple: {token!r}")
            coords.append([float(p) for p in parts[:3]])
        return coords

    def _track_coordinates(self, track: Any) -> list[list[float]]:
        coords = []
        for node in children(track, "coord"):
            parts = (node.text or "").split()
            if len(parts) < 2:
                raise ValueError(f"Invalid gx:coord: {node.text!r}")
            coords.append([float(p) for p in parts[:3]])
        return coords

    def _extended_data(self, placemark: Any) -> dict[str, Any]:
        """Generic ExtendedData entries, excluding the provenance ID."""
        extended = child(placemark, "ExtendedData")
        if extended is None:
            return {}
        values: dict[str, Any] = {}
        for data in children(extended, "Data"):
            key = data.get("name")
            if key and key != self.config.provenance_key:
                values[key] = child_text(data, "value")
        for simple in descendants(extended, "SimpleData"):
            key = simple.get("name")
            if key and key != self.config.provenance_key:
                values[key] = (simple.text or "").strip()
        return values

    def _apply_provenance_ids(self, placemarks: list[Any], features: list[dict[str, Any]]) -> None:
        if not features or len(placemarks) != len(features):
            logger.debug(
                "Skipping provenance IDs: %d placemarks vs %d features",
                len(placemarks),
                len(features),
            )
            return

        key = self.config.provenance_key
        for placemark, feature in zip(placemarks, features):
            extended = child(placemark, "ExtendedData")
            if extended is None:
                continue
            for data in children(extended, "Data"):
                if data.get("name") != key:
                    continue
                value = child_text(data, "value")
                if value:
                    feature["properties"][key] = value
                break

    def _apply_icon_colors(self, placemarks: list[Any], features: list[dict[str, Any]]) -> None:
        markers = [pm for pm in placemarks if child(pm, "Point") is not None]
        points = [f for f in features if f["geometry"].get("type") == "Point"]
        if not points or len(markers) != len(points):
            logger.debug(
                "Skipping icon colours: %d marker placemarks vs %d point features",
                len(markers),
                len(points),
            )
            return

        for placemark, feature in zip(markers, points):
            style = child(placemark, "Style")
            icon_style = child(style, "IconStyle") if style is not None else None
            if icon_style is None:
                continue
            color = kml_to_css(child_text(icon_style, "color"))
            if color:
                feature["properties"]["color"] = color

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(
        self,
        features: FeaturesInput,
        document_name: str = "Map Export",
        default_name: str = "Exported Feature",
        **options: Any,
    ) -> str:
        """
        Serialize features to a KML document with inline styles.

        Args:
            features: Features to write.
            document_name: ``<Document><name>``.
            default_name: Name used for unnamed features.

        Returns:
            KML text.
        """
        placemarks = [self.placemark(f, default_name) for f in as_feature_set(features)]
        return build_kml_document(document_name, placemarks)

    def placemark(self, feature: Feature, default_name: str) -> etree._Element:
        """Build one ``<Placemark>`` element for a feature."""
        kml_color = css_to_kml(feature.color or self.config.default_color)
        placemark = etree.Element(_kml_tag("Placemark"), nsmap={None: KML_NAMESPACE})
        sub_element(placemark, "name", feature.name or default_name)
        if feature.description:
            sub_element(placemark, "description", feature.description)
        if feature.provenance_id:
            extended = sub_element(placemark, "ExtendedData")
            data = sub_element(extended, "Data", attrib={"name": self.config.provenance_key})
            sub_element(data, "value", feature.provenance_id)

        style = sub_element(placemark, "Style")
        geometry = feature.geometry
        if isinstance(geometry, Point):
            icon_style = sub_element(style, "IconStyle")
            sub_element(icon_style, "color", kml_color)
            icon = sub_element(icon_style, "Icon")
            sub_element(icon, "href", self.config.icon_href)
            point = sub_element(placemark, "Point")
            sub_element(point, "coordinates", _coordinate_text([geometry.coord]))
            return placemark

        line_style = sub_element(style, "LineStyle")
        sub_element(line_style, "color", kml_color)
        sub_element(line_style, "width", self.config.line_width)
        if isinstance(geometry, Polygon):
            outer = sub_element(sub_element(placemark, "Polygon"), "outerBoundaryIs")
            ring = sub_element(outer, "LinearRing")
            sub_element(ring, "coordinates", _coordinate_text(geometry.closed_ring()))
        else:
            line = sub_element(placemark, "LineString")
            sub_element(line, "coordinates", _coordinate_text(geometry.coords))
        return placemark


def build_kml_document(name: str, placemarks: Iterable[etree._Element]) -> str:
    """Wrap placemark elements in a KML ``<Document>``."""
    root = etree.Element(_kml_tag("kml"), nsmap={None: KML_NAMESPACE})
    document = sub_element(root, "Document")
    sub_element(document, "name", name)
    for placemark in placemarks:
        document.append(placemark)
    return to_xml_string(root)


def _kml_tag(name: str) -> str:
    return f"{{{KML_NAMESPACE}}}{name}"


def _coordinate_text(coords: Iterable[Coordinate]) -> str:
    return " ".join(
        ",".join(format_number(v) for v in c.to_list())
        for c in coords
    )
