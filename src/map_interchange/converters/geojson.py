"""
GeoJSON converter.
"""

import json
from typing import Any, Union

from map_interchange.converters.base import BaseConverter, ConversionResult, FeaturesInput
from map_interchange.converters.registry import register_converter
from map_interchange.exceptions import ParseError
from map_interchange.exploder import explode_all
from map_interchange.models import ORIGIN_GEOJSON, Feature, Point, as_feature_set

# Internal/style properties that are never written to exported files.
EXPORT_EXCLUDED_PROPERTIES = (
    "color",
    "totalDistance",
    "stroke-width",
    "stroke-opacity",
    "fill",
    "fill-color",
    "fill-opacity",
)


@register_converter
class GeoJSONConverter(BaseConverter):
    """Converter for GeoJSON files."""

    format_name = "GeoJSON"
    file_extensions = [".geojson", ".json"]
    mime_types = ["application/geo+json", "application/json"]
    requires_packages: list[str] = []  # Built-in

    def parse(self, data: Union[bytes, str, dict[str, Any]]) -> ConversionResult:
        """
        Parse a GeoJSON Feature or FeatureCollection.

        Args:
            data: Raw bytes/text, or an already-decoded dictionary.

        Returns:
            ConversionResult with exploded atomic features.
        """
        if isinstance(data, dict):
            geojson = data
        else:
            try:
                if isinstance(data, bytes):
                    data = data.decode("utf-8-sig")
                geojson = json.loads(data)
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise ParseError(f"Invalid JSON: {e}", source_format=self.format_name) from e

        raw_features = self._top_level_features(geojson)
        warnings: list[str] = []
        features = self._build_features(
            explode_all(raw_features, warnings),
            ORIGIN_GEOJSON,
            lambda props: [props.get("color"), props.get("stroke"), props.get("marker-color")],
            warnings,
            reserved_keys=("stroke", "marker-color"),
        )

        if not features:
            warnings.append("No Point, LineString, or Polygon features found in GeoJSON")

        return ConversionResult(
            features=as_feature_set(features),
            source_format=self.format_name,
            warnings=warnings,
            metadata={"input_features": len(raw_features)},
        )

    def _top_level_features(self, geojson: Any) -> list[Any]:
        if not isinstance(geojson, dict) or not geojson.get("type"):
            raise ParseError(
                "Invalid GeoJSON: missing 'type' property", source_format=self.format_name
            )

        geojson_type = geojson["type"]
        if geojson_type == "FeatureCollection":
            features = geojson.get("features") or []
            if not isinstance(features, list):
                raise ParseError(
                    "Invalid GeoJSON: 'features' must be an array",
                    source_format=self.format_name,
                )
            return features
        if geojson_type == "Feature":
            return [geojson]

        raise ParseError(
            f"GeoJSON must be a FeatureCollection or Feature, got {geojson_type}",
            source_format=self.format_name,
        )

    def to_geojson(self, features: FeaturesInput) -> dict[str, Any]:
        """Build a FeatureCollection dictionary."""
        return {
            "type": "FeatureCollection",
            "features": [self._feature_to_geojson(f) for f in as_feature_set(features)],
        }

    def serialize(self, features: FeaturesInput, indent: int | None = 2, **options: Any) -> str:
        """
        Serialize to a GeoJSON FeatureCollection.

        Args:
            features: Features to write.
            indent: JSON indentation; None for compact output.

        Returns:
            GeoJSON text.
        """
        return json.dumps(self.to_geojson(features), indent=indent, ensure_ascii=False)

    def _feature_to_geojson(self, feature: Feature) -> dict[str, Any]:
        properties = {
            k: v for k, v in feature.extra.items() if k not in EXPORT_EXCLUDED_PROPERTIES
        }
        if feature.name:
            properties["name"] = feature.name
        if feature.description:
            properties["description"] = feature.description
        if feature.provenance_id:
            properties[self.config.provenance_key] = feature.provenance_id

        color = feature.color or self.config.default_color
        if isinstance(feature.geometry, Point):
            properties["marker-color"] = color
        else:
            properties["stroke"] = color

        return {
            "type": "Feature",
            "geometry": feature.geometry.to_geojson(),
            "properties": properties,
        }
