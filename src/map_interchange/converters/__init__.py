"""
Converters package for moving features between map file formats.

Supported formats:
- GeoJSON (.geojson, .json) - native
- GPX (.gpx) - requires gpxpy
- KML (.kml) - requires lxml
- KMZ (.kmz) - zip archive of KML documents, requires lxml
"""

from map_interchange.converters.base import BaseConverter, ConversionResult
from map_interchange.converters.registry import (
    ConverterRegistry,
    get_converter,
    get_supported_formats,
    register_converter,
)

__all__ = [
    "BaseConverter",
    "ConversionResult",
    "ConverterRegistry",
    "get_converter",
    "get_supported_formats",
    "register_converter",
]
