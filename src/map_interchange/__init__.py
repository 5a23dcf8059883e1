"""
Map Interchange - Move map features between file formats and share strings.

Supports:
- GeoJSON (.geojson, .json)
- GPX (.gpx)
- KML (.kml)
- KMZ (.kmz)
- Compact URL-safe share strings
"""

from map_interchange.config import InterchangeConfig, ConfigValidationError
from map_interchange.exceptions import (
    CorruptPayloadError,
    DecodeError,
    EmptyResultError,
    InterchangeError,
    ParseError,
    UnsupportedVersionError,
)
from map_interchange.models import (
    Coordinate,
    Feature,
    FeatureSet,
    LineString,
    Point,
    Polygon,
)
from map_interchange.exploder import explode, explode_all
from map_interchange.converters import (
    get_converter,
    get_supported_formats,
    BaseConverter,
    ConversionResult,
)
from map_interchange.share import ShareCodec, decode_features, encode_features
from map_interchange.validators import (
    FeatureValidator,
    ValidationResult,
    ValidationWarning,
    validate_features,
)

__version__ = "0.3.0"
__all__ = [
    # Configuration
    "InterchangeConfig",
    "ConfigValidationError",
    # Errors
    "InterchangeError",
    "ParseError",
    "DecodeError",
    "CorruptPayloadError",
    "UnsupportedVersionError",
    "EmptyResultError",
    # Model
    "Coordinate",
    "Feature",
    "FeatureSet",
    "LineString",
    "Point",
    "Polygon",
    "explode",
    "explode_all",
    # Converters
    "get_converter",
    "get_supported_formats",
    "BaseConverter",
    "ConversionResult",
    # Share strings
    "ShareCodec",
    "encode_features",
    "decode_features",
    # Validators
    "FeatureValidator",
    "ValidationResult",
    "ValidationWarning",
    "validate_features",
    # Version
    "__version__",
]
