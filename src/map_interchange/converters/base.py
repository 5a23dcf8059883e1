"""
Base converter interface for feature interchange formats.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Union

from map_interchange.colors import resolve_color
from map_interchange.config import InterchangeConfig
from map_interchange.exploder import feature_properties
from map_interchange.models import Feature, FeatureSet, geometry_from_geojson

FeaturesInput = Union[FeatureSet, Iterable[Feature]]


@dataclass
class ConversionResult:
    """Result of a parse operation."""

    features: FeatureSet
    """The parsed, exploded Feature Set."""

    source_format: str
    """Original format name."""

    warnings: list[str] = field(default_factory=list)
    """Non-fatal warnings encountered during parsing."""

    errors: list[dict[str, Any]] = field(default_factory=list)
    """Structured errors for parts of the input that were skipped (KMZ entries)."""

    metadata: dict[str, Any] = field(default_factory=dict)
    """Additional metadata from the source file."""

    def __post_init__(self) -> None:
        """Validate the result after initialization."""
        if not isinstance(self.features, FeatureSet):
            raise ValueError("features must be a FeatureSet")

    @property
    def feature_count(self) -> int:
        """Number of features parsed."""
        return len(self.features)


class BaseConverter(ABC):
    """
    Abstract base class for format converters.

    A converter parses foreign bytes/text into a Feature Set and serializes
    a Feature Set back. Converters never touch the file system.
    """

    # Class-level format metadata
    format_name: str = "Unknown"
    file_extensions: list[str] = []
    mime_types: list[str] = []
    requires_packages: list[str] = []
    binary: bool = False
    """True if ``serialize`` returns bytes rather than text."""

    def __init__(self, config: Optional[InterchangeConfig] = None) -> None:
        """
        Initialize the converter.

        Args:
            config: Interchange configuration; defaults apply when omitted.
        """
        self.config = config or InterchangeConfig()

    @classmethod
    def can_handle(cls, file_path: Union[str, Path]) -> bool:
        """
        Check if this converter can handle the given file.

        Args:
            file_path: Path to the file to check.

        Returns:
            True if this converter can handle the file.
        """
        return Path(file_path).suffix.lower() in cls.file_extensions

    @abstractmethod
    def parse(self, data: Union[bytes, str]) -> ConversionResult:
        """
        Parse raw input into a Feature Set.

        Args:
            data: Raw file bytes or text.

        Returns:
            ConversionResult containing the features and warnings.

        Raises:
            ParseError: If the input is structurally invalid.
        """
        pass

    @abstractmethod
    def serialize(self, features: FeaturesInput, **options: Any) -> Union[str, bytes]:
        """
        Serialize a Feature Set.

        Args:
            features: Feature Set (or iterable of features) to write.
            **options: Format-specific options.

        Returns:
            Text for XML/JSON formats, bytes for archives.
        """
        pass

    def _build_features(
        self,
        raw_features: Iterable[dict[str, Any]],
        origin: str,
        color_candidates: Callable[[dict[str, Any]], list[Any]],
        warnings: list[str],
        reserved_keys: Iterable[str] = (),
        palette: Optional[dict[str, str]] = None,
    ) -> list[Feature]:
        """Turn exploded GeoJSON-shaped features into typed features."""
        reserved = {"name", "description", "color", self.config.provenance_key, *reserved_keys}
        palette = palette if palette is not None else dict(self.config.palette)
        features = []

        for raw in raw_features:
            properties = feature_properties(raw)
            try:
                geometry = geometry_from_geojson(raw.get("geometry"))
            except ValueError as e:
                label = properties.get("name") or "unnamed feature"
                warnings.append(f"Skipped '{label}': {e}")
                continue

            color = resolve_color(
                color_candidates(properties), palette, self.config.default_color
            )
            features.append(
                Feature(
                    geometry=geometry,
                    name=_text(properties.get("name")),
                    description=_text(properties.get("description")),
                    color=color,
                    provenance_id=_text(properties.get(self.config.provenance_key)),
                    origin=origin,
                    extra={k: v for k, v in properties.items() if k not in reserved},
                )
            )

        return features

    @classmethod
    def get_info(cls) -> dict[str, Any]:
        """
        Get converter information.

        Returns:
            Dictionary with converter metadata.
        """
        return {
            "format_name": cls.format_name,
            "file_extensions": cls.file_extensions,
            "mime_types": cls.mime_types,
            "requires_packages": cls.requires_packages,
        }


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
