"""
Feature validation module.

Provides warnings for feature issues without modifying the data.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from shapely.geometry import LineString as ShapelyLineString
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.validation import explain_validity

from map_interchange.colors import normalize_hex
from map_interchange.converters.base import FeaturesInput
from map_interchange.models import Coordinate, Feature, LineString, Polygon, as_feature_set


@dataclass
class ValidationWarning:
    """A single validation warning."""

    feature_index: Optional[int]
    """Index of the feature with the issue, or None for global issues."""

    feature_name: Optional[str]
    """Name of the feature, if it has one."""

    warning_type: str
    """Category of warning (e.g., 'invalid_geometry', 'duplicate_vertices')."""

    message: str
    """Human-readable warning message."""

    severity: str = "warning"
    """Severity level: 'info', 'warning', 'error'."""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the issue."""


@dataclass
class ValidationResult:
    """Result of feature validation."""

    valid: bool
    """Whether the data passed validation (no errors, warnings OK)."""

    warnings: list[ValidationWarning] = field(default_factory=list)
    """List of validation warnings."""

    feature_count: int = 0
    """Total number of features validated."""

    valid_feature_count: int = 0
    """Number of features that passed validation."""

    @property
    def warning_count(self) -> int:
        """Number of warnings."""
        return len([w for w in self.warnings if w.severity == "warning"])

    @property
    def error_count(self) -> int:
        """Number of errors."""
        return len([w for w in self.warnings if w.severity == "error"])

    def get_warnings_by_type(self, warning_type: str) -> list[ValidationWarning]:
        """Get all warnings of a specific type."""
        return [w for w in self.warnings if w.warning_type == warning_type]

    def to_summary(self) -> str:
        """Generate a human-readable summary."""
        lines = [
            f"Validated {self.feature_count} features",
            f"  Valid: {self.valid_feature_count}",
            f"  Warnings: {self.warning_count}",
            f"  Errors: {self.error_count}",
        ]

        if self.warnings:
            lines.append("\nIssues found:")
            types: dict[str, int] = {}
            for w in self.warnings:
                types[w.warning_type] = types.get(w.warning_type, 0) + 1

            for wtype, count in sorted(types.items()):
                lines.append(f"  - {wtype}: {count}")

        return "\n".join(lines)


class FeatureValidator:
    """
    Validates features and provides warnings.

    Coordinate ranges are already enforced when features are built, so this
    validator looks at shape-level problems: too few vertices, repeated
    vertices, ring orientation, self-intersection and colour form. It does
    NOT modify the data.
    """

    def __init__(
        self,
        check_winding: bool = True,
        check_duplicates: bool = True,
        check_validity: bool = True,
        check_colors: bool = True,
        max_warnings: int = 100,
    ) -> None:
        """
        Initialize the validator.

        Args:
            check_winding: Check polygon ring orientation (RFC 7946).
            check_duplicates: Check for duplicate consecutive vertices.
            check_validity: Check for self-intersection with shapely.
            check_colors: Check that colours are canonical ``#RRGGBB``.
            max_warnings: Maximum warnings to collect.
        """
        self.check_winding = check_winding
        self.check_duplicates = check_duplicates
        self.check_validity = check_validity
        self.check_colors = check_colors
        self.max_warnings = max_warnings

    def validate(self, features: FeaturesInput) -> ValidationResult:
        """
        Validate a Feature Set.

        Args:
            features: Feature Set (or iterable of features) to validate.

        Returns:
            ValidationResult with warnings and statistics.
        """
        warnings: list[ValidationWarning] = []
        valid_count = 0
        total_count = 0

        for i, feature in enumerate(as_feature_set(features)):
            if len(warnings) >= self.max_warnings:
                msg = f"Maximum warnings ({self.max_warnings}) reached"
                warnings.append(
                    ValidationWarning(
                        feature_index=None,
                        feature_name=None,
                        warning_type="max_warnings_reached",
                        message=msg + ", stopping validation",
                        severity="info",
                    )
                )
                break

            total_count += 1
            feature_warnings = self._validate_feature(feature, i)
            warnings.extend(feature_warnings)

            if not any(w.severity == "error" for w in feature_warnings):
                valid_count += 1

        return ValidationResult(
            valid=len([w for w in warnings if w.severity == "error"]) == 0,
            warnings=warnings,
            feature_count=total_count,
            valid_feature_count=valid_count,
        )

    def _validate_feature(self, feature: Feature, index: int) -> list[ValidationWarning]:
        """Validate a single feature."""
        warnings: list[ValidationWarning] = []
        name = feature.name
        geometry = feature.geometry

        def warn(warning_type: str, message: str, severity: str = "warning", **details: Any) -> None:
            warnings.append(
                ValidationWarning(
                    feature_index=index,
                    feature_name=name,
                    warning_type=warning_type,
                    message=message,
                    severity=severity,
                    details=details,
                )
            )

        coords = list(geometry.coords)
        minimum = {"Point": 1, "LineString": 2, "Polygon": 3}[geometry.type]
        if len(coords) < minimum:
            warn(
                "insufficient_coordinates",
                f"{geometry.type} has {len(coords)} points, needs at least {minimum}",
                severity="error",
            )
            return warnings

        if self.check_duplicates:
            duplicates = _find_consecutive_duplicates(coords)
            if duplicates:
                warn(
                    "duplicate_vertices",
                    f"{geometry.type} has {len(duplicates)} duplicate consecutive vertices",
                    severity="info",
                    duplicate_indices=duplicates[:5],
                )

        with_elevation = sum(1 for c in coords if c.elevation is not None)
        if 0 < with_elevation < len(coords):
            warn(
                "partial_elevation",
                f"{with_elevation} of {len(coords)} vertices carry elevation",
                severity="info",
            )

        if isinstance(geometry, Polygon) and self.check_winding and _is_clockwise(coords):
            warn(
                "wrong_winding",
                "Exterior ring should be counter-clockwise (RFC 7946)",
                severity="info",
            )

        if self.check_validity and isinstance(geometry, (LineString, Polygon)):
            geom = _planar_shape(geometry)
            if not geom.is_valid:
                reason = explain_validity(geom)
                warn(
                    "invalid_geometry",
                    f"Invalid geometry: {reason}",
                    shapely_reason=reason,
                )
            elif isinstance(geometry, LineString) and not geom.is_simple:
                warn("self_intersection", "Path crosses itself", severity="info")

        if self.check_colors and feature.color is not None:
            canonical = normalize_hex(feature.color)
            if canonical is None:
                warn("invalid_color", f"Colour {feature.color!r} is not 6-digit hex")
            elif canonical != feature.color:
                warn(
                    "non_canonical_color",
                    f"Colour {feature.color!r} should be written {canonical!r}",
                    severity="info",
                )

        return warnings


def _planar_shape(geometry: LineString | Polygon) -> Any:
    """Shapely geometry from lon/lat only; validity is a 2-D property."""
    if isinstance(geometry, Polygon):
        return ShapelyPolygon([(c.lon, c.lat) for c in geometry.closed_ring()])
    return ShapelyLineString([(c.lon, c.lat) for c in geometry.coords])


def _find_consecutive_duplicates(coords: list[Coordinate]) -> list[int]:
    """Find indices of consecutive duplicate vertices (elevation ignored)."""
    duplicates = []
    for i in range(1, len(coords)):
        if (coords[i].lon, coords[i].lat) == (coords[i - 1].lon, coords[i - 1].lat):
            duplicates.append(i)
    return duplicates


def _is_clockwise(ring: list[Coordinate]) -> bool:
    """Shoelace test on an open ring."""
    total = 0.0
    n = len(ring)
    for i in range(n):
        a, b = ring[i], ring[(i + 1) % n]
        total += (b.lon - a.lon) * (b.lat + a.lat)
    return total > 0


def validate_features(features: FeaturesInput, **options: Any) -> ValidationResult:
    """
    Convenience function to validate features.

    Args:
        features: Feature Set to validate.
        **options: Options passed to FeatureValidator.

    Returns:
        ValidationResult with warnings and statistics.
    """
    validator = FeatureValidator(**options)
    return validator.validate(features)
