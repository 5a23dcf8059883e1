"""Tests for the validators module."""

from map_interchange.models import Coordinate, Feature, FeatureSet, LineString, Point, Polygon
from map_interchange.validators import (
    FeatureValidator,
    ValidationResult,
    ValidationWarning,
    validate_features,
)


def _line(*points: tuple[float, float], **kwargs: object) -> Feature:
    coords = tuple(Coordinate(*p) for p in points)
    return Feature(LineString(coords), **kwargs)  # type: ignore[arg-type]


def _polygon(*points: tuple[float, float]) -> Feature:
    return Feature(Polygon(tuple(Coordinate(*p) for p in points)))


class TestValidationResult:
    """Test ValidationResult class."""

    def test_counts(self) -> None:
        """Test warning and error counting."""
        result = ValidationResult(
            valid=False,
            warnings=[
                ValidationWarning(0, None, "a", "m", severity="warning"),
                ValidationWarning(0, None, "b", "m", severity="error"),
                ValidationWarning(1, "X", "a", "m", severity="info"),
            ],
            feature_count=2,
            valid_feature_count=1,
        )
        assert result.warning_count == 1
        assert result.error_count == 1
        assert len(result.get_warnings_by_type("a")) == 2

    def test_summary(self) -> None:
        """Test summary generation."""
        result = ValidationResult(
            valid=True,
            warnings=[ValidationWarning(0, None, "duplicate_vertices", "m", severity="info")],
            feature_count=5,
            valid_feature_count=5,
        )
        summary = result.to_summary()
        assert "Validated 5 features" in summary
        assert "duplicate_vertices: 1" in summary


class TestFeatureValidator:
    """Test FeatureValidator class."""

    def test_valid_features(self) -> None:
        """Test clean input."""
        features = [
            Feature(Point(Coordinate(7, 47)), name="Pin", color="#E51B23"),
            _line((0, 0), (1, 1), name="Path"),
            _polygon((0, 0), (1, 0), (1, 1)),
        ]
        result = validate_features(features)
        assert result.valid
        assert result.feature_count == 3
        assert result.valid_feature_count == 3
        assert result.warnings == []

    def test_too_few_vertices(self) -> None:
        """Test lines and polygons below their minimum size."""
        result = validate_features([_line((0, 0), name="Stub"), _polygon((0, 0), (1, 1))])
        assert not result.valid
        assert result.error_count == 2
        assert result.valid_feature_count == 0
        errors = result.get_warnings_by_type("insufficient_coordinates")
        assert errors[0].feature_name == "Stub"
        assert errors[1].feature_index == 1

    def test_duplicate_vertices(self) -> None:
        """Test repeated consecutive vertices are info only."""
        result = validate_features([_line((0, 0), (0, 0), (1, 1))])
        assert result.valid
        duplicates = result.get_warnings_by_type("duplicate_vertices")
        assert len(duplicates) == 1
        assert duplicates[0].severity == "info"
        assert duplicates[0].details["duplicate_indices"] == [1]

    def test_self_intersecting_polygon(self) -> None:
        """Test bow-tie polygons are flagged via shapely."""
        result = validate_features([_polygon((0, 0), (1, 1), (1, 0), (0, 1))])
        invalid = result.get_warnings_by_type("invalid_geometry")
        assert len(invalid) == 1
        assert "Self-intersection" in invalid[0].message
        assert result.valid

    def test_crossing_path(self) -> None:
        """Test a path crossing itself is reported as info."""
        result = validate_features([_line((0, 0), (1, 1), (1, 0), (0, 1))])
        assert len(result.get_warnings_by_type("self_intersection")) == 1

    def test_winding(self) -> None:
        """Test clockwise exterior rings are reported."""
        clockwise = _polygon((0, 0), (0, 1), (1, 1), (1, 0))
        counter_clockwise = _polygon((0, 0), (1, 0), (1, 1), (0, 1))
        result = validate_features([clockwise, counter_clockwise])
        winding = result.get_warnings_by_type("wrong_winding")
        assert [w.feature_index for w in winding] == [0]

        result = validate_features([clockwise], check_winding=False)
        assert result.get_warnings_by_type("wrong_winding") == []

    def test_partial_elevation(self) -> None:
        """Test mixed elevation presence is reported."""
        result = validate_features([_line((0, 0, 10), (1, 1))])
        assert len(result.get_warnings_by_type("partial_elevation")) == 1

    def test_partial_elevation_still_checks_validity(self) -> None:
        """Test mixed elevation does not stop the shapely checks."""
        bowtie = _polygon((0, 0, 5), (1, 1), (1, 0, 7), (0, 1))
        crossing = _line((0, 0, 10), (1, 1), (1, 0), (0, 1, 3))
        result = validate_features([bowtie, crossing])
        assert len(result.get_warnings_by_type("partial_elevation")) == 2
        assert result.get_warnings_by_type("invalid_geometry")[0].feature_index == 0
        assert result.get_warnings_by_type("self_intersection")[0].feature_index == 1

    def test_colors(self) -> None:
        """Test non-canonical and invalid colours."""
        features = [
            Feature(Point(Coordinate(0, 0)), color="#e51b23"),
            Feature(Point(Coordinate(0, 0)), color="red"),
        ]
        result = validate_features(features)
        assert result.get_warnings_by_type("non_canonical_color")[0].feature_index == 0
        assert result.get_warnings_by_type("invalid_color")[0].feature_index == 1
        assert result.warning_count == 1

    def test_max_warnings(self) -> None:
        """Test collection stops at the limit."""
        features = FeatureSet([_line((0, 0)) for _ in range(10)])
        result = FeatureValidator(max_warnings=3).validate(features)
        assert result.feature_count == 3
        assert result.warnings[-1].warning_type == "max_warnings_reached"
