"""Tests for the CLI module."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from map_interchange.cli import main

TRACK_GPX = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <trk>
    <name>Morning Ride</name>
    <extensions><color>E51B23</color></extensions>
    <trkseg>
      <trkpt lat="47.0" lon="7.0"><ele>100</ele></trkpt>
      <trkpt lat="47.001" lon="7.001"><ele>110</ele></trkpt>
    </trkseg>
  </trk>
  <wpt lat="47.0" lon="7.0"><name>Start</name></wpt>
</gpx>
"""


@pytest.fixture
def gpx_file(tmp_path: Path) -> Path:
    path = tmp_path / "ride.gpx"
    path.write_text(TRACK_GPX, encoding="utf-8")
    return path


def _geojson_file(tmp_path: Path, features: list[dict]) -> Path:
    path = tmp_path / "input.geojson"
    path.write_text(json.dumps({"type": "FeatureCollection", "features": features}))
    return path


class TestCLI:
    """Test CLI commands."""

    def test_help(self) -> None:
        """Test main help."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Map Interchange" in result.output
        assert "convert" in result.output
        assert "share" in result.output
        assert "Examples" in result.output

    def test_version(self) -> None:
        """Test version command."""
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "map-interchange" in result.output

    def test_formats_command(self) -> None:
        """Test formats command."""
        runner = CliRunner()
        result = runner.invoke(main, ["formats"])
        assert result.exit_code == 0
        for name in ("GeoJSON", "GPX", "KML", "KMZ", ".kmz", "gpxpy", "binary archive"):
            assert name in result.output

    def test_convert_help(self) -> None:
        """Test convert command help."""
        runner = CliRunner()
        result = runner.invoke(main, ["convert", "--help"])
        assert result.exit_code == 0
        assert "INPUT_FILE" in result.output
        assert "OUTPUT_FILE" in result.output
        assert "--from" in result.output
        assert "--to" in result.output

    def test_invalid_environment(self) -> None:
        """Test configuration errors are reported."""
        runner = CliRunner()
        result = runner.invoke(main, ["formats"], env={"MAPX_PRECISION": "99"})
        assert result.exit_code != 0
        assert "precision" in result.output


class TestConvertCommand:
    """Test the convert command."""

    def test_gpx_to_geojson(self, gpx_file: Path, tmp_path: Path) -> None:
        """Test converting a GPX track to GeoJSON."""
        output = tmp_path / "ride.geojson"
        runner = CliRunner()
        result = runner.invoke(main, ["convert", str(gpx_file), str(output)])

        assert result.exit_code == 0, result.output
        assert "Converted 2 features" in result.output
        data = json.loads(output.read_text(encoding="utf-8"))
        track = data["features"][0]
        assert track["properties"]["stroke"] == "#E51B23"
        assert track["geometry"]["coordinates"][1] == [7.001, 47.001, 110.0]

    def test_forced_output_format(self, gpx_file: Path, tmp_path: Path) -> None:
        """Test --to overrides the output extension."""
        output = tmp_path / "ride.txt"
        runner = CliRunner()
        result = runner.invoke(
            main, ["convert", str(gpx_file), str(output), "--to", "kml", "--name", "Rides"]
        )
        assert result.exit_code == 0, result.output
        text = output.read_text(encoding="utf-8")
        assert "<name>Rides</name>" in text
        assert "<Placemark>" in text

    def test_kmz_output_is_binary(self, gpx_file: Path, tmp_path: Path) -> None:
        """Test archives are written as bytes."""
        output = tmp_path / "ride.kmz"
        runner = CliRunner()
        result = runner.invoke(main, ["convert", str(gpx_file), str(output)])
        assert result.exit_code == 0, result.output
        assert output.read_bytes()[:2] == b"PK"

    def test_unknown_extension(self, gpx_file: Path, tmp_path: Path) -> None:
        """Test an unsupported output extension."""
        runner = CliRunner()
        result = runner.invoke(main, ["convert", str(gpx_file), str(tmp_path / "out.shp")])
        assert result.exit_code != 0
        assert "Unknown file extension" in result.output

    def test_parse_error(self, tmp_path: Path) -> None:
        """Test a malformed input file."""
        path = tmp_path / "broken.geojson"
        path.write_text("{oops")
        runner = CliRunner()
        result = runner.invoke(main, ["convert", str(path), str(tmp_path / "out.kml")])
        assert result.exit_code != 0
        assert "Invalid JSON" in result.output


class TestValidateCommand:
    """Test the validate command."""

    def test_valid_file(self, gpx_file: Path) -> None:
        """Test a clean file."""
        runner = CliRunner()
        result = runner.invoke(main, ["validate", str(gpx_file)])
        assert result.exit_code == 0, result.output
        assert "Valid features: 2/2" in result.output
        assert "File is valid" in result.output

    def test_file_with_errors(self, tmp_path: Path) -> None:
        """Test a line with a single vertex fails validation."""
        path = _geojson_file(
            tmp_path,
            [
                {
                    "type": "Feature",
                    "geometry": {"type": "LineString", "coordinates": [[0, 0]]},
                    "properties": {"name": "Stub"},
                }
            ],
        )
        runner = CliRunner()
        result = runner.invoke(main, ["validate", str(path)])
        assert result.exit_code == 1
        assert "insufficient_coordinates" in result.output
        assert "File has errors" in result.output

    def test_partial_elevation_track(self, tmp_path: Path) -> None:
        """Test a track where only some points carry altitude validates cleanly."""
        path = tmp_path / "partial.gpx"
        path.write_text(TRACK_GPX.replace("<ele>110</ele>", ""), encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(main, ["validate", str(path), "--all"])
        assert result.exit_code == 0, result.output
        assert "partial_elevation" in result.output
        assert "File is valid" in result.output


class TestShareCommands:
    """Test share encode/decode."""

    def test_encode_then_decode(self, gpx_file: Path, tmp_path: Path) -> None:
        """Test a share string round trip through the CLI."""
        runner = CliRunner()
        encoded = runner.invoke(main, ["share", "encode", str(gpx_file)])
        assert encoded.exit_code == 0, encoded.output
        share_string = encoded.output.strip().splitlines()[-1]

        output = tmp_path / "shared.geojson"
        decoded = runner.invoke(main, ["share", "decode", share_string, str(output)])
        assert decoded.exit_code == 0, decoded.output
        assert "Decoded 2 features" in decoded.output

        data = json.loads(output.read_text(encoding="utf-8"))
        names = [f["properties"].get("name") for f in data["features"]]
        assert names == ["Morning Ride", "Start"]

    def test_encode_nothing(self, tmp_path: Path) -> None:
        """Test an empty input cannot be shared."""
        path = _geojson_file(tmp_path, [])
        runner = CliRunner()
        result = runner.invoke(main, ["share", "encode", str(path)])
        assert result.exit_code != 0
        assert "Nothing to share" in result.output

    def test_decode_corrupt(self, tmp_path: Path) -> None:
        """Test an invalid share string."""
        runner = CliRunner()
        result = runner.invoke(
            main, ["share", "decode", "not-a-share-string", str(tmp_path / "out.geojson")]
        )
        assert result.exit_code != 0
        assert "Failed to decode share string" in result.output
