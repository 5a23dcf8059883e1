"""Tests for the KMZ converter."""

import io
import zipfile

import pytest
from lxml import etree

from map_interchange.converters.kml import KML_NAMESPACE
from map_interchange.converters.kmz import ZIP_TIMESTAMP, KMZConverter, unique_file_name
from map_interchange.exceptions import ParseError
from map_interchange.models import (
    ORIGIN_DRAWN,
    ORIGIN_GPX,
    ORIGIN_KMZ,
    ORIGIN_STRAVA,
    Coordinate,
    Feature,
    FeatureSet,
    LineString,
    Point,
)

NS = {"kml": KML_NAMESPACE}


def _kml(*placemarks: str) -> str:
    body = "".join(
        f"<Placemark><name>{name}</name><Point><coordinates>7,47</coordinates></Point></Placemark>"
        for name in placemarks
    )
    return f'<kml xmlns="{KML_NAMESPACE}"><Document>{body}</Document></kml>'


def _archive(entries: dict[str, str | bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for path, content in entries.items():
            archive.writestr(path, content)
    return buffer.getvalue()


def _manifest_links(data: bytes) -> list[tuple[str, str]]:
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        root = etree.fromstring(archive.read("doc.kml"))
    return [
        (
            link.findtext("kml:name", namespaces=NS),
            link.findtext("kml:Link/kml:href", namespaces=NS),
        )
        for link in root.findall(".//kml:NetworkLink", NS)
    ]


def _point(name: str | None = None, **kwargs: object) -> Feature:
    return Feature(Point(Coordinate(7, 47)), name=name, **kwargs)  # type: ignore[arg-type]


class TestUniqueFileName:
    """Test collision handling."""

    def test_free_name_unchanged(self) -> None:
        """Test the base name is used when free."""
        assert unique_file_name("Name.kml", set()) == "Name.kml"

    def test_counter_before_extension(self) -> None:
        """Test Name1.kml, Name2.kml, ..."""
        assert unique_file_name("Name.kml", {"Name.kml"}) == "Name1.kml"
        assert unique_file_name("Name.kml", {"Name.kml", "Name1.kml"}) == "Name2.kml"

    def test_no_extension(self) -> None:
        """Test names without an extension."""
        assert unique_file_name("README", {"README"}) == "README1"


class TestKMZParse:
    """Test KMZ parsing."""

    def test_entries_demultiplexed(self) -> None:
        """Test features are tagged with their entry path."""
        data = _archive(
            {
                "doc.kml": _kml("Root pin"),
                "files/a.kml": _kml("First", "Second"),
                "images/icon.png": b"\x89PNG\r\n",
            }
        )

        result = KMZConverter().parse(data)

        assert [f.name for f in result.features] == ["Root pin", "First", "Second"]
        assert [f.source_path for f in result.features] == ["doc.kml", "files/a.kml", "files/a.kml"]
        assert all(f.origin == ORIGIN_KMZ for f in result.features)
        assert result.features.attachments == {"images/icon.png": b"\x89PNG\r\n"}
        assert result.errors == []
        assert result.metadata["kml_entries"] == 2

    def test_empty_and_broken_entries_kept(self) -> None:
        """Test failed and featureless entries become attachments."""
        manifest = _kml()
        data = _archive(
            {
                "doc.kml": manifest,
                "files/broken.kml": "<kml><Document>",
                "files/good.kml": _kml("Pin"),
            }
        )

        result = KMZConverter().parse(data)

        assert [f.name for f in result.features] == ["Pin"]
        assert result.features.attachments["doc.kml"] == manifest.encode("utf-8")
        assert result.features.attachments["files/broken.kml"] == b"<kml><Document>"
        assert len(result.errors) == 1
        assert result.errors[0]["path"] == "files/broken.kml"
        assert result.errors[0]["code"] == "PARSE_FAILED"

    def test_unreadable_entry_does_not_stop_siblings(self) -> None:
        """Test an entry failing its CRC check is reported and skipped."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_STORED) as archive:
            archive.writestr("files/good.kml", _kml("A"))
            archive.writestr("files/bad.kml", _kml("Broken"))
        data = buffer.getvalue().replace(b"Broken", b"Brokex")

        result = KMZConverter().parse(data)

        assert [f.name for f in result.features] == ["A"]
        assert len(result.errors) == 1
        assert result.errors[0]["path"] == "files/bad.kml"
        assert result.errors[0]["code"] == "PARSE_FAILED"
        assert "files/bad.kml" not in result.features.attachments
        assert result.metadata["kml_entries"] == 2

    def test_no_kml_entries(self) -> None:
        """Test an archive without KML."""
        with pytest.raises(ParseError, match="No KML files found"):
            KMZConverter().parse(_archive({"readme.txt": "hello"}))

    def test_not_a_zip(self) -> None:
        """Test non-archive input."""
        with pytest.raises(ParseError, match="Invalid KMZ archive"):
            KMZConverter().parse(b"not a zip file")

    def test_text_input_rejected(self) -> None:
        """Test archives must be bytes."""
        with pytest.raises(ParseError, match="must be bytes"):
            KMZConverter().parse("doc.kml")


class TestKMZSerialize:
    """Test KMZ archive building."""

    def test_grouping_is_deterministic(self) -> None:
        """Test two sub-path features plus one drawn feature give two sorted documents."""
        a1 = _point("A1", source_path="files/a.kml", origin=ORIGIN_KMZ)
        a2 = _point("A2", source_path="files/a.kml", origin=ORIGIN_KMZ)
        drawn = _point("Drawn", origin=ORIGIN_DRAWN)

        first = KMZConverter().serialize([drawn, a1, a2])
        second = KMZConverter().serialize([a1, drawn, a2])

        expected = [("a", "files/a.kml"), ("Drawn_Features", "files/Drawn_Features.kml")]
        assert _manifest_links(first) == expected
        assert _manifest_links(second) == expected
        assert first == second

    def test_partitions(self) -> None:
        """Test features land in the document for their origin."""
        features = [
            _point("Mine", origin=ORIGIN_DRAWN),
            _point("Imported", origin=ORIGIN_GPX),
            _point("Activity", origin=ORIGIN_STRAVA),
            _point("From root", source_path="doc.kml", origin=ORIGIN_KMZ),
        ]
        data = KMZConverter().serialize(features, document_name="Trips")

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = sorted(archive.namelist())
            imported = etree.fromstring(archive.read("files/Imported_Features.kml"))
            manifest = etree.fromstring(archive.read("doc.kml"))

        assert names == [
            "doc.kml",
            "files/Drawn_Features.kml",
            "files/Imported_Features.kml",
            "files/Strava_Activities.kml",
        ]
        assert manifest.findtext("kml:Document/kml:name", namespaces=NS) == "Trips"
        assert imported.findtext("kml:Document/kml:name", namespaces=NS) == "Imported Features"
        imported_names = [
            p.findtext("kml:name", namespaces=NS) for p in imported.findall(".//kml:Placemark", NS)
        ]
        assert imported_names == ["Imported", "From root"]

    def test_default_placemark_names(self) -> None:
        """Test unnamed features get Marker_N / Path_N."""
        features = [
            _point(),
            Feature(LineString((Coordinate(0, 0), Coordinate(1, 1)))),
        ]
        data = KMZConverter().serialize(features)
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            text = archive.read("files/Drawn_Features.kml").decode("utf-8")
        assert "<name>Marker_1</name>" in text
        assert "<name>Path_2</name>" in text

    def test_attachments_round_trip(self) -> None:
        """Test pass-through blobs are re-added unchanged and names stay unique."""
        feature_set = FeatureSet(
            [_point("Mine")],
            attachments={
                "doc.kml": b"<old manifest/>",
                "images/icon.png": b"\x89PNG",
                "files/Drawn_Features.kml": b"<kml/>",
            },
        )
        data = KMZConverter().serialize(feature_set)

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.read("images/icon.png") == b"\x89PNG"
            assert archive.read("files/Drawn_Features.kml") == b"<kml/>"
            assert b"old manifest" not in archive.read("doc.kml")
            assert all(info.date_time == ZIP_TIMESTAMP for info in archive.infolist())

        assert _manifest_links(data) == [("Drawn_Features1", "files/Drawn_Features1.kml")]

    def test_round_trip(self) -> None:
        """Test exported sub-documents regroup features on re-import."""
        original = [
            _point("A1", source_path="files/a.kml", origin=ORIGIN_KMZ, color="#9B24B2"),
            _point("Drawn", origin=ORIGIN_DRAWN),
        ]
        converter = KMZConverter()
        result = converter.parse(converter.serialize(original))

        by_name = {f.name: f for f in result.features}
        assert by_name["A1"].source_path == "files/a.kml"
        assert by_name["A1"].color == "#9B24B2"
        assert by_name["Drawn"].source_path == "files/Drawn_Features.kml"
        assert "doc.kml" in result.features.attachments
