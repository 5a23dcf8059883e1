"""
KMZ (zipped KML) converter.

Import parses every ``.kml`` entry independently and tags its features with
the entry path. Entries that are not KML, that hold no features, or that
fail to parse are kept as opaque attachments so export can put them back
unchanged.

Export writes one KML sub-document per feature group under ``files/`` and
a ``doc.kml`` manifest of NetworkLinks sorted by name.
"""

import io
import logging
import posixpath
import re
import zipfile
import zlib
from typing import Any, Union

from lxml import etree

from map_interchange.converters._xml import sub_element, to_xml_string
from map_interchange.converters.base import BaseConverter, ConversionResult, FeaturesInput
from map_interchange.converters.kml import KML_NAMESPACE, KMLConverter, build_kml_document
from map_interchange.converters.registry import register_converter
from map_interchange.exceptions import ParseError
from map_interchange.models import (
    ORIGIN_DRAWN,
    ORIGIN_KMZ,
    ORIGIN_ROUTE,
    ORIGIN_STRAVA,
    Feature,
    FeatureSet,
    Point,
    as_feature_set,
)

logger = logging.getLogger(__name__)

MANIFEST_NAME = "doc.kml"
FILES_FOLDER = "files/"

# Fixed entry timestamp so identical input gives identical archives.
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)

DRAWN_FILE, DRAWN_TITLE = "Drawn_Features.kml", "Drawn Features"
IMPORTED_FILE, IMPORTED_TITLE = "Imported_Features.kml", "Imported Features"
STRAVA_FILE, STRAVA_TITLE = "Strava_Activities.kml", "Strava Activities"


def unique_file_name(base_file_name: str, taken: Any) -> str:
    """
    Find a free file name by inserting a counter before the extension.

    Tries ``Name.kml``, ``Name1.kml``, ``Name2.kml``, ... until the name is
    not in ``taken``.
    """
    match = re.match(r"^(.+?)(\.[^.]+)$", base_file_name)
    base, extension = (match.group(1), match.group(2)) if match else (base_file_name, "")

    file_name = base_file_name
    counter = 1
    while file_name in taken:
        file_name = f"{base}{counter}{extension}"
        counter += 1
    return file_name


@register_converter
class KMZConverter(BaseConverter):
    """Converter for KMZ archives."""

    format_name = "KMZ"
    file_extensions = [".kmz"]
    mime_types = ["application/vnd.google-earth.kmz"]
    requires_packages = ["lxml"]
    binary = True

    def parse(self, data: Union[bytes, str]) -> ConversionResult:
        """
        Parse every KML document in a KMZ archive.

        A sub-document that fails to parse is reported in ``errors`` and
        does not stop its siblings.

        Args:
            data: Archive bytes.

        Returns:
            ConversionResult whose Feature Set carries the attachments.
        """
        if isinstance(data, str):
            raise ParseError("KMZ input must be bytes", source_format=self.format_name)

        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as e:
            raise ParseError(f"Invalid KMZ archive: {e}", source_format=self.format_name) from e

        kml_converter = KMLConverter(self.config)
        feature_set = FeatureSet()
        warnings: list[str] = []
        errors: list[dict[str, Any]] = []
        kml_entries = 0

        with archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                is_kml = info.filename.lower().endswith(".kml")
                if is_kml:
                    kml_entries += 1

                try:
                    content = archive.read(info)
                except (zipfile.BadZipFile, zlib.error, RuntimeError, OSError) as e:
                    logger.warning("Could not read KMZ entry %s: %s", info.filename, e)
                    error = ParseError(
                        f"Unreadable archive entry: {e}", source_format=self.format_name
                    ).to_error_dict()
                    error["path"] = info.filename
                    errors.append(error)
                    continue

                if not is_kml:
                    feature_set.attachments[info.filename] = content
                    continue

                try:
                    result = kml_converter.parse(content, origin=ORIGIN_KMZ)
                except ParseError as e:
                    logger.warning("Skipping KMZ entry %s: %s", info.filename, e)
                    error = e.to_error_dict()
                    error["path"] = info.filename
                    errors.append(error)
                    feature_set.attachments[info.filename] = content
                    continue

                warnings.extend(f"{info.filename}: {w}" for w in result.warnings)
                if not result.features:
                    feature_set.attachments[info.filename] = content
                    continue
                for feature in result.features:
                    feature.source_path = info.filename
                feature_set.extend(result.features)

        if kml_entries == 0:
            raise ParseError(
                "No KML files found in KMZ archive", source_format=self.format_name
            )
        if not feature_set.features:
            warnings.append("No geographical features found in the KMZ file")

        return ConversionResult(
            features=feature_set,
            source_format=self.format_name,
            warnings=warnings,
            errors=errors,
            metadata={"kml_entries": kml_entries, "attachments": len(feature_set.attachments)},
        )

    def serialize(
        self,
        features: FeaturesInput,
        document_name: str = "Map Export",
        **options: Any,
    ) -> bytes:
        """
        Build a KMZ archive.

        Features are grouped into sub-documents: drawn (and routed)
        features, Strava activities, one document per original KMZ
        sub-path, and everything else as imported features. Attachments
        of the Feature Set are re-added unchanged.

        Args:
            features: Feature Set to write.
            document_name: Name of the root manifest document.

        Returns:
            Archive bytes.
        """
        feature_set = as_feature_set(features)
        files: dict[str, str | bytes] = {}
        for path, content in feature_set.attachments.items():
            if path != MANIFEST_NAME:
                files[path] = content

        kml = KMLConverter(self.config)
        drawn: list[etree._Element] = []
        imported: list[etree._Element] = []
        strava: list[etree._Element] = []
        groups: dict[str, list[etree._Element]] = {}

        for counter, feature in enumerate(feature_set, start=1):
            prefix = "Marker" if isinstance(feature.geometry, Point) else "Path"
            default_name = f"{prefix}_{counter}"
            placemark = kml.placemark(feature, default_name)
            group = self._group_path(feature)

            if group is not None:
                groups.setdefault(group, []).append(placemark)
            elif feature.origin in (ORIGIN_DRAWN, ORIGIN_ROUTE):
                drawn.append(placemark)
            elif feature.origin == ORIGIN_STRAVA:
                strava.append(placemark)
            else:
                imported.append(placemark)

        links: list[tuple[str, str]] = []

        def add_document(
            file_name: str, title: str | None, placemarks: list[etree._Element]
        ) -> None:
            file_name = unique_file_name(file_name, _names_in(files))
            link_name = re.sub(r"\.kml$", "", file_name, flags=re.IGNORECASE)
            files[FILES_FOLDER + file_name] = build_kml_document(title or link_name, placemarks)
            links.append((link_name, FILES_FOLDER + file_name))

        for path, placemarks in groups.items():
            add_document(posixpath.basename(path), None, placemarks)
        if drawn:
            add_document(DRAWN_FILE, DRAWN_TITLE, drawn)
        if imported:
            add_document(IMPORTED_FILE, IMPORTED_TITLE, imported)
        if strava:
            add_document(STRAVA_FILE, STRAVA_TITLE, strava)

        links.sort(key=lambda link: (link[0].casefold(), link[0]))

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            _write_entry(archive, MANIFEST_NAME, build_manifest(document_name, links))
            for path in sorted(files):
                _write_entry(archive, path, files[path])
        return buffer.getvalue()

    def _group_path(self, feature: Feature) -> str | None:
        """Original KMZ sub-path the feature is regrouped under, if any."""
        path = feature.source_path
        if not path or posixpath.basename(path).lower() == MANIFEST_NAME:
            return None
        return path


def build_manifest(name: str, links: list[tuple[str, str]]) -> str:
    """Root ``doc.kml`` with one NetworkLink per sub-document."""
    root = etree.Element(f"{{{KML_NAMESPACE}}}kml", nsmap={None: KML_NAMESPACE})
    document = sub_element(root, "Document")
    sub_element(document, "name", name)
    for link_name, href in links:
        network_link = sub_element(document, "NetworkLink")
        sub_element(network_link, "name", link_name)
        sub_element(sub_element(network_link, "Link"), "href", href)
    return to_xml_string(root)


def _names_in(files: dict[str, Any]) -> set[str]:
    """File names already present directly under ``files/``."""
    return {
        path[len(FILES_FOLDER):]
        for path in files
        if path.startswith(FILES_FOLDER) and "/" not in path[len(FILES_FOLDER):]
    }


def _write_entry(archive: zipfile.ZipFile, path: str, content: str | bytes) -> None:
    info = zipfile.ZipInfo(path, date_time=ZIP_TIMESTAMP)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    if isinstance(content, str):
        content = content.encode("utf-8")
    archive.writestr(info, content)
