"""
Share-string codec.

Encodes a Feature Set into a compact, URL-safe string and back.

Uncompressed structure: ``{"v": 1, "f": [record, ...]}`` where each record is

- ``t``: ``"m"`` marker, ``"p"`` path (LineString), ``"a"`` area (Polygon)
- ``c``: ``[lon, lat]`` for markers, a polyline string for paths and areas
- ``n``: name (omitted if empty)
- ``s``: colour (omitted if it equals the default colour)
- ``e``: elevation, an integer for markers or an integer list for paths
  (omitted unless every vertex has one and at least one is non-zero)
- ``sid``: provenance ID (omitted if absent)

The JSON is compressed with raw DEFLATE and written as unpadded URL-safe
base64, so the result can be placed in a URL fragment without further
escaping.
"""

import base64
import json
import logging
import zlib
from typing import Any, Optional, Union

from map_interchange.colors import resolve_color
from map_interchange.config import InterchangeConfig
from map_interchange.exceptions import (
    CorruptPayloadError,
    EmptyResultError,
    UnsupportedVersionError,
)
from map_interchange.models import (
    ORIGIN_SHARE,
    Coordinate,
    Feature,
    FeatureSet,
    LineString,
    Point,
    Polygon,
    as_feature_set,
)
from map_interchange.converters.base import FeaturesInput
from map_interchange.polyline import decode_polyline, encode_polyline, round_half_up

logger = logging.getLogger(__name__)

SHARE_FORMAT_VERSION = 1

# Decompressed payloads larger than this are rejected.
MAX_PAYLOAD_BYTES = 32 * 1024 * 1024

TYPE_TAGS = {"Point": "m", "LineString": "p", "Polygon": "a"}


class ShareCodec:
    """Encode and decode share strings for a given configuration."""

    def __init__(self, config: Optional[InterchangeConfig] = None) -> None:
        self.config = config or InterchangeConfig()

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, features: FeaturesInput) -> Optional[str]:
        """
        Encode features into a share string.

        Args:
            features: Features to share.

        Returns:
            URL-safe string, or None if there is nothing to share.
        """
        envelope = self.to_envelope(features)
        if envelope is None:
            return None
        payload = json.dumps(envelope, separators=(",", ":"), ensure_ascii=False)
        return compress(payload)

    def to_envelope(self, features: FeaturesInput) -> Optional[dict[str, Any]]:
        """Build the uncompressed envelope, or None for an empty set."""
        records = [self._record(f) for f in as_feature_set(features)]
        records = [r for r in records if r is not None]
        if not records:
            return None
        return {"v": SHARE_FORMAT_VERSION, "f": records}

    def _record(self, feature: Feature) -> Optional[dict[str, Any]]:
        geometry = feature.geometry
        coords = geometry.coords
        if not coords:
            return None

        record: dict[str, Any] = {"t": TYPE_TAGS[geometry.type]}
        precision = self.config.precision

        if isinstance(geometry, Point):
            coord = geometry.coord
            record["c"] = [round(coord.lon, precision), round(coord.lat, precision)]
        else:
            record["c"] = encode_polyline(((c.lat, c.lon) for c in coords), precision)

        if feature.name:
            record["n"] = feature.name
        if feature.color and feature.color.upper() != self.config.default_color:
            record["s"] = feature.color.upper()

        elevations = [c.elevation for c in coords]
        if all(e is not None for e in elevations) and any(e != 0 for e in elevations):
            rounded = [round_half_up(e) for e in elevations]
            record["e"] = rounded[0] if isinstance(geometry, Point) else rounded

        if feature.provenance_id:
            record["sid"] = feature.provenance_id
        return record

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, text: str) -> FeatureSet:
        """
        Decode a share string.

        The envelope is all-or-nothing, but a malformed record inside a
        well-formed envelope is skipped with a logged warning.

        Raises:
            CorruptPayloadError: If decompression or JSON parsing fails or
                the envelope is malformed.
            UnsupportedVersionError: If the envelope version is not 1.
            EmptyResultError: If no record could be decoded.
        """
        try:
            envelope = json.loads(decompress(text))
        except (ValueError, zlib.error) as e:
            raise CorruptPayloadError(f"Failed to decode share string: {e}") from e
        return self.from_envelope(envelope)

    def from_envelope(self, envelope: Any) -> FeatureSet:
        """Rebuild a Feature Set from a decompressed envelope."""
        if not isinstance(envelope, dict) or "v" not in envelope:
            raise CorruptPayloadError("Invalid data format: missing version")
        if envelope["v"] != SHARE_FORMAT_VERSION or isinstance(envelope["v"], bool):
            raise UnsupportedVersionError(envelope["v"])
        records = envelope.get("f")
        if not isinstance(records, list):
            raise CorruptPayloadError("Invalid data format: 'f' must be a list")

        features = []
        for index, record in enumerate(records):
            try:
                features.append(self._feature(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Could not decode shared feature %d: %s", index, e)

        if not features:
            raise EmptyResultError("No valid features")
        return FeatureSet(features)

    def _feature(self, record: Any) -> Feature:
        if not isinstance(record, dict):
            raise TypeError(f"record is {type(record).__name__}, not an object")

        tag = record["t"]
        payload = record["c"]
        elevation = record.get("e")
        precision = self.config.precision

        if tag == "m":
            if not isinstance(payload, list) or len(payload) < 2:
                raise ValueError("marker coordinates must be [lon, lat]")
            ele = elevation if _is_number(elevation) else None
            geometry: Union[Point, LineString, Polygon] = Point(
                Coordinate.from_sequence([payload[0], payload[1], ele])
            )
        elif tag in ("p", "a"):
            if not isinstance(payload, str):
                raise ValueError("path coordinates must be a polyline string")
            decoded = decode_polyline(payload, precision)
            if not decoded:
                raise ValueError("empty polyline")
            elevations = elevation if isinstance(elevation, list) else []
            coords = tuple(
                Coordinate(lon, lat, _elevation_at(elevations, i))
                for i, (lat, lon) in enumerate(decoded)
            )
            geometry = LineString(coords) if tag == "p" else Polygon(coords)
        else:
            raise ValueError(f"unknown feature type {tag!r}")

        name = record.get("n")
        sid = record.get("sid")
        return Feature(
            geometry=geometry,
            name=str(name) if name else None,
            color=resolve_color(
                [record.get("s")], self.config.palette, self.config.default_color
            ),
            provenance_id=str(sid) if sid else None,
            origin=ORIGIN_SHARE,
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _elevation_at(elevations: list[Any], index: int) -> Optional[float]:
    if index < len(elevations) and _is_number(elevations[index]):
        return float(elevations[index])
    return None


def compress(text: str) -> str:
    """Raw-DEFLATE ``text`` and return unpadded URL-safe base64."""
    compressed = zlib.compress(text.encode("utf-8"), level=6, wbits=-15)
    return base64.urlsafe_b64encode(compressed).decode("ascii").rstrip("=")


def decompress(text: str) -> str:
    """
    Inverse of :func:`compress`.

    Raises:
        ValueError: On invalid base64, non-UTF-8 content or an oversized payload.
        zlib.error: On a corrupt DEFLATE stream.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("empty share string")
    padded = text + "=" * (-len(text) % 4)
    raw = base64.b64decode(padded, altchars=b"-_", validate=True)

    decompressor = zlib.decompressobj(wbits=-15)
    data = decompressor.decompress(raw, MAX_PAYLOAD_BYTES)
    if decompressor.unconsumed_tail:
        raise ValueError("share payload exceeds size limit")
    data += decompressor.flush()
    if not decompressor.eof:
        raise zlib.error("incomplete or truncated stream")
    return data.decode("utf-8")


def encode_features(
    features: FeaturesInput, config: Optional[InterchangeConfig] = None
) -> Optional[str]:
    """Encode features with a default or supplied configuration."""
    return ShareCodec(config).encode(features)


def decode_features(text: str, config: Optional[InterchangeConfig] = None) -> FeatureSet:
    """Decode a share string with a default or supplied configuration."""
    return ShareCodec(config).decode(text)
