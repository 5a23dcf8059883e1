"""
Polyline encoding/decoding.

The same scheme Google and Strava use for compact routes: positions are
scaled to integers at a fixed decimal precision, differenced against the
previous position, zig-zag signed and written five bits per printable
character. Pairs are (lat, lon), latitude first.
"""

import math
from typing import Iterable, List, Tuple


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def encode_polyline(coordinates: Iterable[Tuple[float, float]], precision: int = 5) -> str:
    """
    Encode (lat, lon) pairs into a polyline string.

    Args:
        coordinates: Iterable of (latitude, longitude) tuples.
        precision: Number of decimal digits kept.

    Returns:
        Polyline encoded string.
    """
    factor = 10**precision
    encoded: List[str] = []
    prev_lat = 0
    prev_lng = 0

    for lat, lng in coordinates:
        lat_int = round_half_up(lat * factor)
        lng_int = round_half_up(lng * factor)

        encoded.append(_encode_value(lat_int - prev_lat))
        encoded.append(_encode_value(lng_int - prev_lng))

        prev_lat = lat_int
        prev_lng = lng_int

    return "".join(encoded)


def _encode_value(value: int) -> str:
    """Zig-zag sign a delta and pack it 5 bits per character."""
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def decode_polyline(encoded: str, precision: int = 5) -> List[Tuple[float, float]]:
    """
    Decode a polyline string into (lat, lon) pairs.

    Args:
        encoded: Polyline encoded string.
        precision: Number of decimal digits used when encoding.

    Returns:
        List of (latitude, longitude) tuples.

    Raises:
        ValueError: If the string contains characters outside the polyline
            alphabet or ends in the middle of a value.
    """
    factor = 10**precision
    coordinates = []
    index = 0
    lat = 0
    lng = 0

    while index < len(encoded):
        dlat, index = _decode_value(encoded, index)
        dlng, index = _decode_value(encoded, index)
        lat += dlat
        lng += dlng
        coordinates.append((lat / factor, lng / factor))

    return coordinates


def _decode_value(encoded: str, index: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise ValueError("Polyline ends in the middle of a value")
        b = ord(encoded[index]) - 63
        if not 0 <= b < 64:
            raise ValueError(f"Invalid polyline character {encoded[index]!r} at {index}")
        index += 1
        result |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break

    value = ~(result >> 1) if (result & 1) else (result >> 1)
    return value, index
