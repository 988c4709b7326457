"""Google encoded polyline codec.

Each coordinate is stored as a delta from the previous point in 1e5 fixed
point. A delta is zig-zag encoded (left shift, inverted when negative), split
into 5-bit groups least significant first, each group OR'd with 0x20 while
more groups follow, and offset by 63 into printable ASCII.
"""
from typing import Iterable, List, Tuple

from models.navigation import LocationPoint

PRECISION = 1e5

class PolylineDecodeError(ValueError):
    """Raised when an encoded polyline is truncated or malformed."""

def _decode_value(encoded: str, index: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise PolylineDecodeError(f"Polyline truncated at position {index}")
        b = ord(encoded[index]) - 63
        index += 1
        if b < 0 or b > 63:
            raise PolylineDecodeError(f"Invalid polyline character {encoded[index - 1]!r} at position {index - 1}")
        result |= (b & 0x1f) << shift
        shift += 5
        if b < 0x20:
            break
    delta = ~(result >> 1) if result & 1 else result >> 1
    return delta, index

def decode(encoded: str) -> List[LocationPoint]:
    """Decode a polyline string into points."""
    points = []
    index = 0
    lat = 0
    lng = 0

    while index < len(encoded):
        dlat, index = _decode_value(encoded, index)
        lat += dlat
        dlng, index = _decode_value(encoded, index)
        lng += dlng
        points.append(LocationPoint(lat / PRECISION, lng / PRECISION))

    return points

def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1f)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)

def _round(value: float) -> int:
    # Half away from zero, matching the reference encoder
    scaled = abs(value) * PRECISION
    rounded = int(scaled + 0.5)
    return -rounded if value < 0 else rounded

def encode(points: Iterable[LocationPoint]) -> str:
    """Encode points into a polyline string."""
    output = []
    prev_lat = 0
    prev_lng = 0

    for point in points:
        lat = _round(point.latitude)
        lng = _round(point.longitude)
        output.append(_encode_value(lat - prev_lat))
        output.append(_encode_value(lng - prev_lng))
        prev_lat, prev_lng = lat, lng

    return "".join(output)
