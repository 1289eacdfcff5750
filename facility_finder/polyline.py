"""Encoded polyline codec (the Google polyline algorithm at a configurable precision).

OpenRouteService returns route geometry encoded at 5 decimal places, which is
the default here. Decoding with the wrong precision scales every coordinate by
a power of ten, so callers talking to a 6-digit service must pass
``precision=6``.
"""

from __future__ import annotations

from typing import Iterable, Sequence

LatLon = tuple[float, float]

_OFFSET = 63
_CHUNK_MASK = 0x1F
_CONTINUATION = 0x20


def _read_value(encoded: str, index: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise ValueError("Truncated polyline: ran out of characters mid-value")
        byte = ord(encoded[index]) - _OFFSET
        index += 1
        if byte < 0 or byte > 0x3F:
            raise ValueError(f"Invalid polyline character {encoded[index - 1]!r} at {index - 1}")
        result |= (byte & _CHUNK_MASK) << shift
        shift += 5
        if byte < _CONTINUATION:
            break
    delta = ~(result >> 1) if result & 1 else result >> 1
    return delta, index


def decode_polyline(encoded: str | None, precision: int = 5) -> list[LatLon]:
    """Decode *encoded* into ``(lat, lon)`` pairs.

    Empty or ``None`` input yields an empty list.
    """

    if not encoded:
        return []

    factor = 10 ** precision
    points: list[LatLon] = []
    index = 0
    lat = 0
    lon = 0
    while index < len(encoded):
        dlat, index = _read_value(encoded, index)
        dlon, index = _read_value(encoded, index)
        lat += dlat
        lon += dlon
        points.append((lat / factor, lon / factor))
    return points


def _write_value(value: int, out: list[str]) -> None:
    value = ~(value << 1) if value < 0 else value << 1
    while value >= _CONTINUATION:
        out.append(chr((_CONTINUATION | (value & _CHUNK_MASK)) + _OFFSET))
        value >>= 5
    out.append(chr(value + _OFFSET))


def encode_polyline(points: Iterable[Sequence[float]], precision: int = 5) -> str:
    """Encode ``(lat, lon)`` pairs; the inverse of :func:`decode_polyline`."""

    factor = 10 ** precision
    out: list[str] = []
    prev_lat = 0
    prev_lon = 0
    for lat, lon in points:
        lat_i = int(round(lat * factor))
        lon_i = int(round(lon * factor))
        _write_value(lat_i - prev_lat, out)
        _write_value(lon_i - prev_lon, out)
        prev_lat, prev_lon = lat_i, lon_i
    return "".join(out)
