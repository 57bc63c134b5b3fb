from __future__ import annotations

import json
import re
from typing import Any

_PUROK_PREFIX = re.compile(r"^purok\s*", re.IGNORECASE)


def normalize_purok(value: str | None) -> str:
    """'Purok 3' -> '3'; anything without the prefix is only trimmed."""
    if not value:
        return ""
    return _PUROK_PREFIX.sub("", value.strip()).strip()


def _decode(raw: str) -> Any:
    cleaned = raw.replace("'", '"').strip()
    if not cleaned:
        return []
    decoded = json.loads(cleaned)
    # Legacy rows were JSON-encoded twice
    if isinstance(decoded, str):
        decoded = json.loads(decoded)
    return decoded


def _pair(point: Any) -> tuple[float, float]:
    if isinstance(point, dict):
        lat = point.get("lat", point.get("latitude"))
        lng = point.get("lng", point.get("lon", point.get("longitude")))
    elif isinstance(point, (list, tuple)) and len(point) == 2:
        lat, lng = point
    else:
        raise ValueError(f"Route point must be a [lat, lng] pair, got {point!r}")
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Route point has non-numeric coordinates: {point!r}") from exc
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
        raise ValueError(f"Route point out of range: {point!r}")
    return lat, lng


def parse_route_points(value: Any) -> list[tuple[float, float]]:
    """Accept pairs, ``{lat, lng}`` mappings, or (double-)encoded JSON strings.

    Order is preserved; the result is a list of ``(lat, lng)`` tuples.
    """
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = _decode(value)
        except json.JSONDecodeError as exc:
            raise ValueError("Route points are not valid JSON") from exc
    if not isinstance(value, (list, tuple)):
        raise ValueError("Route points must be a list")
    return [_pair(point) for point in value]
