"""Turn raw positioning events into validated GeoSamples."""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from ..config import SpeedUnit
from ..domain.models import GeoSample, RawPosition
from .errors import InvalidSample, OperationResult

MPS_TO_KMH = 3.6


def _now() -> datetime:
    return datetime.now(UTC)


def _field(raw: RawPosition | Mapping[str, Any], name: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(name)
    return getattr(raw, name, None)


def _as_float(value: Any) -> float | None:
    # bool is an int subclass but never a coordinate
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(result):
        return None
    return result


def _parse_timestamp(value: Any, clock: Callable[[], datetime]) -> datetime | None:
    if value is None:
        return clock()
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    epoch_ms = _as_float(value)
    if epoch_ms is None:
        return None
    try:
        return datetime.fromtimestamp(epoch_ms / 1000.0, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def normalize(
    raw: RawPosition | Mapping[str, Any],
    speed_unit: SpeedUnit = SpeedUnit.MPS,
    clock: Callable[[], datetime] = _now,
) -> OperationResult:
    """
    Validate a raw event.

    Args:
        raw: RawPosition or mapping with latitude/longitude/speed/timestamp
        speed_unit: Unit the source reports speed in
        clock: Used when the event carries no timestamp

    Returns:
        OperationResult with a GeoSample, or an InvalidSample error.
        Never raises.
    """
    lat = _as_float(_field(raw, "latitude"))
    lon = _as_float(_field(raw, "longitude"))
    if lat is None or lon is None:
        return OperationResult.failure(InvalidSample("latitude/longitude missing or not a number"))
    if not -90.0 <= lat <= 90.0:
        return OperationResult.failure(InvalidSample(f"latitude out of range: {lat}"))
    if not -180.0 <= lon <= 180.0:
        return OperationResult.failure(InvalidSample(f"longitude out of range: {lon}"))

    captured_at = _parse_timestamp(_field(raw, "timestamp"), clock)
    if captured_at is None:
        return OperationResult.failure(InvalidSample(f"bad timestamp: {_field(raw, 'timestamp')!r}"))

    speed = _as_float(_field(raw, "speed"))
    if speed is None or speed < 0:
        speed = 0.0  # unknown / sentinel speeds count as stationary
    if speed_unit == SpeedUnit.MPS:
        speed *= MPS_TO_KMH

    return OperationResult.success(
        GeoSample(latitude=lat, longitude=lon, speed_kmh=speed, captured_at=captured_at)
    )
