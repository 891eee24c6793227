"""
Distance Accumulator
====================

Incremental great-circle distance between consecutive GeoSamples.
Uses the Haversine formula and a noise gate that discards GPS jitter.

Usage:
    step = accumulate(previous, sample)
    if step.accept:
        total_km += step.increment_km
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from ..domain.models import GeoSample

EARTH_RADIUS_KM = 6371.0
DEFAULT_NOISE_GATE_KM = 0.001  # 1 meter


@dataclass(frozen=True)
class Increment:
    """Distance step between two samples and whether it counts."""

    increment_km: float
    accept: bool


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points using Haversine formula.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in kilometers
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def accumulate(
    previous: GeoSample | None,
    sample: GeoSample,
    noise_gate_km: float = DEFAULT_NOISE_GATE_KM,
) -> Increment:
    """
    Decide how much distance the new sample adds.

    The first sample of a journey is always accepted with no distance.
    Later increments count only when strictly above the noise gate; the
    caller still records the position either way.
    """
    if previous is None:
        return Increment(increment_km=0.0, accept=True)

    distance = haversine_km(previous.latitude, previous.longitude, sample.latitude, sample.longitude)
    return Increment(increment_km=distance, accept=distance > noise_gate_km)
