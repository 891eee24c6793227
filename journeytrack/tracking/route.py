"""Append-only store of journey coordinates."""

from __future__ import annotations

from ..domain.models import Coordinate, GeoSample, Route


class RouteBuffer:
    """
    Ordered positions of the current journey.

    Readers only ever get tuples; the internal list is never handed out.
    """

    def __init__(self) -> None:
        self._points: list[Coordinate] = []

    def __len__(self) -> int:
        return len(self._points)

    def append(self, sample: GeoSample) -> None:
        self._points.append(sample.coordinate)

    def snapshot(self) -> Route:
        return tuple(self._points)

    def clear(self) -> None:
        self._points.clear()

    def endpoints(self) -> tuple[Coordinate, Coordinate] | None:
        """Start and end markers for a map view."""
        if not self._points:
            return None
        return self._points[0], self._points[-1]

    def bounds(self) -> tuple[Coordinate, Coordinate] | None:
        """South-west and north-east corners enclosing the route."""
        if not self._points:
            return None
        lats = [p[0] for p in self._points]
        lons = [p[1] for p in self._points]
        return (min(lats), min(lons)), (max(lats), max(lons))
