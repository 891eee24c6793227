"""
Journey State Machine
=====================

Owns the single live Journey and mediates every mutation of it.

    not_started --start--> active --end--> finished --reset--> not_started
                              \\------------reset (abandon)------/

Every public operation returns an OperationResult. Validation runs before
any field is touched, so a failed call leaves the journey exactly as it was.

Usage:
    engine = JourneyEngine()
    engine.select_transport_and_start("cycling")

    for raw in positions:
        engine.ingest_sample(raw)
    engine.tick()

    record = engine.end_journey().unwrap()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from ..config import TrackingConfig
from ..domain.models import (
    Coordinate,
    GeoSample,
    JourneyRecord,
    JourneySnapshot,
    JourneyStatus,
    RawPosition,
    Route,
    TransportMode,
)
from .distance import accumulate
from .errors import IllegalTransition, InvalidTransportMode, OperationResult
from .normalizer import normalize
from .route import RouteBuffer
from .timer import ElapsedTimeTracker, format_elapsed

logger = logging.getLogger(__name__)


def parse_transport_mode(mode: TransportMode | str | None) -> TransportMode | None:
    """Map user input onto the closed mode set, None if it does not fit."""
    if isinstance(mode, TransportMode):
        return mode
    if not isinstance(mode, str) or not mode.strip():
        return None
    try:
        return TransportMode(mode.strip().lower())
    except ValueError:
        return None


class JourneyEngine:
    """
    Single-journey tracking engine.

    Not thread-safe: call it from one logical thread (one event loop).
    """

    def __init__(
        self,
        config: TrackingConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or TrackingConfig()
        self._clock = clock
        self._route = RouteBuffer()
        self._timer = ElapsedTimeTracker()
        self._status = JourneyStatus.NOT_STARTED
        self._transport_mode: TransportMode | None = None
        self._started_at: datetime | None = None
        self._distance_km = 0.0
        self._last_sample: GeoSample | None = None

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def status(self) -> JourneyStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._status == JourneyStatus.ACTIVE

    @property
    def transport_mode(self) -> TransportMode | None:
        return self._transport_mode

    @property
    def distance_km(self) -> float:
        return self._distance_km

    @property
    def elapsed_seconds(self) -> int:
        return self._timer.elapsed_seconds

    @property
    def elapsed_formatted(self) -> str:
        return format_elapsed(self._timer.elapsed_seconds)

    @property
    def last_sample(self) -> GeoSample | None:
        return self._last_sample

    def route(self) -> Route:
        return self._route.snapshot()

    def route_endpoints(self) -> tuple[Coordinate, Coordinate] | None:
        return self._route.endpoints()

    def route_bounds(self) -> tuple[Coordinate, Coordinate] | None:
        return self._route.bounds()

    def snapshot(self) -> JourneySnapshot:
        return JourneySnapshot(
            status=self._status,
            transport_mode=self._transport_mode,
            started_at=self._started_at,
            route=self._route.snapshot(),
            distance_km=self._distance_km,
            elapsed_seconds=self._timer.elapsed_seconds,
            elapsed_formatted=self.elapsed_formatted,
            last_sample=self._last_sample,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def select_transport_and_start(
        self, mode: TransportMode | str | None, now: float | None = None
    ) -> OperationResult:
        """Begin a journey in the given transport mode."""
        parsed = parse_transport_mode(mode)
        if parsed is None:
            logger.warning("Rejected transport mode: %r", mode)
            return OperationResult.failure(
                InvalidTransportMode(
                    f"transport mode must be one of {[m.value for m in TransportMode]}, got {mode!r}"
                )
            )
        if self._status != JourneyStatus.NOT_STARTED:
            return self._illegal("start", "reset the engine before starting a new journey")

        start = self._clock() if now is None else now
        self._clear()
        self._transport_mode = parsed
        self._started_at = datetime.fromtimestamp(start, tz=UTC)
        self._timer.start(start)
        self._status = JourneyStatus.ACTIVE
        logger.info("Journey started: mode=%s at %s", parsed.value, self._started_at.isoformat())
        return OperationResult.success(self.snapshot())

    def ingest_sample(self, raw: RawPosition | Mapping[str, Any]) -> OperationResult:
        """
        Feed one raw position.

        Ignored (ok, no value) unless active. Returns the distance Increment
        for normalized samples or an InvalidSample error.
        """
        if self._status != JourneyStatus.ACTIVE:
            logger.debug("Sample ignored: journey not active (%s)", self._status.value)
            return OperationResult.success(None)

        result = normalize(raw, self.config.speed_unit, clock=self._clock_datetime)
        if not result.ok:
            logger.warning("Invalid sample dropped: %s", result.error)
            return result

        sample: GeoSample = result.value
        step = accumulate(self._last_sample, sample, self.config.noise_gate_km)
        if step.accept:
            self._distance_km += step.increment_km
        else:
            logger.debug("Jitter below noise gate: %.6f km", step.increment_km)
        self._route.append(sample)
        self._last_sample = sample
        return OperationResult.success(step)

    def tick(self, now: float | None = None) -> OperationResult:
        """Recompute elapsed time; ignored unless active."""
        if self._status != JourneyStatus.ACTIVE:
            return OperationResult.success(None)
        current = self._clock() if now is None else now
        return OperationResult.success(self._timer.tick(current))

    def end_journey(self, now: float | None = None) -> OperationResult:
        """Finish the active journey and return its JourneyRecord.

        The timer is ticked to the completion time before it is frozen, so
        ``elapsed_seconds`` always matches ``completed_at``.
        """
        if self._status != JourneyStatus.ACTIVE:
            return self._illegal("end", "no journey in progress")

        completed = self._clock() if now is None else now
        self._timer.tick(completed)
        record = JourneyRecord(
            transport_mode=self._transport_mode,  # type: ignore[arg-type]
            distance_km=self._distance_km,
            elapsed_seconds=self._timer.stop(),
            elapsed_formatted=self.elapsed_formatted,
            started_at=self._started_at,  # type: ignore[arg-type]
            completed_at=datetime.fromtimestamp(completed, tz=UTC),
            route=self._route.snapshot(),
        )
        self._status = JourneyStatus.FINISHED
        logger.info(
            "Journey finished: mode=%s distance=%.3fkm duration=%s points=%d",
            record.transport_mode.value,
            record.distance_km,
            record.elapsed_formatted,
            record.point_count,
        )
        return OperationResult.success(record)

    def reset(self) -> OperationResult:
        """Zero the journey. Abandons an active one; no-op when not started."""
        if self._status == JourneyStatus.NOT_STARTED:
            return OperationResult.success(self.snapshot())
        if self._status == JourneyStatus.ACTIVE:
            logger.info("Active journey abandoned")
        self._clear()
        self._transport_mode = None
        self._status = JourneyStatus.NOT_STARTED
        return OperationResult.success(self.snapshot())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _clear(self) -> None:
        self._route.clear()
        self._timer.reset()
        self._distance_km = 0.0
        self._started_at = None
        self._last_sample = None

    def _clock_datetime(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=UTC)

    def _illegal(self, action: str, reason: str) -> OperationResult:
        logger.warning("Illegal transition: %s while %s", action, self._status.value)
        return OperationResult.failure(
            IllegalTransition(f"cannot {action} while {self._status.value}: {reason}")
        )
