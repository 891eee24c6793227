"""
Async Journey Repository
========================

Async data access layer using aiosqlite. Stores completed journeys and
user profiles, always scoped by user id.

Usage:
    repo = AsyncJourneyRepository("data/journeys.db")
    await repo.init_schema()

    journey_id = await repo.save_journey("user-1", record)
    history = await repo.list_journeys("user-1")

    await repo.close()
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from ...domain.models import JourneyRecord, StoredJourney, UserProfile
from .schema import JOURNEY_SCHEMA

logger = logging.getLogger(__name__)


class AsyncJourneyRepository:
    """
    Async repository for journey persistence.

    Non-blocking SQLite operations using aiosqlite.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False

    async def init_schema(self) -> None:
        """Initialize database schema. Must be called after creation."""
        async with self._get_connection() as conn:
            await conn.executescript(JOURNEY_SCHEMA)
            await conn.commit()
        self._initialized = True
        logger.info("Journey database initialized: %s", self.db_path)

    @asynccontextmanager
    async def _get_connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Get async database connection with row factory."""
        conn = await aiosqlite.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
        finally:
            await conn.close()

    async def close(self) -> None:
        """Connections are per-operation; nothing persistent to close."""
        logger.debug("Async repository closed")

    # =========================================================================
    # Journey Operations
    # =========================================================================

    async def save_journey(self, user_id: str, record: JourneyRecord) -> int:
        """
        Store a completed journey for a user.

        Returns:
            Database id of the new journey
        """
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO journeys (
                    user_id, transport_mode, distance_km, elapsed_seconds,
                    elapsed_formatted, started_at, completed_at, point_count, route
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    record.transport_mode.value,
                    record.distance_km,
                    record.elapsed_seconds,
                    record.elapsed_formatted,
                    record.started_at.isoformat(),
                    record.completed_at.isoformat(),
                    record.point_count,
                    json.dumps([list(p) for p in record.route]),
                ),
            )
            await conn.commit()
            journey_id = cursor.lastrowid

        logger.info(
            "Saved journey %s for %s: %.3fkm in %s",
            journey_id,
            user_id,
            record.distance_km,
            record.elapsed_formatted,
        )
        return int(journey_id)  # type: ignore[arg-type]

    async def get_journey(self, user_id: str, journey_id: int) -> StoredJourney | None:
        """Get one journey; None if missing or owned by another user."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM journeys WHERE id = ? AND user_id = ?",
                (journey_id, user_id),
            )
            row = await cursor.fetchone()
        return self._row_to_journey(row) if row else None

    async def list_journeys(self, user_id: str, limit: int = 50) -> list[StoredJourney]:
        """Get a user's journeys, most recent first."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM journeys
                WHERE user_id = ?
                ORDER BY completed_at DESC, id DESC
                LIMIT ?
                """,
                (user_id, limit),
            )
            rows = await cursor.fetchall()
        return [self._row_to_journey(row) for row in rows]

    @staticmethod
    def _row_to_journey(row: aiosqlite.Row) -> StoredJourney:
        record = JourneyRecord(
            transport_mode=row["transport_mode"],
            distance_km=row["distance_km"],
            elapsed_seconds=row["elapsed_seconds"],
            elapsed_formatted=row["elapsed_formatted"],
            started_at=datetime.fromisoformat(row["started_at"]),
            completed_at=datetime.fromisoformat(row["completed_at"]),
            route=tuple(tuple(p) for p in json.loads(row["route"])),
        )
        return StoredJourney(id=row["id"], user_id=row["user_id"], record=record)

    # =========================================================================
    # User Operations
    # =========================================================================

    async def save_user(self, user_id: str, email: str | None = None, name: str | None = None) -> bool:
        """
        Create a user profile if it does not exist yet.

        Returns:
            True if created, False if the user already existed
        """
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "INSERT OR IGNORE INTO users (user_id, email, name, created_at) VALUES (?, ?, ?, ?)",
                (user_id, email, name, datetime.now(UTC).isoformat()),
            )
            await conn.commit()
            created = cursor.rowcount > 0

        if not created:
            logger.info("User %s already exists in the database", user_id)
        return created

    async def get_user(self, user_id: str) -> UserProfile | None:
        async with self._get_connection() as conn:
            cursor = await conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,))
            row = await cursor.fetchone()
        if not row:
            return None
        return UserProfile(
            user_id=row["user_id"],
            email=row["email"],
            name=row["name"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_stats(self, user_id: str) -> dict:
        """Totals across a user's journeys."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                """
                SELECT COUNT(*), COALESCE(SUM(distance_km), 0), COALESCE(SUM(elapsed_seconds), 0)
                FROM journeys WHERE user_id = ?
                """,
                (user_id,),
            )
            row = await cursor.fetchone()

        return {
            "journeys_total": row[0] if row else 0,
            "distance_km_total": float(row[1]) if row else 0.0,
            "elapsed_seconds_total": int(row[2]) if row else 0,
        }

    # =========================================================================
    # Export Operations
    # =========================================================================

    async def export_gpx(self, user_id: str, journey_id: int, output_path: str | Path) -> int:
        """
        Export a journey route to GPX format.

        Returns:
            Number of track points exported (0 if journey missing or empty)
        """
        journey = await self.get_journey(user_id, journey_id)
        if journey is None or not journey.record.route:
            return 0

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        record = journey.record

        gpx_lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<gpx version="1.1" creator="journeytrack">',
            '  <metadata>',
            f'    <time>{record.started_at.isoformat()}</time>',
            '  </metadata>',
            '  <trk>',
            f'    <name>{record.transport_mode.label} journey {journey.id}</name>',
            f'    <type>{record.transport_mode.value}</type>',
            '    <trkseg>',
        ]
        for lat, lon in record.route:
            gpx_lines.append(f'      <trkpt lat="{lat}" lon="{lon}"/>')
        gpx_lines.extend([
            '    </trkseg>',
            '  </trk>',
            '</gpx>',
        ])

        output_path.write_text("\n".join(gpx_lines), encoding="utf-8")
        logger.info("Exported %d track points to GPX: %s", record.point_count, output_path)
        return record.point_count
