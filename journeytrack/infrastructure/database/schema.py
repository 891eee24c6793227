"""SQLite database schema for journey data."""

JOURNEY_SCHEMA = """
-- ============================================
-- journeytrack Database Schema
-- Version: 1.0.0
-- ============================================

-- User profiles (written once per user id)
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    email TEXT,
    name TEXT,
    created_at TEXT NOT NULL
);

-- Completed journeys, scoped by user id
CREATE TABLE IF NOT EXISTS journeys (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    transport_mode TEXT NOT NULL,
    distance_km REAL NOT NULL DEFAULT 0,
    elapsed_seconds INTEGER NOT NULL DEFAULT 0,
    elapsed_formatted TEXT NOT NULL DEFAULT '00:00:00',
    started_at TEXT NOT NULL,
    completed_at TEXT NOT NULL,
    point_count INTEGER NOT NULL DEFAULT 0,
    route TEXT NOT NULL DEFAULT '[]'  -- JSON array: [[lat, lon], ...]
);

CREATE INDEX IF NOT EXISTS idx_journeys_user ON journeys(user_id, completed_at);
"""
