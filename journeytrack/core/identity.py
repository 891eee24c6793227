"""User identity used to scope persisted journeys."""

from __future__ import annotations

import os
from typing import Protocol

from ..config import IdentityConfig


class IdentityProvider(Protocol):
    def current_user_id(self) -> str | None: ...


class StaticIdentity:
    """Fixed user id, e.g. from config or a signed-in session."""

    def __init__(self, user_id: str | None) -> None:
        self._user_id = user_id.strip() if user_id and user_id.strip() else None

    def current_user_id(self) -> str | None:
        return self._user_id


def identity_from_config(cfg: IdentityConfig, override: str | None = None) -> StaticIdentity:
    """Explicit override, then config user_id, then the configured env var."""
    return StaticIdentity(override or cfg.user_id or os.environ.get(cfg.user_env))
