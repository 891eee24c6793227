"""journeytrack Core - Event bus and identity."""

from .events import Event, EventBus, EventType
from .identity import IdentityProvider, StaticIdentity, identity_from_config

__all__ = [
    # Events
    "Event",
    "EventBus",
    "EventType",
    # Identity
    "IdentityProvider",
    "StaticIdentity",
    "identity_from_config",
]
