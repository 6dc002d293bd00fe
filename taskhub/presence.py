"""
Online-presence tracking with TTL eviction.

Every authenticated request "touches" its principal. A user counts as online
until ``ttl_seconds`` pass without a touch. Entries live in an injected
mutable mapping (a plain dict by default) so a shared key/value store can be
swapped in when the service runs as several processes.

Sync dependencies run in FastAPI's threadpool, so every access to the
mapping holds the tracker's lock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass

from taskhub.authz.principal import Principal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresenceEntry:
    organization_id: int
    seen_at: float


class PresenceTracker:
    def __init__(
        self,
        ttl_seconds: int,
        backend: MutableMapping[int, PresenceEntry] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._entries: MutableMapping[int, PresenceEntry] = backend if backend is not None else {}
        self._clock = clock
        self._lock = threading.RLock()

    def _expired(self, entry: PresenceEntry, now: float) -> bool:
        return (now - entry.seen_at) >= self._ttl

    def touch(self, principal: Principal) -> None:
        with self._lock:
            if principal.id not in self._entries:
                logger.debug("User online user=%s", principal.id)
            self._entries[principal.id] = PresenceEntry(principal.organization_id, self._clock())

    def mark_offline(self, user_id: int) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def is_online(self, user_id: int) -> bool:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return False
            if self._expired(entry, self._clock()):
                self.mark_offline(user_id)
                return False
            return True

    def evict_expired(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [user_id for user_id, entry in self._entries.items() if self._expired(entry, now)]
            for user_id in stale:
                del self._entries[user_id]
        if stale:
            logger.debug("Presence evicted %d stale user(s)", len(stale))
        return len(stale)

    def online_users(self, organization_id: int) -> list[int]:
        """Online user ids of one organization, ascending."""
        with self._lock:
            self.evict_expired()
            return sorted(
                user_id for user_id, entry in self._entries.items() if entry.organization_id == organization_id
            )
