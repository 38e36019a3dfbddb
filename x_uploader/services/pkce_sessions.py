"""Short-lived, single-use storage for pending PKCE authorization requests."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from cachetools import TTLCache


@dataclass(frozen=True)
class PKCESession:
    state: str
    code_verifier: str
    user_id: str
    redirect_uri: str


class PKCESessionCache:
    """Keep authorization requests keyed by state until consumed or expired.

    Entries expire ``ttl_seconds`` after creation whether or not the callback
    ever arrives. ``consume`` removes the entry, so a state can be redeemed
    at most once.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 600,
        maxsize: int = 1024,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self._lock = threading.Lock()

    def put(self, session: PKCESession) -> None:
        with self._lock:
            self._sessions[session.state] = session

    def consume(self, state: str) -> Optional[PKCESession]:
        with self._lock:
            return self._sessions.pop(state, None)

    def __len__(self) -> int:
        with self._lock:
            self._sessions.expire()
            return len(self._sessions)


__all__ = ["PKCESession", "PKCESessionCache"]
