"""Server-side session storage and signed session tokens.

A session token is a JWT carrying an opaque session id (``sid``). The token
only authenticates a request while its ``sid`` is still present in the
session store, so deleting the entry (logout) invalidates the token before it
expires.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

import jwt
import redis

from .config import Settings, settings

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Mapping of session id to user id with per-entry expiry."""

    @abstractmethod
    def get(self, sid: str) -> Optional[int]:
        ...

    @abstractmethod
    def set(self, sid: str, user_id: int, ttl: timedelta) -> None:
        ...

    @abstractmethod
    def delete(self, sid: str) -> None:
        ...

    @abstractmethod
    def purge_expired(self) -> int:
        ...


class InMemorySessionStore(SessionStore):
    """Process-local store guarded by a lock."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[int, float]] = {}

    def get(self, sid: str) -> Optional[int]:
        with self._lock:
            entry = self._entries.get(sid)
            if entry is None:
                return None
            user_id, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[sid]
                return None
            return user_id

    def set(self, sid: str, user_id: int, ttl: timedelta) -> None:
        with self._lock:
            self._entries[sid] = (user_id, self._clock() + ttl.total_seconds())

    def delete(self, sid: str) -> None:
        with self._lock:
            self._entries.pop(sid, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [sid for sid, (_, exp) in self._entries.items() if exp <= now]
            for sid in expired:
                del self._entries[sid]
        if expired:
            logger.debug("purged %d expired sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisSessionStore(SessionStore):
    """Store backed by Redis keys with native expiry."""

    key_prefix = "session:"

    def __init__(self, client: "redis.Redis"):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def _key(self, sid: str) -> str:
        return f"{self.key_prefix}{sid}"

    def get(self, sid: str) -> Optional[int]:
        value = self.client.get(self._key(sid))
        if value is None:
            return None
        return int(value)

    def set(self, sid: str, user_id: int, ttl: timedelta) -> None:
        self.client.setex(self._key(sid), int(ttl.total_seconds()), str(user_id))

    def delete(self, sid: str) -> None:
        self.client.delete(self._key(sid))

    def purge_expired(self) -> int:
        # Redis evicts expired keys itself
        return 0


def build_session_store(config: Settings = settings) -> SessionStore:
    """Create the session store selected by ``SESSION_BACKEND``."""
    backend = config.session_backend.lower()
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "redis":
        logger.info("using redis session store at %s", config.redis_url)
        return RedisSessionStore.from_url(config.redis_url)
    raise ValueError(f"Unsupported session backend: {config.session_backend}")


def session_ttl(config: Settings = settings) -> timedelta:
    return timedelta(days=config.session_ttl_days)


def issue_token(store: SessionStore, user_id: int, config: Settings = settings) -> str:
    """Open a session for ``user_id`` and return its signed token."""
    sid = secrets.token_urlsafe(32)
    ttl = session_ttl(config)
    store.set(sid, user_id, ttl)
    payload = {"sid": sid, "exp": datetime.utcnow() + ttl}
    return jwt.encode(payload, config.session_secret, algorithm=config.session_algorithm)


def _decode(token: str, config: Settings, verify_exp: bool = True) -> Optional[str]:
    try:
        payload = jwt.decode(
            token,
            config.session_secret,
            algorithms=[config.session_algorithm],
            options={"verify_exp": verify_exp},
        )
    except jwt.PyJWTError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) else None


def resolve_token(
    store: SessionStore, token: str, config: Settings = settings
) -> Optional[int]:
    """Return the user id bound to ``token`` or ``None`` if it is not live."""
    sid = _decode(token, config)
    if sid is None:
        return None
    return store.get(sid)


def revoke_token(store: SessionStore, token: str, config: Settings = settings) -> None:
    sid = _decode(token, config, verify_exp=False)
    if sid is not None:
        store.delete(sid)
