"""
Server-side sessions: session id -> signed-in identity.

Supports an in-memory store for tests/local runs and a Redis-backed store for
production. How long a session lives is decided by an expiry policy so the
stores never hard-code a lifetime.
"""

from __future__ import annotations

import json
import secrets
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol

import jwt
import redis
from redis import exceptions as redis_exceptions

from feedback_backend.errors import PersistenceError

TOKEN_ALGORITHM = "HS256"


@dataclass(frozen=True)
class Identity:
    id: str
    name: str
    email: str
    picture: Optional[str] = None


@dataclass(frozen=True)
class SessionRecord:
    session_id: str
    identity: Identity
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def as_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "identity": asdict(self.identity),
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRecord":
        return cls(
            session_id=data["session_id"],
            identity=Identity(**data["identity"]),
            issued_at=datetime.fromisoformat(data["issued_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


class ExpiryPolicy(Protocol):
    def expires_at(self, issued_at: datetime) -> datetime:
        ...


@dataclass(frozen=True)
class FixedLifetime:
    """Sessions end a fixed time after issuance; activity does not extend them."""

    lifetime: timedelta = timedelta(days=7)

    def expires_at(self, issued_at: datetime) -> datetime:
        return issued_at + self.lifetime


class SessionStore(Protocol):
    """Minimal interface for looking up and ending sessions."""

    def create(self, identity: Identity) -> SessionRecord:
        ...

    def get(self, session_id: str) -> Optional[SessionRecord]:
        ...

    def delete(self, session_id: str) -> None:
        ...


def _new_session(identity: Identity, policy: ExpiryPolicy) -> SessionRecord:
    issued_at = datetime.now(timezone.utc)
    return SessionRecord(
        session_id=secrets.token_urlsafe(32),
        identity=identity,
        issued_at=issued_at,
        expires_at=policy.expires_at(issued_at),
    )


class InMemorySessionStore:
    """Dict-backed session store for testing/dev."""

    def __init__(self, policy: ExpiryPolicy | None = None):
        self.policy = policy or FixedLifetime()
        self.sessions: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def create(self, identity: Identity) -> SessionRecord:
        record = _new_session(identity, self.policy)
        with self._lock:
            self.sessions[record.session_id] = record
        return record

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            record = self.sessions.get(session_id)
            if record is not None and record.is_expired():
                del self.sessions[session_id]
                return None
        return record

    def delete(self, session_id: str) -> None:
        with self._lock:
            self.sessions.pop(session_id, None)


class RedisSessionStore:
    """Redis-backed store; each session is a JSON value that expires with it."""

    def __init__(
        self,
        url: str,
        key_prefix: str = "feedback:session:",
        policy: ExpiryPolicy | None = None,
    ):
        self.url = url
        self.key_prefix = key_prefix
        self.policy = policy or FixedLifetime()
        self.client = redis.Redis.from_url(url)

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    def create(self, identity: Identity) -> SessionRecord:
        record = _new_session(identity, self.policy)
        ttl = max(1, int((record.expires_at - record.issued_at).total_seconds()))
        try:
            self.client.set(
                self._key(record.session_id), json.dumps(record.as_dict()), ex=ttl
            )
        except redis_exceptions.RedisError as exc:
            raise PersistenceError("Failed to store session") from exc
        return record

    def get(self, session_id: str) -> Optional[SessionRecord]:
        try:
            raw = self.client.get(self._key(session_id))
        except redis_exceptions.RedisError as exc:
            raise PersistenceError("Failed to load session") from exc
        if raw is None:
            return None
        record = SessionRecord.from_dict(json.loads(raw))
        if record.is_expired():
            self.delete(session_id)
            return None
        return record

    def delete(self, session_id: str) -> None:
        try:
            self.client.delete(self._key(session_id))
        except redis_exceptions.RedisError as exc:
            raise PersistenceError("Failed to delete session") from exc


def sign_session_token(record: SessionRecord, secret: str) -> str:
    """Cookie value: the session id signed with the session secret."""
    payload = {"sid": record.session_id, "exp": record.expires_at}
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def read_session_token(token: str, secret: str) -> Optional[str]:
    """Return the session id inside ``token``, or None if it is forged or expired."""
    try:
        payload = jwt.decode(token, secret, algorithms=[TOKEN_ALGORITHM])
    except jwt.PyJWTError:
        return None
    value = payload.get("sid")
    return value if isinstance(value, str) else None


def sign_state(state: str, secret: str, lifetime: timedelta = timedelta(minutes=10)) -> str:
    payload = {"state": state, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def read_state(token: str, secret: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, secret, algorithms=[TOKEN_ALGORITHM])
    except jwt.PyJWTError:
        return None
    return payload.get("state")
