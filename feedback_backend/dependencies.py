"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from fastapi import Depends, Request
from pymongo import MongoClient
from sqlalchemy.engine import Engine

from feedback_backend.config import Settings, get_settings
from feedback_backend.errors import Unauthorized
from feedback_backend.oauth import GoogleOAuthClient, IdentityProvider
from feedback_backend.records import FEEDBACK, IMPROVEMENT, RecordKind
from feedback_backend.sessions import (
    FixedLifetime,
    InMemorySessionStore,
    RedisSessionStore,
    SessionRecord,
    SessionStore,
    read_session_token,
)
from feedback_backend.store import (
    InMemoryRecordStore,
    MongoRecordStore,
    RecordStore,
    SqlRecordStore,
    create_sql_engine,
    mongo_client,
)

_stores: dict[str, RecordStore] = {}
_engine: Engine | None = None
_mongo: MongoClient | None = None
_session_store: SessionStore | None = None

MONGO_SCHEMES = ("mongodb://", "mongodb+srv://")


def build_record_store(kind: RecordKind, settings: Settings) -> RecordStore:
    """Pick the backend for ``kind`` from the configured database URL."""
    global _engine, _mongo
    url = settings.database_url
    if settings.use_in_memory_backends or not url:
        return InMemoryRecordStore(kind)
    if url.startswith(MONGO_SCHEMES):
        if _mongo is None:
            _mongo = mongo_client(url)
        database = _mongo.get_default_database(settings.mongo_database)
        collection = database[kind.collection]
        return MongoRecordStore(kind, collection)
    if _engine is None:
        _engine = create_sql_engine(url)
    return SqlRecordStore(kind, _engine)


def get_record_store(kind: RecordKind, settings: Settings) -> RecordStore:
    """
    Return a singleton store per record type so state persists across requests.
    """
    store = _stores.get(kind.name)
    if store is None:
        store = build_record_store(kind, settings)
        _stores[kind.name] = store
    return store


def get_feedback_store(settings: Settings = Depends(get_settings)) -> RecordStore:
    return get_record_store(FEEDBACK, settings)


def get_improvement_store(settings: Settings = Depends(get_settings)) -> RecordStore:
    return get_record_store(IMPROVEMENT, settings)


def reset_backends() -> None:
    """Forget cached stores so the next request rebuilds them from settings."""
    global _engine, _mongo, _session_store
    _stores.clear()
    _engine = None
    _mongo = None
    _session_store = None


def get_session_store(settings: Settings = Depends(get_settings)) -> SessionStore:
    global _session_store
    if _session_store:
        return _session_store

    policy = FixedLifetime(lifetime=timedelta(days=settings.session_lifetime_days))
    if settings.redis_url and not settings.use_in_memory_backends:
        _session_store = RedisSessionStore(
            url=settings.redis_url,
            key_prefix=settings.redis_session_prefix,
            policy=policy,
        )
    else:
        _session_store = InMemorySessionStore(policy=policy)
    return _session_store


def get_identity_provider(
    settings: Settings = Depends(get_settings),
) -> IdentityProvider:
    return GoogleOAuthClient(
        client_id=settings.google_client_id or "",
        client_secret=settings.google_client_secret or "",
        redirect_url=settings.oauth_redirect_url,
    )


def resolve_session(
    request: Request, settings: Settings, sessions: SessionStore
) -> Optional[SessionRecord]:
    """Resolve the session cookie to a live session, or None."""
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    session_id = read_session_token(token, settings.session_secret)
    if not session_id:
        return None
    return sessions.get(session_id)


def get_current_session(
    request: Request,
    settings: Settings = Depends(get_settings),
    sessions: SessionStore = Depends(get_session_store),
) -> Optional[SessionRecord]:
    return resolve_session(request, settings, sessions)


def require_identity(
    request: Request,
    settings: Settings = Depends(get_settings),
    sessions: SessionStore = Depends(get_session_store),
) -> Optional[SessionRecord]:
    """
    Gate for mutating routes. Only enforced when the server runs with
    REQUIRE_AUTH; otherwise every caller is let through.
    """
    if not settings.require_auth:
        return None
    session = resolve_session(request, settings, sessions)
    if session is None:
        raise Unauthorized("Authentication required")
    return session
