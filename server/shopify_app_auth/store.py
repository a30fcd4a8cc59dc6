import base64
import json
import os
import threading
import time
from typing import Protocol, runtime_checkable

import redis
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import settings
from .models import Session


class SessionStore(Protocol):
    def store(self, session: Session) -> str: ...

    def retrieve(self, session_id: str) -> Session | None: ...

    def delete(self, session_id: str) -> None: ...


@runtime_checkable
class UserSessionStore(SessionStore, Protocol):
    def retrieve_by_user_id(self, user_id: int | str) -> Session | None: ...


def _user_key(session: Session) -> str | None:
    if session.associated_user is None:
        return None
    return str(session.associated_user.id)


class InMemorySessionStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def store(self, session: Session) -> str:
        with self._lock:
            self._sessions[session.id] = session
        return session.id

    def retrieve(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


class InMemoryUserSessionStore(InMemorySessionStore):
    def __init__(self) -> None:
        super().__init__()
        self._users: dict[str, str] = {}

    def store(self, session: Session) -> str:
        user_key = _user_key(session)
        with self._lock:
            self._sessions[session.id] = session
            if user_key is not None:
                self._users[user_key] = session.id
        return session.id

    def retrieve_by_user_id(self, user_id: int | str) -> Session | None:
        session_id = self._users.get(str(user_id))
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            user_key = _user_key(session) if session is not None else None
            # The index may already point at a newer session of the same user.
            if user_key is not None and self._users.get(user_key) == session_id:
                del self._users[user_key]

    @property
    def user_index_size(self) -> int:
        return len(self._users)


class RedisSessionStore:
    """Sessions as AES-GCM encrypted JSON blobs in Redis.

    Key patterns:
        shopify_session:{id}       encrypted session payload
        shopify_user_session:{id}  session id of the user's online session
    """

    SESSION_PREFIX = "shopify_session"
    USER_PREFIX = "shopify_user_session"

    def __init__(
        self,
        client: redis.Redis | None = None,
        encryption_key: str | None = None,
    ) -> None:
        self._client = client or redis.Redis.from_url(f"redis://{settings.redis_endpoint}")
        key = base64.b64decode(encryption_key or settings.redis_encryption_key or "")
        if len(key) != 32:
            raise ValueError("REDIS_ENCRYPTION_KEY must be 32 bytes (base64-encoded)")
        self._aesgcm = AESGCM(key)

    def _key(self, prefix: str, value: str) -> str:
        return f"{prefix}:{value}"

    def _write(self, pipe, session: Session) -> None:
        key = self._key(self.SESSION_PREFIX, session.id)
        payload = self._encrypt(json.dumps(session.to_dict()).encode("utf-8"))
        ttl = self._ttl(session)
        if ttl is None:
            pipe.set(key, payload)
        else:
            pipe.setex(key, ttl, payload)

    def store(self, session: Session) -> str:
        pipe = self._client.pipeline(transaction=True)
        self._write(pipe, session)
        pipe.execute()
        return session.id

    def retrieve(self, session_id: str) -> Session | None:
        raw = self._client.get(self._key(self.SESSION_PREFIX, session_id))
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("ascii")
        payload = json.loads(self._decrypt(raw).decode("utf-8"))
        return Session.from_dict(payload)

    def delete(self, session_id: str) -> None:
        self._client.delete(self._key(self.SESSION_PREFIX, session_id))

    def now(self) -> int:
        return int(time.time())

    def _ttl(self, session: Session) -> int | None:
        if session.expires_at is None:
            return None
        return max(session.expires_at - self.now(), 1)

    def _encrypt(self, plaintext: bytes) -> str:
        nonce = os.urandom(12)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext, None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def _decrypt(self, payload: str) -> bytes:
        raw = base64.b64decode(payload)
        if len(raw) < 13:
            raise ValueError("Invalid encrypted payload")
        return self._aesgcm.decrypt(raw[:12], raw[12:], None)


class RedisUserSessionStore(RedisSessionStore):
    def store(self, session: Session) -> str:
        pipe = self._client.pipeline(transaction=True)
        self._write(pipe, session)
        user_id = _user_key(session)
        if user_id is not None:
            user_key = self._key(self.USER_PREFIX, user_id)
            ttl = self._ttl(session)
            if ttl is None:
                pipe.set(user_key, session.id)
            else:
                pipe.setex(user_key, ttl, session.id)
        pipe.execute()
        return session.id

    def retrieve_by_user_id(self, user_id: int | str) -> Session | None:
        session_id = self._client.get(self._key(self.USER_PREFIX, str(user_id)))
        if not session_id:
            return None
        if isinstance(session_id, bytes):
            session_id = session_id.decode("utf-8")
        return self.retrieve(session_id)

    def delete(self, session_id: str) -> None:
        session = self.retrieve(session_id)
        session_key = self._key(self.SESSION_PREFIX, session_id)
        user_id = _user_key(session) if session is not None else None
        if user_id is None:
            self._client.delete(session_key)
            return
        user_key = self._key(self.USER_PREFIX, user_id)

        def _delete(pipe) -> None:
            # Runs under WATCH on the index; a concurrent store retries it.
            current = pipe.get(user_key)
            if isinstance(current, bytes):
                current = current.decode("utf-8")
            pipe.multi()
            pipe.delete(session_key)
            if current == session_id:
                pipe.delete(user_key)

        self._client.transaction(_delete, user_key)


def create_session_store() -> SessionStore:
    user_storage = settings.user_session_storage
    if settings.session_store_mode.lower() == "redis":
        return RedisUserSessionStore() if user_storage else RedisSessionStore()
    return InMemoryUserSessionStore() if user_storage else InMemorySessionStore()
