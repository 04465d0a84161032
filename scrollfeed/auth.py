"""
Writer-panel session gate.

This is a UI gate for a single-author site, not a security boundary: it keeps
the writer panel out of a casual visitor's way. Anything that must really be
protected has to be enforced by the store's own access rules.

The writer's password is never stored in code; the configured value is a
PBKDF2 hash (see `hash_password`).
"""

import hashlib
import hmac
import json
import secrets
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Protocol

from ._logging import logger, redact_value
from .config import WriterCredentials
from .exceptions import AuthenticationError

HASH_ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 260_000


def hash_password(password: str, salt: bytes | None = None, iterations: int = DEFAULT_ITERATIONS) -> str:
    """
    Hashes a password for WriterCredentials.password_hash.

    Usage:
        hash_password("s3cret")  # 'pbkdf2_sha256$260000$<salt>$<digest>'
    """
    salt = salt if salt is not None else secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{HASH_ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Checks a password against a hash produced by hash_password."""
    try:
        algorithm, iterations, salt_hex, digest_hex = encoded.split("$")
        if algorithm != HASH_ALGORITHM:
            return False
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
        rounds = int(iterations)
    except ValueError:
        logger.warning("Malformed writer password hash", extra={"operation": "login"})
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(digest, expected)


@dataclass
class Session:
    username: str
    token: str
    expires_at: float


class SessionStorage(Protocol):
    def load(self) -> dict[str, Any] | None: ...

    def save(self, data: dict[str, Any]) -> None: ...

    def clear(self) -> None: ...


class MemorySessionStorage:
    def __init__(self) -> None:
        self._data: dict[str, Any] | None = None

    def load(self) -> dict[str, Any] | None:
        return dict(self._data) if self._data is not None else None

    def save(self, data: dict[str, Any]) -> None:
        self._data = dict(data)

    def clear(self) -> None:
        self._data = None


class FileSessionStorage:
    """Keeps the session in a JSON file, surviving restarts of the panel."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(
                "Unreadable session file, treating as logged out",
                extra={"operation": "session_load", "error": str(e)},
            )
            return None
        return data if isinstance(data, dict) else None

    def save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class SessionAuth:
    """
    Login/logout for the single writer account.

    Usage:
        auth = SessionAuth(WriterCredentials.from_env(), FileSessionStorage("~/.panel-session"))
        if auth.login(username, password):
            ...
        auth.is_authenticated()
    """

    def __init__(
        self,
        credentials: WriterCredentials,
        storage: SessionStorage | None = None,
        session_ttl: float = 12 * 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.credentials = credentials
        self.storage = storage or MemorySessionStorage()
        self.session_ttl = session_ttl
        self.clock = clock

    def login(self, username: str, password: str) -> bool:
        """Starts a session if the credentials match. Returns False otherwise."""
        user_ok = hmac.compare_digest(username.encode("utf-8"), self.credentials.username.encode("utf-8"))
        password_ok = verify_password(password, self.credentials.password_hash)
        if not (user_ok and password_ok):
            logger.info(
                "Login rejected",
                extra={"operation": "login", "user_hash": redact_value(username)},
            )
            return False

        session = Session(
            username=username,
            token=secrets.token_urlsafe(32),
            expires_at=self.clock() + self.session_ttl,
        )
        self.storage.save(asdict(session))
        logger.info("Login successful", extra={"operation": "login", "user_hash": redact_value(username)})
        return True

    def logout(self) -> None:
        self.storage.clear()
        logger.info("Logged out", extra={"operation": "logout"})

    def session(self) -> Session | None:
        """The active session, or None if absent, expired or unreadable."""
        data = self.storage.load()
        if data is None:
            return None
        try:
            session = Session(
                username=str(data["username"]),
                token=str(data["token"]),
                expires_at=float(data["expires_at"]),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Malformed session state, clearing it", extra={"operation": "session_load"})
            self.storage.clear()
            return None
        if session.expires_at <= self.clock():
            self.storage.clear()
            return None
        if session.username != self.credentials.username:
            return None
        return session

    def is_authenticated(self) -> bool:
        return self.session() is not None

    def current_user(self) -> str | None:
        session = self.session()
        return session.username if session else None

    def require(self) -> Session:
        """
        Returns the active session.

        Raises:
            AuthenticationError: If nobody is logged in
        """
        session = self.session()
        if session is None:
            raise AuthenticationError()
        return session
