"""
Unit tests for the writer-panel session gate.
"""

import json
import logging

import pytest

from scrollfeed.auth import (
    FileSessionStorage,
    MemorySessionStorage,
    SessionAuth,
    hash_password,
    verify_password,
)
from scrollfeed.config import WriterCredentials
from scrollfeed.exceptions import AuthenticationError
from tests.helpers.factories import FakeClock


@pytest.fixture
def credentials() -> WriterCredentials:
    return WriterCredentials(username="writer", password_hash=hash_password("s3cret", iterations=1000))


@pytest.fixture
def auth(credentials) -> SessionAuth:
    return SessionAuth(credentials, MemorySessionStorage(), session_ttl=3600, clock=FakeClock(0.0))


class TestPasswordHashing:
    def test_round_trip(self):
        encoded = hash_password("s3cret", iterations=1000)
        assert encoded.startswith("pbkdf2_sha256$1000$")
        assert verify_password("s3cret", encoded)
        assert not verify_password("wrong", encoded)

    def test_salt_makes_hashes_differ(self):
        assert hash_password("s3cret", iterations=1000) != hash_password("s3cret", iterations=1000)

    def test_fixed_salt_is_deterministic(self):
        salt = bytes(16)
        assert hash_password("x", salt=salt, iterations=10) == hash_password("x", salt=salt, iterations=10)

    def test_malformed_hash(self, caplog):
        assert not verify_password("s3cret", "not-a-hash")
        assert not verify_password("s3cret", "md5$1$00$00")
        assert "Malformed writer password hash" in caplog.text


class TestSessionAuth:
    def test_login_success(self, auth):
        assert auth.login("writer", "s3cret") is True
        assert auth.is_authenticated()
        assert auth.current_user() == "writer"
        assert auth.require().token

    def test_login_wrong_password(self, auth):
        assert auth.login("writer", "nope") is False
        assert not auth.is_authenticated()
        assert auth.current_user() is None

    def test_login_wrong_user(self, auth):
        assert auth.login("someone", "s3cret") is False

    def test_logout(self, auth):
        auth.login("writer", "s3cret")
        auth.logout()
        assert not auth.is_authenticated()

    def test_require_without_session(self, auth):
        with pytest.raises(AuthenticationError):
            auth.require()

    def test_session_expires(self, auth):
        auth.login("writer", "s3cret")
        auth.clock.advance(3599)
        assert auth.is_authenticated()
        auth.clock.advance(1)
        assert not auth.is_authenticated()
        assert auth.storage.load() is None

    def test_malformed_session_is_cleared(self, auth):
        auth.storage.save({"username": "writer"})
        assert auth.session() is None
        assert auth.storage.load() is None

    def test_session_of_other_user_rejected(self, auth):
        auth.storage.save({"username": "old-writer", "token": "t", "expires_at": 10_000})
        assert not auth.is_authenticated()

    def test_login_logs_without_username(self, auth, caplog):
        caplog.set_level(logging.INFO, logger="scrollfeed")
        auth.login("writer", "s3cret")
        assert "Login successful" in caplog.text
        assert all("writer" not in str(r.__dict__.get("user_hash")) for r in caplog.records)


class TestFileSessionStorage:
    def test_persists_across_instances(self, tmp_path, credentials):
        path = tmp_path / "session.json"
        clock = FakeClock(0.0)
        SessionAuth(credentials, FileSessionStorage(path), clock=clock).login("writer", "s3cret")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["username"] == "writer"
        assert SessionAuth(credentials, FileSessionStorage(path), clock=clock).is_authenticated()

    def test_missing_file(self, tmp_path):
        assert FileSessionStorage(tmp_path / "absent.json").load() is None

    def test_corrupt_file(self, tmp_path, caplog):
        path = tmp_path / "session.json"
        path.write_text("{not json", encoding="utf-8")
        assert FileSessionStorage(path).load() is None
        assert "Unreadable session file" in caplog.text

    def test_clear(self, tmp_path):
        path = tmp_path / "nested" / "session.json"
        storage = FileSessionStorage(path)
        storage.save({"a": 1})
        assert path.exists()
        storage.clear()
        storage.clear()
        assert not path.exists()
