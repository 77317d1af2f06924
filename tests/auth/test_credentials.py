"""Password policy, JWT signing and the login lockout counter."""

from __future__ import annotations

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, PublicFormat

from vapor.auth.jwt import create_access_token, create_refresh_token, reset_keys, verify_token
from vapor.auth.password import (
    WeakPasswordError,
    check_password_policy,
    hash_password,
    needs_rehash,
    verify_password,
)
from vapor.auth.service import LoginAttempts
from vapor.config import get_settings
from vapor.errors import ValidationFailed


@pytest.fixture
def rsa_keys(tmp_path, monkeypatch):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_path = tmp_path / "private.pem"
    public_path = tmp_path / "public.pem"
    private_path.write_bytes(key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()))
    public_path.write_bytes(key.public_key().public_bytes(Encoding.PEM, PublicFormat.SubjectPublicKeyInfo))

    monkeypatch.setenv("VAPOR_JWT_PRIVATE_KEY_PATH", str(private_path))
    monkeypatch.setenv("VAPOR_JWT_PUBLIC_KEY_PATH", str(public_path))
    get_settings.cache_clear()
    reset_keys()
    yield
    get_settings.cache_clear()
    reset_keys()


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("SecureP@ss1")
        assert hashed.startswith("$argon2id$")
        assert verify_password("SecureP@ss1", hashed) is True
        assert verify_password("WrongP@ss1", hashed) is False

    def test_missing_or_garbage_hash(self):
        assert verify_password("SecureP@ss1", None) is False
        assert verify_password("SecureP@ss1", "not-a-hash") is False

    def test_fresh_hash_needs_no_rehash(self):
        assert needs_rehash(hash_password("SecureP@ss1")) is False


class TestPasswordPolicy:
    def test_strong_password_accepted(self):
        check_password_policy("StrongP@ss1")

    @pytest.mark.parametrize(
        ("password", "fragment"),
        [
            ("", "empty"),
            ("Sh0rt!", "at least 8"),
            ("A1!" + "a" * 130, "exceed 128"),
            ("nouppercase1!", "uppercase"),
            ("NOLOWERCASE1!", "lowercase"),
            ("NoDigitsHere!", "digit"),
            ("NoSymbols123", "special"),
        ],
    )
    def test_rule_messages(self, password: str, fragment: str):
        with pytest.raises(WeakPasswordError, match=fragment):
            check_password_policy(password)

    def test_policy_error_is_a_validation_failure(self):
        with pytest.raises(ValidationFailed):
            check_password_policy("weak")


class TestTokens:
    def test_access_token_claims(self, rsa_keys):
        payload = verify_token(create_access_token(7, "alice", "Admin"))
        assert payload["sub"] == "7"
        assert payload["username"] == "alice"
        assert payload["role"] == "Admin"
        assert payload["type"] == "access"
        assert payload["iss"] == get_settings().jwt_issuer

    def test_refresh_token_carries_jti(self, rsa_keys):
        payload = verify_token(create_refresh_token(7, "alice", token_id="abc-123"), expected_type="refresh")
        assert payload["jti"] == "abc-123"
        assert payload["role"] == "User"

    def test_wrong_type_rejected(self, rsa_keys):
        token = create_refresh_token(7, "alice", token_id="abc-123")
        with pytest.raises(jwt.InvalidTokenError, match="Expected access token"):
            verify_token(token, expected_type="access")

    def test_tampered_token_rejected(self, rsa_keys):
        token = create_access_token(7, "alice")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token[:-4] + "AAAA")

    def test_expired_token_rejected(self, rsa_keys, monkeypatch):
        monkeypatch.setenv("VAPOR_JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "-1")
        get_settings.cache_clear()
        token = create_access_token(7, "alice")
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)


class FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str):
        return self.values.get(key)

    async def incr(self, key: str) -> int:
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key: str, seconds: int) -> None:
        self.ttls[key] = seconds

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)


class TestLoginAttempts:
    async def test_locks_at_threshold(self):
        redis = FakeRedis()
        attempts = LoginAttempts(redis)
        for _ in range(attempts.threshold - 1):
            await attempts.record_failure(1)
        assert await attempts.is_locked(1) is False

        await attempts.record_failure(1)
        assert await attempts.is_locked(1) is True
        assert await attempts.is_locked(2) is False
        assert redis.ttls["login_attempts:1"] == get_settings().account_lockout_duration_minutes * 60

    async def test_clear_unlocks(self):
        attempts = LoginAttempts(FakeRedis())
        for _ in range(attempts.threshold):
            await attempts.record_failure(1)
        await attempts.clear(1)
        assert await attempts.is_locked(1) is False

    async def test_without_redis_nothing_locks(self):
        attempts = LoginAttempts(None)
        for _ in range(attempts.threshold + 1):
            await attempts.record_failure(1)
        assert await attempts.is_locked(1) is False
