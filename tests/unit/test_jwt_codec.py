"""
Name: Token Codec Tests

Responsibilities:
  - Access/refresh tokens carry the documented claims
  - Independent signing keys: neither token verifies under the other key
  - Expired, tampered and malformed tokens raise InvalidTokenError only
  - Missing secrets raise TokenConfigurationError
"""
from datetime import datetime, timedelta, timezone

import pytest
from jose import JWTError, jwt

from conftest import ACCESS_SECRET, REFRESH_SECRET, make_codec
from eduauth.domain.identity.entities import User
from eduauth.domain.identity.permissions import UserRole
from eduauth.domain.identity.value_objects import Email, PasswordHash
from eduauth.infrastructure.auth.jwt import (
    InvalidTokenError,
    TokenConfigurationError,
    TokenType,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def user() -> User:
    return User(
        email=Email("teacher@example.com"),
        password_hash=PasswordHash("$argon2id$fake"),
        first_name="Ada",
        last_name="Lovelace",
        role=UserRole.TEACHER,
    )


class TestIssueAndDecode:
    def test_access_token_round_trip(self, user):
        codec = make_codec()
        payload = codec.decode_access(codec.encode(user, TokenType.ACCESS))
        assert payload.user_id == user.id
        assert payload.email == "teacher@example.com"
        assert payload.role == "TEACHER"
        assert payload.school_id is None
        assert payload.token_type is TokenType.ACCESS
        assert payload.expires_at - payload.issued_at == timedelta(minutes=15)

    def test_refresh_token_lives_seven_days(self, user):
        codec = make_codec()
        payload = codec.decode_refresh(codec.encode(user, TokenType.REFRESH))
        assert payload.expires_at - payload.issued_at == timedelta(days=7)

    def test_school_id_is_embedded_when_present(self, user):
        from uuid import uuid4

        user.school_id = uuid4()
        codec = make_codec()
        assert codec.decode_access(codec.encode(user, TokenType.ACCESS)).school_id == user.school_id

    def test_issue_pair_reports_access_lifetime(self, user):
        pair = make_codec().issue_pair(user)
        assert pair.expires_in == 15 * 60
        assert pair.access_token != pair.refresh_token

    def test_each_issuance_is_unique(self, user):
        codec = make_codec()
        assert codec.encode(user, TokenType.ACCESS) != codec.encode(user, TokenType.ACCESS)


class TestRejection:
    def test_refresh_token_is_not_an_access_token(self, user):
        codec = make_codec()
        with pytest.raises(InvalidTokenError):
            codec.decode_access(codec.encode(user, TokenType.REFRESH))

    def test_access_token_is_not_a_refresh_token(self, user):
        codec = make_codec()
        with pytest.raises(InvalidTokenError):
            codec.decode_refresh(codec.encode(user, TokenType.ACCESS))

    def test_type_claim_is_enforced_even_with_shared_secret(self, user):
        codec = make_codec(refresh_secret=ACCESS_SECRET)
        with pytest.raises(InvalidTokenError):
            codec.decode_access(codec.encode(user, TokenType.REFRESH))

    def test_expired_token_is_rejected(self, user):
        issued = datetime.now(timezone.utc) - timedelta(minutes=16)
        stale = make_codec(clock=lambda: issued).encode(user, TokenType.ACCESS)
        with pytest.raises(InvalidTokenError):
            make_codec().decode_access(stale)

    def test_wrong_signature_is_rejected(self, user):
        forged = make_codec(access_secret="attacker").encode(user, TokenType.ACCESS)
        with pytest.raises(InvalidTokenError):
            make_codec().decode_access(forged)

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
    def test_malformed_token_is_rejected(self, garbage):
        with pytest.raises(InvalidTokenError):
            make_codec().decode_access(garbage)

    def test_missing_claims_are_rejected(self):
        token = jwt.encode({"type": "access", "exp": 4102444800}, ACCESS_SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            make_codec().decode_access(token)

    def test_refresh_key_is_independent(self, user):
        token = make_codec().encode(user, TokenType.REFRESH)
        claims = jwt.decode(token, REFRESH_SECRET, algorithms=["HS256"])
        assert claims["type"] == "refresh"
        with pytest.raises(JWTError):
            jwt.decode(token, ACCESS_SECRET, algorithms=["HS256"])


class TestConfiguration:
    def test_empty_secret_fails_issuance(self, user):
        codec = make_codec(access_secret="")
        assert not codec.access_secret_configured
        with pytest.raises(TokenConfigurationError):
            codec.encode(user, TokenType.ACCESS)

    def test_distinct_secrets_flag(self):
        assert make_codec().secrets_distinct
        assert not make_codec(refresh_secret=ACCESS_SECRET).secrets_distinct
