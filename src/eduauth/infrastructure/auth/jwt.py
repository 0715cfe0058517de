"""JWT creation and verification using python-jose.

Access and refresh tokens are signed with independent secrets so that a leaked
access key cannot mint refresh tokens and vice versa. Verification is
stateless: signature and ``exp`` only, no session lookup.
"""
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any
from uuid import UUID, uuid4

from jose import JWTError, jwt

from eduauth.config import Settings
from eduauth.domain.identity.entities import User


class TokenType(StrEnum):
    ACCESS = "access"
    REFRESH = "refresh"


class InvalidTokenError(Exception):
    """Malformed, expired, wrongly signed or wrongly typed token."""


class TokenConfigurationError(Exception):
    """A signing secret is missing."""


@dataclass(frozen=True)
class TokenPayload:
    user_id: UUID
    email: str
    role: str
    school_id: UUID | None
    issued_at: datetime
    expires_at: datetime
    jti: str
    token_type: TokenType


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    def __init__(
        self,
        *,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secrets = {TokenType.ACCESS: access_secret, TokenType.REFRESH: refresh_secret}
        self._ttls = {TokenType.ACCESS: access_ttl, TokenType.REFRESH: refresh_ttl}
        self._algorithm = algorithm
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "TokenCodec":
        options: dict[str, Any] = dict(
            access_secret=settings.jwt_access_secret,
            refresh_secret=settings.jwt_refresh_secret,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(minutes=settings.jwt_access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.jwt_refresh_token_expire_days),
        )
        options.update(overrides)
        return cls(**options)

    @property
    def access_secret_configured(self) -> bool:
        return bool(self._secrets[TokenType.ACCESS])

    @property
    def refresh_secret_configured(self) -> bool:
        return bool(self._secrets[TokenType.REFRESH])

    @property
    def secrets_distinct(self) -> bool:
        return self._secrets[TokenType.ACCESS] != self._secrets[TokenType.REFRESH]

    @property
    def access_ttl_seconds(self) -> int:
        return int(self._ttls[TokenType.ACCESS].total_seconds())

    def _secret(self, token_type: TokenType) -> str:
        secret = self._secrets[token_type]
        if not secret:
            raise TokenConfigurationError(f"{token_type} signing secret is not configured")
        return secret

    def encode(self, user: User, token_type: TokenType) -> str:
        issued_at = self._clock()
        payload: dict[str, Any] = {
            "sub": str(user.id),
            "email": str(user.email),
            "role": str(user.role),
            "jti": str(uuid4()),
            "type": str(token_type),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self._ttls[token_type]).timestamp()),
        }
        if user.school_id is not None:
            payload["school_id"] = str(user.school_id)
        return jwt.encode(payload, self._secret(token_type), algorithm=self._algorithm)

    def issue_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.encode(user, TokenType.ACCESS),
            refresh_token=self.encode(user, TokenType.REFRESH),
            expires_in=self.access_ttl_seconds,
        )

    def decode(self, token: str, token_type: TokenType) -> TokenPayload:
        """Verify signature, expiry and token type. Raises InvalidTokenError."""
        secret = self._secret(token_type)
        try:
            claims = jwt.decode(token, secret, algorithms=[self._algorithm])
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc

        if claims.get("type") != token_type:
            raise InvalidTokenError(f"expected a {token_type} token")
        try:
            school_id = claims.get("school_id")
            return TokenPayload(
                user_id=UUID(claims["sub"]),
                email=claims["email"],
                role=claims["role"],
                school_id=UUID(school_id) if school_id else None,
                issued_at=datetime.fromtimestamp(claims["iat"], timezone.utc),
                expires_at=datetime.fromtimestamp(claims["exp"], timezone.utc),
                jti=claims["jti"],
                token_type=token_type,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenError(f"malformed claims: {exc}") from exc

    def decode_access(self, token: str) -> TokenPayload:
        return self.decode(token, TokenType.ACCESS)

    def decode_refresh(self, token: str) -> TokenPayload:
        return self.decode(token, TokenType.REFRESH)
