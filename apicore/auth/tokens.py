from __future__ import annotations

import time
from typing import Any

import jwt
from jwt.exceptions import InvalidTokenError
from jwt.types import Options

from apicore.errors import http_error

TOKEN_ALGORITHM = "HS256"
TOKEN_ISSUER = "apicore"


class TokenService:
    """Issues and verifies HS256 session tokens signed with the shared JWT secret."""

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = 3600,
        issuer: str = TOKEN_ISSUER,
        leeway_seconds: int = 0,
    ) -> None:
        self._secret = secret
        self.ttl_seconds = int(ttl_seconds)
        self.issuer = issuer
        self.leeway_seconds = max(0, int(leeway_seconds))

    def issue(self, subject: str | int, *, claims: dict[str, Any] | None = None, now: float | None = None) -> str:
        issued_at = int(now if now is not None else time.time())
        payload: dict[str, Any] = dict(claims or {})
        payload.update(
            {
                "sub": str(subject),
                "iss": self.issuer,
                "iat": issued_at,
                "exp": issued_at + self.ttl_seconds,
            }
        )
        return jwt.encode(payload, self._secret, algorithm=TOKEN_ALGORITHM)

    def verify(self, token: str) -> dict[str, Any]:
        options: Options = {
            "require": ["sub", "exp", "iss"],
            "verify_signature": True,
            "verify_exp": True,
            "verify_iss": True,
        }
        try:
            payload = jwt.decode(
                token,
                key=self._secret,
                algorithms=[TOKEN_ALGORITHM],
                options=options,
                issuer=self.issuer,
                leeway=self.leeway_seconds,
            )
        except (InvalidTokenError, TypeError, ValueError):
            raise http_error(401, "UNAUTHORIZED", "Unauthorized", details={"reason": "invalid_token"})

        if not isinstance(payload, dict):
            raise http_error(401, "UNAUTHORIZED", "Unauthorized", details={"reason": "invalid_token"})
        return payload


def bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise http_error(
            401,
            "UNAUTHORIZED",
            "Unauthorized",
            details={"auth_type": "jwt", "reason": "missing_authorization_header"},
        )
    scheme, _, value = authorization.partition(" ")
    token = value.strip()
    if scheme.lower() != "bearer" or not token:
        raise http_error(
            401,
            "UNAUTHORIZED",
            "Unauthorized",
            details={"auth_type": "jwt", "reason": "invalid_authorization_header"},
        )
    return token
