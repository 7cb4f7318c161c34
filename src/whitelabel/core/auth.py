"""Authentication service — JWT creation and verification.

Dev mode: HS256 with symmetric jwt_secret_key.
Production: RS256 with JWKS URL.

Tokens issued by older deployments carry the tenant as ``clientId``; newer ones
use ``tenant_id``. Both are accepted.
"""

from __future__ import annotations

import time

import structlog
from jose import JWTError, jwt

from whitelabel.core.config import settings
from whitelabel.core.exceptions import InvalidCredentialError
from whitelabel.core.schemas import TokenClaims

logger = structlog.get_logger()

_TENANT_CLAIMS = ("tenant_id", "tenantId", "clientId")


class AuthService:
    def __init__(self, secret_key: str | None = None, algorithm: str | None = None) -> None:
        self._secret_key = secret_key or settings.jwt_secret_key
        self._algorithm = algorithm or settings.jwt_algorithm

    async def verify_token(self, token: str) -> TokenClaims:
        """Validate JWT signature, expiry and subject. Raises InvalidCredentialError."""
        try:
            if settings.jwks_url:
                # Production: RS256 with JWKS
                payload = jwt.decode(
                    token,
                    settings.jwks_url,
                    algorithms=["RS256"],
                    audience=settings.jwt_audience,
                )
            else:
                payload = jwt.decode(
                    token,
                    self._secret_key,
                    algorithms=[self._algorithm],
                    options={"verify_aud": False, "verify_iss": False},
                )
        except JWTError as exc:
            logger.warning("auth_token_invalid", error=str(exc))
            raise InvalidCredentialError(str(exc)) from exc

        sub = payload.get("sub")
        if not sub:
            raise InvalidCredentialError("Token missing required claims.")

        tenant_id = next(
            (payload[name] for name in _TENANT_CLAIMS if payload.get(name)),
            None,
        )
        role = payload.get("role")
        exp = payload.get("exp")

        return TokenClaims(
            sub=str(sub),
            tenant_id=str(tenant_id) if tenant_id is not None else None,
            role=str(role) if role is not None else None,
            email=payload.get("email"),
            exp=int(exp) if exp is not None else None,
        )

    def create_access_token(
        self,
        user_id: str,
        tenant_id: str | None,
        role: str = "user",
        email: str | None = None,
        expires_in: int | None = None,
    ) -> str:
        """Create an HS256 JWT for development/testing. Not for production use."""
        now = int(time.time())
        if expires_in is None:
            expires_in = settings.jwt_access_token_expire_minutes * 60
        payload: dict[str, object] = {
            "sub": str(user_id),
            "role": role,
            "exp": now + expires_in,
            "iat": now,
        }
        if tenant_id is not None:
            payload["tenant_id"] = str(tenant_id)
        if email is not None:
            payload["email"] = email
        result: str = jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        return result
