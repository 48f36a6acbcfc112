"""Bearer token verification.

Tokens are issued by an external identity provider; this module only checks
them and extracts the verified email address.
"""
from __future__ import annotations

from typing import Protocol, Sequence

import jwt
from flask import current_app

from .errors import AuthenticationFailure, InternalFailure


BEARER_PREFIX = "Bearer "


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> str:  # pragma: no cover - interface
        """Return the verified email carried by ``token``."""


class JwtIdentityVerifier:
    def __init__(
        self,
        key: str,
        algorithms: Sequence[str] = ("HS256",),
        audience: str | None = None,
        email_claim: str = "email",
    ) -> None:
        self.key = key
        self.algorithms = list(algorithms)
        self.audience = audience
        self.email_claim = email_claim

    def verify(self, token: str) -> str:
        if not self.key:
            raise InternalFailure("Vérification d'identité non configurée")
        required = ["exp", "aud"] if self.audience else ["exp"]
        try:
            claims = jwt.decode(
                token,
                self.key,
                algorithms=self.algorithms,
                audience=self.audience,
                options={"require": required},
            )
        except jwt.PyJWTError as exc:
            current_app.logger.info("Rejected bearer token: %s", exc)
            raise AuthenticationFailure("Token invalide ou expiré") from exc
        email = claims.get(self.email_claim)
        if not isinstance(email, str) or not email.strip():
            raise AuthenticationFailure("Token invalide ou expiré")
        return email


def bearer_token(header: str | None) -> str:
    if not header or not header.startswith(BEARER_PREFIX):
        raise AuthenticationFailure("Token manquant ou mal formé")
    token = header[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthenticationFailure("Token manquant ou mal formé")
    return token


def current_verifier() -> IdentityVerifier:
    configured = current_app.config.get("IDENTITY_VERIFIER")
    if configured is not None:
        return configured
    return JwtIdentityVerifier(
        key=current_app.config.get("AUTH_JWT_KEY", ""),
        algorithms=current_app.config.get("AUTH_JWT_ALGORITHMS") or ["HS256"],
        audience=current_app.config.get("AUTH_JWT_AUDIENCE"),
        email_claim=current_app.config.get("AUTH_EMAIL_CLAIM", "email"),
    )


def authenticate(header: str | None) -> str:
    return current_verifier().verify(bearer_token(header))
