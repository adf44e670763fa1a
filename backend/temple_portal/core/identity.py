"""
Identity Verification
======================
Resolve a bearer credential to a stable user identifier.

Verifiers:
- FirebaseTokenVerifier: Firebase ID tokens (production)
- LocalTokenVerifier: HS256 JWTs signed with JWT_SECRET_KEY (local dev, tests)
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional

from firebase_admin import auth as firebase_auth
from jose import JWTError, jwt
from pydantic import BaseModel

from temple_portal.core.config import Settings
from temple_portal.core.errors import Unauthenticated, Unavailable

logger = logging.getLogger(__name__)


class VerifiedIdentity(BaseModel):
    """Result of a successful token verification."""
    uid: str
    email: Optional[str] = None


class TokenVerifier(ABC):
    """Abstract identity provider interface."""

    @abstractmethod
    def verify(self, token: str) -> VerifiedIdentity:
        """Verify a token or raise Unauthenticated."""
        pass


class FirebaseTokenVerifier(TokenVerifier):
    """Verify Firebase ID tokens with the Admin SDK."""

    def __init__(self, app=None, check_revoked: bool = False):
        self.app = app
        self.check_revoked = check_revoked

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            decoded = firebase_auth.verify_id_token(
                token,
                app=self.app,
                check_revoked=self.check_revoked
            )
        except firebase_auth.CertificateFetchError:
            logger.exception("Could not fetch Firebase public certificates")
            raise Unavailable("Identity provider unavailable")
        except (firebase_auth.InvalidIdTokenError, firebase_auth.UserDisabledError, ValueError) as e:
            # Expired and revoked tokens are InvalidIdTokenError subclasses
            logger.info("Rejected Firebase ID token: %s", e)
            raise Unauthenticated("Invalid token")

        return VerifiedIdentity(uid=decoded["uid"], email=decoded.get("email"))


class LocalTokenVerifier(TokenVerifier):
    """Verify tokens minted by create_access_token."""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info("Rejected local token: %s", e)
            raise Unauthenticated("Invalid token")

        uid = payload.get("sub")
        if not uid:
            raise Unauthenticated("Invalid token")

        return VerifiedIdentity(uid=uid, email=payload.get("email"))


def create_access_token(
    settings: Settings,
    uid: str,
    email: Optional[str] = None,
    expires_in: Optional[timedelta] = None
) -> str:
    """
    Mint a locally-signed token accepted by LocalTokenVerifier.

    Only meaningful when AUTH_PROVIDER=local.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_in or timedelta(minutes=settings.jwt_expire_minutes))

    payload = {
        "sub": uid,
        "iat": now,
        "exp": expire
    }
    if email:
        payload["email"] = email

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def build_verifier(settings: Settings, app=None) -> TokenVerifier:
    if settings.auth_provider == "local":
        if settings.is_production:
            raise RuntimeError("AUTH_PROVIDER=local is not allowed in production")
        return LocalTokenVerifier(settings.jwt_secret_key, settings.jwt_algorithm)

    if settings.auth_provider == "firebase":
        return FirebaseTokenVerifier(app=app, check_revoked=settings.check_revoked_tokens)

    raise RuntimeError(f"Unknown AUTH_PROVIDER: {settings.auth_provider}")
