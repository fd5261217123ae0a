"""
FastAPI dependencies for authentication.

``get_current_user`` pulls the bearer token off the request and hands it to
an ``IdentityVerifier``. The verifier is itself a dependency so tests (and
other deployments) can swap the identity service out.
"""
from dataclasses import dataclass
from typing import Optional, Protocol

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.auth.firebase import verify_firebase_token
from app.services.upload_errors import AuthError

# auto_error=False so a missing header becomes our 401, not Starlette's 403
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity returned by the identity service."""
    uid: str
    email: Optional[str] = None


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> AuthenticatedUser:
        ...


class FirebaseIdentityVerifier:
    """IdentityVerifier backed by Firebase Admin ID token verification."""

    def verify(self, token: str) -> AuthenticatedUser:
        try:
            decoded_token = verify_firebase_token(token)
        except (ValueError, RuntimeError) as e:
            raise AuthError("Invalid token", cause=e)

        uid = decoded_token.get("uid")
        if not uid:
            raise AuthError("Invalid token", cause=ValueError("token has no uid claim"))

        return AuthenticatedUser(uid=uid, email=decoded_token.get("email"))


def get_identity_verifier() -> IdentityVerifier:
    return FirebaseIdentityVerifier()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> AuthenticatedUser:
    """
    FastAPI dependency that verifies the bearer token and returns the user.

    Raises:
        AuthError: If the token is missing or rejected by the identity service
    """
    token = credentials.credentials.strip() if credentials else ""
    if not token:
        raise AuthError("No token provided")

    return verifier.verify(token)
