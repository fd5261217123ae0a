"""
Firebase Admin SDK initialization and token verification.
Initializes Firebase Admin SDK once at application startup.
"""
import json
import os
import logging
from typing import Optional
import firebase_admin
from firebase_admin import credentials, auth
from app.config import settings

logger = logging.getLogger(__name__)


# Global Firebase app instance
_firebase_app: Optional[firebase_admin.App] = None


def initialize_firebase() -> None:
    """
    Initialize Firebase Admin SDK.

    Supports two methods for credentials:
    1. FIREBASE_CREDENTIALS_JSON as file path
    2. FIREBASE_CREDENTIALS_JSON as JSON string

    If neither is provided, uses default credentials (for local dev with gcloud).
    """
    global _firebase_app

    if _firebase_app is not None:
        return

    if not settings.firebase_project_id:
        raise ValueError("FIREBASE_PROJECT_ID must be set")

    if settings.firebase_credentials_json:
        credential_value = settings.firebase_credentials_json

        if os.path.exists(credential_value):
            cred = credentials.Certificate(credential_value)
            logger.info(f"Loaded Firebase credentials from file: {credential_value}")
        else:
            try:
                cred_dict = json.loads(credential_value)
            except json.JSONDecodeError:
                raise ValueError(
                    "FIREBASE_CREDENTIALS_JSON must be a valid file path or JSON string"
                )
            cred = credentials.Certificate(cred_dict)
            logger.info("Loaded Firebase credentials from JSON string")
    else:
        cred = credentials.ApplicationDefault()

    _firebase_app = firebase_admin.initialize_app(
        cred,
        {"projectId": settings.firebase_project_id}
    )


def verify_firebase_token(token: str) -> dict:
    """
    Verify Firebase ID token and return decoded token claims.

    Args:
        token: Firebase JWT ID token string

    Returns:
        Decoded token claims dict with uid, email, etc.

    Raises:
        ValueError: If token is invalid, expired, or revoked
    """
    if _firebase_app is None:
        raise RuntimeError("Firebase Admin SDK not initialized. Call initialize_firebase() first.")

    try:
        # Checks signature, expiration, issuer and audience
        return auth.verify_id_token(token, app=_firebase_app)
    except ValueError:
        raise
    except Exception as e:
        raise ValueError(f"Token verification failed: {str(e)}")
