from __future__ import annotations

import logging
from dataclasses import dataclass

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials, exceptions, firestore
from google.cloud.firestore import Client as FirestoreClient

from app.core.config import settings

logger = logging.getLogger(__name__)

_firebase_app: firebase_admin.App | None = None


@dataclass(frozen=True)
class AuthUser:
    uid: str
    email: str | None = None


def _get_app() -> firebase_admin.App:
    global _firebase_app
    if _firebase_app is not None:
        return _firebase_app

    options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
    if settings.FIREBASE_CLIENT_EMAIL and settings.FIREBASE_PRIVATE_KEY:
        credential = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.FIREBASE_PROJECT_ID,
                "client_email": settings.FIREBASE_CLIENT_EMAIL,
                # Env files store the PEM with escaped newlines.
                "private_key": settings.FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        _firebase_app = firebase_admin.initialize_app(credential, options)
    else:
        logger.warning("Firebase service account not set, using application default credentials")
        _firebase_app = firebase_admin.initialize_app(options=options)
    return _firebase_app


def verify_id_token(token: str) -> AuthUser | None:
    """
    Verify a Firebase ID token. Returns None for any invalid, expired or
    unverifiable token.
    """
    try:
        decoded = firebase_auth.verify_id_token(token, app=_get_app())
    except (ValueError, exceptions.FirebaseError):
        logger.info("Rejected Firebase ID token", exc_info=True)
        return None
    uid = decoded.get("uid")
    if not uid:
        return None
    email = (decoded.get("email") or "").strip().lower() or None
    return AuthUser(uid=uid, email=email)


def get_firestore_client() -> FirestoreClient:
    return firestore.client(app=_get_app())
