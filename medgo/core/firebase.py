"""Firebase Admin SDK initialization for the push channel."""

import json
import os

import firebase_admin
from firebase_admin import credentials
from structlog import get_logger

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None


def initialize_firebase(
    firebase_credentials_path: str | None = None, firebase_config_json: str | None = None
) -> bool:
    """
    Initialize Firebase Admin SDK when credentials are configured.

    Credentials are looked up in order:
    1. firebase_config_json (raw service account JSON)
    2. firebase_credentials_path (service account file)

    Unlike a login backend, dispatch does not fall back to Application
    Default Credentials: without explicit credentials the push channel
    stays disabled and only logs what it would have sent.

    Returns:
        True if Firebase is ready for messaging
    """
    global _firebase_app

    if _firebase_app is not None:
        return True

    cred = None
    if firebase_config_json:
        logger.info("firebase_init_from_json")
        cred = credentials.Certificate(json.loads(firebase_config_json))
    elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
        logger.info("firebase_init_from_file", path=firebase_credentials_path)
        cred = credentials.Certificate(firebase_credentials_path)

    if cred is None:
        logger.warning("firebase_not_configured", note="push notifications will be logged only")
        return False

    _firebase_app = firebase_admin.initialize_app(cred)
    return True


def is_firebase_initialized() -> bool:
    """Return True if the Firebase app is available for messaging."""
    return _firebase_app is not None
