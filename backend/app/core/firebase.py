import json
import base64
import logging
from functools import lru_cache

from firebase_admin import credentials, initialize_app, get_app, firestore
from app.core.config import settings

logger = logging.getLogger("campusflow")


def init_firebase():
    try:
        get_app()
        logger.info("✅ Firebase Admin SDK already initialized")
        return
    except ValueError:
        pass

    if not settings.CAMPUSFLOW_FIREBASE_KEY:
        raise RuntimeError("❌ CAMPUSFLOW_FIREBASE_KEY environment variable is not set")

    try:
        decoded_json = base64.b64decode(settings.CAMPUSFLOW_FIREBASE_KEY).decode("utf-8")
        service_account_info = json.loads(decoded_json)
        logger.info("🔑 Loaded Firebase credentials from CAMPUSFLOW_FIREBASE_KEY")
    except Exception as e:
        raise RuntimeError(f"❌ Failed to decode or parse CAMPUSFLOW_FIREBASE_KEY: {e}")

    project_id = service_account_info.get("project_id")
    if not project_id:
        raise ValueError("❌ 'project_id' missing in Firebase service account JSON")

    initialize_app(credentials.Certificate(service_account_info))
    logger.info(f"🔥 Firebase Admin SDK initialized | Project: {project_id}")


@lru_cache
def get_db():
    """Firestore client, initialized on first use rather than at import."""
    init_firebase()
    try:
        db = firestore.client()
    except Exception as e:
        logger.error(f"❌ Failed to initialize Firestore client: {e}")
        raise
    logger.info("✅ Firestore client ready")
    return db


__all__ = ["get_db", "init_firebase"]
