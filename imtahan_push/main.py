import logging
from typing import Optional

from fastapi import FastAPI

from .config import Settings, get_prefix, settings as default_settings
from .firebase import FirebaseDB
from .log import setup_logging
from .notifications.router import router as notifications_router

logger = logging.getLogger(__name__)


def create_app(firestore_db=None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        firestore_db: Firestore client to use; a Firebase app is initialized
            from the settings when omitted
        settings: Settings instance, defaults to the environment-driven one

    Returns:
        Configured FastAPI application
    """
    settings = settings or default_settings

    if firestore_db is None:
        setup_logging()
        firestore_db = FirebaseDB(settings).get_firestore_db()

    prefix = get_prefix('', settings.path_prefix)
    logger.info(f"Start HTTP server with prefix: {prefix or '/'}")

    app = FastAPI(root_path=prefix, title="İmtahan+ Push API", version="1.0.0")
    app.state.firestore_db = firestore_db
    app.state.settings = settings

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "healthy"}

    app.include_router(notifications_router)

    return app
