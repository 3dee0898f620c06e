import json
import logging
from typing import Optional

import firebase_admin
import google.cloud.firestore
from firebase_admin import credentials, firestore

from ..config import Settings
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class FirebaseDB:
    """Owns the Firebase Admin app and the Firestore client built from it.

    Construct once at process start and pass ``get_firestore_db()`` into the
    components that need the store.
    """

    def __init__(self, settings: Settings):
        logger.info("FirebaseDB.__init__() called")
        self.settings = settings
        self.app: Optional[firebase_admin.App] = None
        self.firestore_db: Optional[google.cloud.firestore.Client] = None
        self.connect()

    def get_firestore_db(self) -> google.cloud.firestore.Client:
        return self.firestore_db

    def connect(self) -> None:
        try:
            # Try to get the existing default app
            self.app = firebase_admin.get_app()
            logger.info("Retrieved existing Firebase app")
        except ValueError:
            # Initialize new app if one doesn't exist
            cred = credentials.Certificate(self._load_certificate())
            options = {}
            if self.settings.firebase_project_id:
                options["projectId"] = self.settings.firebase_project_id
            self.app = firebase_admin.initialize_app(credential=cred, options=options)
            logger.info(f"Initialized Firebase app {self.app.name}")
        self.firestore_db = firestore.client(self.app)

    def _load_certificate(self) -> dict:
        cert_json = self.settings.firebase_secret
        if not cert_json:
            raise ConfigurationError("Environment variable FIREBASE_SECRET is not set")
        try:
            cert_dict = json.loads(cert_json)
            # The secret is sometimes stored JSON-encoded twice
            if isinstance(cert_dict, str):
                cert_dict = json.loads(cert_dict)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"FIREBASE_SECRET is not valid JSON: {e}") from e
        return cert_dict
