import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from firebase_admin.firestore import FieldFilter

from ..config import Settings, settings as default_settings
from .dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


class OutboxListener:
    """Watches the outbox for new unsent records and hands each one to the dispatcher.

    Records already pending when the listener starts are reported as added
    too, so a restart picks up the backlog.
    """

    def __init__(self,
                 firestore_db,
                 dispatcher: NotificationDispatcher,
                 settings: Settings = default_settings,
                 executor: Optional[ThreadPoolExecutor] = None):
        self.firestore_db = firestore_db
        self.dispatcher = dispatcher
        self.settings = settings
        self.executor = executor or ThreadPoolExecutor(
            max_workers=settings.dispatch_workers,
            thread_name_prefix="dispatch"
        )
        self._watch = None

    def start(self) -> None:
        query = self.firestore_db.collection(self.settings.outbox_collection) \
            .where(filter=FieldFilter('sent', '==', False))
        self._watch = query.on_snapshot(self.on_snapshot)
        logger.info(f"Listening for new records in {self.settings.outbox_collection}")

    def stop(self) -> None:
        if self._watch is not None:
            self._watch.unsubscribe()
            self._watch = None
        # Wait for in-flight dispatches so every terminal write completes
        self.executor.shutdown(wait=True)
        logger.info("Outbox listener stopped")

    def on_snapshot(self, docs, changes, read_time) -> None:
        try:
            for change in changes:
                if change.type.name != 'ADDED':
                    continue
                self.executor.submit(self._dispatch, change.document)
        except Exception as e:
            logger.error(f"Error handling outbox snapshot: {str(e)}", exc_info=True)

    def _dispatch(self, snapshot) -> None:
        outcome = self.dispatcher.handle_snapshot(snapshot)
        logger.debug(f"Notification {snapshot.id} dispatched with outcome {outcome.value}")
