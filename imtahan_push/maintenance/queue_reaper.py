import logging
from datetime import timedelta

from firebase_admin.firestore import FieldFilter

from .batching import BatchWriter
from .schemas import QueueCleanupResult
from ..clock import Clock
from ..config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class QueueReaper:
    """Deletes outbox records that were finalized longer ago than the retention window."""

    name = "cleanup_notification_queue"

    def __init__(self, settings: Settings = default_settings):
        self.settings = settings

    def run(self, clock: Clock, firestore_db) -> QueueCleanupResult:
        cutoff = clock() - timedelta(hours=self.settings.queue_retention_hours)

        old_notifications = firestore_db.collection(self.settings.outbox_collection) \
            .where(filter=FieldFilter('sent', '==', True)) \
            .where(filter=FieldFilter('sent_at', '<', cutoff)) \
            .limit(self.settings.queue_query_limit) \
            .get()

        writer = BatchWriter(firestore_db, self.settings.batch_max_operations)
        for notif in old_notifications:
            writer.delete(notif.reference)

        # Commit failures propagate: the records stay and the next run retries
        writer.commit()

        if writer.committed_ops > 0:
            logger.info(f"Cleaned up {writer.committed_ops} old notifications")
        else:
            logger.info("No old notifications to clean up")

        return QueueCleanupResult(cutoff=cutoff, deleted=writer.committed_ops)
