import logging
import signal
import sys

from .config import settings
from .firebase import FirebaseDB
from .log import setup_logging
from .maintenance import ContentReaper, QueueReaper
from .notifications.dispatcher import NotificationDispatcher
from .notifications.listener import OutboxListener
from .notifications.push_client import PushProviderClient
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


class PushWorker:
    """Outbox dispatching and scheduled housekeeping in one process."""

    def __init__(self, firebase_db: FirebaseDB):
        firestore_db = firebase_db.get_firestore_db()

        self.dispatcher = NotificationDispatcher(
            firestore_db=firestore_db,
            push_client=PushProviderClient(firebase_db.app),
            settings=settings
        )
        self.listener = OutboxListener(firestore_db, self.dispatcher, settings)

        self.scheduler = Scheduler(firestore_db, timezone=settings.schedule_timezone)
        self.scheduler.add_job(QueueReaper(settings), settings.queue_cleanup_cron)
        self.scheduler.add_job(ContentReaper(settings), settings.content_cleanup_cron)
        logger.info("Push worker initialized")

    def run(self) -> int:
        logger.info("Starting push worker")
        try:
            self.listener.start()
            self.scheduler.run_forever()
        except Exception as e:
            logger.critical(f"Fatal error in push worker: {str(e)}", exc_info=True)
            return 1
        finally:
            self.listener.stop()

        logger.info("Push worker shutdown gracefully")
        return 0

    def shutdown(self, sig=None, frame=None) -> None:
        """Handle termination signals for graceful shutdown."""
        logger.info("Shutdown signal received, finishing current work...")
        self.scheduler.stop()


def main() -> int:
    """Main entry point for the worker process."""
    setup_logging()
    logger.info(f"Starting push worker in {settings.environment} environment")

    worker = PushWorker(FirebaseDB(settings))
    signal.signal(signal.SIGINT, worker.shutdown)
    signal.signal(signal.SIGTERM, worker.shutdown)

    return worker.run()


if __name__ == "__main__":
    sys.exit(main())
