import logging

from firebase_admin.firestore import FieldFilter

from .batching import BatchWriter
from .schemas import ContentCleanupResult
from ..clock import Clock
from ..config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class ContentReaper:
    """Deletes expired posts together with their answers.

    Answers are read per post and queued ahead of the post itself; batches are
    committed whenever they fill up, including in the middle of a post. A
    failure while handling one post is logged and the run moves on to the
    next one. Answers written to a post after its answers were read are not
    covered by this run.
    """

    name = "cleanup_expired_posts"

    def __init__(self, settings: Settings = default_settings):
        self.settings = settings

    def run(self, clock: Clock, firestore_db) -> ContentCleanupResult:
        now = clock()
        logger.info("Starting expired posts cleanup")

        expired_posts = firestore_db.collection(self.settings.posts_collection) \
            .where(filter=FieldFilter('expires_at', '<', now)) \
            .limit(self.settings.posts_query_limit) \
            .get()

        result = ContentCleanupResult(expired_posts=len(expired_posts))

        if not expired_posts:
            logger.info("No expired posts to delete")
            return result

        logger.info(f"Found {len(expired_posts)} expired posts to delete")

        writer = BatchWriter(firestore_db, self.settings.batch_max_operations)

        for post in expired_posts:
            try:
                answers = post.reference.collection(self.settings.answers_collection).get()

                for answer in answers:
                    writer.delete(answer.reference, kind="answer")

                writer.delete(post.reference, kind="post")
            except Exception as e:
                logger.error(f"Error deleting post {post.id}: {str(e)}", exc_info=True)
                result.failed_posts.append(post.id)

        writer.commit()
        result.commits = writer.commits
        # Only deletions that were committed count
        result.posts_deleted = writer.committed_kinds["post"]
        result.answers_deleted = writer.committed_kinds["answer"]

        logger.info(
            f"Cleanup finished: deleted {result.posts_deleted} posts and "
            f"{result.answers_deleted} answers in {result.commits} batches"
        )
        if result.failed_posts:
            logger.warning(f"Failed to delete {len(result.failed_posts)} posts: {result.failed_posts}")

        return result
