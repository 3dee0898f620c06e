import logging
from collections import Counter
from typing import Optional

logger = logging.getLogger(__name__)

# Firestore rejects batches with more than 500 writes
MAX_BATCH_OPERATIONS = 500


class BatchWriter:
    """Accumulates writes into Firestore batches and commits whenever the cap is reached.

    The cap is checked after every queued operation, so no single commit ever
    carries more than ``max_operations`` writes. Call ``commit()`` once more
    at the end to flush the remainder.

    Operations may be tagged with a ``kind``; ``committed_kinds`` only counts
    the ones whose batch was actually committed.
    """

    def __init__(self, firestore_db, max_operations: int = MAX_BATCH_OPERATIONS):
        if not 0 < max_operations <= MAX_BATCH_OPERATIONS:
            raise ValueError(f"max_operations must be between 1 and {MAX_BATCH_OPERATIONS}")
        self.firestore_db = firestore_db
        self.max_operations = max_operations
        self.batch = firestore_db.batch()
        self.pending_ops = 0
        self.pending_kinds = Counter()
        self.commits = 0
        self.committed_ops = 0
        self.committed_kinds = Counter()

    def delete(self, doc_ref, kind: Optional[str] = None) -> None:
        self.batch.delete(doc_ref)
        self._queued(kind)

    def _queued(self, kind: Optional[str]) -> None:
        self.pending_ops += 1
        if kind:
            self.pending_kinds[kind] += 1
        if self.pending_ops >= self.max_operations:
            self.commit()

    def commit(self) -> int:
        """
        Commit the pending batch and start a fresh one.

        Returns:
            Number of operations committed (0 when nothing was pending)

        Raises:
            Exception: whatever the store raised; the pending operations are
                dropped and the writer is ready for new ones
        """
        if self.pending_ops == 0:
            return 0

        count = self.pending_ops
        kinds = self.pending_kinds
        try:
            self.batch.commit()
        finally:
            self.batch = self.firestore_db.batch()
            self.pending_ops = 0
            self.pending_kinds = Counter()

        self.commits += 1
        self.committed_ops += count
        self.committed_kinds.update(kinds)
        logger.debug(f"Committed batch of {count} operations")
        return count
