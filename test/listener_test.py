from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

from imtahan_push.notifications.listener import OutboxListener
from imtahan_push.notifications.schemas import DispatchOutcome


def change(kind, doc_id):
    item = MagicMock()
    item.type.name = kind
    item.document.id = doc_id
    return item


def test_added_records_are_dispatched(settings):
    dispatcher = MagicMock()
    dispatcher.handle_snapshot.return_value = DispatchOutcome.SENT
    listener = OutboxListener(MagicMock(), dispatcher, settings, executor=ThreadPoolExecutor(max_workers=2))

    added = change('ADDED', 'n1')
    listener.on_snapshot([], [added, change('REMOVED', 'n0'), change('MODIFIED', 'n2')], None)
    listener.stop()

    dispatcher.handle_snapshot.assert_called_once_with(added.document)


def test_start_watches_unsent_records(settings):
    firestore_db = MagicMock()
    listener = OutboxListener(firestore_db, MagicMock(), settings, executor=ThreadPoolExecutor(max_workers=1))

    listener.start()

    firestore_db.collection.assert_called_once_with('push_notifications_queue')
    query = firestore_db.collection.return_value.where.return_value
    query.on_snapshot.assert_called_once_with(listener.on_snapshot)

    watch = query.on_snapshot.return_value
    listener.stop()
    watch.unsubscribe.assert_called_once()
