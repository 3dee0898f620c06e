import logging
from typing import Any, Dict, Optional

from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition
from pydantic import ValidationError

from ..clock import Clock, to_millis, utc_now
from ..config import Settings, settings as default_settings
from ..exceptions import TerminalWriteError
from .push_client import PushProviderClient
from .schemas import AndroidHints, ApnsHints, DispatchOutcome, OutboxRecord, PushMessage

logger = logging.getLogger(__name__)

# Rounds of re-read and retry when the record changes under the terminal write
MAX_TERMINAL_WRITE_ATTEMPTS = 3


class NotificationDispatcher:
    """Delivers newly created outbox records through FCM.

    Every record that reaches the provider, or is rejected before it, ends with
    a single ``sent=True`` write. Records already marked as sent are ignored so
    duplicate create events never produce a second push.
    """

    def __init__(self,
                 firestore_db,
                 push_client: PushProviderClient,
                 settings: Settings = default_settings,
                 clock: Clock = utc_now):
        self.firestore_db = firestore_db
        self.push_client = push_client
        self.settings = settings
        self.clock = clock

    def handle_snapshot(self, snapshot) -> DispatchOutcome:
        """Dispatch a record from a Firestore document snapshot."""
        return self.handle_created(snapshot.id, snapshot.to_dict() or {}, snapshot.update_time)

    def handle_created(self,
                       notification_id: str,
                       data: Dict[str, Any],
                       update_time: Optional[Any] = None) -> DispatchOutcome:
        """
        Process one outbox record creation event.

        Args:
            notification_id: Document ID of the outbox record
            data: Fields of the record as created
            update_time: Version of the document the event was raised for; when
                given, the terminal write is made conditional on it so a run
                that finds the record already finalized keeps that outcome

        Returns:
            DispatchOutcome describing what this invocation did
        """
        try:
            return self._dispatch(notification_id, data, update_time)
        except TerminalWriteError as e:
            logger.error(f"Error finalizing notification {notification_id}: {str(e.__cause__)}", exc_info=True)
            fields = e.fields
        except Exception as e:
            logger.error(f"Error dispatching notification {notification_id}: {str(e)}", exc_info=True)
            fields = {'error': str(e) or e.__class__.__name__}

        # One more attempt so the record does not stay unsent
        try:
            notif_ref = self.firestore_db.collection(self.settings.outbox_collection).document(notification_id)
            self._mark_terminal(notif_ref, update_time, **fields)
        except Exception as e:
            logger.error(f"Giving up on finalizing notification {notification_id}: {str(e)}")
        return DispatchOutcome.ERROR

    def _dispatch(self, notification_id: str, data: Dict[str, Any], update_time) -> DispatchOutcome:
        if data.get('sent') is True:
            logger.info(f"Notification {notification_id} already sent, skipping")
            return DispatchOutcome.SKIPPED

        notif_ref = self.firestore_db.collection(self.settings.outbox_collection).document(notification_id)

        try:
            record = OutboxRecord.model_validate(data)
        except ValidationError as e:
            logger.error(f"Invalid notification record {notification_id}: {str(e)}")
            written = self._mark_terminal(notif_ref, update_time, error="Invalid notification record")
            return DispatchOutcome.FAILED if written else DispatchOutcome.SKIPPED

        if record.sent:
            logger.info(f"Notification {notification_id} already sent, skipping")
            return DispatchOutcome.SKIPPED

        if not record.device_token:
            logger.error(f"No FCM token for user {record.recipient_id}")
            written = self._mark_terminal(notif_ref, update_time, error="No FCM token")
            return DispatchOutcome.NO_TOKEN if written else DispatchOutcome.SKIPPED

        if not record.recipient_id:
            logger.error(f"Notification {notification_id} has no recipient")
            written = self._mark_terminal(notif_ref, update_time, error="No recipient id")
            return DispatchOutcome.FAILED if written else DispatchOutcome.SKIPPED

        result = self.push_client.send(self.build_push(notification_id, record))

        if result.success:
            logger.info(f"Successfully sent message to {record.recipient_id}: {result.message_id}")
            written = self._mark_terminal(notif_ref, update_time, provider_response=result.message_id)
            return DispatchOutcome.SENT if written else DispatchOutcome.SKIPPED

        logger.error(f"Error sending notification to {record.recipient_id}: {result.error}")
        try:
            written = self._mark_terminal(notif_ref, update_time, error=result.error or "Unknown error")
        finally:
            if result.is_permanent_token_failure:
                self._remove_profile_token(record.recipient_id)

        return DispatchOutcome.FAILED if written else DispatchOutcome.SKIPPED

    def build_push(self, notification_id: str, record: OutboxRecord) -> PushMessage:
        """Build the provider message for a record. Has no side effects."""
        data = dict(record.data)
        data.update({
            'notificationId': notification_id,
            'userId': record.recipient_id,
            'timestamp': to_millis(self.clock()),
        })

        return PushMessage(
            title=record.title or self.settings.default_title,
            body=record.body or self.settings.default_body,
            data=data,
            token=record.device_token,
            android=AndroidHints(
                priority="high",
                sound=self.settings.notification_sound,
                channel_id=self.settings.android_channel_id,
                click_action=self.settings.android_click_action
            ),
            apns=ApnsHints(
                sound=self.settings.notification_sound,
                badge=self.settings.apns_badge
            )
        )

    def _mark_terminal(self, notif_ref, update_time, **fields) -> bool:
        """
        Write the terminal ``sent=True`` state.

        The write is conditioned on the last version seen. If the record changed
        in between it is read again: when another run already finalized it the
        stored outcome is kept, otherwise the write is retried on the fresh
        version.

        Returns:
            False if another run finalized the record first

        Raises:
            TerminalWriteError: the store rejected the write
        """
        update = {
            'sent': True,
            'sent_at': firestore.SERVER_TIMESTAMP,
        }
        update.update(fields)

        try:
            for _ in range(MAX_TERMINAL_WRITE_ATTEMPTS):
                try:
                    if update_time is not None:
                        option = self.firestore_db.write_option(last_update_time=update_time)
                        notif_ref.update(update, option=option)
                    else:
                        notif_ref.update(update)
                    return True
                except FailedPrecondition:
                    current = notif_ref.get()
                    if not current.exists or (current.to_dict() or {}).get('sent') is True:
                        logger.info(f"Notification {notif_ref.id} was finalized concurrently, keeping stored outcome")
                        return False
                    logger.info(f"Notification {notif_ref.id} changed before it was finalized, retrying")
                    update_time = current.update_time
            raise FailedPrecondition(f"Notification {notif_ref.id} kept changing while being finalized")
        except Exception as e:
            raise TerminalWriteError(fields) from e

    def _remove_profile_token(self, user_id: str) -> None:
        logger.info(f"Invalid token for user {user_id}, removing from profile")
        try:
            profile_ref = self.firestore_db.collection(self.settings.profiles_collection).document(user_id)
            profile_ref.update({self.settings.profile_token_field: firestore.DELETE_FIELD})
        except Exception as e:
            logger.error(f"Error removing invalid token for user {user_id}: {str(e)}")
