import logging
from typing import Optional

import firebase_admin
from firebase_admin import exceptions, messaging

from .schemas import PushErrorKind, PushMessage, PushResult

logger = logging.getLogger(__name__)


class PushProviderClient:
    """Firebase Cloud Messaging client that reports failures as values."""

    # Fragments FCM uses when rejecting a malformed or foreign registration token
    INVALID_TOKEN_MARKERS = (
        "registration token",
        "invalid-registration-token",
    )

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app
        logger.info("Push provider client initialized")

    def send(self, push: PushMessage) -> PushResult:
        """
        Send a single push notification.

        Args:
            push: Message addressed to one device token

        Returns:
            PushResult with the FCM message id on success, or the error
            message and its classification on failure
        """
        try:
            message_id = messaging.send(self.build_message(push), app=self.app)
            return PushResult(success=True, message_id=message_id)
        except exceptions.FirebaseError as e:
            return PushResult(success=False, error=str(e) or e.__class__.__name__, error_kind=self.classify_error(e))
        except Exception as e:
            logger.error(f"Unexpected error from FCM: {str(e)}", exc_info=True)
            return PushResult(success=False, error=str(e) or e.__class__.__name__, error_kind=PushErrorKind.OTHER)

    @staticmethod
    def build_message(push: PushMessage) -> messaging.Message:
        return messaging.Message(
            notification=messaging.Notification(
                title=push.title,
                body=push.body
            ),
            data=push.data,
            token=push.token,
            android=messaging.AndroidConfig(
                priority=push.android.priority,
                notification=messaging.AndroidNotification(
                    sound=push.android.sound,
                    channel_id=push.android.channel_id,
                    click_action=push.android.click_action
                )
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        sound=push.apns.sound,
                        badge=push.apns.badge
                    )
                )
            )
        )

    @classmethod
    def classify_error(cls, error: exceptions.FirebaseError) -> PushErrorKind:
        if isinstance(error, messaging.UnregisteredError):
            return PushErrorKind.TOKEN_UNREGISTERED
        if isinstance(error, exceptions.InvalidArgumentError):
            text = str(error).lower()
            if any(marker in text for marker in cls.INVALID_TOKEN_MARKERS):
                return PushErrorKind.TOKEN_INVALID
        return PushErrorKind.OTHER
