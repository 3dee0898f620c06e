from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings for the push delivery and cleanup service"""

    # Application settings
    service_name: str = "imtahan-push"
    log_level: str = "INFO"
    environment: str = "dev"
    path_prefix: str = ''

    # Firebase settings
    firebase_secret: Optional[str] = None
    firebase_project_id: Optional[str] = None

    # Firestore collections
    outbox_collection: str = "push_notifications_queue"
    profiles_collection: str = "profiles"
    posts_collection: str = "questions"
    answers_collection: str = "answers"
    profile_token_field: str = "device_token"

    # Firestore batching settings
    batch_max_operations: int = 500  # Firestore allows up to 500 writes per batch
    queue_query_limit: int = 500
    posts_query_limit: int = 500

    # Housekeeping schedule
    queue_retention_hours: int = 24
    queue_cleanup_cron: str = "0 2 * * *"
    content_cleanup_cron: str = "0 3 * * *"
    schedule_timezone: str = "UTC"

    # Notification content defaults
    default_title: str = "İmtahan+"
    default_body: str = ""
    test_notification_title: str = "Test Notification"
    test_notification_body: str = "This is a test notification"
    android_channel_id: str = "imtahan_plus_notifications"
    android_click_action: str = "FLUTTER_NOTIFICATION_CLICK"
    notification_sound: str = "default"
    apns_badge: int = 1

    # Number of outbox records dispatched in parallel by the worker
    dispatch_workers: int = 8

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


# Create settings instance
settings = Settings()


def get_prefix(api_version: str, path_prefix: Optional[str] = None) -> str:
    if path_prefix is None:
        path_prefix = settings.path_prefix
    if not path_prefix.startswith('/'):
        path_prefix = f'/{path_prefix}'
    if path_prefix.endswith('/'):
        path_prefix = path_prefix.rstrip('/')
    return f'{path_prefix}{api_version}'
