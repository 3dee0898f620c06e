from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_millis(moment: datetime) -> str:
    """Milliseconds since the epoch as a string, the format FCM data payloads expect."""
    return str(int(moment.timestamp() * 1000))
