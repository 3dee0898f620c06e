from .content_reaper import ContentReaper
from .queue_reaper import QueueReaper

__all__ = ["ContentReaper", "QueueReaper"]
