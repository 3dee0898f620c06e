from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class QueueCleanupResult(BaseModel):
    cutoff: datetime
    deleted: int = 0


class ContentCleanupResult(BaseModel):
    """Totals of one expired-posts cleanup run"""
    expired_posts: int = 0
    posts_deleted: int = 0
    answers_deleted: int = 0
    commits: int = 0
    failed_posts: List[str] = Field(default_factory=list)
