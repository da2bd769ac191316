"""
Post models.

PostDraft is what the intake parser can produce from the webhook alone.
Post adds the publish timestamp and the downloaded attachments and is the
input to rendering; both are frozen.
"""

from datetime import datetime

from pydantic import BaseModel


class PostDraft(BaseModel):
    """Author, title, tags and body parsed from one email."""

    model_config = {"frozen": True}

    title: str
    author: str
    tags: list[str] = []
    body: str = ""

    def to_post(self, timestamp: datetime, attachments: dict[str, bytes] | None = None) -> "Post":
        return Post(
            title=self.title,
            author=self.author,
            tags=list(self.tags),
            body=self.body,
            timestamp=timestamp,
            attachments=dict(attachments or {}),
        )


class Post(BaseModel):
    """A post ready to be rendered and published."""

    model_config = {"frozen": True}

    title: str
    author: str
    tags: list[str] = []
    body: str = ""
    timestamp: datetime
    attachments: dict[str, bytes] = {}
