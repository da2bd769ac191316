"""
Inbound email models.

The Mailgun "store and notify" webhook posts form fields; the adapter
layer maps them onto these models before anything else sees the data.
"""

from pydantic import BaseModel, Field


class AttachmentDescriptor(BaseModel):
    """One entry of Mailgun's ``attachments`` JSON array (not yet downloaded)."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    url: str
    content_type: str = Field("", alias="content-type")
    name: str = "attachment"
    size: int = 0


class InboundEmail(BaseModel):
    """Normalized Mailgun webhook payload."""

    body_plain: str = ""
    sender: str = ""
    subject: str = ""
    attachments: list[AttachmentDescriptor] = []
