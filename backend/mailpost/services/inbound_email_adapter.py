"""
Inbound email adapter service.

Normalizes the Mailgun inbound webhook form into an InboundEmail and
turns that into a PostDraft.

Mailgun "store and notify" form fields used
-------------------------------------------
  body-plain    str   — plain-text body of the message
  sender        str   — bare sender address, e.g. "ada@example.com"
  subject       str   — subject line; may start with "[tag1,tag2] "
  attachments   str   — JSON array, each item has:
                          url           str  — storage URL (basic auth)
                          content-type  str  — MIME type
                          name          str  — original filename
                          size          int  — size in bytes

If Mailgun changes their schema, only this file needs updating.
"""

import json
import logging
import re
from typing import Mapping

from pydantic import ValidationError

from mailpost.errors import UnknownSender
from mailpost.models.inbound_email import AttachmentDescriptor, InboundEmail
from mailpost.models.post import PostDraft

logger = logging.getLogger(__name__)

# "[go,releases] v1.0 shipped" -> group(1) == "go,releases"
_TAGS_PREFIX = re.compile(r"^\[([^\]]+)\]")


def parse_subject(subject: str) -> tuple[str, list[str]]:
    """
    Split a subject line into (title, tags).

    Tags are taken literally from the bracket prefix: split on commas with
    no trimming of individual tags. Without a prefix the subject is the
    title and there are no tags.
    """
    match = _TAGS_PREFIX.match(subject)
    if not match:
        return subject, []
    title = subject[len(match.group(0)):].strip()
    return title, match.group(1).split(",")


def resolve_author(sender: str, authors: Mapping[str, str]) -> str:
    """Map a sender address to its display name, or raise UnknownSender."""
    try:
        return authors[sender]
    except KeyError:
        raise UnknownSender(sender) from None


def parse_attachment_descriptors(raw: str) -> list[AttachmentDescriptor]:
    """
    Parse Mailgun's ``attachments`` JSON field.

    A missing field means no attachments. A malformed field is logged and
    treated as no attachments so the post itself still goes out.
    """
    if not raw or not raw.strip():
        return []

    try:
        items = json.loads(raw)
    except ValueError as exc:
        logger.warning(f"Ignoring malformed attachments field: {exc}")
        return []

    if not isinstance(items, list):
        logger.warning("Ignoring attachments field: expected a JSON array")
        return []

    descriptors: list[AttachmentDescriptor] = []
    for item in items:
        try:
            descriptors.append(AttachmentDescriptor.model_validate(item))
        except ValidationError as exc:
            logger.warning(f"Ignoring malformed attachment entry {item!r}: {exc}")
    return descriptors


def normalize_mailgun(form: Mapping[str, str]) -> InboundEmail:
    """Convert Mailgun webhook form fields to an InboundEmail."""
    return InboundEmail(
        body_plain=form.get("body-plain", "") or "",
        sender=form.get("sender", "") or "",
        subject=form.get("subject", "") or "",
        attachments=parse_attachment_descriptors(form.get("attachments", "") or ""),
    )


def build_post_draft(email: InboundEmail, authors: Mapping[str, str]) -> PostDraft:
    """
    Resolve the author and split the subject into title and tags.

    Raises UnknownSender before anything touches the network.
    """
    author = resolve_author(email.sender, authors)
    title, tags = parse_subject(email.subject)
    return PostDraft(title=title, author=author, tags=tags, body=email.body_plain)
