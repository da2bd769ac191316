"""
Publish router.

Receives the Mailgun inbound webhook and turns the email into a post.

Endpoint:
  POST /publish   — Mailgun "store and notify" webhook (form-encoded)

The request only does the cheap, local work: normalize the form, resolve
the author and split the subject. An unknown sender is rejected with a
plain-text 500. Everything that talks to the network (attachment download,
GitHub writes, merge) runs as a background task after the response is
sent, so Mailgun never retries because GitHub was slow or failing.
Background failures are logged only.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Form
from fastapi.responses import PlainTextResponse

from mailpost.auth import verify_mailgun_signature
from mailpost.config import Settings
from mailpost.deps import get_fetcher, get_publisher, get_settings
from mailpost.errors import UnknownSender
from mailpost.models.inbound_email import AttachmentDescriptor
from mailpost.models.post import PostDraft
from mailpost.services.attachment_fetcher import AttachmentFetcher
from mailpost.services.inbound_email_adapter import build_post_draft, normalize_mailgun
from mailpost.services.publisher import Publisher

logger = logging.getLogger(__name__)

router = APIRouter()


def _now() -> datetime:
    """Publish timestamp, local time with offset."""
    return datetime.now().astimezone()


async def run_publish(
    draft: PostDraft,
    descriptors: list[AttachmentDescriptor],
    timestamp: datetime,
    fetcher: AttachmentFetcher,
    publisher: Publisher,
) -> None:
    """
    Background half of the webhook: fetch, render, publish.

    Never raises; this is the error sink for everything that happens after
    the webhook response.
    """
    try:
        attachments = await fetcher.fetch_all(descriptors)
        post = draft.to_post(timestamp, attachments)
        txn = await publisher.publish(post)
    except Exception:
        logger.exception(f"Publishing {draft.title!r} by {draft.author!r} crashed")
        return

    if txn.succeeded:
        logger.info(f"Publish {txn.stamp_id} complete (merge {txn.merge_sha})")
    else:
        logger.error(f"Publish {txn.stamp_id} failed in branch {txn.branch!r}: {txn.error}")


@router.post("/publish", dependencies=[Depends(verify_mailgun_signature)])
async def receive_email(
    background_tasks: BackgroundTasks,
    body_plain: str = Form("", alias="body-plain"),
    sender: str = Form(""),
    subject: str = Form(""),
    attachments: str = Form(""),
    settings: Settings = Depends(get_settings),
    fetcher: AttachmentFetcher = Depends(get_fetcher),
    publisher: Publisher = Depends(get_publisher),
):
    """
    Mailgun inbound webhook receiver.

    Returns 500 with "Unknown Sender" when the sender is not a configured
    author; otherwise 200 and the publish continues in the background.
    """
    email = normalize_mailgun({
        "body-plain": body_plain,
        "sender": sender,
        "subject": subject,
        "attachments": attachments,
    })

    try:
        draft = build_post_draft(email, settings.authors)
    except UnknownSender as exc:
        logger.error(f"Rejected email from {exc.sender!r}: {exc}")
        return PlainTextResponse(str(exc), status_code=500)

    timestamp = _now()
    background_tasks.add_task(
        run_publish, draft, email.attachments, timestamp, fetcher, publisher
    )
    logger.info(
        f"Accepted email {draft.title!r} from {draft.author!r} "
        f"with {len(email.attachments)} attachment(s)"
    )
    return {"received": True, "title": draft.title, "author": draft.author, "tags": draft.tags}
