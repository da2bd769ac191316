"""
Mailgun webhook signature verification.

Mailgun signs every webhook with the account's HTTP webhook signing key:

    signature = HMAC-SHA256(key, timestamp + token)  (hex digest)

The three values arrive as form fields next to the message fields.
Verification is only enforced when WebhookSigningKey is configured.
"""

import hashlib
import hmac
import logging

from fastapi import Depends, Form, HTTPException

from mailpost.config import Settings
from mailpost.deps import get_settings

logger = logging.getLogger(__name__)


def compute_signature(signing_key: str, timestamp: str, token: str) -> str:
    return hmac.new(
        signing_key.encode("utf-8"),
        f"{timestamp}{token}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def is_valid_signature(signing_key: str, timestamp: str, token: str, signature: str) -> bool:
    if not (timestamp and token and signature):
        return False
    expected = compute_signature(signing_key, timestamp, token)
    return hmac.compare_digest(expected, signature)


async def verify_mailgun_signature(
    timestamp: str = Form(""),
    token: str = Form(""),
    signature: str = Form(""),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    FastAPI dependency for the inbound webhook.

    Raises:
        HTTPException: 401 if a signing key is configured and the request
                       signature is missing or does not match.
    """
    if not settings.webhook_signing_key:
        return

    if not is_valid_signature(settings.webhook_signing_key, timestamp, token, signature):
        logger.warning("Rejected inbound webhook with invalid Mailgun signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
