#!/usr/bin/env python3
"""
Dev helper: send a test Mailgun webhook to a local Mailpost server.

Builds the form fields Mailgun posts for an inbound message and POST-s
them to /api/publish. Attachments are referenced by URL, exactly like
Mailgun's "store and notify" action does; pass --attachment-url to point
at an image the server can download.

Usage
-----
# Basic post, targeting localhost:5555
python scripts/send_test_email.py --from ada@example.com

# Tags in the subject
python scripts/send_test_email.py --subject "[go,releases] v1.0 shipped"

# With an image attachment
python scripts/send_test_email.py --attachment-url https://example.com/cat.png

# Sign the request (server has WebhookSigningKey configured)
python scripts/send_test_email.py --signing-key key-abc123

Environment / .env
------------------
MAILGUN_SIGNING_KEY   Used to sign the request when --signing-key is not given.
"""

import argparse
import json
import os
import secrets
import sys
import time
from pathlib import Path

import httpx
from dotenv import load_dotenv

from mailpost.auth import compute_signature


def _sign(signing_key: str) -> dict:
    """Return the timestamp/token/signature fields Mailgun adds to webhooks."""
    timestamp = str(int(time.time()))
    token = secrets.token_hex(25)
    return {
        "timestamp": timestamp,
        "token": token,
        "signature": compute_signature(signing_key, timestamp, token),
    }


def _content_type_for(url: str) -> str:
    ext = Path(url.split("?", 1)[0]).suffix.lower()
    return {
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".gif": "image/gif",
    }.get(ext, "application/octet-stream")


def _build_form(args: argparse.Namespace) -> dict:
    form = {
        "sender": args.from_email,
        "subject": args.subject,
        "body-plain": args.body,
    }
    if args.attachment_url:
        form["attachments"] = json.dumps([
            {
                "url": url,
                "content-type": _content_type_for(url),
                "name": Path(url.split("?", 1)[0]).name or "attachment",
                "size": 0,
            }
            for url in args.attachment_url
        ])
    return form


def main() -> int:
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_email.py",
        description="Send a test Mailgun inbound webhook to the Mailpost server.",
    )
    parser.add_argument("--url", default="http://localhost:5555", help="Server base URL (default: http://localhost:5555)")
    parser.add_argument("--from", dest="from_email", default="ada@example.com", help="Sender address")
    parser.add_argument("--subject", default="[test] Hello from email", help="Subject line")
    parser.add_argument("--body", default="Posted by send_test_email.py", help="Plain-text body")
    parser.add_argument(
        "--attachment-url",
        action="append",
        default=[],
        metavar="URL",
        help="Image URL the server should fetch (repeatable)",
    )
    parser.add_argument("--signing-key", default=None, help="Mailgun webhook signing key")
    parser.add_argument("--dry-run", action="store_true", help="Print the form fields without sending them.")
    args = parser.parse_args()

    form = _build_form(args)
    signing_key = args.signing_key or os.getenv("MAILGUN_SIGNING_KEY", "")
    if signing_key:
        form.update(_sign(signing_key))

    endpoint = f"{args.url.rstrip('/')}/api/publish"
    print(f"Endpoint : {endpoint}")
    print(f"From     : {args.from_email}")
    print(f"Subject  : {args.subject}")

    if args.dry_run:
        print("\n[DRY RUN] Form:")
        print(json.dumps(form, indent=2))
        return 0

    try:
        response = httpx.post(endpoint, data=form, timeout=30)
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the server running? Start it with:\n"
            "  mailpost -c conf.json",
            file=sys.stderr,
        )
        return 1

    symbol = "OK" if response.status_code == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {response.status_code}")
    print(response.text)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
