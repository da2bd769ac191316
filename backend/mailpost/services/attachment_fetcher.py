"""
Attachment fetcher.

Downloads image attachments from Mailgun's message storage. Every
attachment is independent: a failure is logged and that attachment is
dropped, the rest of the email is still published.
"""

import asyncio
import logging
import re
from typing import Iterable, Optional

import httpx

from mailpost.config import Settings
from mailpost.errors import AttachmentFetchError
from mailpost.models.inbound_email import AttachmentDescriptor

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({
    "image/png",
    "image/jpg",
    "image/jpeg",
    "image/gif",
})

# Mailgun storage always uses this user name with the API key as password
_MAILGUN_USER = "api"


def _base_content_type(content_type: str) -> str:
    """'image/PNG; name="a.png"' -> 'image/png'"""
    return content_type.split(";", 1)[0].strip().lower()


def sanitize_filename(name: str) -> str:
    """Replace anything that is not a word char, dash or dot with '_'."""
    sanitized = re.sub(r"[^\w\-.]", "_", name.strip())
    return sanitized or "attachment"


def _unique_name(name: str, taken: set[str]) -> str:
    if name not in taken:
        return name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    counter = 1
    while True:
        candidate = f"{stem}-{counter}.{ext}" if ext else f"{stem}-{counter}"
        if candidate not in taken:
            return candidate
        counter += 1


class AttachmentFetcher:
    """Fetch allowed image attachments with basic auth."""

    def __init__(
        self,
        api_key: str,
        *,
        max_bytes: int = 10 * 1024 * 1024,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._auth = httpx.BasicAuth(_MAILGUN_USER, api_key)
        self._max_bytes = max_bytes
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AttachmentFetcher":
        return cls(
            settings.mailgun_token,
            max_bytes=settings.max_attachment_bytes,
            timeout=settings.request_timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, descriptor: AttachmentDescriptor) -> bytes:
        """
        Download one attachment.

        Raises AttachmentFetchError when the type is not allowed, the file
        is too large, the request cannot be built or sent, the status is
        not 200, or reading the body fails.
        """
        name = descriptor.name
        content_type = _base_content_type(descriptor.content_type)
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise AttachmentFetchError(name, f"Unrecognized content type: {descriptor.content_type!r}")
        if descriptor.size > self._max_bytes:
            raise AttachmentFetchError(name, f"Attachment too large: {descriptor.size} bytes")

        try:
            request = self._client.build_request("GET", descriptor.url)
        except (httpx.InvalidURL, ValueError, TypeError) as exc:
            raise AttachmentFetchError(name, f"Error creating attachment request: {exc}") from exc

        try:
            response = await self._client.send(
                request, auth=self._auth, stream=True, follow_redirects=True
            )
        except httpx.HTTPError as exc:
            raise AttachmentFetchError(name, f"Error getting attachment: {exc}") from exc

        try:
            if response.status_code != 200:
                raise AttachmentFetchError(
                    name,
                    "Unrecognized status code for attachment",
                    status_code=response.status_code,
                )
            try:
                data = await response.aread()
            except httpx.HTTPError as exc:
                raise AttachmentFetchError(name, f"Error reading attachment: {exc}") from exc
        finally:
            await response.aclose()

        if len(data) > self._max_bytes:
            raise AttachmentFetchError(name, f"Attachment too large: {len(data)} bytes")
        return data

    async def _fetch_or_none(self, descriptor: AttachmentDescriptor) -> Optional[bytes]:
        try:
            return await self.fetch(descriptor)
        except AttachmentFetchError as exc:
            logger.warning(f"Skipping attachment: {exc}")
            return None

    async def fetch_all(self, descriptors: Iterable[AttachmentDescriptor]) -> dict[str, bytes]:
        """
        Fetch every descriptor concurrently.

        Returns {filename: bytes} for the attachments that succeeded, with
        sanitized and de-duplicated filenames. Never raises for a single
        attachment failure.
        """
        descriptors = list(descriptors)
        if not descriptors:
            return {}

        results = await asyncio.gather(*(self._fetch_or_none(d) for d in descriptors))

        files: dict[str, bytes] = {}
        for descriptor, data in zip(descriptors, results):
            if data is None:
                continue
            name = _unique_name(sanitize_filename(descriptor.name), set(files))
            files[name] = data
            logger.info(f"Fetched attachment {name!r} ({len(data)} bytes)")
        return files
