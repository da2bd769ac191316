"""
Error taxonomy for the mail-to-post publisher.

Every error carries a human-readable message plus keyword context so log
lines show what was being processed when things went wrong.

Propagation rules:
  ConfigError             startup only; the CLI exits before serving.
  UnknownSender           per request; surfaced to the webhook caller.
  AttachmentFetchError    per attachment; logged and skipped.
  StoreError              GitHub head read / branch create / branch delete.
  RemoteWriteError        per file; siblings are still attempted.
  MergeError              fatal to the transaction; working branch is kept.
  InvalidTransitionError  illegal publish state move; a programming error
                          that propagates to the caller.
"""

from typing import Any, Optional


class MailpostError(Exception):
    """Base exception for the publisher."""

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ConfigError(MailpostError):
    """Configuration file is missing, unreadable or invalid."""


class UnknownSender(MailpostError):
    """Sender address is not in the configured authors map."""

    def __init__(self, sender: str) -> None:
        self.sender = sender
        super().__init__("Unknown Sender")


class AttachmentFetchError(MailpostError):
    """A single attachment could not be retrieved from Mailgun storage."""

    def __init__(self, name: str, reason: str, status_code: Optional[int] = None) -> None:
        self.name = name
        self.reason = reason
        self.status_code = status_code
        context: dict[str, Any] = {"attachment": name}
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(reason, **context)


class StoreError(MailpostError):
    """A call to the remote GitHub repository failed."""

    def __init__(
        self,
        operation: str,
        detail: str,
        status_code: Optional[int] = None,
        **context: Any,
    ) -> None:
        self.operation = operation
        self.detail = detail
        self.status_code = status_code
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(f"{operation} failed: {detail}", **context)


class RemoteWriteError(StoreError):
    """Writing one file to the working branch failed."""

    def __init__(self, path: str, detail: str, status_code: Optional[int] = None) -> None:
        self.path = path
        super().__init__("write file", detail, status_code, path=path)


class MergeError(StoreError):
    """Merging the working branch into the primary branch failed."""

    def __init__(
        self,
        base: str,
        head: str,
        detail: str,
        status_code: Optional[int] = None,
    ) -> None:
        self.base = base
        self.head = head
        super().__init__("merge", detail, status_code, base=base, head=head)


class InvalidTransitionError(MailpostError):
    """The publish state machine was asked to make an illegal move."""

    def __init__(self, current: str, requested: str, allowed: list[str]) -> None:
        self.current = current
        self.requested = requested
        self.allowed = allowed
        super().__init__(
            f"Cannot transition from '{current}' to '{requested}'. "
            f"Allowed transitions: {allowed}"
        )
