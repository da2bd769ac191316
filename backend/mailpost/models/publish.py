"""
Publish transaction state.

A transaction moves STARTED -> BRANCH_CREATED -> FILES_WRITTEN -> MERGED.
Any non-terminal state may move to FAILED. MERGED and FAILED are terminal.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Final, Optional

from mailpost.errors import InvalidTransitionError


class PublishState(str, Enum):
    """Lifecycle of one publish transaction."""

    STARTED = "STARTED"
    """Primary branch head is being (or has been) read."""

    BRANCH_CREATED = "BRANCH_CREATED"
    """Working branch exists at the captured head."""

    FILES_WRITTEN = "FILES_WRITTEN"
    """Every planned file has been attempted on the working branch."""

    MERGED = "MERGED"
    """Working branch merged into the primary branch."""

    FAILED = "FAILED"
    """Transaction aborted; primary branch untouched."""

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: Final[frozenset[PublishState]] = frozenset({
    PublishState.MERGED,
    PublishState.FAILED,
})

VALID_TRANSITIONS: Final[dict[PublishState, frozenset[PublishState]]] = {
    PublishState.STARTED: frozenset({PublishState.BRANCH_CREATED, PublishState.FAILED}),
    PublishState.BRANCH_CREATED: frozenset({PublishState.FILES_WRITTEN, PublishState.FAILED}),
    PublishState.FILES_WRITTEN: frozenset({PublishState.MERGED, PublishState.FAILED}),
    PublishState.MERGED: frozenset(),
    PublishState.FAILED: frozenset(),
}


class FileKind(str, Enum):
    ASSET = "asset"
    POST = "post"


@dataclass(frozen=True)
class PlannedFile:
    """A file the transaction has to write to the working branch."""

    path: str
    content: bytes
    kind: FileKind


@dataclass(frozen=True)
class FileWrite:
    """Outcome of one write attempt."""

    path: str
    kind: FileKind
    ok: bool
    commit_sha: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PublishTransaction:
    """Mutable record of a single publish attempt."""

    stamp_id: str
    branch: str
    base_sha: Optional[str] = None
    state: PublishState = PublishState.STARTED
    writes: list[FileWrite] = field(default_factory=list)
    merge_sha: Optional[str] = None
    error: Optional[str] = None
    branch_deleted: bool = False

    def advance(self, new_state: PublishState) -> None:
        allowed = VALID_TRANSITIONS[self.state]
        if new_state not in allowed:
            raise InvalidTransitionError(
                self.state.value,
                new_state.value,
                sorted(s.value for s in allowed),
            )
        self.state = new_state

    def fail(self, error: Exception) -> "PublishTransaction":
        self.error = str(error)
        self.advance(PublishState.FAILED)
        return self

    def record(self, write: FileWrite) -> None:
        self.writes.append(write)

    @property
    def succeeded(self) -> bool:
        return self.state is PublishState.MERGED

    @property
    def failed_writes(self) -> list[FileWrite]:
        return [w for w in self.writes if not w.ok]

    @property
    def post_written(self) -> bool:
        return any(w.ok and w.kind is FileKind.POST for w in self.writes)
