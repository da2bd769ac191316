"""
Publish transaction manager.

Steps for one post:

1. STARTED         read the primary branch head (nothing to clean up on failure)
2. BRANCH_CREATED  create the working branch at that head
3. FILES_WRITTEN   write attachments, then render and write the post file on the
                   working branch; each write failure is recorded and the next
                   file is tried, and the post only links attachments that were
                   stored
4. MERGED          merge the working branch into the primary branch
5. cleanup         delete the working branch (failure is logged only)

The primary branch only moves in step 4. If the post file could not be
written, or the merge fails, the transaction ends FAILED and the working
branch is left in place so an operator can inspect or finish it.
"""

import logging
import uuid
from typing import Optional, Protocol

from mailpost.config import Settings
from mailpost.errors import MergeError, RemoteWriteError, StoreError
from mailpost.models.post import Post
from mailpost.models.publish import (
    FileKind,
    FileWrite,
    PlannedFile,
    PublishState,
    PublishTransaction,
)
from mailpost.services.renderer import RepoLayout, plan_assets, plan_post, stamp_id

logger = logging.getLogger(__name__)


class RepositoryStore(Protocol):
    """Remote operations the transaction relies on (see GitHubStore)."""

    async def get_branch_head(self, branch: str) -> str: ...

    async def create_branch(self, branch: str, sha: str) -> None: ...

    async def put_file(
        self, path: str, content: bytes, message: str, branch: str, sha: Optional[str] = None
    ) -> str: ...

    async def merge(self, base: str, head: str, message: str) -> str: ...

    async def delete_branch(self, branch: str) -> None: ...


def _branch_suffix() -> str:
    """Random suffix that keeps same-minute publishes on separate branches."""
    return uuid.uuid4().hex[:6]


def branch_name(stamp: str) -> str:
    return f"{stamp}-{_branch_suffix()}"


class Publisher:
    """Runs publish transactions against one repository."""

    def __init__(
        self,
        store: RepositoryStore,
        *,
        primary_branch: str = "main",
        layout: RepoLayout = RepoLayout(posts_dir="", assets_dir="assets"),
        commit_message: str = "Automatic Publish",
    ) -> None:
        self._store = store
        self._primary = primary_branch
        self._layout = layout
        self._message = commit_message

    @classmethod
    def from_settings(cls, store: RepositoryStore, settings: Settings) -> "Publisher":
        return cls(
            store,
            primary_branch=settings.branch,
            layout=RepoLayout.from_settings(settings),
            commit_message=settings.commit_message,
        )

    async def publish(self, post: Post) -> PublishTransaction:
        """
        Publish ``post`` and return the finished transaction record.

        Remote failures are reported through the returned transaction
        (state FAILED plus ``error``), not raised.
        """
        stamp = stamp_id(post.timestamp)
        txn = PublishTransaction(stamp_id=stamp, branch=branch_name(stamp))
        assets = plan_assets(post, self._layout, stamp)

        # 1. Capture the primary head
        try:
            txn.base_sha = await self._store.get_branch_head(self._primary)
        except StoreError as exc:
            logger.error(f"Publish {stamp} aborted, could not read {self._primary!r}: {exc}")
            return txn.fail(exc)

        # 2. Working branch
        try:
            await self._store.create_branch(txn.branch, txn.base_sha)
        except StoreError as exc:
            logger.error(f"Publish {stamp} aborted, could not create branch {txn.branch!r}: {exc}")
            return txn.fail(exc)
        txn.advance(PublishState.BRANCH_CREATED)

        # 3. Best-effort writes, attachments before the post
        stored: list[str] = []
        for name, planned in assets.items():
            result = await self._write(planned, txn.branch)
            txn.record(result)
            if result.ok:
                stored.append(name)
        post_file = plan_post(post, self._layout, stamp, stored)
        txn.record(await self._write(post_file, txn.branch))
        txn.advance(PublishState.FILES_WRITTEN)

        if not txn.post_written:
            post_write = txn.writes[-1]
            logger.error(
                f"Publish {stamp} failed, post file {post_file.path!r} not written; "
                f"branch {txn.branch!r} retained"
            )
            return txn.fail(RemoteWriteError(post_file.path, post_write.error or "write failed"))

        # 4. Merge; never retried
        try:
            txn.merge_sha = await self._store.merge(
                self._primary, txn.branch, f"{self._message}: {post.title}"
            )
        except MergeError as exc:
            logger.error(f"Publish {stamp} failed to merge; branch {txn.branch!r} retained for recovery: {exc}")
            return txn.fail(exc)
        txn.advance(PublishState.MERGED)

        # 5. Cleanup
        try:
            await self._store.delete_branch(txn.branch)
            txn.branch_deleted = True
        except StoreError as exc:
            logger.warning(f"Post {stamp} is live but branch {txn.branch!r} was not deleted: {exc}")

        logger.info(
            f"Published {post_file.path!r} to {self._primary!r} "
            f"({len(stored)} of {len(assets)} attachment(s), {len(txn.failed_writes)} failed write(s))"
        )
        return txn

    async def _write(self, planned: PlannedFile, branch: str) -> FileWrite:
        try:
            commit_sha = await self._store.put_file(planned.path, planned.content, self._message, branch)
        except RemoteWriteError as exc:
            level = logging.ERROR if planned.kind is FileKind.POST else logging.WARNING
            logger.log(level, f"Write failed on {branch!r}: {exc}")
            return FileWrite(path=planned.path, kind=planned.kind, ok=False, error=str(exc))
        return FileWrite(path=planned.path, kind=planned.kind, ok=True, commit_sha=commit_sha)
