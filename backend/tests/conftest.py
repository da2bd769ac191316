"""
Shared fixtures.

FakeStore is an in-memory stand-in for GitHubStore: branches point at
commits, each commit holds a full snapshot of the tree. It records every
call so tests can assert on ordering and on "no remote calls happened".
"""

import itertools
from typing import Optional

import pytest

from mailpost.config import Settings
from mailpost.errors import MergeError, RemoteWriteError, StoreError


class FakeStore:
    def __init__(self, primary: str = "main") -> None:
        self._ids = itertools.count(1)
        self.commits: dict[str, dict] = {}
        root = self._new_commit({}, [])
        self.branches: dict[str, str] = {primary: root}
        self.calls: list[tuple] = []
        self.fail_head = False
        self.fail_create = False
        self.fail_paths: set[str] = set()
        self.fail_merge = False
        self.fail_delete = False

    # -- helpers -----------------------------------------------------------

    def _new_commit(self, tree: dict[str, bytes], parents: list[str]) -> str:
        sha = f"c{next(self._ids):04d}"
        self.commits[sha] = {"tree": dict(tree), "parents": parents}
        return sha

    def tree(self, branch: str) -> dict[str, bytes]:
        return self.commits[self.branches[branch]]["tree"]

    def seed(self, branch: str, path: str, content: bytes) -> None:
        tree = dict(self.tree(branch))
        tree[path] = content
        self.branches[branch] = self._new_commit(tree, [self.branches[branch]])

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    # -- store interface ---------------------------------------------------

    async def get_branch_head(self, branch: str) -> str:
        self.calls.append(("get_branch_head", branch))
        if self.fail_head or branch not in self.branches:
            raise StoreError("read branch head", "Not Found", 404, branch=branch)
        return self.branches[branch]

    async def create_branch(self, branch: str, sha: str) -> None:
        self.calls.append(("create_branch", branch, sha))
        if self.fail_create or branch in self.branches:
            raise StoreError("create branch", "Reference already exists", 422, branch=branch)
        self.branches[branch] = sha

    async def put_file(
        self, path: str, content: bytes, message: str, branch: str, sha: Optional[str] = None
    ) -> str:
        self.calls.append(("put_file", path, branch))
        if branch not in self.branches:
            raise RemoteWriteError(path, "Branch not found", 404)
        if path in self.fail_paths:
            raise RemoteWriteError(path, "Server Error", 502)
        tree = dict(self.tree(branch))
        if path in tree and sha is None:
            raise RemoteWriteError(path, '"sha" wasn\'t supplied.', 422)
        tree[path] = content
        self.branches[branch] = self._new_commit(tree, [self.branches[branch]])
        return self.branches[branch]

    async def merge(self, base: str, head: str, message: str) -> str:
        self.calls.append(("merge", base, head))
        if self.fail_merge:
            raise MergeError(base, head, "Merge conflict", 409)
        base_tree = self.tree(base)
        head_tree = self.tree(head)
        if head_tree == base_tree:
            raise MergeError(base, head, "nothing to merge", 204)
        merged = {**base_tree, **head_tree}
        self.branches[base] = self._new_commit(merged, [self.branches[base], self.branches[head]])
        return self.branches[base]

    async def delete_branch(self, branch: str) -> None:
        self.calls.append(("delete_branch", branch))
        if self.fail_delete:
            raise StoreError("delete branch", "Server Error", 500, branch=branch)
        self.branches.pop(branch)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        github_token="gh-test-token",
        github_user="octo",
        github_repo="blog",
        path="content/posts",
        mailgun_token="mg-test-key",
        authors={"ada@example.com": "Ada", "grace@example.com": "Grace"},
    )


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()
