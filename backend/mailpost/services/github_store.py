"""
GitHub repository client.

Implements the five remote operations the publish transaction needs on
top of the GitHub REST API:

  get_branch_head   GET    /repos/{owner}/{repo}/git/ref/heads/{branch}
  create_branch     POST   /repos/{owner}/{repo}/git/refs
  put_file          PUT    /repos/{owner}/{repo}/contents/{path}
  merge             POST   /repos/{owner}/{repo}/merges
  delete_branch     DELETE /repos/{owner}/{repo}/git/refs/heads/{branch}

Only get_branch_head is retried (idempotent read, bounded by read_retries).
"""

import base64
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from mailpost.config import Settings
from mailpost.errors import MergeError, RemoteWriteError, StoreError

logger = logging.getLogger(__name__)

_API_VERSION = "2022-11-28"


def _is_retryable_read(exc: BaseException) -> bool:
    """Transport failures and 5xx responses are worth another try."""
    if not isinstance(exc, StoreError):
        return False
    if isinstance(exc.__cause__, httpx.HTTPError):
        return True
    return exc.status_code is not None and exc.status_code >= 500


def _log_read_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        f"Retrying branch head read (attempt {retry_state.attempt_number}): "
        f"{retry_state.outcome.exception()}"
    )


def _error_detail(response: httpx.Response) -> str:
    """Pull GitHub's ``message`` out of an error response, falling back to the body."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.text or response.reason_phrase


class GitHubStore:
    """Async GitHub REST client scoped to one repository."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        *,
        api_url: str = "https://api.github.com",
        timeout: float = 10.0,
        read_retries: int = 1,
        retry_wait: float = 0.5,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self._read_retries = read_retries
        self._retry_wait = retry_wait
        self._client = client or httpx.AsyncClient(
            base_url=api_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": _API_VERSION,
            },
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitHubStore":
        return cls(
            settings.github_token,
            settings.github_user,
            settings.github_repo,
            api_url=settings.github_api_url,
            timeout=settings.request_timeout,
            read_retries=settings.read_retries,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _repo_url(self, suffix: str) -> str:
        return f"/repos/{quote(self.owner, safe='')}/{quote(self.repo, safe='')}/{suffix}"

    # ------------------------------------------------------------------
    # Branch refs
    # ------------------------------------------------------------------

    async def get_branch_head(self, branch: str) -> str:
        """
        Return the commit SHA the branch points at.

        Transport errors and 5xx responses are retried up to read_retries
        times. Raises StoreError otherwise.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._read_retries + 1),
            wait=wait_exponential(multiplier=self._retry_wait, max=5),
            retry=retry_if_exception(_is_retryable_read),
            before_sleep=_log_read_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._get_ref(branch)
        raise StoreError("read branch head", "no attempt made", branch=branch)

    async def _get_ref(self, branch: str) -> str:
        try:
            response = await self._client.get(self._repo_url(f"git/ref/heads/{quote(branch)}"))
        except httpx.HTTPError as exc:
            raise StoreError("read branch head", str(exc), branch=branch) from exc
        if response.status_code != 200:
            raise StoreError(
                "read branch head",
                _error_detail(response),
                response.status_code,
                branch=branch,
            )
        return self._ref_sha(response, branch)

    @staticmethod
    def _ref_sha(response: httpx.Response, branch: str) -> str:
        try:
            return response.json()["object"]["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreError("read branch head", f"unexpected response: {exc}", branch=branch) from exc

    async def create_branch(self, branch: str, sha: str) -> None:
        """Create ``refs/heads/<branch>`` pointing at ``sha``."""
        payload = {"ref": f"refs/heads/{branch}", "sha": sha}
        try:
            response = await self._client.post(self._repo_url("git/refs"), json=payload)
        except httpx.HTTPError as exc:
            raise StoreError("create branch", str(exc), branch=branch) from exc
        if response.status_code != 201:
            raise StoreError("create branch", _error_detail(response), response.status_code, branch=branch)

    async def delete_branch(self, branch: str) -> None:
        try:
            response = await self._client.delete(self._repo_url(f"git/refs/heads/{quote(branch)}"))
        except httpx.HTTPError as exc:
            raise StoreError("delete branch", str(exc), branch=branch) from exc
        if response.status_code != 204:
            raise StoreError("delete branch", _error_detail(response), response.status_code, branch=branch)

    # ------------------------------------------------------------------
    # Contents
    # ------------------------------------------------------------------

    async def put_file(
        self,
        path: str,
        content: bytes,
        message: str,
        branch: str,
        sha: Optional[str] = None,
    ) -> str:
        """
        Create (or, when ``sha`` of the existing blob is given, overwrite) a
        file on ``branch``. Returns the resulting commit SHA.
        """
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": branch,
        }
        if sha:
            payload["sha"] = sha

        try:
            response = await self._client.put(self._repo_url(f"contents/{quote(path)}"), json=payload)
        except httpx.HTTPError as exc:
            raise RemoteWriteError(path, str(exc)) from exc
        if response.status_code not in (200, 201):
            raise RemoteWriteError(path, _error_detail(response), response.status_code)

        try:
            return response.json()["commit"]["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            raise RemoteWriteError(path, f"unexpected response: {exc}", response.status_code) from exc

    # ------------------------------------------------------------------
    # Merges
    # ------------------------------------------------------------------

    async def merge(self, base: str, head: str, message: str) -> str:
        """
        Merge ``head`` into ``base``. Returns the merge commit SHA.

        GitHub answers 201 on a merge, 204 when there is nothing to merge and
        409 on conflict; anything but 201 is a MergeError.
        """
        payload = {"base": base, "head": head, "commit_message": message}
        try:
            response = await self._client.post(self._repo_url("merges"), json=payload)
        except httpx.HTTPError as exc:
            raise MergeError(base, head, str(exc)) from exc

        if response.status_code == 204:
            raise MergeError(base, head, "nothing to merge", 204)
        if response.status_code != 201:
            raise MergeError(base, head, _error_detail(response), response.status_code)

        try:
            return response.json()["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            raise MergeError(base, head, f"unexpected response: {exc}", response.status_code) from exc
