"""
Post renderer.

Builds the repository files for one post:

  <assets_dir>/<stamp>-<name>        one per attachment
  <posts_dir>/<stamp>-<title-slug>.md

The post document is a JSON preamble (Date, Title, Author, Tags; 2-space
indent) followed by a newline and the body. Each attachment is linked from
the end of the body with a path relative to the posts directory, as long
as its own write succeeded.
"""

import json
import posixpath
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from mailpost.config import Settings
from mailpost.models.post import Post
from mailpost.models.publish import FileKind, PlannedFile

STAMP_FORMAT = "%Y-%m-%d-%H%M"


@dataclass(frozen=True)
class RepoLayout:
    """Where posts and attachments live inside the repository."""

    posts_dir: str
    assets_dir: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "RepoLayout":
        return cls(posts_dir=settings.posts_dir, assets_dir=settings.assets_dir)


def stamp_id(timestamp: datetime) -> str:
    """Minute-granularity stamp used as filename prefix."""
    return timestamp.strftime(STAMP_FORMAT)


def slugify_title(title: str) -> str:
    return title.replace(" ", "-").replace("/", "-")


def _join(directory: str, filename: str) -> str:
    return posixpath.join(directory, filename) if directory else filename


def post_path(layout: RepoLayout, stamp: str, title: str) -> str:
    return _join(layout.posts_dir, f"{stamp}-{slugify_title(title)}.md")


def asset_path(layout: RepoLayout, stamp: str, name: str) -> str:
    return _join(layout.assets_dir, f"{stamp}-{name}")


def asset_link(layout: RepoLayout, path: str) -> str:
    """Link to ``path`` as seen from a post in the posts directory."""
    return posixpath.relpath(path, start=layout.posts_dir or ".")


def render_post(post: Post, asset_links: Sequence[tuple[str, str]] = ()) -> bytes:
    """
    Render the post document.

    ``asset_links`` is a sequence of (name, link) pairs appended to the body
    as markdown images.
    """
    preamble = {
        "Date": post.timestamp.isoformat(),
        "Title": post.title,
        "Author": post.author,
        "Tags": list(post.tags),
    }
    body = post.body
    for name, link in asset_links:
        body += f"\n\n![{name}]({link})"
    return (json.dumps(preamble, indent=2, ensure_ascii=False) + "\n" + body).encode("utf-8")


def plan_assets(post: Post, layout: RepoLayout, stamp: str) -> dict[str, PlannedFile]:
    """Attachment files keyed by attachment name, in filename order."""
    return {
        name: PlannedFile(
            path=asset_path(layout, stamp, name),
            content=post.attachments[name],
            kind=FileKind.ASSET,
        )
        for name in sorted(post.attachments)
    }


def plan_post(
    post: Post,
    layout: RepoLayout,
    stamp: str,
    asset_names: Sequence[str] = (),
) -> PlannedFile:
    """
    Return the post file, linking only the attachments in ``asset_names``.

    Callers pass the attachments that were actually stored, so the post is
    planned after the attachment writes.
    """
    links = [(name, asset_link(layout, asset_path(layout, stamp, name))) for name in asset_names]
    return PlannedFile(
        path=post_path(layout, stamp, post.title),
        content=render_post(post, links),
        kind=FileKind.POST,
    )
