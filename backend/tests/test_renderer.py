"""
Post renderer tests: stamp, paths, document layout and file plan ordering.
"""

import json
from datetime import datetime, timedelta, timezone

from mailpost.models.post import Post
from mailpost.models.publish import FileKind
from mailpost.services.renderer import (
    RepoLayout,
    asset_link,
    asset_path,
    plan_assets,
    plan_post,
    post_path,
    render_post,
    slugify_title,
    stamp_id,
)

TS = datetime(2024, 5, 1, 9, 7, 42, tzinfo=timezone(timedelta(hours=2)))
LAYOUT = RepoLayout(posts_dir="content/posts", assets_dir="content/posts/assets")


def _post(**overrides) -> Post:
    data = dict(
        title="v1.0 shipped",
        author="Ada",
        tags=["go", "releases"],
        body="See notes.",
        timestamp=TS,
        attachments={},
    )
    data.update(overrides)
    return Post(**data)


def _split(document: bytes) -> tuple[dict, str]:
    """Split a rendered document into (preamble, body)."""
    text = document.decode("utf-8")
    end = text.index("\n}") + 2
    assert text[end] == "\n"
    return json.loads(text[:end]), text[end + 1:]


class TestPaths:

    def test_stamp_is_minute_granularity(self):
        assert stamp_id(TS) == "2024-05-01-0907"
        assert stamp_id(TS + timedelta(seconds=10)) == stamp_id(TS)

    def test_slug_replaces_spaces_and_slashes(self):
        assert slugify_title("v1.0 shipped") == "v1.0-shipped"
        assert slugify_title("a/b c") == "a-b-c"

    def test_post_path(self):
        assert post_path(LAYOUT, "2024-05-01-0907", "v1.0 shipped") == "content/posts/2024-05-01-0907-v1.0-shipped.md"

    def test_post_path_at_repo_root(self):
        layout = RepoLayout(posts_dir="", assets_dir="assets")
        assert post_path(layout, "2024-05-01-0907", "Hi") == "2024-05-01-0907-Hi.md"

    def test_asset_path_has_stamp_prefix(self):
        assert asset_path(LAYOUT, "2024-05-01-0907", "photo.png") == "content/posts/assets/2024-05-01-0907-photo.png"

    def test_asset_link_is_relative_to_posts(self):
        assert asset_link(LAYOUT, "content/posts/assets/x.png") == "assets/x.png"
        sibling = RepoLayout(posts_dir="_posts", assets_dir="static/img")
        assert asset_link(sibling, "static/img/x.png") == "../static/img/x.png"


class TestRenderPost:

    def test_preamble_keys_order_and_values(self):
        preamble, body = _split(render_post(_post()))

        assert list(preamble) == ["Date", "Title", "Author", "Tags"]
        assert preamble == {
            "Date": "2024-05-01T09:07:42+02:00",
            "Title": "v1.0 shipped",
            "Author": "Ada",
            "Tags": ["go", "releases"],
        }
        assert body == "See notes."

    def test_two_space_indent(self):
        text = render_post(_post()).decode()
        assert text.startswith('{\n  "Date": "2024-05-01T09:07:42+02:00",\n  "Title": "v1.0 shipped",')

    def test_empty_tags_render_as_list(self):
        preamble, _ = _split(render_post(_post(tags=[])))
        assert preamble["Tags"] == []

    def test_asset_links_appended_to_body(self):
        _, body = _split(render_post(_post(), [("photo.png", "assets/2024-05-01-0907-photo.png")]))
        assert body == "See notes.\n\n![photo.png](assets/2024-05-01-0907-photo.png)"

    def test_non_ascii_kept(self):
        preamble, body = _split(render_post(_post(title="Café", body="naïve")))
        assert preamble["Title"] == "Café"
        assert body == "naïve"


class TestPlanAssets:

    def test_no_attachments(self):
        assert plan_assets(_post(), LAYOUT, "2024-05-01-0907") == {}

    def test_sorted_by_name_under_assets_dir(self):
        post = _post(attachments={"b.gif": b"GIF", "a.png": b"PNG"})
        assets = plan_assets(post, LAYOUT, "2024-05-01-0907")

        assert list(assets) == ["a.png", "b.gif"]
        assert [f.path for f in assets.values()] == [
            "content/posts/assets/2024-05-01-0907-a.png",
            "content/posts/assets/2024-05-01-0907-b.gif",
        ]
        assert all(f.kind is FileKind.ASSET for f in assets.values())
        assert assets["a.png"].content == b"PNG"


class TestPlanPost:

    def test_post_only(self):
        planned = plan_post(_post(), LAYOUT, "2024-05-01-0907")

        assert planned.kind is FileKind.POST
        assert planned.path == "content/posts/2024-05-01-0907-v1.0-shipped.md"
        _, body = _split(planned.content)
        assert body == "See notes."

    def test_links_given_attachments(self):
        post = _post(attachments={"b.gif": b"GIF", "a.png": b"PNG"})
        planned = plan_post(post, LAYOUT, "2024-05-01-0907", ["a.png", "b.gif"])

        _, body = _split(planned.content)
        assert "![a.png](assets/2024-05-01-0907-a.png)" in body
        assert "![b.gif](assets/2024-05-01-0907-b.gif)" in body
        assert "base64" not in body

    def test_unstored_attachment_is_not_linked(self):
        post = _post(attachments={"b.gif": b"GIF", "a.png": b"PNG"})
        planned = plan_post(post, LAYOUT, "2024-05-01-0907", ["b.gif"])

        _, body = _split(planned.content)
        assert "a.png" not in body
        assert body.endswith("![b.gif](assets/2024-05-01-0907-b.gif)")
