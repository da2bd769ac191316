"""
Request dependencies.

Settings and the shared clients are created once by create_app() and kept
on ``app.state``; handlers get them through these accessors.
"""

from fastapi import Request

from mailpost.config import Settings
from mailpost.services.attachment_fetcher import AttachmentFetcher
from mailpost.services.github_store import GitHubStore
from mailpost.services.publisher import Publisher


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> GitHubStore:
    return request.app.state.store


def get_fetcher(request: Request) -> AttachmentFetcher:
    return request.app.state.fetcher


def get_publisher(request: Request) -> Publisher:
    return request.app.state.publisher
