"""
Template and texture document fetching.

Locators starting with http:// or https:// go through a shared requests
session; anything else is resolved against the configured base URL, or the
local media root when no base URL is set.
"""
from __future__ import annotations

import logging
import re
from typing import Optional

import requests

from domain.errors import FetchError
from settings import settings
from storage.file_storage import FileStorage

logger = logging.getLogger(__name__)

FETCH_HEADERS = {"User-Agent": "stamp-studio/0.1 (document-fetch)"}
_session = requests.Session()

TEXTURE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _is_remote(locator: str) -> bool:
    return locator.startswith(("http://", "https://"))


def _join_url(base: str, path: str) -> str:
    return base.rstrip("/") + "/" + path.lstrip("/")


class DocumentFetcher:
    """Blocking fetcher; callers on the event loop wrap it in asyncio.to_thread."""

    def __init__(
        self,
        storage: Optional[FileStorage] = None,
        template_base_url: Optional[str] = None,
        texture_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.storage = storage or FileStorage(settings.STAMP_MEDIA_ROOT)
        self.template_base_url = settings.TEMPLATE_BASE_URL if template_base_url is None else template_base_url
        self.texture_base_url = settings.TEXTURE_BASE_URL if texture_base_url is None else texture_base_url
        self.timeout = settings.FETCH_TIMEOUT_SECONDS if timeout is None else timeout
        self.session = session or _session

    def fetch_template_document(self, locator: str) -> str:
        """Raw template markup for `locator` (Template.svg_path)."""
        if not locator:
            raise FetchError(str(locator), "empty locator")
        if _is_remote(locator):
            return self._get(locator)
        if self.template_base_url:
            return self._get(_join_url(self.template_base_url, locator))
        return self._read_local(locator)

    def fetch_texture_document(self, texture_id: str) -> str:
        """Raw texture markup for a concrete texture id."""
        if not texture_id or not TEXTURE_ID_RE.fullmatch(texture_id):
            logger.warning("[fetch] Rejected texture id %r", texture_id)
            raise FetchError(str(texture_id), "invalid texture id")
        relative = self.storage.texture_path(texture_id)
        if self.texture_base_url:
            return self._get(_join_url(self.texture_base_url, f"{texture_id}.svg"))
        return self._read_local(relative)

    def _get(self, url: str) -> str:
        try:
            resp = self.session.get(url, headers=FETCH_HEADERS, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("[fetch] Request failed for %s: %s", url, exc)
            raise FetchError(url, str(exc)) from exc
        if not resp.ok:
            logger.warning("[fetch] %s returned HTTP %s", url, resp.status_code)
            raise FetchError(url, f"HTTP {resp.status_code}")
        return resp.text

    def _read_local(self, relative_path: str) -> str:
        try:
            return self.storage.read_text(relative_path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("[fetch] Could not read %s: %s", relative_path, exc)
            raise FetchError(relative_path, str(exc)) from exc
