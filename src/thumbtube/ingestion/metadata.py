"""Title and channel scraping from a video's webpage."""

import html
import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable

from thumbtube.config import settings
from thumbtube.ingestion.http import HTTPFetchError, fetch_bytes
from thumbtube.models import PageMetadata

logger = logging.getLogger(__name__)


class ScrapeError(Exception):
    """Raised when a video's webpage cannot be retrieved."""


class PageMetadataExtractor(ABC):
    """Narrow contract for anything that can name a video's title and channel."""

    @abstractmethod
    def scrape(self, video_id: str) -> PageMetadata:
        """Return whatever metadata could be found. Missing fields are None.

        Raises:
            ScrapeError: If the page itself could not be fetched.
        """


class YouTubePageScraper(PageMetadataExtractor):
    """Pattern-matches the watch page HTML.

    Markup drift on YouTube's side shows up as missing fields, which the
    caller treats as a recoverable per-video failure.
    """

    _TITLE_RE = re.compile(r"<title[^>]*>([^<]*)</title>", re.IGNORECASE)
    _TITLE_SUFFIX = " - YouTube"
    _STUB_TITLES = ("YouTube", "- YouTube", "")  # removed or private videos

    _CHANNEL_RE = re.compile(r'"ownerChannelName"\s*:\s*("(?:[^"\\]|\\.)*")')

    def __init__(self, fetch: Callable[[str], bytes] | None = None) -> None:
        self._fetch = fetch or fetch_bytes

    def scrape(self, video_id: str) -> PageMetadata:
        url = settings.page_url(video_id)
        try:
            page = self._fetch(url).decode("utf-8", errors="replace")
        except HTTPFetchError as e:
            raise ScrapeError(f"Failed to fetch page for {video_id}: {e}") from e

        metadata = PageMetadata(
            title=self.parse_title(page),
            channel=self.parse_channel(page),
        )
        if not metadata.complete:
            logger.warning(
                "Incomplete metadata for %s (title=%r, channel=%r)",
                video_id, metadata.title, metadata.channel,
            )
        return metadata

    @classmethod
    def parse_title(cls, page: str) -> str | None:
        """Page title without the site suffix, entities decoded."""
        match = cls._TITLE_RE.search(page)
        if not match:
            return None
        title = html.unescape(match.group(1)).strip()
        if title in cls._STUB_TITLES:
            return None
        if title.endswith(cls._TITLE_SUFFIX):
            title = title[: -len(cls._TITLE_SUFFIX)].rstrip()
        return title or None

    @classmethod
    def parse_channel(cls, page: str) -> str | None:
        """Quoted value following the embedded channel-name marker."""
        match = cls._CHANNEL_RE.search(page)
        if not match:
            return None
        try:
            channel = json.loads(match.group(1))
        except json.JSONDecodeError:
            channel = match.group(1)[1:-1]
        channel = html.unescape(channel).strip()
        return channel or None
