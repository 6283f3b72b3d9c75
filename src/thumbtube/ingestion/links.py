"""Recognition of YouTube video references in free-form text."""

import logging
import re

from thumbtube.models import ExtractedLink, Form, VIDEO_ID_PATTERN

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Raised when no video ID can be parsed from a link."""


class LinkExtractor:
    """Extracts (video ID, form) pairs from pasted text, files or bookmarks.

    Matching is purely lexical. A short that was rewritten into the
    watch-URL shape is indistinguishable from a long video here and is
    classified long; the link is the only signal available.
    """

    _ID = r"([\w-]{11})(?![\w-])"

    _PATTERNS = [
        (re.compile(r"youtube\.com/shorts/" + _ID, re.ASCII), Form.SHORT),
        (re.compile(r"youtube\.com/watch\?[^\s\"'<>]*?(?<=[?&;])v=" + _ID, re.ASCII), Form.LONG),
        (re.compile(r"youtu\.be/" + _ID, re.ASCII), Form.LONG),
    ]

    def extract(self, text: str) -> list[ExtractedLink]:
        """Find every video reference in text.

        Falls back to one bare ID per line when no link is recognised.

        Returns:
            Links deduplicated by video ID, first occurrence first.
        """
        matches = []
        for pattern, form in self._PATTERNS:
            for match in pattern.finditer(text):
                matches.append((match.start(), match.group(1), form))
        matches.sort(key=lambda m: m[0])

        if not matches:
            return self._extract_bare_ids(text)

        links: dict[str, ExtractedLink] = {}
        for _, video_id, form in matches:
            links.setdefault(video_id, ExtractedLink(video_id=video_id, form=form))
        logger.info("Recognised %d video link(s)", len(links))
        return list(links.values())

    @staticmethod
    def _extract_bare_ids(text: str) -> list[ExtractedLink]:
        links: dict[str, ExtractedLink] = {}
        for line in text.splitlines():
            candidate = line.strip()
            if VIDEO_ID_PATTERN.match(candidate):
                links.setdefault(candidate, ExtractedLink(video_id=candidate))
        if links:
            logger.info("No links found; read %d bare video ID(s)", len(links))
        return list(links.values())

    @classmethod
    def parse_video_id(cls, url: str) -> str:
        """Extract the 11-character video ID from a single link or bare ID.

        Raises:
            ExtractionError: If the text holds no video reference.
        """
        links = cls().extract(url)
        if not links:
            raise ExtractionError(f"Could not extract video ID from: {url}")
        return links[0].video_id
