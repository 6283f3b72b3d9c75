"""Thumbnail image download at one, the best, or every quality level."""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Literal

from thumbtube.config import settings
from thumbtube.ingestion.http import HTTPFetchError, fetch_bytes
from thumbtube.models import FetchResult, Quality

logger = logging.getLogger(__name__)

BEST = "best"
ALL = "all"

QualitySelector = Quality | Literal["best", "all"]


class FetchError(Exception):
    """Raised when no requested thumbnail could be downloaded."""


def parse_selector(value: str) -> QualitySelector:
    """Convert user input ("1".."5", a quality name, "best" or "all") to a selector.

    Raises:
        ValueError: If the value names no selector.
    """
    value = value.strip().lower()
    if value in (BEST, ALL):
        return value
    if value.isdigit():
        return Quality.from_level(int(value))
    return Quality(value)


class ThumbnailFetcher:
    """Downloads thumbnail images from YouTube's image host.

    Failures are reported to the caller as FetchError. The only retry
    policy is the best-available search, which walks the quality ladder
    from the top down and keeps the first level that returns content.
    """

    def __init__(self, fetch: Callable[[str], bytes] | None = None) -> None:
        self._fetch = fetch or fetch_bytes

    def fetch(
        self,
        video_id: str,
        directory: Path,
        selector: QualitySelector = BEST,
        overwrite: bool = False,
    ) -> FetchResult:
        """Download a video's thumbnail into a directory.

        Args:
            video_id: YouTube video ID.
            directory: Destination directory, created if missing.
            selector: A fixed Quality, BEST or ALL.
            overwrite: Replace existing files instead of skipping them.

        Returns:
            FetchResult describing what was written.

        Raises:
            FetchError: If nothing could be downloaded.
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        if selector == ALL:
            return self._fetch_all(video_id, directory, overwrite)

        dest = directory / f"{video_id}.{settings.image_format}"
        if dest.exists() and not overwrite:
            logger.info("Thumbnail exists, skipping: %s", dest)
            return FetchResult(video_id=video_id, paths=[dest], skipped=True)

        if selector == BEST:
            levels = list(reversed(Quality.ladder()))
        else:
            levels = [Quality(selector)]

        for quality in levels:
            data = self._get(video_id, quality)
            if data:
                written = self._write(dest, data)
                logger.info("Downloaded %s at %s", video_id, quality.value)
                return FetchResult(
                    video_id=video_id, quality=quality, bytes_written=written, paths=[dest]
                )

        raise FetchError(
            f"No thumbnail available for {video_id} at {', '.join(q.value for q in levels)}"
        )

    def _fetch_all(self, video_id: str, directory: Path, overwrite: bool) -> FetchResult:
        result = FetchResult(video_id=video_id)
        for quality in Quality.ladder():
            dest = directory / f"{video_id}-{quality.value}.{settings.image_format}"
            if dest.exists() and not overwrite:
                result.levels[quality] = True
                result.quality = quality
                result.paths.append(dest)
                continue
            data = self._get(video_id, quality)
            result.levels[quality] = bool(data)
            if data:
                result.bytes_written += self._write(dest, data)
                result.quality = quality
                result.paths.append(dest)

        if result.quality is None:
            raise FetchError(f"No thumbnail available for {video_id} at any quality")
        return result

    def _get(self, video_id: str, quality: Quality) -> bytes | None:
        """One request for one level; None on error or empty body."""
        url = settings.image_url(video_id, quality.value)
        try:
            data = self._fetch(url)
        except HTTPFetchError as e:
            logger.debug("%s", e)
            return None
        return data or None

    @staticmethod
    def _write(dest: Path, data: bytes) -> int:
        """Write via a temporary file so readers never see a partial image."""
        partial = dest.with_name(dest.name + ".part")
        partial.write_bytes(data)
        partial.replace(dest)
        return len(data)
