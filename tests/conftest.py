"""Shared fixtures for thumbtube tests."""

import pytest

from thumbtube.ingestion.http import HTTPFetchError
from thumbtube.ingestion.metadata import PageMetadataExtractor, ScrapeError
from thumbtube.ingestion.thumbnails import ThumbnailFetcher
from thumbtube.interactive import InteractiveSelector, Selection
from thumbtube.models import Form, PageMetadata, Quality
from thumbtube.storage.layout import Repository
from thumbtube.storage.sqlite import SQLiteThumbnailIndex

LONG_ID = "AAAAAAAAAAA"
SHORT_ID = "BBBBBBBBBBB"
OTHER_ID = "CCCCCCCCCCC"


class FakeImageHost:
    """Stands in for fetch_bytes: serves bytes for (video_id, quality) pairs."""

    def __init__(self, available: dict[str, set[Quality]] | None = None) -> None:
        self.available = available or {}
        self.requests: list[str] = []

    def __call__(self, url: str) -> bytes:
        self.requests.append(url)
        for video_id, levels in self.available.items():
            for quality in levels:
                if f"/{video_id}/{quality.value}." in url:
                    return f"{video_id}:{quality.value}".encode()
        raise HTTPFetchError(f"HTTP Error 404: Not Found ({url})")


class FakeScraper(PageMetadataExtractor):
    """Returns canned metadata; IDs not listed fail to fetch."""

    def __init__(self, pages: dict[str, PageMetadata] | None = None) -> None:
        self.pages = pages or {}
        self.calls: list[str] = []

    def scrape(self, video_id: str) -> PageMetadata:
        self.calls.append(video_id)
        if video_id not in self.pages:
            raise ScrapeError(f"Failed to fetch page for {video_id}")
        return self.pages[video_id]


class ScriptedSelector(InteractiveSelector):
    """Replays a queue of selections and remembers the rows it was shown."""

    def __init__(self, *selections: Selection) -> None:
        self.selections = list(selections)
        self.shown: list[list] = []

    def select(self, rows, *, multi=True, prompt=""):
        self.shown.append(rows)
        return self.selections.pop(0) if self.selections else Selection()


@pytest.fixture
def memory_index():
    """SQLiteThumbnailIndex backed by in-memory database."""
    index = SQLiteThumbnailIndex(":memory:")
    yield index
    index.close()


@pytest.fixture
def repo(tmp_path):
    """Freshly initialized repository in a temporary directory."""
    repository, _ = Repository.init(tmp_path / "repo")
    yield repository
    repository.close()


@pytest.fixture
def other_repo(tmp_path):
    """A second, independent repository."""
    repository, _ = Repository.init(tmp_path / "other")
    yield repository
    repository.close()


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def fetcher(image_host):
    return ThumbnailFetcher(fetch=image_host)


@pytest.fixture
def scraper():
    return FakeScraper()


@pytest.fixture
def service(repo, fetcher, scraper):
    """Fully wired ThumbTubeService with fake network collaborators."""
    from thumbtube.service import ThumbTubeService

    return ThumbTubeService(repository=repo, fetcher=fetcher, scraper=scraper)


def add_downloaded(repo: Repository, video_id: str, form: Form, title=None, channel=None,
                   quality: Quality = Quality.HQDEFAULT) -> None:
    """Put a downloaded (and optionally scraped) entry plus its image in a repository."""
    repo.index.insert_if_absent(video_id, form)
    repo.index.record_attempt(video_id)
    repo.index.record_quality(video_id, quality)
    repo.image_path(video_id, form).write_bytes(b"\xff\xd8" + video_id.encode())
    if title is not None:
        repo.index.record_metadata(video_id, title, channel)
