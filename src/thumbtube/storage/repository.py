"""Abstract index interface for thumbnail storage."""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from thumbtube.models import ChannelCount, Form, IndexCounts, Quality, ThumbnailEntry


class ThumbnailIndex(ABC):
    """Abstract base class defining the thumbnail index contract.

    Every entry mutation goes through one of the record_* / insert /
    delete operations below. Implementations must apply each mutation
    atomically and serialise concurrent writers.
    """

    @abstractmethod
    def insert_if_absent(self, video_id: str, form: Form) -> bool:
        """Create an entry. No-op if video_id exists. Returns True if inserted."""

    @abstractmethod
    def get(self, video_id: str) -> ThumbnailEntry | None:
        """Retrieve an entry by ID. Returns None if not found."""

    @abstractmethod
    def exists(self, video_id: str) -> bool:
        """Check whether an entry with the given ID is indexed."""

    @abstractmethod
    def list_all(self, form: Form | None = None) -> list[ThumbnailEntry]:
        """List every entry in insertion order, optionally of one form."""

    @abstractmethod
    def query_undownloaded(
        self, max_attempts: int, limit: int | None = None
    ) -> list[ThumbnailEntry]:
        """Entries not yet downloaded with fewer than max_attempts attempts."""

    @abstractmethod
    def record_attempt(self, video_id: str) -> None:
        """Increment the attempt counter of an entry."""

    @abstractmethod
    def record_quality(self, video_id: str, quality: Quality) -> None:
        """Mark an entry downloaded at a quality. No-op if video_id is absent."""

    @abstractmethod
    def query_scrape_candidates(self) -> list[ThumbnailEntry]:
        """Entries that are downloaded but not yet scraped."""

    @abstractmethod
    def record_metadata(self, video_id: str, title: str, channel: str) -> None:
        """Set title and channel together. No-op if video_id is absent."""

    @abstractmethod
    def query_by_filter(
        self, form: Form | None = None, channels: Iterable[str] | None = None
    ) -> list[ThumbnailEntry]:
        """Downloaded and scraped entries, optionally of one form and channel set."""

    @abstractmethod
    def channel_counts(self, form: Form | None = None) -> list[ChannelCount]:
        """Searchable entries per channel, by count descending then name."""

    @abstractmethod
    def counts(self, form: Form | None = None, max_attempts: int = 1) -> IndexCounts:
        """Lifecycle counts, optionally restricted to one form."""

    @abstractmethod
    def merge_entries(self, entries: Iterable[ThumbnailEntry]) -> list[ThumbnailEntry]:
        """Insert full records whose IDs are absent, in one transaction.

        Returns the entries actually inserted. Existing entries are never touched.
        """

    @abstractmethod
    def delete(self, video_id: str) -> bool:
        """Remove an entry. Returns False if it did not exist."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying storage handle."""
