"""Domain models for thumbtube."""

import re
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, computed_field, field_validator

VIDEO_ID_PATTERN = re.compile(r"^[\w-]{11}$", re.ASCII)


class Form(str, Enum):
    """Content-type classification of a video."""

    LONG = "long"
    SHORT = "short"

    @property
    def store_name(self) -> str:
        """Name of the image store directory for this form."""
        return f"{self.value}s"


class Quality(str, Enum):
    """Thumbnail quality ladder, declared worst to best."""

    DEFAULT = "default"
    MQDEFAULT = "mqdefault"
    HQDEFAULT = "hqdefault"
    SDDEFAULT = "sddefault"
    MAXRESDEFAULT = "maxresdefault"

    @classmethod
    def ladder(cls) -> tuple["Quality", ...]:
        """All levels, worst first."""
        return tuple(cls)

    @classmethod
    def from_level(cls, level: int) -> "Quality":
        """Map a 1-based level (1 = worst, 5 = best) to a quality."""
        ladder = cls.ladder()
        if not 1 <= level <= len(ladder):
            raise ValueError(f"Quality level must be between 1 and {len(ladder)}, got {level}")
        return ladder[level - 1]

    @property
    def level(self) -> int:
        return self.ladder().index(self) + 1


class ThumbnailEntry(BaseModel):
    """One tracked video in a repository index."""

    video_id: str  # YouTube video ID (e.g. "dQw4w9WgXcQ")
    form: Form
    quality: Quality | None = None  # None until downloaded
    attempts: int = Field(default=0, ge=0)
    title: str | None = None
    channel: str | None = None
    indexed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("video_id")
    @classmethod
    def _check_video_id(cls, value: str) -> str:
        if not VIDEO_ID_PATTERN.match(value):
            raise ValueError(f"Not a video ID: {value!r}")
        return value

    @computed_field
    @property
    def downloaded(self) -> bool:
        return self.quality is not None

    @computed_field
    @property
    def scraped(self) -> bool:
        return self.title is not None and self.channel is not None

    @computed_field
    @property
    def url(self) -> str:
        """Full YouTube URL derived from video_id."""
        return f"https://www.youtube.com/watch?v={self.video_id}"


class ExtractedLink(BaseModel, frozen=True):
    """A video reference recognised in free-form text.

    ``form`` is None for bare IDs, which carry no classification.
    """

    video_id: str
    form: Form | None = None


class FetchResult(BaseModel):
    """Outcome of a thumbnail fetch."""

    video_id: str
    quality: Quality | None = None  # best level actually written
    bytes_written: int = 0
    paths: list[Path] = Field(default_factory=list)
    levels: dict[Quality, bool] = Field(default_factory=dict)  # all-levels mode only
    skipped: bool = False


class PageMetadata(BaseModel):
    """Metadata scraped from a video's webpage. Missing fields are None."""

    title: str | None = None
    channel: str | None = None

    @property
    def complete(self) -> bool:
        return self.title is not None and self.channel is not None


class IndexReport(BaseModel):
    """Outcome of an index pass."""

    found: int = 0
    inserted: list[str] = Field(default_factory=list)
    already_indexed: list[str] = Field(default_factory=list)
    rejected: list[str] = Field(default_factory=list)  # bare IDs with no form


class BatchReport(BaseModel):
    """Outcome of a download or scrape pass."""

    total: int = 0
    succeeded: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class FormStats(BaseModel):
    count: int = 0
    size_bytes: int = 0


class RepositoryStats(BaseModel):
    """Downloaded-thumbnail counts and disk usage, partitioned by form."""

    forms: dict[Form, FormStats]

    @computed_field
    @property
    def total(self) -> FormStats:
        return FormStats(
            count=sum(s.count for s in self.forms.values()),
            size_bytes=sum(s.size_bytes for s in self.forms.values()),
        )


class FormReconciliation(BaseModel):
    indexed: int = 0
    downloaded: int = 0
    files: int = 0
    missing_files: list[str] = Field(default_factory=list)  # downloaded, no file on disk
    untracked_files: list[str] = Field(default_factory=list)  # file on disk, not downloaded

    @computed_field
    @property
    def difference(self) -> int:
        return self.downloaded - self.files


class ReconcileReport(BaseModel):
    """Index versus image-store comparison for each form."""

    forms: dict[Form, FormReconciliation]

    @property
    def consistent(self) -> bool:
        return all(
            not r.missing_files and not r.untracked_files for r in self.forms.values()
        )


class IndexCounts(BaseModel):
    indexed: int = 0
    downloaded: int = 0
    scraped: int = 0
    exhausted: int = 0  # out of attempts, never downloaded


class ChannelCount(BaseModel):
    channel: str
    count: int


class MergeReport(BaseModel):
    """Outcome of absorbing one repository into another."""

    dry_run: bool = False
    inserted: dict[Form, int] = Field(default_factory=lambda: {f: 0 for f in Form})
    files_copied: int = 0
    would_delete_secondary: bool = False
    secondary_deleted: bool = False

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())


class GetReport(BaseModel):
    """Outcome of the compound index, download and scrape pass."""

    indexed: IndexReport
    downloaded: BatchReport
    scraped: BatchReport
