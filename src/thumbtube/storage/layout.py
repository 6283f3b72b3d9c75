"""On-disk repository layout: marker directory, index and image stores."""

import logging
import shutil
from pathlib import Path

from thumbtube.config import settings
from thumbtube.models import (
    Form,
    FormReconciliation,
    FormStats,
    ReconcileReport,
    RepositoryStats,
    VIDEO_ID_PATTERN,
)
from thumbtube.storage.repository import ThumbnailIndex
from thumbtube.storage.sqlite import SQLiteThumbnailIndex

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".webp")


class NotARepositoryError(Exception):
    """Raised when a directory does not hold a thumbnail repository."""


def is_repository(path: Path) -> bool:
    """A directory is a repository iff it holds the index marker."""
    return (Path(path) / settings.meta_dir_name / settings.index_name).is_file()


def resolve_repository(
    cwd: Path, explicit: Path | None = None, default: Path | None = None
) -> "Repository":
    """Pick the repository an invocation operates on.

    Resolution order: an explicit target (which must be a repository),
    else the working directory, else the configured default.

    Raises:
        NotARepositoryError: If no candidate is a repository.
    """
    if explicit is not None:
        if is_repository(explicit):
            return Repository(explicit)
        raise NotARepositoryError(f"Not a thumbnail repository: {explicit}")

    if is_repository(cwd):
        return Repository(cwd)

    if default is not None and is_repository(default):
        logger.warning("Using default repository: %s", default)
        return Repository(default)

    raise NotARepositoryError(f"Not a thumbnail repository: {cwd}")


class Repository:
    """Handle on one thumbnail repository directory.

    Owns the index and the two image stores. Image files are named by
    video ID; the index decides what state an entry is in, the stores
    only hold bytes.
    """

    def __init__(self, root: Path, index: ThumbnailIndex | None = None) -> None:
        self.root = Path(root)
        self._index = index

    @classmethod
    def init(cls, root: Path) -> tuple["Repository", bool]:
        """Create an empty repository, or reopen an existing one untouched.

        Returns:
            Tuple of (Repository, created) where created is False if the
            directory already was a repository.
        """
        root = Path(root)
        created = not is_repository(root)
        repo = cls(root)
        repo.meta_dir.mkdir(parents=True, exist_ok=True)
        for form in Form:
            repo.store_dir(form).mkdir(parents=True, exist_ok=True)
        repo.index  # creates the schema
        if created:
            logger.info("Initialized thumbnail repository: %s", root)
        return repo, created

    @property
    def meta_dir(self) -> Path:
        return self.root / settings.meta_dir_name

    @property
    def index_path(self) -> Path:
        return self.meta_dir / settings.index_name

    @property
    def index(self) -> ThumbnailIndex:
        """The repository's index, opened on first use."""
        if self._index is None:
            self._index = SQLiteThumbnailIndex(str(self.index_path))
        return self._index

    def close(self) -> None:
        if self._index is not None:
            self._index.close()
            self._index = None

    def store_dir(self, form: Form) -> Path:
        return self.root / Form(form).store_name

    def image_path(self, video_id: str, form: Form, ext: str | None = None) -> Path:
        """Destination path for a single-quality thumbnail."""
        ext = ext or settings.image_format
        return self.store_dir(form) / f"{video_id}.{ext}"

    def find_image(self, video_id: str, form: Form) -> Path | None:
        """Existing single-quality image for an ID, in any known format."""
        for ext in IMAGE_EXTENSIONS:
            candidate = self.store_dir(form) / f"{video_id}{ext}"
            if candidate.is_file():
                return candidate
        return None

    def image_files(self, video_id: str, form: Form) -> list[Path]:
        """Every image file belonging to an ID, including per-quality variants."""
        store = self.store_dir(form)
        if not store.is_dir():
            return []
        return sorted(
            p for p in store.iterdir()
            if p.is_file()
            and p.suffix.lower() in IMAGE_EXTENSIONS
            and (p.stem == video_id or p.stem.startswith(f"{video_id}-"))
        )

    def store_files(self, form: Form) -> dict[str, Path]:
        """Single-quality image files in a store, keyed by video ID."""
        store = self.store_dir(form)
        if not store.is_dir():
            return {}
        return {
            p.stem: p
            for p in store.iterdir()
            if p.is_file()
            and p.suffix.lower() in IMAGE_EXTENSIONS
            and VIDEO_ID_PATTERN.match(p.stem)
        }

    def stats(self) -> RepositoryStats:
        """Downloaded count per form (from the index) and store disk usage."""
        forms = {}
        for form in Form:
            size = sum(p.stat().st_size for p in self.store_files(form).values())
            forms[form] = FormStats(count=self.index.counts(form).downloaded, size_bytes=size)
        return RepositoryStats(forms=forms)

    def reconcile(self) -> ReconcileReport:
        """Compare downloaded entries against image files actually on disk."""
        forms = {}
        for form in Form:
            entries = self.index.list_all(form)
            downloaded = {e.video_id for e in entries if e.downloaded}
            files = set(self.store_files(form))
            forms[form] = FormReconciliation(
                indexed=len(entries),
                downloaded=len(downloaded),
                files=len(files),
                missing_files=sorted(downloaded - files),
                untracked_files=sorted(files - downloaded),
            )
        report = ReconcileReport(forms=forms)
        if not report.consistent:
            logger.warning("Index and image stores are out of sync: %s", self.root)
        return report

    def delete(self, video_id: str) -> bool:
        """Remove an entry and all of its image files.

        Returns:
            False if the ID was not indexed.
        """
        entry = self.index.get(video_id)
        if entry is None:
            return False
        for path in self.image_files(video_id, entry.form):
            path.unlink(missing_ok=True)
        self.index.delete(video_id)
        logger.info("Thumbnail removed: %s", video_id)
        return True

    def destroy(self) -> None:
        """Remove the index and both stores; the root too if left empty."""
        self.close()
        shutil.rmtree(self.meta_dir, ignore_errors=False)
        for form in Form:
            if self.store_dir(form).exists():
                shutil.rmtree(self.store_dir(form))
        if self.root.is_dir() and not any(self.root.iterdir()):
            self.root.rmdir()
        logger.info("Repository deleted: %s", self.root)

    def __repr__(self) -> str:
        return f"Repository({str(self.root)!r})"
