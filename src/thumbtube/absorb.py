"""Merging one thumbnail repository into another."""

import logging
import shutil
from collections.abc import Callable

from thumbtube.models import Form, MergeReport, ThumbnailEntry
from thumbtube.storage.layout import NotARepositoryError, Repository, is_repository

logger = logging.getLogger(__name__)


class AbsorbError(Exception):
    """Raised when two repositories cannot be merged."""


class AbsorbEngine:
    """Pulls entries and image files unique to a secondary repository into a primary.

    The video ID is the only identity: an ID already present in the
    primary is never overwritten, whatever state either copy is in.
    """

    def absorb(
        self,
        primary: Repository,
        secondary: Repository,
        delete_secondary: bool = False,
        dry_run: bool = False,
        confirm: Callable[[], bool] | None = None,
        progress: Callable[[int, int], None] | None = None,
    ) -> MergeReport:
        """Merge secondary into primary.

        Image files are copied before the index rows that describe them
        are committed. An interrupted run therefore leaves at most
        untracked files in primary, and running absorb again completes
        the merge. Primary entries marked downloaded whose image is
        missing are refilled from secondary when it has one.

        Args:
            primary: Repository receiving entries.
            secondary: Repository whose unique entries are copied.
            delete_secondary: Remove secondary after a successful merge.
            dry_run: Only count what would be merged; mutate nothing.
            confirm: Final gate before deleting secondary. Deletion is
                     skipped unless it returns True.
            progress: Optional (done, total) sink for file copying.

        Returns:
            MergeReport with per-form insert counts and files copied.

        Raises:
            NotARepositoryError: If secondary is not a repository.
            AbsorbError: If both handles point at the same repository.
        """
        if not is_repository(secondary.root):
            raise NotARepositoryError(f"Not a thumbnail repository: {secondary.root}")
        if primary.root.resolve() == secondary.root.resolve():
            raise AbsorbError("Cannot absorb a repository into itself")

        primary_entries = {e.video_id: e for e in primary.index.list_all()}
        secondary_entries = secondary.index.list_all()
        unique = [e for e in secondary_entries if e.video_id not in primary_entries]

        report = MergeReport(dry_run=dry_run)
        for entry in unique:
            report.inserted[entry.form] += 1

        if dry_run:
            report.would_delete_secondary = delete_secondary
            logger.info("Dry run: would absorb %d entries", report.total_inserted)
            return report

        # (source entry, form of the store it is copied into)
        copies = [(entry, entry.form) for entry in unique]
        for entry in secondary_entries:
            ours = primary_entries.get(entry.video_id)
            if ours is not None and self._lost_image(primary, ours):
                copies.append((entry, ours.form))

        total = len(copies)
        if progress:
            progress(0, total)
        for done, (entry, dest_form) in enumerate(copies, 1):
            report.files_copied += self._copy_images(primary, secondary, entry, dest_form)
            if progress:
                progress(done, total)

        inserted = primary.index.merge_entries(unique)
        report.inserted = {form: sum(1 for e in inserted if e.form == form) for form in Form}

        logger.info(
            "Absorbed %d entries and %d files from %s",
            report.total_inserted, report.files_copied, secondary.root,
        )

        if delete_secondary:
            if confirm is not None and confirm():
                secondary.destroy()
                report.secondary_deleted = True
            else:
                logger.info("Kept secondary repository: %s", secondary.root)
        return report

    @staticmethod
    def _lost_image(repository: Repository, entry: ThumbnailEntry) -> bool:
        """Whether an entry claims a download but has no image on disk."""
        return entry.downloaded and repository.find_image(entry.video_id, entry.form) is None

    @staticmethod
    def _copy_images(
        primary: Repository, secondary: Repository, entry: ThumbnailEntry, dest_form: Form
    ) -> int:
        """Copy an ID's image files without replacing anything in primary.

        Each file is written under a temporary name first, so an
        interrupted copy never looks like a finished image.
        """
        copied = 0
        dest_dir = primary.store_dir(dest_form)
        dest_dir.mkdir(parents=True, exist_ok=True)
        for src in secondary.image_files(entry.video_id, entry.form):
            dest = dest_dir / src.name
            if dest.exists():
                continue
            partial = dest.with_name(dest.name + ".part")
            shutil.copy2(src, partial)
            partial.replace(dest)
            copied += 1
        return copied
