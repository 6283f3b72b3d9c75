"""Core business logic for thumbtube: the thumbnail lifecycle."""

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from thumbtube.config import settings
from thumbtube.ingestion.links import LinkExtractor
from thumbtube.ingestion.metadata import PageMetadataExtractor, ScrapeError, YouTubePageScraper
from thumbtube.ingestion.thumbnails import BEST, FetchError, ThumbnailFetcher
from thumbtube.interactive import TextEditor
from thumbtube.models import (
    BatchReport,
    Form,
    GetReport,
    IndexCounts,
    IndexReport,
    ReconcileReport,
    RepositoryStats,
    ThumbnailEntry,
)
from thumbtube.storage.layout import Repository

logger = logging.getLogger(__name__)

ProgressSink = Callable[[int, int], None]

EDITOR_TEMPLATE = "# Paste YouTube links below, then save and close the editor.\n"


class EntryNotFoundError(Exception):
    """Raised when a requested video is not in the repository index."""


class ThumbTubeService:
    """Core service layer: single orchestration point for a repository.

    Drives each entry from indexed to downloaded to scraped. The CLI is a
    thin wrapper over this class; collaborators are injected via the
    constructor so tests can substitute fakes for the network.
    """

    def __init__(
        self,
        repository: Repository,
        fetcher: ThumbnailFetcher | None = None,
        scraper: PageMetadataExtractor | None = None,
        extractor: LinkExtractor | None = None,
        max_attempts: int | None = None,
        workers: int | None = None,
    ) -> None:
        self._repo = repository
        self._index = repository.index
        self._fetcher = fetcher or ThumbnailFetcher()
        self._scraper = scraper or YouTubePageScraper()
        self._extractor = extractor or LinkExtractor()
        self._max_attempts = max_attempts or settings.max_attempts
        self._workers = workers or settings.workers

    @property
    def repository(self) -> Repository:
        return self._repo

    # -- indexing ---------------------------------------------------------

    def index(self, text: str, bare_form: Form | None = None) -> IndexReport:
        """Insert every video referenced in text into the index.

        Args:
            text: Free-form text holding YouTube links, or one bare ID per line.
            bare_form: Form assigned to bare IDs. Bare IDs are rejected
                       (reported, not inserted) when this is None.

        Returns:
            IndexReport listing inserted, already-indexed and rejected IDs.
        """
        links = self._extractor.extract(text)
        report = IndexReport(found=len(links))
        for link in links:
            form = link.form or bare_form
            if form is None:
                report.rejected.append(link.video_id)
                continue
            if self._index.insert_if_absent(link.video_id, form):
                report.inserted.append(link.video_id)
            else:
                report.already_indexed.append(link.video_id)

        if report.rejected:
            logger.warning(
                "Skipped %d bare video ID(s) with no form; pass a form to index them",
                len(report.rejected),
            )
        logger.info("Indexed %d new of %d found", len(report.inserted), report.found)
        return report

    def index_files(self, paths: Iterable[Path], bare_form: Form | None = None) -> IndexReport:
        """Index the links found in one or more text files."""
        text = "\n".join(Path(p).read_text(encoding="utf-8", errors="replace") for p in paths)
        return self.index(text, bare_form=bare_form)

    def index_interactive(self, editor: TextEditor, bare_form: Form | None = None) -> IndexReport:
        """Open an editor for the user to paste links into, then index them."""
        return self.index(editor.edit(EDITOR_TEMPLATE), bare_form=bare_form)

    # -- downloading ------------------------------------------------------

    def download(self, progress: ProgressSink | None = None, limit: int | None = None) -> BatchReport:
        """Download the best available thumbnail of every undownloaded entry.

        Each attempt is recorded before its fetch starts, so an interrupted
        run never leaves a quality without the matching attempt. Entries
        out of attempts are skipped; individual failures do not stop the pass.
        The index decides what is downloaded: an image already sitting in the
        store for an undownloaded entry is replaced, with a warning.
        """
        entries = self._index.query_undownloaded(self._max_attempts, limit=limit)
        report = self._run_batch(entries, self._download_one, progress)
        logger.info(
            "Download pass: %d succeeded, %d failed", len(report.succeeded), len(report.failed)
        )
        return report

    def _download_one(self, entry: ThumbnailEntry) -> bool:
        self._index.record_attempt(entry.video_id)
        existing = self._repo.find_image(entry.video_id, entry.form)
        if existing is not None:
            logger.warning("Replacing untracked image for %s: %s", entry.video_id, existing)
        try:
            result = self._fetcher.fetch(
                entry.video_id, self._repo.store_dir(entry.form), BEST, overwrite=True
            )
        except FetchError as e:
            logger.warning("Download failed for %s: %s", entry.video_id, e)
            return False
        self._index.record_quality(entry.video_id, result.quality)
        return True

    # -- scraping ---------------------------------------------------------

    def scrape(self, progress: ProgressSink | None = None) -> BatchReport:
        """Fetch title and channel for every downloaded, unscraped entry.

        Metadata is committed only when both fields were found; anything
        else leaves the entry unscraped for the next pass.
        """
        entries = self._index.query_scrape_candidates()
        report = self._run_batch(entries, self._scrape_one, progress)
        logger.info(
            "Scrape pass: %d succeeded, %d failed", len(report.succeeded), len(report.failed)
        )
        return report

    def _scrape_one(self, entry: ThumbnailEntry) -> bool:
        try:
            metadata = self._scraper.scrape(entry.video_id)
        except ScrapeError as e:
            logger.warning("Scrape failed for %s: %s", entry.video_id, e)
            return False
        if not metadata.complete:
            return False
        self._index.record_metadata(entry.video_id, metadata.title, metadata.channel)
        return True

    # -- compound ---------------------------------------------------------

    def get(
        self, text: str, progress: ProgressSink | None = None, bare_form: Form | None = None
    ) -> GetReport:
        """Index, download, then scrape, in that order.

        Indexing first means a video is on record even if it disappears
        before its thumbnail is fetched.
        """
        indexed = self.index(text, bare_form=bare_form)
        downloaded = self.download(progress=progress)
        scraped = self.scrape(progress=progress)
        return GetReport(indexed=indexed, downloaded=downloaded, scraped=scraped)

    # -- local queries ----------------------------------------------------

    def get_entry(self, video_id: str) -> ThumbnailEntry:
        """Look up one entry.

        Raises:
            EntryNotFoundError: If the video is not indexed.
        """
        entry = self._index.get(video_id)
        if entry is None:
            raise EntryNotFoundError(f"Thumbnail not found: {video_id}")
        return entry

    def remove(self, video_id: str) -> ThumbnailEntry:
        """Delete an entry and its image files.

        Raises:
            EntryNotFoundError: If the video is not indexed.
        """
        entry = self.get_entry(video_id)
        self._repo.delete(video_id)
        return entry

    def stats(self) -> RepositoryStats:
        return self._repo.stats()

    def reconcile(self) -> ReconcileReport:
        return self._repo.reconcile()

    def counts(self, form: Form | None = None) -> IndexCounts:
        return self._index.counts(form, max_attempts=self._max_attempts)

    # -- batch driver -----------------------------------------------------

    def _run_batch(
        self,
        entries: list[ThumbnailEntry],
        work: Callable[[ThumbnailEntry], bool],
        progress: ProgressSink | None,
    ) -> BatchReport:
        """Apply work to every entry, sequentially or on a bounded pool.

        Each entry is handed to exactly one worker. Progress is reported
        from this thread only, so counts never go backwards. An interrupt
        cancels entries that have not started; their attempts stay unrecorded.
        """
        report = BatchReport(total=len(entries))
        if progress:
            progress(0, report.total)

        def _tally(entry: ThumbnailEntry, ok: bool, done: int) -> None:
            (report.succeeded if ok else report.failed).append(entry.video_id)
            if progress:
                progress(done, report.total)

        if self._workers <= 1 or len(entries) <= 1:
            for done, entry in enumerate(entries, 1):
                _tally(entry, work(entry), done)
            return report

        with ThreadPoolExecutor(max_workers=self._workers) as pool:
            futures = {pool.submit(work, entry): entry for entry in entries}
            try:
                for done, future in enumerate(as_completed(futures), 1):
                    _tally(futures[future], future.result(), done)
            except BaseException:
                # Ctrl-C or a failing sink: drop queued entries, let running ones finish
                pool.shutdown(wait=False, cancel_futures=True)
                raise
        return report
