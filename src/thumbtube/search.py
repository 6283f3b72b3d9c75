"""Offline search over a repository's scraped thumbnails."""

import logging
from collections.abc import Iterable
from enum import Enum

from thumbtube.interactive import InteractiveSelector, SelectorRow
from thumbtube.models import ChannelCount, Form, ThumbnailEntry
from thumbtube.storage.layout import Repository

logger = logging.getLogger(__name__)


class SearchOutput(str, Enum):
    PATH = "path"
    URL = "url"


class SearchEngine:
    """Filters searchable entries and runs the interactive selection.

    Only entries that are both downloaded and scraped are searchable,
    since the selector shows titles and resolves to image files.
    """

    def __init__(self, repository: Repository, selector: InteractiveSelector) -> None:
        self._repo = repository
        self._selector = selector

    def candidates(
        self, form: Form | None = None, channels: Iterable[str] | None = None
    ) -> list[ThumbnailEntry]:
        return self._repo.index.query_by_filter(form=form, channels=channels)

    def channel_counts(self, form: Form | None = None) -> list[ChannelCount]:
        """Channels of searchable entries, most thumbnails first, then by name."""
        return self._repo.index.channel_counts(form)

    def pick_channels(self, form: Form | None = None) -> list[str]:
        """Let the user multi-select channels. Empty if aborted."""
        counts = self.channel_counts(form)
        if not counts:
            return []
        rows = [
            SelectorRow(key=str(i), label=f"{c.count:>5}  {c.channel}")
            for i, c in enumerate(counts)
        ]
        selection = self._selector.select(rows, multi=True, prompt="channels")
        return [counts[int(key)].channel for key in selection.keys]

    def run(
        self,
        form: Form | None = None,
        channels: Iterable[str] | None = None,
        pick_channels: bool = False,
        output: SearchOutput = SearchOutput.PATH,
    ) -> list[str]:
        """Interactive search.

        Args:
            form: Restrict to long or short thumbnails.
            channels: Restrict to these channels.
            pick_channels: Ask the user for a channel subset first.
            output: Resolve selections to absolute image paths or video URLs.

        Returns:
            One path or URL per selected thumbnail; empty if aborted.
        """
        if pick_channels:
            picked = self.pick_channels(form)
            if not picked:
                return []
            channels = picked if channels is None else [c for c in channels if c in picked]
        if channels is not None:
            channels = list(channels)

        while True:
            entries = {e.video_id: e for e in self.candidates(form=form, channels=channels)}
            if not entries:
                logger.info("Nothing to search")
                return []

            selection = self._selector.select(self._rows(entries.values()), multi=True)
            if not selection.keys:
                return []

            if selection.action == "delete":
                for video_id in selection.keys:
                    self._repo.delete(video_id)
                continue

            return [
                self._resolve(entries[video_id], output)
                for video_id in selection.keys
                if video_id in entries
            ]

    def _rows(self, entries: Iterable[ThumbnailEntry]) -> list[SelectorRow]:
        rows = []
        for entry in entries:
            image = self._repo.find_image(entry.video_id, entry.form)
            rows.append(SelectorRow(
                key=entry.video_id,
                label=entry.title or entry.video_id,
                preview_path=str(image.resolve()) if image else "",
            ))
        return rows

    def _resolve(self, entry: ThumbnailEntry, output: SearchOutput) -> str:
        if output == SearchOutput.URL:
            return entry.url
        image = self._repo.find_image(entry.video_id, entry.form)
        if image is None:
            logger.warning("Image file missing for %s", entry.video_id)
            return str(self._repo.image_path(entry.video_id, entry.form).resolve())
        return str(image.resolve())
