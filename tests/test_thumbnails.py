"""Tests for thumbnail downloading."""

import pytest

from conftest import FakeImageHost
from thumbtube.ingestion.thumbnails import (
    ALL,
    BEST,
    FetchError,
    ThumbnailFetcher,
    parse_selector,
)
from thumbtube.models import Quality

VID = "BpibZSMGtdY"


class TestParseSelector:
    @pytest.mark.parametrize("value, expected", [
        ("1", Quality.DEFAULT),
        ("5", Quality.MAXRESDEFAULT),
        ("hqdefault", Quality.HQDEFAULT),
        ("best", BEST),
        (" ALL ", ALL),
    ])
    def test_valid(self, value, expected):
        assert parse_selector(value) == expected

    @pytest.mark.parametrize("value", ["0", "6", "ultra"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_selector(value)


class TestBestAvailable:
    def test_takes_highest_available(self, tmp_path):
        host = FakeImageHost({VID: {Quality.DEFAULT, Quality.HQDEFAULT}})
        result = ThumbnailFetcher(fetch=host).fetch(VID, tmp_path, BEST)

        assert result.quality == Quality.HQDEFAULT
        assert (tmp_path / f"{VID}.jpg").read_bytes() == f"{VID}:hqdefault".encode()
        assert result.bytes_written == len(f"{VID}:hqdefault")

    def test_tries_top_down_and_stops(self, tmp_path):
        host = FakeImageHost({VID: {Quality.SDDEFAULT, Quality.DEFAULT}})
        ThumbnailFetcher(fetch=host).fetch(VID, tmp_path, BEST)

        assert [url.rsplit("/", 1)[1] for url in host.requests] == [
            "maxresdefault.jpg", "sddefault.jpg",
        ]

    def test_all_levels_failing(self, tmp_path):
        with pytest.raises(FetchError):
            ThumbnailFetcher(fetch=FakeImageHost()).fetch(VID, tmp_path, BEST)
        assert not (tmp_path / f"{VID}.jpg").exists()

    def test_empty_body_counts_as_failure(self, tmp_path):
        def host(url):
            return b"" if "maxresdefault" in url else b"jpeg"

        result = ThumbnailFetcher(fetch=host).fetch(VID, tmp_path, BEST)
        assert result.quality == Quality.SDDEFAULT

    def test_no_partial_file_left(self, tmp_path):
        host = FakeImageHost({VID: {Quality.DEFAULT}})
        ThumbnailFetcher(fetch=host).fetch(VID, tmp_path, BEST)
        assert [p.name for p in tmp_path.iterdir()] == [f"{VID}.jpg"]


class TestFixedLevel:
    def test_single_request(self, tmp_path):
        host = FakeImageHost({VID: {Quality.MQDEFAULT}})
        result = ThumbnailFetcher(fetch=host).fetch(VID, tmp_path, Quality.MQDEFAULT)
        assert result.quality == Quality.MQDEFAULT
        assert len(host.requests) == 1

    def test_missing_level_is_reported_not_retried(self, tmp_path):
        host = FakeImageHost({VID: {Quality.DEFAULT}})
        with pytest.raises(FetchError):
            ThumbnailFetcher(fetch=host).fetch(VID, tmp_path, Quality.MAXRESDEFAULT)
        assert len(host.requests) == 1


class TestAllLevels:
    def test_names_files_by_quality(self, tmp_path):
        host = FakeImageHost({VID: {Quality.DEFAULT, Quality.MQDEFAULT, Quality.HQDEFAULT}})
        result = ThumbnailFetcher(fetch=host).fetch(VID, tmp_path, ALL)

        assert sorted(p.name for p in tmp_path.iterdir()) == [
            f"{VID}-default.jpg", f"{VID}-hqdefault.jpg", f"{VID}-mqdefault.jpg",
        ]
        assert result.quality == Quality.HQDEFAULT

    def test_records_each_level_outcome(self, tmp_path):
        host = FakeImageHost({VID: {Quality.DEFAULT}})
        result = ThumbnailFetcher(fetch=host).fetch(VID, tmp_path, ALL)

        assert result.levels[Quality.DEFAULT] is True
        assert result.levels[Quality.MAXRESDEFAULT] is False
        assert len(result.levels) == 5
        assert len(host.requests) == 5

    def test_nothing_available(self, tmp_path):
        with pytest.raises(FetchError):
            ThumbnailFetcher(fetch=FakeImageHost()).fetch(VID, tmp_path, ALL)


class TestOverwrite:
    def test_existing_file_untouched(self, tmp_path):
        existing = tmp_path / f"{VID}.jpg"
        existing.write_bytes(b"original")
        host = FakeImageHost({VID: {Quality.DEFAULT}})

        result = ThumbnailFetcher(fetch=host).fetch(VID, tmp_path, BEST)

        assert result.skipped is True
        assert existing.read_bytes() == b"original"
        assert host.requests == []

    def test_overwrite_flag_replaces(self, tmp_path):
        existing = tmp_path / f"{VID}.jpg"
        existing.write_bytes(b"original")
        host = FakeImageHost({VID: {Quality.DEFAULT}})

        result = ThumbnailFetcher(fetch=host).fetch(VID, tmp_path, BEST, overwrite=True)

        assert result.skipped is False
        assert existing.read_bytes() == f"{VID}:default".encode()

    def test_creates_directory(self, tmp_path):
        host = FakeImageHost({VID: {Quality.DEFAULT}})
        ThumbnailFetcher(fetch=host).fetch(VID, tmp_path / "nested" / "dir", BEST)
        assert (tmp_path / "nested" / "dir" / f"{VID}.jpg").exists()
