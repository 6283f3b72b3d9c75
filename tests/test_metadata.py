"""Tests for webpage metadata scraping."""

import pytest

from thumbtube.ingestion.http import HTTPFetchError
from thumbtube.ingestion.metadata import ScrapeError, YouTubePageScraper

VID = "BpibZSMGtdY"


def _page(title="Never Gonna Give You Up - YouTube", channel='"Rick Astley"'):
    parts = ["<html><head>"]
    if title is not None:
        parts.append(f"<title>{title}</title>")
    parts.append("</head><body><script>var ytInitialPlayerResponse = {")
    if channel is not None:
        parts.append(f'"videoDetails":{{"ownerChannelName":{channel},"lengthSeconds":"213"}}')
    parts.append("};</script></body></html>")
    return "".join(parts).encode()


class TestParseTitle:
    def test_strips_site_suffix(self):
        assert YouTubePageScraper.parse_title(_page().decode()) == "Never Gonna Give You Up"

    def test_decodes_entities(self):
        page = _page(title="Tom &amp; Jerry &#39;Classic&#39; &quot;Cut&quot; - YouTube").decode()
        assert YouTubePageScraper.parse_title(page) == "Tom & Jerry 'Classic' \"Cut\""

    def test_title_ending_with_youtube_in_name(self):
        page = _page(title="Why I left YouTube - YouTube").decode()
        assert YouTubePageScraper.parse_title(page) == "Why I left YouTube"

    @pytest.mark.parametrize("stub", ["YouTube", " - YouTube", ""])
    def test_removed_video_stub(self, stub):
        assert YouTubePageScraper.parse_title(_page(title=stub).decode()) is None

    def test_missing(self):
        assert YouTubePageScraper.parse_title(_page(title=None).decode()) is None


class TestParseChannel:
    def test_extracts_quoted_value(self):
        assert YouTubePageScraper.parse_channel(_page().decode()) == "Rick Astley"

    def test_json_escapes(self):
        page = _page(channel=r'"Café \"Noir\""').decode()
        assert YouTubePageScraper.parse_channel(page) == 'Café "Noir"'

    def test_html_entities(self):
        page = _page(channel='"Sonny &amp; Cher"').decode()
        assert YouTubePageScraper.parse_channel(page) == "Sonny & Cher"

    def test_missing(self):
        assert YouTubePageScraper.parse_channel(_page(channel=None).decode()) is None


class TestScrape:
    def test_scrape_full(self):
        requested = []

        def fetch(url):
            requested.append(url)
            return _page()

        metadata = YouTubePageScraper(fetch=fetch).scrape(VID)
        assert metadata.title == "Never Gonna Give You Up"
        assert metadata.channel == "Rick Astley"
        assert metadata.complete
        assert requested == [f"https://www.youtube.com/watch?v={VID}"]

    def test_partial_result(self):
        metadata = YouTubePageScraper(fetch=lambda url: _page(channel=None)).scrape(VID)
        assert metadata.title == "Never Gonna Give You Up"
        assert metadata.channel is None
        assert not metadata.complete

    def test_fetch_failure(self):
        def fetch(url):
            raise HTTPFetchError("HTTP Error 500")

        with pytest.raises(ScrapeError):
            YouTubePageScraper(fetch=fetch).scrape(VID)
