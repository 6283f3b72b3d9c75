"""Tests for YouTube link extraction."""

import pytest

from thumbtube.ingestion.links import ExtractionError, LinkExtractor
from thumbtube.models import ExtractedLink, Form

VID = "BpibZSMGtdY"


@pytest.fixture
def extractor():
    return LinkExtractor()


class TestLinkShapes:
    @pytest.mark.parametrize("text", [
        f"https://www.youtube.com/watch?v={VID}",
        f"https://youtube.com/watch?v={VID}",
        f"https://m.youtube.com/watch?v={VID}",
        f"https://www.youtube.com/watch?v={VID}&t=120&list=PLxyz",
        f"https://www.youtube.com/watch?list=PLxyz&index=3&v={VID}",
        f"https://www.youtube.com/watch?feature=share&v={VID}&pp=ygU",
        f"https://youtu.be/{VID}",
        f"https://youtu.be/{VID}?si=abcdef&t=42",
    ])
    def test_long_form(self, extractor, text):
        assert extractor.extract(text) == [ExtractedLink(video_id=VID, form=Form.LONG)]

    @pytest.mark.parametrize("text", [
        f"https://www.youtube.com/shorts/{VID}",
        f"https://youtube.com/shorts/{VID}?feature=share",
        f"https://m.youtube.com/shorts/{VID}",
    ])
    def test_short_form(self, extractor, text):
        assert extractor.extract(text) == [ExtractedLink(video_id=VID, form=Form.SHORT)]

    def test_short_rewritten_as_watch_url_classified_long(self, extractor):
        # Accepted limitation: the link shape is the only signal.
        links = extractor.extract(f"https://www.youtube.com/watch?v={VID}")
        assert links[0].form == Form.LONG

    def test_html_escaped_query(self, extractor):
        html = f'<a href="https://www.youtube.com/watch?list=PL1&amp;v={VID}">x</a>'
        assert extractor.extract(html) == [ExtractedLink(video_id=VID, form=Form.LONG)]


class TestClutter:
    def test_trailing_punctuation(self, extractor):
        text = f"see https://youtu.be/{VID}, and https://www.youtube.com/shorts/dQw4w9WgXcQ."
        assert extractor.extract(text) == [
            ExtractedLink(video_id=VID, form=Form.LONG),
            ExtractedLink(video_id="dQw4w9WgXcQ", form=Form.SHORT),
        ]

    def test_many_links_on_one_line(self, extractor):
        text = (
            "https://www.youtube.com/watch?v=AAAAAAAAAAA https://youtu.be/CCCCCCCCCCC "
            "https://www.youtube.com/shorts/BBBBBBBBBBB"
        )
        assert [link.video_id for link in extractor.extract(text)] == [
            "AAAAAAAAAAA", "CCCCCCCCCCC", "BBBBBBBBBBB",
        ]

    def test_duplicates_collapse(self, extractor):
        text = f"https://youtu.be/{VID}\nhttps://www.youtube.com/watch?v={VID}&t=5\n"
        assert extractor.extract(text) == [ExtractedLink(video_id=VID, form=Form.LONG)]

    def test_first_occurrence_decides_form(self, extractor):
        text = f"https://www.youtube.com/shorts/{VID}\nhttps://youtu.be/{VID}"
        assert extractor.extract(text) == [ExtractedLink(video_id=VID, form=Form.SHORT)]

    def test_ignores_overlong_ids(self, extractor):
        assert extractor.extract("https://youtu.be/BpibZSMGtdYX") == []

    def test_non_youtube_text(self, extractor):
        assert extractor.extract("https://example.com/watch?v=BpibZSMGtdY") == []

    def test_vv_parameter_is_not_v(self, extractor):
        assert extractor.extract(f"https://www.youtube.com/watch?vv={VID}") == []


class TestBareIds:
    def test_bare_id_fallback(self, extractor):
        text = "AAAAAAAAAAA\nBBBBBBBBBBB\n\n  CCCCCCCCCCC  \n"
        assert extractor.extract(text) == [
            ExtractedLink(video_id="AAAAAAAAAAA"),
            ExtractedLink(video_id="BBBBBBBBBBB"),
            ExtractedLink(video_id="CCCCCCCCCCC"),
        ]

    def test_bare_ids_carry_no_form(self, extractor):
        assert extractor.extract("AAAAAAAAAAA")[0].form is None

    def test_links_take_priority_over_bare_ids(self, extractor):
        text = "AAAAAAAAAAA\nhttps://youtu.be/BBBBBBBBBBB\n"
        assert extractor.extract(text) == [ExtractedLink(video_id="BBBBBBBBBBB", form=Form.LONG)]

    def test_malformed_lines_skipped(self, extractor):
        assert extractor.extract("not an id\nAAAAAAAAAAA\ntoo-long-to-be-an-id\n") == [
            ExtractedLink(video_id="AAAAAAAAAAA"),
        ]

    def test_empty_text(self, extractor):
        assert extractor.extract("") == []


class TestParseVideoId:
    def test_link(self):
        assert LinkExtractor.parse_video_id(f"https://youtu.be/{VID}") == VID

    def test_bare_id(self):
        assert LinkExtractor.parse_video_id(VID) == VID

    def test_invalid(self):
        with pytest.raises(ExtractionError):
            LinkExtractor.parse_video_id("https://example.com/not-youtube")
