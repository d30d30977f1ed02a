"""Tests for article_deriver module."""

import hashlib
from datetime import datetime, timezone

import pytest

from src.scraper.article_deriver import (
    ArticleDeriver,
    parse_datetime,
    resolve_content,
    resolve_guid,
    resolve_image_url,
)
from src.storage.models import Enclosure, MediaItem, RawEntry


@pytest.fixture
def deriver():
    return ArticleDeriver()


class TestIdentity:
    """Tests for guid resolution."""

    def test_uses_guid_verbatim(self, deriver):
        entry = RawEntry(guid="  tag:example.com,2024:1", link="https://example.com/1")

        assert deriver.derive(entry).guid == "  tag:example.com,2024:1"

    def test_falls_back_to_link(self, deriver):
        entry = RawEntry(link="https://example.com/1", title="T")

        assert deriver.derive(entry).guid == "https://example.com/1"

    def test_blank_guid_falls_back_to_link(self, deriver):
        entry = RawEntry(guid="   ", link="https://example.com/1")

        assert deriver.derive(entry).guid == "https://example.com/1"

    def test_hashes_title_content_and_date_without_guid_or_link(self, deriver):
        entry = RawEntry(title="A", content="B", pub_date="C")

        expected = hashlib.md5("ABC".encode("utf-8")).hexdigest()
        assert deriver.derive(entry).guid == expected
        assert resolve_guid(entry) == expected

    def test_hash_treats_missing_parts_as_empty(self):
        entry = RawEntry(title="only title")

        assert resolve_guid(entry) == hashlib.md5(b"only title").hexdigest()


class TestDeterminism:
    """Tests that derive() is a pure function."""

    def test_same_input_same_output(self, deriver):
        entry = RawEntry(
            title="A",
            content="<p>B 中文 text</p>",
            pub_date="Mon, 01 Jan 2024 12:00:00 GMT",
        )

        first = deriver.derive(entry)
        second = deriver.derive(entry)

        assert first.guid == second.guid
        assert first.content_hash == second.content_hash
        assert first.reading_time == second.reading_time
        assert first == second

    def test_unchanged_entry_keeps_guid_and_hash(self, deriver):
        first = deriver.derive(RawEntry(guid="g1", content="hello"))
        second = deriver.derive(RawEntry(guid="g1", content="hello"))

        assert first.guid == second.guid == "g1"
        assert first.content_hash == second.content_hash

    def test_changed_content_keeps_guid_changes_hash(self, deriver):
        before = deriver.derive(RawEntry(guid="g1", content="hello"))
        after = deriver.derive(RawEntry(guid="g1", content="hello world"))

        assert before.guid == after.guid
        assert before.content_hash != after.content_hash


class TestGracefulDegradation:
    """Tests for entries with missing fields."""

    def test_title_only_entry(self, deriver):
        article = deriver.derive(RawEntry(title="T"))

        assert article.guid
        assert article.title == "T"
        assert article.url == ""
        assert article.content is None
        assert article.content_text is None
        assert article.summary is None
        assert article.reading_time == 0
        assert article.published_at is None
        assert article.image_url is None
        assert article.categories == []

    def test_empty_entry(self, deriver):
        article = deriver.derive(RawEntry())

        assert article.guid == hashlib.md5(b"").hexdigest()
        assert article.title == "Untitled"
        assert article.content_hash == hashlib.sha256(article.guid.encode()).hexdigest()

    def test_unparseable_date_is_none(self, deriver):
        article = deriver.derive(RawEntry(title="T", pub_date="sometime last week-ish"))

        assert article.published_at is None

    def test_markup_only_content_has_no_reading_time(self, deriver):
        article = deriver.derive(RawEntry(content='<img src="https://example.com/a.png">'))

        assert article.content is not None
        assert article.content_text is None
        assert article.reading_time == 0
        assert article.image_url == "https://example.com/a.png"


class TestContent:
    """Tests for content and content_text resolution."""

    def test_content_resolution_order(self):
        entry = RawEntry(
            content_encoded="<p>encoded</p>",
            content="content",
            content_snippet="snippet",
            summary="summary",
        )
        assert resolve_content(entry) == "<p>encoded</p>"

        entry = RawEntry(content_encoded="  ", content="content", summary="summary")
        assert resolve_content(entry) == "content"

        entry = RawEntry(content_snippet="snippet", summary="summary")
        assert resolve_content(entry) == "snippet"

        entry = RawEntry(summary="summary")
        assert resolve_content(entry) == "summary"

    def test_content_text_strips_markup(self, deriver):
        html = "<p>Hi</p><script>var x = 1;</script><style>p { color: red; }</style> there &amp; here"

        article = deriver.derive(RawEntry(content=html))

        assert article.content == html
        assert article.content_text == "Hi there & here"

    def test_content_hash_falls_back_to_url(self, deriver):
        article = deriver.derive(RawEntry(guid="g", link="https://example.com/x"))

        assert article.content_hash == hashlib.sha256(b"https://example.com/x").hexdigest()

    def test_content_hash_covers_content(self, deriver):
        article = deriver.derive(RawEntry(guid="g", link="https://example.com/x", content="body"))

        assert article.content_hash == hashlib.sha256(b"body").hexdigest()


class TestSummary:
    """Tests for summary resolution."""

    def test_prefers_explicit_summary_without_html(self, deriver):
        entry = RawEntry(summary="<b>Short</b> summary", content_snippet="snippet", content="body")

        assert deriver.derive(entry).summary == "Short summary"

    def test_falls_back_to_snippet(self, deriver):
        entry = RawEntry(content_snippet="snippet", content_encoded="<p>body</p>")

        assert deriver.derive(entry).summary == "snippet"

    def test_truncates_content_text_with_ellipsis(self, deriver):
        entry = RawEntry(content="x" * 250)

        summary = deriver.derive(entry).summary

        assert summary == "x" * 200 + "..."

    def test_short_content_text_is_not_truncated(self, deriver):
        entry = RawEntry(content="y" * 200)

        assert deriver.derive(entry).summary == "y" * 200

    def test_summary_length_is_configurable(self):
        deriver = ArticleDeriver({"deriver": {"summary_length": 5}})

        assert deriver.derive(RawEntry(content="abcdefgh")).summary == "abcde..."


class TestTitle:
    """Tests for title cleaning."""

    def test_strips_tags_and_decodes_numeric_refs(self, deriver):
        entry = RawEntry(title="<b>Hello</b> &#65;&amp; world ")

        assert deriver.derive(entry).title == "Hello A  world"

    def test_missing_title_uses_placeholder(self, deriver):
        assert deriver.derive(RawEntry(link="https://example.com")).title == "Untitled"

    def test_markup_only_title_uses_placeholder(self, deriver):
        assert deriver.derive(RawEntry(title="<br/>")).title == "Untitled"

    def test_placeholder_is_configurable(self):
        deriver = ArticleDeriver({"deriver": {"untitled_placeholder": "无标题"}})

        assert deriver.derive(RawEntry()).title == "无标题"


class TestReadingTime:
    """Tests for the reading-time estimate."""

    def test_400_cjk_chars_is_one_minute(self, deriver):
        assert deriver.derive(RawEntry(content="中" * 400)).reading_time == 1

    def test_401_cjk_chars_is_two_minutes(self, deriver):
        assert deriver.derive(RawEntry(content="中" * 401)).reading_time == 2

    def test_mixed_text_sums_both_rates(self, deriver):
        # 200자 / 400 + 100단어 / 200 = 1.0
        text = "字" * 200 + " " + " ".join(["word"] * 100)

        assert deriver.derive(RawEntry(content=text)).reading_time == 1

    def test_short_text_floors_at_one(self, deriver):
        assert deriver.derive(RawEntry(content="hi")).reading_time == 1

    def test_divisors_are_configurable(self):
        deriver = ArticleDeriver({"deriver": {"words_per_minute": 1}})

        assert deriver.derive(RawEntry(content="one two three")).reading_time == 3


class TestImage:
    """Tests for image resolution precedence."""

    def test_media_thumbnail_first(self):
        entry = RawEntry(
            media_thumbnail=MediaItem(url="https://example.com/thumb.jpg"),
            media_content=MediaItem(url="https://example.com/media.jpg", type="image/jpeg"),
            content='<img src="https://example.com/inline.png">',
        )

        assert resolve_image_url(entry) == "https://example.com/thumb.jpg"

    def test_media_content_only_when_image(self):
        entry = RawEntry(
            media_content=MediaItem(url="https://example.com/video.mp4", type="video/mp4"),
            enclosure=Enclosure(url="https://example.com/cover.png", type="image/png"),
        )

        assert resolve_image_url(entry) == "https://example.com/cover.png"

    def test_enclosure_only_when_image(self):
        entry = RawEntry(
            enclosure=Enclosure(url="https://example.com/ep.mp3", type="audio/mpeg"),
            content_encoded="<p><IMG alt='x' SRC='https://example.com/inline.png'></p>",
        )

        assert resolve_image_url(entry) == "https://example.com/inline.png"

    def test_no_image(self):
        assert resolve_image_url(RawEntry(content="<p>text only</p>")) is None


class TestDates:
    """Tests for date parsing."""

    def test_parses_rfc822(self):
        parsed = parse_datetime("Mon, 01 Jan 2024 12:00:00 GMT")

        assert parsed == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_parses_iso8601(self):
        parsed = parse_datetime("2024-02-01T09:30:00+09:00")

        assert parsed == datetime(2024, 2, 1, 0, 30, tzinfo=timezone.utc)

    def test_naive_dates_are_utc(self):
        assert parse_datetime("2024-03-01 08:00").tzinfo is not None

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", "2024-13-45"])
    def test_invalid_dates_are_none(self, value):
        assert parse_datetime(value) is None

    @pytest.mark.parametrize("value", ["Tuesday", "next week", "Jan"])
    def test_dates_without_digits_are_none(self, value):
        assert parse_datetime(value) is None

    def test_partial_dates_do_not_depend_on_today(self):
        assert parse_datetime("2024") == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert parse_datetime("March 2024") == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_falls_back_to_iso_date_then_dc_date(self, deriver):
        entry = RawEntry(pub_date="garbage", dc_date="2024-03-01T08:00:00Z")

        assert deriver.derive(entry).published_at == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


class TestCategories:
    def test_passes_through_with_duplicates(self, deriver):
        entry = RawEntry(title="T", categories=["b", "a", "b"])

        assert deriver.derive(entry).categories == ["b", "a", "b"]
