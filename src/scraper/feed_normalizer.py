"""RSS 2.0 / Atom / RDF 문서를 FeedDocument로 정규화."""

from __future__ import annotations

import io
import logging
import warnings
from typing import Optional, Union

import feedparser
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from bs4.builder import ParserRejectedMarkup

from src.scraper.errors import ParseError
from src.storage.models import Enclosure, FeedDocument, MediaItem, RawEntry

logger = logging.getLogger(__name__)

_HTML_TYPES = {"text/html", "application/xhtml+xml", "html", "xhtml"}
_ITUNES_NS = "http://www.itunes.com/dtds/podcast-1.0.dtd"


def normalize(
    raw: Union[str, bytes],
    source_url: str,
    content_type: Optional[str] = None,
) -> FeedDocument:
    """피드 원문을 파싱한다.

    루트(channel/feed/rdf:RDF)를 알아볼 수 없으면 ``ParseError``.
    항목 단위 오류(닫는 태그 누락, 내용 없음)는 그 항목만 건너뛴다.
    """
    data = raw.encode("utf-8") if isinstance(raw, str) else raw

    # content-location을 주면 feedparser가 guid/id까지 상대 URL로 보고 바꿔 버린다
    response_headers = {"content-type": content_type} if content_type else {}

    # 문자열을 그대로 넘기면 feedparser가 URL/파일 경로로 해석할 수 있어 스트림으로 감싼다
    parsed = feedparser.parse(io.BytesIO(data), response_headers=response_headers)

    if not parsed.get("version"):
        original = parsed.get("bozo_exception")
        reason = original or "RSS/Atom/RDF 루트 요소 없음"
        raise ParseError(
            f"피드 형식 인식 실패: {source_url} ({reason})",
            url=source_url,
            original=original,
        )

    broken = _find_unclosed_entries(data, parsed) if parsed.get("bozo") else set()

    entries: list[RawEntry] = []
    for index, item in enumerate(parsed.entries):
        if index in broken:
            logger.warning(f"[{source_url}] {index + 1}번째 항목 닫는 태그 누락, 건너뜀")
            continue
        entry = _to_raw_entry(item)
        if entry is None:
            logger.warning(f"[{source_url}] {index + 1}번째 항목에 내용 없음, 건너뜀")
            continue
        entries.append(entry)

    feed = parsed.feed
    return FeedDocument(
        title=_text(feed.get("title")) or "Untitled Feed",
        description=_text(feed.get("subtitle")) or _text(feed.get("description")),
        site_url=_text(feed.get("link")),
        feed_url=source_url,
        image_url=_feed_image_url(feed, data, parsed.version),
        language=_text(feed.get("language")),
        dialect=parsed.version,
        entries=entries,
    )


def _to_raw_entry(item) -> Optional[RawEntry]:
    content_encoded = None
    content = None
    for block in item.get("content") or []:
        value = block.get("value")
        if not value:
            continue
        if content_encoded is None and (block.get("type") or "").lower() in _HTML_TYPES:
            content_encoded = value
        elif content is None:
            content = value

    summary = _text(item.get("summary"))
    # feedparser는 summary가 없으면 content를 summary로 복사한다
    if summary and summary in (_text(content_encoded), _text(content)):
        summary = None

    entry = RawEntry(
        guid=_text(item.get("id")),
        title=_text(item.get("title")),
        link=_text(item.get("link")),
        pub_date=_text(item.get("published")),
        iso_date=_text(item.get("updated")),
        dc_date=_text(item.get("created")),
        author=_text(item.get("author")),
        content_encoded=content_encoded,
        content=content,
        content_snippet=_text(item.get("subtitle")),
        summary=summary,
        categories=[t.get("term") for t in item.get("tags") or [] if t.get("term")],
        enclosure=_first_enclosure(item),
        media_thumbnail=_first_media(item.get("media_thumbnail")),
        media_content=_first_media(item.get("media_content")),
        itunes_image=_text((item.get("image") or {}).get("href")),
    )

    if not any((entry.guid, entry.title, entry.link, content_encoded, content, summary)):
        return None
    return entry


def _find_unclosed_entries(data: bytes, parsed) -> set[int]:
    """닫는 태그가 빠진 항목의 인덱스.

    관대한 파서는 닫히지 않은 항목 안에 다음 항목을 중첩시킨다. 그렇게
    다른 항목을 품고 있는 항목을 깨진 것으로 본다. feedparser의 항목 수와
    세어 본 항목 수가 다르면 인덱스를 맞출 수 없으므로 아무것도 빼지 않는다.
    """
    entry_tag = "entry" if parsed.version.startswith("atom") else "item"

    def is_entry(tag) -> bool:
        return tag.name is not None and tag.name.split(":")[-1] == entry_tag

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", XMLParsedAsHTMLWarning)
        soup = BeautifulSoup(data, "html.parser")
    elements = soup.find_all(is_entry)
    if len(elements) != len(parsed.entries):
        logger.debug(
            f"항목 수 불일치 (feedparser={len(parsed.entries)}, html.parser={len(elements)})"
        )
        return set()

    return {i for i, element in enumerate(elements) if element.find(is_entry) is not None}


def _feed_image_url(feed, data: bytes, version: str) -> Optional[str]:
    """RSS <image><url> → Atom <logo>/<icon> → itunes:image → media:thumbnail."""
    rss_image, itunes_image = _channel_images(data) if version.startswith("rss") else (None, None)

    for candidate in (rss_image, feed.get("logo"), feed.get("icon"), itunes_image):
        if _text(candidate):
            return candidate.strip()

    # RDF <image>는 channel 밖에 있어서 feedparser 값을 쓴다
    image = feed.get("image") or {}
    for candidate in (image.get("href"), image.get("url")):
        if _text(candidate):
            return candidate.strip()

    thumbnail = _first_media(feed.get("media_thumbnail"))
    return thumbnail.url if thumbnail else None


def _channel_images(data: bytes) -> tuple[Optional[str], Optional[str]]:
    """channel 바로 아래의 <image><url>과 <itunes:image href>를 따로 읽는다.

    feedparser는 itunes:image를 만나면 feed.image를 통째로 덮어써서 둘을 구분할 수 없다.
    """
    try:
        soup = BeautifulSoup(data, "xml")
    except ParserRejectedMarkup:
        return None, None

    channel = soup.find("channel")
    if channel is None:
        return None, None

    rss_image = itunes_image = None
    for child in channel.find_all("image", recursive=False):
        if child.namespace == _ITUNES_NS:
            itunes_image = itunes_image or _text(child.get("href"))
        elif rss_image is None:
            url = child.find("url")
            rss_image = _text(url.get_text()) if url else None
    return rss_image, itunes_image


def _first_enclosure(item) -> Optional[Enclosure]:
    for enclosure in item.get("enclosures") or []:
        url = enclosure.get("href") or enclosure.get("url")
        if not url:
            continue
        return Enclosure(url=url, type=enclosure.get("type"), length=_to_int(enclosure.get("length")))
    return None


def _first_media(items) -> Optional[MediaItem]:
    for media in items or []:
        if media.get("url"):
            return MediaItem(url=media["url"], type=media.get("type"), medium=media.get("medium"))
    return None


def _to_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _text(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
