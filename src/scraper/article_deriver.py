"""RawEntry → ArticleCandidate 변환.

순수 함수로만 구성되며 예외를 던지지 않는다. 필드마다 폴백 순서가 정해져 있고
끝까지 값이 없으면 기본값이나 None이 된다. 같은 입력이면 항상 같은 guid/content_hash가 나온다.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from dateutil.parser import parse as parse_date

from src.scraper.text_utils import (
    clean_title,
    first_image_src,
    md5_hex,
    reading_time,
    sha256_hex,
    strip_html,
)
from src.storage.models import ArticleCandidate, RawEntry

# 날짜 문자열에 자주 나오는 시간대 약어
TZINFOS = {
    "EST": timezone(timedelta(hours=-5)),
    "EDT": timezone(timedelta(hours=-4)),
    "CST": timezone(timedelta(hours=-6)),
    "CDT": timezone(timedelta(hours=-5)),
    "MST": timezone(timedelta(hours=-7)),
    "MDT": timezone(timedelta(hours=-6)),
    "PST": timezone(timedelta(hours=-8)),
    "PDT": timezone(timedelta(hours=-7)),
    "GMT": timezone.utc,
    "UTC": timezone.utc,
    "BST": timezone(timedelta(hours=1)),
    "CET": timezone(timedelta(hours=1)),
    "KST": timezone(timedelta(hours=9)),
    "JST": timezone(timedelta(hours=9)),
}

DEFAULT_PLACEHOLDER_TITLE = "Untitled"

# 날짜 문자열에 없는 부분(연/월/일/시각)을 채우는 기준값
_DATE_DEFAULT = datetime(1970, 1, 1)
_DIGIT_RE = re.compile(r"\d")


class ArticleDeriver:
    def __init__(self, config: Optional[dict] = None):
        deriver_cfg = (config or {}).get("deriver", {})
        self.cjk_chars_per_minute = int(deriver_cfg.get("cjk_chars_per_minute", 400))
        self.words_per_minute = int(deriver_cfg.get("words_per_minute", 200))
        self.summary_length = int(deriver_cfg.get("summary_length", 200))
        self.placeholder_title = deriver_cfg.get("untitled_placeholder", DEFAULT_PLACEHOLDER_TITLE)

    def derive(self, entry: RawEntry) -> ArticleCandidate:
        content = resolve_content(entry)
        content_text = strip_html(content)
        guid = resolve_guid(entry, content)
        url = entry.link or ""

        return ArticleCandidate(
            guid=guid,
            title=clean_title(entry.title) or self.placeholder_title,
            url=url,
            content=content,
            content_text=content_text,
            summary=self._resolve_summary(entry, content_text),
            author=_non_empty(entry.author),
            published_at=resolve_published_at(entry),
            image_url=resolve_image_url(entry, content),
            content_hash=sha256_hex(content or url or guid),
            reading_time=reading_time(
                content_text, self.cjk_chars_per_minute, self.words_per_minute
            ),
            categories=list(entry.categories),
        )

    def derive_all(self, entries: list[RawEntry]) -> list[ArticleCandidate]:
        return [self.derive(entry) for entry in entries]

    def _resolve_summary(self, entry: RawEntry, content_text: Optional[str]) -> Optional[str]:
        # summary(HTML 제거) → content_snippet → 본문 앞부분 N자
        summary = strip_html(entry.summary)
        if summary:
            return summary

        snippet = _non_empty(entry.content_snippet)
        if snippet:
            return snippet

        if content_text:
            if len(content_text) > self.summary_length:
                return content_text[: self.summary_length] + "..."
            return content_text

        return None


def resolve_content(entry: RawEntry) -> Optional[str]:
    for value in (entry.content_encoded, entry.content, entry.content_snippet, entry.summary):
        if _non_empty(value):
            return value
    return None


def resolve_guid(entry: RawEntry, content: Optional[str] = None) -> str:
    """guid → link → md5(title + content + pub_date)."""
    if _non_empty(entry.guid):
        return entry.guid
    if _non_empty(entry.link):
        return entry.link
    if content is None:
        content = resolve_content(entry)
    return md5_hex((entry.title or "") + (content or "") + (entry.pub_date or ""))


def resolve_published_at(entry: RawEntry) -> Optional[datetime]:
    for value in (entry.pub_date, entry.iso_date, entry.dc_date):
        parsed = parse_datetime(value)
        if parsed is not None:
            return parsed
    return None


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """관대한 날짜 파싱. 실패하면 None (시간대가 없으면 UTC로 간주).

    빠진 부분은 오늘 날짜가 아니라 ``_DATE_DEFAULT``로 채워서 결과가 실행 시점에 따라 바뀌지 않는다.
    숫자가 하나도 없는 값("Tuesday" 등)은 날짜로 보지 않는다.
    """
    if not value or not _DIGIT_RE.search(value):
        return None

    try:
        dt = parse_date(value, default=_DATE_DEFAULT, tzinfos=TZINFOS)
    except (ValueError, OverflowError, TypeError):
        # RFC 822 변형은 email.utils 쪽이 더 잘 읽는 경우가 있다
        try:
            dt = parsedate_to_datetime(value)
        except (ValueError, TypeError, IndexError):
            return None
        if dt is None:
            return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def resolve_image_url(entry: RawEntry, content: Optional[str] = None) -> Optional[str]:
    """media:thumbnail → media:content(image) → enclosure(image) → 본문 첫 <img>."""
    if entry.media_thumbnail and entry.media_thumbnail.url:
        return entry.media_thumbnail.url

    if entry.media_content and entry.media_content.url and _is_image_type(entry.media_content.type):
        return entry.media_content.url

    if entry.enclosure and entry.enclosure.url and _is_image_type(entry.enclosure.type):
        return entry.enclosure.url

    if content is None:
        content = resolve_content(entry)
    return first_image_src(content)


def _is_image_type(mime: Optional[str]) -> bool:
    return bool(mime) and mime.lower().startswith("image/")


def _non_empty(value: Optional[str]) -> Optional[str]:
    if value and value.strip():
        return value
    return None
