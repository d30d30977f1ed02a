"""피드 수집 파이프라인 데이터 모델."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- 파이프라인 중간 산출물 (저장하지 않음) ---


class Enclosure(BaseModel):
    url: str
    type: Optional[str] = None
    length: Optional[int] = None


class MediaItem(BaseModel):
    """media:thumbnail / media:content 항목."""

    url: str
    type: Optional[str] = None
    medium: Optional[str] = None


class RawEntry(BaseModel):
    """피드 문서에서 추출한 항목 하나 (파싱 전 원문 값)."""

    guid: Optional[str] = None
    title: Optional[str] = None
    link: Optional[str] = None
    pub_date: Optional[str] = None  # RSS pubDate / Atom published
    iso_date: Optional[str] = None  # Atom updated
    dc_date: Optional[str] = None  # dc:date / dcterms:created
    author: Optional[str] = None
    content_encoded: Optional[str] = None  # content:encoded, Atom content(html)
    content: Optional[str] = None
    content_snippet: Optional[str] = None
    summary: Optional[str] = None  # summary / description
    categories: list[str] = []
    enclosure: Optional[Enclosure] = None
    media_thumbnail: Optional[MediaItem] = None
    media_content: Optional[MediaItem] = None
    itunes_image: Optional[str] = None


class FeedDocument(BaseModel):
    """한 번의 fetch로 만들어지는 피드 문서."""

    title: str = "Untitled Feed"
    description: Optional[str] = None
    site_url: Optional[str] = None
    feed_url: str
    image_url: Optional[str] = None
    language: Optional[str] = None
    dialect: Optional[str] = None  # feedparser version (rss20, atom10, rss10 ...)
    entries: list[RawEntry] = []


class ArticleCandidate(BaseModel):
    """RawEntry에서 파생된 저장 후보 기사."""

    guid: str
    title: str
    url: str = ""
    content: Optional[str] = None
    content_text: Optional[str] = None
    summary: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[datetime] = None
    image_url: Optional[str] = None
    content_hash: str
    reading_time: int = 0
    categories: list[str] = []


class FetchResult(BaseModel):
    """HTTP 수집 결과. not_modified이면 body는 비어 있다."""

    feed_url: str
    final_url: str
    not_modified: bool = False
    body: bytes = b""
    content_type: Optional[str] = None
    status_code: int = 200
    etag: Optional[str] = None
    last_modified: Optional[str] = None


# --- 저장소 레코드 ---


class Subscription(BaseModel):
    id: str
    feed_url: str
    title: str = "Untitled Feed"
    title_pinned: bool = False  # 사용자가 지정한 제목은 refresh에서 덮어쓰지 않음
    description: Optional[str] = None
    site_url: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    active: bool = True
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    last_fetched: Optional[datetime] = None
    fetch_error: Optional[str] = None
    error_code: Optional[str] = None
    error_count: int = 0
    created_at: datetime = Field(default_factory=_utcnow)


class StoredArticle(ArticleCandidate):
    """저장된 기사 = 후보 + 구독 ID + 사용자 상태."""

    subscription_id: str
    fetched_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None
    is_read: bool = False
    is_starred: bool = False
    is_highlighted: bool = False
    tags: list[str] = []


class UpsertStats(BaseModel):
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0


# --- 필터 규칙 ---


class FilterRule(BaseModel):
    id: str
    name: str
    is_active: bool = True
    priority: int = 0
    field: str  # title, content, author, url, category
    condition: str  # contains, notContains, equals, ..., regex, greaterThan, lessThan
    pattern: str
    case_sensitive: bool = False
    action: str  # markRead, markStarred, highlight, addTag, delete
    action_value: Optional[str] = None
    subscription_ids: list[str] = []
    categories: list[str] = []


class FilterResult(BaseModel):
    should_skip: bool = False
    is_read: bool = False
    is_starred: bool = False
    is_highlighted: bool = False
    tags: list[str] = []
    matched_rule_ids: list[str] = []
    is_filtered: bool = False


# --- refresh 결과 ---


class RefreshResult(BaseModel):
    subscription_id: str
    success: bool
    not_modified: bool = False
    new_articles: int = 0
    updated_articles: int = 0
    skipped_articles: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None


class HealthCheckResult(BaseModel):
    feed_url: str
    is_healthy: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    checked_at: datetime = Field(default_factory=_utcnow)
