"""단일 피드 수집 파이프라인: fetch → normalize → derive."""

from __future__ import annotations

import logging
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from src.scraper.article_deriver import ArticleDeriver
from src.scraper.errors import FeedError, FetchError, ParseError
from src.scraper.feed_fetcher import FeedFetcher
from src.scraper.feed_normalizer import normalize
from src.storage.models import ArticleCandidate, FeedDocument

logger = logging.getLogger(__name__)


class Modified(BaseModel):
    kind: Literal["modified"] = "modified"
    document: FeedDocument
    articles: list[ArticleCandidate]
    final_url: str
    etag: Optional[str] = None
    last_modified: Optional[str] = None


class NotModified(BaseModel):
    kind: Literal["not_modified"] = "not_modified"
    etag: Optional[str] = None
    last_modified: Optional[str] = None


class Failed(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: Literal["failed"] = "failed"
    error: FeedError

    @property
    def code(self) -> str:
        return self.error.code


FetchOutcome = Union[Modified, NotModified, Failed]


def ingest_feed(
    feed_url: str,
    fetcher: FeedFetcher,
    deriver: ArticleDeriver,
    etag: Optional[str] = None,
    last_modified: Optional[str] = None,
) -> FetchOutcome:
    """피드 하나를 수집한다. 304면 파싱을 건너뛰고 NotModified를 돌려준다."""
    try:
        result = fetcher.fetch(feed_url, etag=etag, last_modified=last_modified)
    except FetchError as e:
        logger.error(f"[{feed_url}] 수집 실패 ({e.code}): {e}")
        return Failed(error=e)

    if result.not_modified:
        return NotModified(etag=result.etag, last_modified=result.last_modified)

    try:
        document = normalize(result.body, result.final_url, result.content_type)
    except ParseError as e:
        logger.error(f"[{feed_url}] 파싱 실패: {e}")
        return Failed(error=e)

    articles = deriver.derive_all(document.entries)
    logger.info(f"[{document.title}] {len(articles)}건 파싱")

    return Modified(
        document=document,
        articles=articles,
        final_url=result.final_url,
        etag=result.etag,
        last_modified=result.last_modified,
    )
