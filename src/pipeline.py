"""구독 refresh 오케스트레이터: 수집 → 필터 → 저장 → 구독 상태 갱신."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Optional

from src.filters.rule_engine import RuleEngine
from src.scraper.article_deriver import ArticleDeriver
from src.scraper.errors import FetchError
from src.scraper.feed_fetcher import FeedFetcher
from src.scraper.feed_ingest import Failed, FetchOutcome, NotModified, ingest_feed
from src.storage.json_store import JSONStore
from src.storage.models import (
    ArticleCandidate,
    FilterResult,
    HealthCheckResult,
    RefreshResult,
    Subscription,
)

logger = logging.getLogger(__name__)

REFRESH_ERROR = "REFRESH_ERROR"


def refresh_subscription(
    subscription: Subscription,
    fetcher: FeedFetcher,
    deriver: ArticleDeriver,
    store: JSONStore,
    rule_engine: Optional[RuleEngine] = None,
    max_article_age_days: int = 30,
) -> RefreshResult:
    """구독 하나를 refresh한다. 실패해도 기존 기사는 건드리지 않는다.

    예상 못 한 예외도 여기서 ``REFRESH_ERROR``로 바꿔서 다른 구독의 refresh를 막지 않는다.
    """
    try:
        outcome = ingest_feed(
            subscription.feed_url,
            fetcher,
            deriver,
            etag=subscription.etag,
            last_modified=subscription.last_modified,
        )
        return record_outcome(subscription, outcome, store, rule_engine, max_article_age_days)
    except Exception as e:
        logger.exception(f"[{subscription.id}] refresh 중 오류")
        _record_refresh_error(subscription, e, store)
        return RefreshResult(
            subscription_id=subscription.id,
            success=False,
            error=str(e),
            error_code=REFRESH_ERROR,
        )


def _record_refresh_error(subscription: Subscription, error: Exception, store: JSONStore) -> None:
    updated = subscription.model_copy(
        update={
            "last_fetched": datetime.now(timezone.utc),
            "fetch_error": str(error),
            "error_code": REFRESH_ERROR,
            "error_count": subscription.error_count + 1,
        }
    )
    try:
        store.update_subscription(updated)
    except Exception:
        logger.exception(f"[{subscription.id}] 오류 상태 기록 실패")


def record_outcome(
    subscription: Subscription,
    outcome: FetchOutcome,
    store: JSONStore,
    rule_engine: Optional[RuleEngine] = None,
    max_article_age_days: int = 30,
) -> RefreshResult:
    """수집 결과를 저장소와 구독 상태에 반영한다."""
    now = datetime.now(timezone.utc)

    if isinstance(outcome, Failed):
        updated = subscription.model_copy(
            update={
                "last_fetched": now,
                "fetch_error": str(outcome.error),
                "error_code": outcome.code,
                "error_count": subscription.error_count + 1,
            }
        )
        store.update_subscription(updated)
        return RefreshResult(
            subscription_id=subscription.id,
            success=False,
            error=str(outcome.error),
            error_code=outcome.code,
        )

    if isinstance(outcome, NotModified):
        updated = subscription.model_copy(
            update={
                "last_fetched": now,
                "etag": outcome.etag or subscription.etag,
                "last_modified": outcome.last_modified or subscription.last_modified,
                "fetch_error": None,
                "error_code": None,
                "error_count": 0,
            }
        )
        store.update_subscription(updated)
        return RefreshResult(subscription_id=subscription.id, success=True, not_modified=True)

    recent = _recent_articles(outcome.articles, max_article_age_days, now)

    kept: list[ArticleCandidate] = []
    filter_results: list[FilterResult] = []
    for article in recent:
        result = FilterResult()
        if rule_engine:
            result = rule_engine.apply(article, subscription.id, subscription.category)
        if result.should_skip:
            continue
        kept.append(article)
        filter_results.append(result)

    stats = store.upsert_articles(subscription.id, kept, filter_results)

    document = outcome.document
    updated = subscription.model_copy(
        update={
            "title": subscription.title if subscription.title_pinned else document.title,
            "description": document.description,
            "site_url": document.site_url,
            "image_url": document.image_url,
            "etag": outcome.etag,
            "last_modified": outcome.last_modified,
            "last_fetched": now,
            "fetch_error": None,
            "error_code": None,
            "error_count": 0,
        }
    )
    store.update_subscription(updated)

    return RefreshResult(
        subscription_id=subscription.id,
        success=True,
        new_articles=stats.inserted,
        updated_articles=stats.updated,
        skipped_articles=len(outcome.articles) - len(kept),
    )


def refresh_all(
    config: dict,
    store: JSONStore,
    fetcher: Optional[FeedFetcher] = None,
    subscription_ids: Optional[list[str]] = None,
) -> list[RefreshResult]:
    """활성 구독을 병렬로 refresh. 결과는 구독 순서대로 반환."""
    refresh_cfg = config.get("refresh", {})
    max_workers = int(refresh_cfg.get("max_workers", 5))
    max_age_days = int(refresh_cfg.get("max_article_age_days", 30))

    fetcher = fetcher or FeedFetcher(config)
    deriver = ArticleDeriver(config)
    rule_engine = RuleEngine.from_config(config)

    subscriptions = [s for s in store.load_subscriptions() if s.active]
    if subscription_ids:
        subscriptions = [s for s in subscriptions if s.id in subscription_ids]

    if not subscriptions:
        logger.info("refresh할 구독이 없습니다.")
        return []

    logger.info(f"구독 {len(subscriptions)}개 refresh (동시 {max_workers})")
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(
            executor.map(
                lambda s: refresh_subscription(s, fetcher, deriver, store, rule_engine, max_age_days),
                subscriptions,
            )
        )

    for result in results:
        if result.not_modified:
            logger.info(f"[{result.subscription_id}] 변경 없음")
        elif result.success:
            logger.info(
                f"[{result.subscription_id}] 신규 {result.new_articles}, "
                f"갱신 {result.updated_articles}, 제외 {result.skipped_articles}"
            )
        else:
            logger.error(f"[{result.subscription_id}] 실패 ({result.error_code}): {result.error}")

    return results


def seed_subscriptions(config: dict, store: JSONStore) -> list[Subscription]:
    """config의 subscriptions 중 저장소에 없는 것만 추가한다."""
    existing = store.load_subscriptions()
    known_ids = {s.id for s in existing}
    known_urls = {s.feed_url for s in existing}

    added: list[Subscription] = []
    for item in config.get("subscriptions") or []:
        if item["id"] in known_ids or item["feed_url"] in known_urls:
            continue
        subscription = Subscription(
            id=item["id"],
            feed_url=item["feed_url"],
            title=item.get("title") or "Untitled Feed",
            title_pinned=bool(item.get("title")),
            category=item.get("category"),
            active=item.get("active", True),
        )
        existing.append(subscription)
        added.append(subscription)

    if added:
        store.save_subscriptions(existing)
        logger.info(f"설정에서 구독 {len(added)}개 추가")
    return added


def health_check(feed_url: str, fetcher: FeedFetcher) -> HealthCheckResult:
    """HEAD 요청으로 피드 URL 상태 확인. 예외를 던지지 않는다."""
    try:
        status_code = fetcher.head(feed_url)
    except FetchError as e:
        return HealthCheckResult(feed_url=feed_url, is_healthy=False, error=str(e))

    return HealthCheckResult(
        feed_url=feed_url,
        is_healthy=200 <= status_code < 400,
        status_code=status_code,
    )


def _recent_articles(
    articles: list[ArticleCandidate], max_age_days: int, now: datetime
) -> list[ArticleCandidate]:
    # 날짜 없는 기사는 남긴다
    if max_age_days <= 0:
        return articles
    cutoff = now - timedelta(days=max_age_days)
    return [a for a in articles if a.published_at is None or a.published_at >= cutoff]
