"""구독/기사 JSON 파일 저장소."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from src.storage.models import (
    ArticleCandidate,
    FilterResult,
    StoredArticle,
    Subscription,
    UpsertStats,
)

logger = logging.getLogger(__name__)

# content_hash가 바뀌었을 때 갱신하는 필드 (읽음/별표/태그 등 사용자 상태는 유지)
_CONTENT_FIELDS = (
    "title",
    "url",
    "content",
    "content_text",
    "summary",
    "author",
    "published_at",
    "image_url",
    "content_hash",
    "reading_time",
    "categories",
)


class JSONStore:
    """data/subscriptions.json + data/articles/{subscription_id}.json 구조로 저장."""

    def __init__(self, base_dir: str = "data"):
        self.base_dir = Path(base_dir)
        self._lock = threading.RLock()

    # --- 구독 ---

    def load_subscriptions(self) -> list[Subscription]:
        data = self._read_json(self.base_dir / "subscriptions.json")
        return [Subscription.model_validate(item) for item in data]

    def save_subscriptions(self, subscriptions: list[Subscription]) -> Path:
        file_path = self.base_dir / "subscriptions.json"
        with self._lock:
            self._write_json(file_path, [s.model_dump(mode="json") for s in subscriptions])
        return file_path

    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        for subscription in self.load_subscriptions():
            if subscription.id == subscription_id:
                return subscription
        return None

    def add_subscription(self, subscription: Subscription) -> Subscription:
        with self._lock:
            subscriptions = self.load_subscriptions()
            for existing in subscriptions:
                if existing.feed_url == subscription.feed_url:
                    raise ValueError(f"이미 구독 중인 피드: {subscription.feed_url}")
                if existing.id == subscription.id:
                    raise ValueError(f"중복된 구독 ID: {subscription.id}")
            subscriptions.append(subscription)
            self.save_subscriptions(subscriptions)
        return subscription

    def update_subscription(self, subscription: Subscription) -> Subscription:
        with self._lock:
            subscriptions = self.load_subscriptions()
            for i, existing in enumerate(subscriptions):
                if existing.id == subscription.id:
                    subscriptions[i] = subscription
                    break
            else:
                raise KeyError(f"구독 없음: {subscription.id}")
            self.save_subscriptions(subscriptions)
        return subscription

    # --- 기사 ---

    def load_articles(self, subscription_id: str) -> list[StoredArticle]:
        data = self._read_json(self._articles_path(subscription_id))
        return [StoredArticle.model_validate(item) for item in data]

    def upsert_articles(
        self,
        subscription_id: str,
        candidates: list[ArticleCandidate],
        filter_results: Optional[list[FilterResult]] = None,
    ) -> UpsertStats:
        """(subscription_id, guid) 기준 upsert.

        새 guid는 추가, 같은 guid에 content_hash가 다르면 본문만 갱신, 같으면 그대로 둔다.
        """
        stats = UpsertStats()
        now = datetime.now(timezone.utc)

        with self._lock:
            articles = self.load_articles(subscription_id)
            index = {a.guid: i for i, a in enumerate(articles)}

            for i, candidate in enumerate(candidates):
                position = index.get(candidate.guid)
                if position is None:
                    stored = StoredArticle(
                        **candidate.model_dump(),
                        subscription_id=subscription_id,
                        fetched_at=now,
                    )
                    if filter_results is not None:
                        _apply_filter_state(stored, filter_results[i])
                    index[candidate.guid] = len(articles)
                    articles.append(stored)
                    stats.inserted += 1
                    continue

                stored = articles[position]
                if stored.content_hash == candidate.content_hash:
                    stats.unchanged += 1
                    continue

                articles[position] = stored.model_copy(
                    update={
                        **{field: getattr(candidate, field) for field in _CONTENT_FIELDS},
                        "updated_at": now,
                    }
                )
                stats.updated += 1

            if stats.inserted or stats.updated:
                self._write_json(
                    self._articles_path(subscription_id),
                    [a.model_dump(mode="json") for a in articles],
                )

        logger.info(
            f"[{subscription_id}] 저장: 신규 {stats.inserted}, 갱신 {stats.updated}, "
            f"변경 없음 {stats.unchanged}"
        )
        return stats

    def _articles_path(self, subscription_id: str) -> Path:
        return self.base_dir / "articles" / f"{subscription_id}.json"

    @staticmethod
    def _read_json(file_path: Path) -> list:
        if not file_path.exists():
            return []
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)

    @staticmethod
    def _write_json(file_path: Path, data: list) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2, default=str)


def _apply_filter_state(article: StoredArticle, result: FilterResult) -> None:
    article.is_read = result.is_read
    article.is_starred = result.is_starred
    article.is_highlighted = result.is_highlighted
    article.tags = list(result.tags)
