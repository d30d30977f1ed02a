"""피드 URL을 검증한 뒤 구독으로 추가한다.

사용법:
    python scripts/add_subscription.py https://example.com/feed.xml
    python scripts/add_subscription.py https://example.com/atom.xml --id example --category tech
    python scripts/add_subscription.py https://example.com/rss --title "내 블로그"
"""

from __future__ import annotations

import argparse
import hashlib
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

from src.config.profile_loader import load_profile_config
from src.filters.rule_engine import RuleEngine
from src.pipeline import record_outcome
from src.scraper.article_deriver import ArticleDeriver
from src.scraper.feed_fetcher import FeedFetcher
from src.scraper.feed_ingest import Modified, ingest_feed
from src.storage.json_store import JSONStore
from src.storage.models import Subscription


def setup_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def main() -> int:
    setup_logging()

    parser = argparse.ArgumentParser(description="피드 구독 추가")
    parser.add_argument("feed_url", help="RSS/Atom/RDF 피드 URL")
    parser.add_argument("--id", help="구독 ID (기본: URL 해시)", default=None)
    parser.add_argument("--title", help="구독 제목 고정", default=None)
    parser.add_argument("--category", help="분류", default=None)
    parser.add_argument("--profile", help="설정 프로필", default=None)
    args = parser.parse_args()

    config = load_profile_config(args.profile)
    store = JSONStore(str(PROJECT_ROOT / config["storage"]["base_dir"]))
    fetcher = FeedFetcher(config)
    deriver = ArticleDeriver(config)

    # 먼저 한 번 수집해서 유효한 피드인지 확인
    outcome = ingest_feed(args.feed_url, fetcher, deriver)
    if not isinstance(outcome, Modified):
        code = getattr(outcome, "code", outcome.kind)
        print(f"\n❌ 피드 검증 실패 ({code}): {args.feed_url}")
        return 1

    subscription_id = args.id or hashlib.sha256(args.feed_url.encode()).hexdigest()[:16]
    try:
        subscription = store.add_subscription(
            Subscription(
                id=subscription_id,
                feed_url=args.feed_url,
                title=args.title or outcome.document.title,
                title_pinned=bool(args.title),
                category=args.category,
            )
        )
    except ValueError as e:
        print(f"\n❌ {e}")
        return 1

    # 검증할 때 받은 문서를 그대로 첫 수집분으로 저장
    result = record_outcome(
        subscription,
        outcome,
        store,
        RuleEngine.from_config(config),
        int(config.get("refresh", {}).get("max_article_age_days", 30)),
    )
    print(f"\n✅ 구독 추가: {subscription.id} ({outcome.document.title}), 기사 {result.new_articles}건")
    return 0


if __name__ == "__main__":
    sys.exit(main())
