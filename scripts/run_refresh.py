"""구독 refresh CLI 진입점.

사용법:
    python scripts/run_refresh.py                          # 전체 활성 구독 refresh
    python scripts/run_refresh.py --feeds hacker_news,ruanyifeng
    python scripts/run_refresh.py --profile slow_network
    python scripts/run_refresh.py --health                 # HEAD 요청으로 상태만 확인
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# 프로젝트 루트를 sys.path에 추가
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

from src.config.profile_loader import load_profile_config
from src.pipeline import health_check, refresh_all, seed_subscriptions
from src.scraper.feed_fetcher import FeedFetcher
from src.storage.json_store import JSONStore


def setup_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def run_health(config: dict, store: JSONStore, feed_filter: list[str] | None) -> int:
    fetcher = FeedFetcher(config)
    unhealthy = 0
    for subscription in store.load_subscriptions():
        if feed_filter and subscription.id not in feed_filter:
            continue
        result = health_check(subscription.feed_url, fetcher)
        status = "OK" if result.is_healthy else "FAIL"
        detail = result.status_code if result.status_code is not None else result.error
        print(f"[{status}] {subscription.id}: {subscription.feed_url} ({detail})")
        if not result.is_healthy:
            unhealthy += 1
    return 1 if unhealthy else 0


def main() -> int:
    setup_logging()
    logger = logging.getLogger("refresh")

    parser = argparse.ArgumentParser(description="RSS/Atom 구독 refresh")
    parser.add_argument("--profile", help="설정 프로필 (config/profiles/*.yaml)", default=None)
    parser.add_argument("--feeds", help="refresh할 구독 ID (쉼표 구분)", default=None)
    parser.add_argument("--health", action="store_true", help="refresh 대신 상태 확인")
    args = parser.parse_args()

    config = load_profile_config(args.profile)
    store = JSONStore(str(PROJECT_ROOT / config["storage"]["base_dir"]))
    seed_subscriptions(config, store)

    feed_filter = args.feeds.split(",") if args.feeds else None

    if args.health:
        return run_health(config, store, feed_filter)

    results = refresh_all(config, store, subscription_ids=feed_filter)

    failed = [r for r in results if not r.success]
    logger.info("=" * 50)
    logger.info("refresh 완료!")
    logger.info(f"  구독: {len(results)}개 (실패 {len(failed)}개)")
    logger.info(f"  신규 기사: {sum(r.new_articles for r in results)}건")
    logger.info(f"  갱신 기사: {sum(r.updated_articles for r in results)}건")
    logger.info(f"  변경 없음: {sum(1 for r in results if r.not_modified)}개")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
