"""기사 필터 규칙 적용 (읽음 처리, 별표, 하이라이트, 태그, 삭제)."""

from __future__ import annotations

import logging
import re
import threading
from collections import Counter
from typing import Optional

from src.storage.models import ArticleCandidate, FilterResult, FilterRule

logger = logging.getLogger(__name__)


class RuleEngine:
    def __init__(self, rules: list[FilterRule]):
        # 우선순위 높은 규칙부터 (같으면 설정 순서 유지)
        self.rules = sorted(
            (r for r in rules if r.is_active), key=lambda r: r.priority, reverse=True
        )
        self.match_counts: Counter[str] = Counter()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: dict) -> "RuleEngine":
        rules = [FilterRule.model_validate(r) for r in config.get("filter_rules") or []]
        return cls(rules)

    def apply(
        self,
        article: ArticleCandidate,
        subscription_id: str,
        category: Optional[str] = None,
    ) -> FilterResult:
        result = FilterResult()

        for rule in self.rules:
            if not _matches_scope(rule, subscription_id, category):
                continue
            if not _matches_condition(rule, article):
                continue

            result.is_filtered = True
            result.matched_rule_ids.append(rule.id)
            with self._lock:
                self.match_counts[rule.id] += 1
            _apply_action(rule, result)

            if result.should_skip:
                break

        return result


def _matches_scope(rule: FilterRule, subscription_id: str, category: Optional[str]) -> bool:
    if rule.subscription_ids and subscription_id not in rule.subscription_ids:
        return False
    if rule.categories and category not in rule.categories:
        return False
    return True


def _field_value(field: str, article: ArticleCandidate) -> Optional[str]:
    if field == "title":
        return article.title
    if field == "content":
        return article.content_text or article.content
    if field == "author":
        return article.author
    if field == "url":
        return article.url
    if field == "category":
        return ",".join(article.categories) if article.categories else None
    return None


def _matches_condition(rule: FilterRule, article: ArticleCandidate) -> bool:
    value = _field_value(rule.field, article)
    if value is None:
        return False

    pattern = rule.pattern
    if rule.condition == "regex":
        try:
            return re.search(pattern, value, re.IGNORECASE) is not None
        except re.error:
            logger.warning(f"잘못된 정규식 패턴 [{rule.id}]: {pattern}")
            return False

    if rule.condition in ("greaterThan", "lessThan"):
        try:
            number, threshold = float(value), float(pattern)
        except ValueError:
            return False
        return number > threshold if rule.condition == "greaterThan" else number < threshold

    if not rule.case_sensitive:
        value, pattern = value.lower(), pattern.lower()

    if rule.condition == "contains":
        return pattern in value
    if rule.condition == "notContains":
        return pattern not in value
    if rule.condition == "equals":
        return value == pattern
    if rule.condition == "notEquals":
        return value != pattern
    if rule.condition == "startsWith":
        return value.startswith(pattern)
    if rule.condition == "endsWith":
        return value.endswith(pattern)

    logger.warning(f"알 수 없는 조건 [{rule.id}]: {rule.condition}")
    return False


def _apply_action(rule: FilterRule, result: FilterResult) -> None:
    if rule.action == "markRead":
        result.is_read = True
    elif rule.action == "markStarred":
        result.is_starred = True
    elif rule.action == "highlight":
        result.is_highlighted = True
    elif rule.action == "addTag":
        for tag in (rule.action_value or "").split(","):
            tag = tag.strip()
            if tag and tag not in result.tags:
                result.tags.append(tag)
    elif rule.action == "delete":
        result.should_skip = True
    else:
        logger.warning(f"알 수 없는 동작 [{rule.id}]: {rule.action}")
