"""피드 수집/파싱 예외.

호출 측(refresh 오케스트레이터)은 ``code``만 보고 재시도 여부와 구독 에러 상태를 결정한다.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

import requests

# 메시지 기반 분류 키워드 (상태 코드/예외 타입으로 판단할 수 없을 때만 사용)
_TIMEOUT_HINTS = ("timeout", "timed out", "etimedout")
_NETWORK_HINTS = (
    "enotfound",
    "econnrefused",
    "connection refused",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "network",
)


class FetchErrorKind(str, Enum):
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    UNKNOWN = "UNKNOWN"


class FeedError(Exception):
    code = "FEED_ERROR"

    def __init__(self, message: str, url: str = "", original: Optional[BaseException] = None):
        super().__init__(message)
        self.url = url
        self.original = original


class FetchError(FeedError):
    def __init__(
        self,
        message: str,
        kind: FetchErrorKind,
        url: str = "",
        status_code: Optional[int] = None,
        original: Optional[BaseException] = None,
    ):
        super().__init__(message, url=url, original=original)
        self.kind = kind
        self.status_code = status_code

    @property
    def code(self) -> str:
        return self.kind.value


class ParseError(FeedError):
    code = "PARSE_ERROR"


def classify_status(status_code: int) -> FetchErrorKind:
    if status_code == 404:
        return FetchErrorKind.NOT_FOUND
    if status_code == 403:
        return FetchErrorKind.FORBIDDEN
    if status_code == 401:
        return FetchErrorKind.UNAUTHORIZED
    return FetchErrorKind.UNKNOWN


def classify_exception(exc: BaseException) -> FetchErrorKind:
    # ConnectTimeout은 ConnectionError이면서 Timeout이므로 Timeout을 먼저 본다
    if isinstance(exc, requests.Timeout):
        return FetchErrorKind.TIMEOUT
    if isinstance(exc, requests.ConnectionError):
        return FetchErrorKind.NETWORK_ERROR

    message = str(exc).lower()
    if any(hint in message for hint in _TIMEOUT_HINTS):
        return FetchErrorKind.TIMEOUT
    if any(hint in message for hint in _NETWORK_HINTS):
        return FetchErrorKind.NETWORK_ERROR
    return FetchErrorKind.UNKNOWN
