"""RSS/Atom 피드 HTTP 수집 (조건부 GET 지원)."""

from __future__ import annotations

import logging
import time
from typing import Optional

import requests

from src.scraper.errors import FetchError, FetchErrorKind, classify_exception, classify_status
from src.storage.models import FetchResult

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "FeedPipe/1.0 (RSS Feed Reader)"
DEFAULT_ACCEPT = (
    "application/rss+xml, application/atom+xml, application/rdf+xml, "
    "application/xml, text/xml, */*"
)
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_BYTES = 20 * 1024 * 1024
# 작은 단위로 읽어야 느리게 흘러오는 응답도 전체 시간 제한에 빨리 걸린다
_CHUNK_SIZE = 1024


class FeedFetcher:
    """피드 URL을 GET하여 원문 bytes를 돌려준다. 재시도는 호출 측 책임."""

    def __init__(self, config: Optional[dict] = None, session: Optional[requests.Session] = None):
        fetcher_cfg = (config or {}).get("fetcher", {})
        self.user_agent = fetcher_cfg.get("user_agent", DEFAULT_USER_AGENT)
        self.accept = fetcher_cfg.get("accept", DEFAULT_ACCEPT)
        self.timeout = float(fetcher_cfg.get("timeout_seconds", DEFAULT_TIMEOUT))
        self.max_bytes = int(fetcher_cfg.get("max_bytes", DEFAULT_MAX_BYTES))
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "User-Agent": self.user_agent,
                "Accept": self.accept,
                "Accept-Encoding": "gzip, deflate",
            }
        )
        return session

    def fetch(
        self,
        feed_url: str,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
        headers: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> FetchResult:
        """피드를 가져온다.

        304 응답이면 ``not_modified=True``인 결과를 돌려주고 본문은 읽지 않는다.
        2xx 이외의 응답과 전송 오류는 ``FetchError``로 올린다.
        """
        timeout = timeout or self.timeout
        request_headers = {"User-Agent": self.user_agent, "Accept": self.accept}
        if etag:
            request_headers["If-None-Match"] = etag
        if last_modified:
            request_headers["If-Modified-Since"] = last_modified
        if headers:
            request_headers.update(headers)

        deadline = time.monotonic() + timeout
        logger.debug(f"GET {feed_url} (etag={etag}, last_modified={last_modified})")

        try:
            resp = self.session.get(
                feed_url,
                headers=request_headers,
                timeout=timeout,
                allow_redirects=True,
                stream=True,
            )
        except requests.RequestException as e:
            raise _to_fetch_error(e, feed_url) from e

        try:
            final_url = resp.url or feed_url
            resp_etag = resp.headers.get("ETag") or etag
            resp_last_modified = resp.headers.get("Last-Modified") or last_modified

            if resp.status_code == 304:
                logger.info(f"변경 없음 (304): {feed_url}")
                return FetchResult(
                    feed_url=feed_url,
                    final_url=final_url,
                    not_modified=True,
                    status_code=304,
                    etag=resp_etag,
                    last_modified=resp_last_modified,
                )

            if not 200 <= resp.status_code < 300:
                raise FetchError(
                    f"HTTP {resp.status_code}: {feed_url}",
                    classify_status(resp.status_code),
                    url=feed_url,
                    status_code=resp.status_code,
                )

            body = self._read_body(resp, feed_url, deadline)
        finally:
            resp.close()

        return FetchResult(
            feed_url=feed_url,
            final_url=final_url,
            body=body,
            content_type=resp.headers.get("Content-Type"),
            status_code=resp.status_code,
            etag=resp.headers.get("ETag"),
            last_modified=resp.headers.get("Last-Modified"),
        )

    def head(self, feed_url: str, timeout: Optional[float] = None) -> int:
        """HEAD 요청의 상태 코드. 전송 오류는 ``FetchError``."""
        try:
            resp = self.session.head(
                feed_url,
                headers={"User-Agent": self.user_agent},
                timeout=timeout or self.timeout,
                allow_redirects=True,
            )
        except requests.RequestException as e:
            raise _to_fetch_error(e, feed_url) from e
        return resp.status_code

    def _read_body(self, resp: requests.Response, feed_url: str, deadline: float) -> bytes:
        # requests의 timeout은 소켓 단위라서 전체 다운로드 시간은 여기서 제한한다
        chunks: list[bytes] = []
        size = 0
        try:
            for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                if time.monotonic() > deadline:
                    raise FetchError(
                        f"요청 시간 초과: {feed_url}",
                        FetchErrorKind.TIMEOUT,
                        url=feed_url,
                        status_code=resp.status_code,
                    )
                size += len(chunk)
                if size > self.max_bytes:
                    raise FetchError(
                        f"응답이 너무 큼 (>{self.max_bytes} bytes): {feed_url}",
                        FetchErrorKind.UNKNOWN,
                        url=feed_url,
                        status_code=resp.status_code,
                    )
                chunks.append(chunk)
        except requests.RequestException as e:
            raise _to_fetch_error(e, feed_url) from e
        return b"".join(chunks)


def _to_fetch_error(exc: requests.RequestException, feed_url: str) -> FetchError:
    kind = classify_exception(exc)
    if kind is FetchErrorKind.TIMEOUT:
        message = f"요청 시간 초과: {feed_url}"
    elif kind is FetchErrorKind.NETWORK_ERROR:
        message = f"네트워크 오류, 접근 불가: {feed_url}"
    else:
        message = f"피드 요청 실패: {exc}"
    return FetchError(message, kind, url=feed_url, original=exc)
