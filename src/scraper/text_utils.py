"""HTML 정리, 제목 정리, 읽기 시간 계산 등 텍스트 유틸."""

from __future__ import annotations

import hashlib
import math
import re
import warnings
from fractions import Fraction
from typing import Optional

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning
from bs4.builder import ParserRejectedMarkup

# 본문이 URL 하나뿐인 피드가 많아서 bs4 경고는 끈다
warnings.filterwarnings("ignore", category=MarkupResemblesLocatorWarning)

_TAG_RE = re.compile(r"<[^>]*>")
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_NUMERIC_REF_RE = re.compile(r"&#(?:(\d+)|[xX]([0-9a-fA-F]+));")
_NAMED_ENTITY_RE = re.compile(r"&[a-zA-Z][a-zA-Z0-9]*;")
_WHITESPACE_RE = re.compile(r"\s+")
_IMG_SRC_RE = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)

# CJK 통합 한자 + 확장 A + 호환 한자
_CJK_RE = re.compile(r"[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]")
_LATIN_WORD_RE = re.compile(r"[a-zA-Z]+")


def strip_html(html: Optional[str]) -> Optional[str]:
    """script/style 제거 → 태그 제거 → 엔티티 디코딩 → 공백 정리. 결과가 비면 None."""
    if not html:
        return None

    try:
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style"]):
            tag.decompose()
        text = soup.get_text(separator=" ")
    except ParserRejectedMarkup:
        text = _TAG_RE.sub(" ", _SCRIPT_STYLE_RE.sub("", html))
        text = _decode_numeric_refs(text)

    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text or None


def clean_title(title: Optional[str]) -> str:
    """태그 제거, 숫자 문자 참조 디코딩, 나머지 이름 엔티티는 공백으로."""
    if not title:
        return ""
    text = _TAG_RE.sub("", title)
    text = _decode_numeric_refs(text)
    text = _NAMED_ENTITY_RE.sub(" ", text)
    return text.strip()


def _decode_numeric_refs(text: str) -> str:
    def _replace(match: re.Match) -> str:
        decimal, hexadecimal = match.groups()
        try:
            return chr(int(decimal) if decimal else int(hexadecimal, 16))
        except (ValueError, OverflowError):
            return ""

    return _NUMERIC_REF_RE.sub(_replace, text)


def first_image_src(html: Optional[str]) -> Optional[str]:
    if not html:
        return None
    match = _IMG_SRC_RE.search(html)
    return match.group(1) if match else None


def reading_time(
    text: Optional[str],
    cjk_chars_per_minute: int = 400,
    words_per_minute: int = 200,
) -> int:
    """한자 수 / cjk_chars_per_minute + 영단어 수 / words_per_minute 를 올림, 최소 1분."""
    if not text:
        return 0

    cjk_chars = len(_CJK_RE.findall(text))
    latin_words = len(_LATIN_WORD_RE.findall(text))
    minutes = Fraction(cjk_chars, cjk_chars_per_minute) + Fraction(latin_words, words_per_minute)
    return max(1, math.ceil(minutes))


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def md5_hex(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()
