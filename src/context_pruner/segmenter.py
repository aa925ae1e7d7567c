"""
Text segmentation for mixed Chinese/Latin chat messages.

The segmenter turns raw text into filtered tokens, extracts keywords
and measures token-set similarity. Segmentation itself is delegated to
a pluggable Tokenizer; the default is the dictionary tokenizer.
"""

import logging
import math
from typing import Dict, List, Optional, Set

from .cache import BoundedCache
from .tokenizers import Tokenizer, DictionaryTokenizer
from .types import Keyword

logger = logging.getLogger(__name__)


CHINESE_STOP_WORDS = frozenset([
    '的', '了', '在', '是', '我', '有', '和', '就', '不', '人', '都', '一', '一个', '上', '也', '很', '到', '说', '要', '去', '你',
    '会', '着', '没有', '看', '好', '自己', '这', '那', '他', '她', '它', '们', '这个', '那个', '什么', '怎么', '为什么', '哪里',
    '时候', '可以', '应该', '能够', '已经', '还是', '或者', '但是', '因为', '所以', '如果', '虽然', '然后', '现在', '以后',
    '之前', '之后', '里面', '外面', '上面', '下面', '前面', '后面', '左边', '右边', '中间', '旁边', '附近', '周围',
])

ENGLISH_STOP_WORDS = frozenset([
    'the', 'a', 'an', 'is', 'are', 'was', 'were', 'be', 'been', 'am',
    'i', 'you', 'he', 'she', 'it', 'we', 'they', 'me', 'my', 'your',
    'to', 'of', 'in', 'for', 'on', 'with', 'at', 'by', 'from', 'as',
    'and', 'but', 'or', 'so', 'not', 'do', 'does', 'did', 'this', 'that',
])

STOP_WORDS = CHINESE_STOP_WORDS | ENGLISH_STOP_WORDS


class TextSegmenter:
    """
    Stop-word aware segmenter with a bounded result cache.

    segment() never raises: if the tokenizer fails, the whole input
    comes back as a single token.
    """

    def __init__(
        self,
        tokenizer: Optional[Tokenizer] = None,
        stop_words: Optional[Set[str]] = None,
        enable_caching: bool = True,
        max_cache_size: int = 1000,
    ):
        """
        Args:
            tokenizer: Word segmentation backend (default: DictionaryTokenizer)
            stop_words: Tokens to drop (default: built-in Chinese + English list)
            enable_caching: Cache segmentation results by raw text
            max_cache_size: Cache size before evicting the oldest half
        """
        self.tokenizer = tokenizer or DictionaryTokenizer()
        self.stop_words = STOP_WORDS if stop_words is None else frozenset(stop_words)
        self.cache = BoundedCache(max_cache_size, enabled=enable_caching)

    def segment(self, text: str) -> List[str]:
        """
        Split text into filtered tokens.

        Args:
            text: Raw message text

        Returns:
            Ordered tokens with stop-words and empty tokens removed
        """
        if not text or not text.strip():
            return []

        key = text.strip()
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        try:
            tokens = self._filter(self.tokenizer.tokenize(text))
        except Exception as e:
            logger.warning("Segmentation failed, using raw text as one token: %s", e)
            return [text]

        self.cache.set(key, tuple(tokens))
        return tokens

    def _filter(self, raw_tokens: List[str]) -> List[str]:
        tokens = []
        for token in raw_tokens:
            token = token.strip().lower()
            if token and token not in self.stop_words:
                tokens.append(token)
        return tokens

    def extract_keywords(self, text: str, k: int = 10, min_length: int = 2) -> List[Keyword]:
        """
        Extract the top-k keywords of a single text.

        score = frequency × log(total_tokens / frequency). Single characters
        are skipped by default since they are rarely meaningful alone.
        Ties keep first-seen order.
        """
        tokens = self.segment(text)
        if not tokens:
            return []

        freq: Dict[str, int] = {}
        for token in tokens:
            if len(token) >= min_length:
                freq[token] = freq.get(token, 0) + 1

        total = len(tokens)
        keywords = [
            Keyword(term=term, frequency=count, score=count * math.log(total / count))
            for term, count in freq.items()
        ]
        # sort() is stable, so equal scores stay in first-seen order
        keywords.sort(key=lambda kw: kw.score, reverse=True)
        return keywords[:k]

    def similarity(self, text1: str, text2: str) -> float:
        """Jaccard index of the two token sets, in [0, 1]."""
        return jaccard(set(self.segment(text1)), set(self.segment(text2)))

    @property
    def cache_hits(self) -> int:
        return self.cache.hits

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> Dict[str, int]:
        return self.cache.stats()


def jaccard(a: Set[str], b: Set[str]) -> float:
    """Intersection over union; 0.0 when both sets are empty."""
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)
