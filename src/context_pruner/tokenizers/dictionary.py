"""
Dictionary-based tokenizer for mixed Chinese/Latin chat text.

Chinese has no whitespace word boundaries. Instead of shipping a full
segmentation model, runs of Chinese characters are matched greedily
against small dictionaries of common 3- and 2-character phrases and
fall back to single characters. Everything else is split on whitespace.
"""

import re
from typing import Iterable, List, Optional, Set, Tuple

from .base import Tokenizer


# Chinese and Latin punctuation, replaced by spaces before splitting
PUNCTUATION_RE = re.compile(
    r'[，。！？；：“”‘’（）【】《》〈〉「」『』〔〕［］｛｝、'
    r',.!?;:"\'()\[\]{}<>]'
)

COMMON_TWO_CHAR_WORDS = frozenset([
    '可以', '应该', '能够', '已经', '还是', '或者', '但是', '因为', '所以', '如果', '虽然', '然后', '现在', '以后',
    '之前', '之后', '里面', '外面', '上面', '下面', '前面', '后面', '左边', '右边', '中间', '旁边', '附近', '周围',
    '朋友', '家人', '老师', '学生', '工作', '学习', '生活', '时间', '地方', '东西', '事情', '问题', '方法', '机会',
    '希望', '梦想', '目标', '计划', '想法', '感觉', '心情', '情况', '状态', '结果', '原因', '理由', '条件', '要求',
])

COMMON_THREE_CHAR_WORDS = frozenset([
    '不知道', '没关系', '对不起', '不客气', '没问题', '怎么样', '为什么', '在哪里', '怎么办',
    '很重要', '很有趣', '很好看', '很好吃', '很漂亮', '很聪明', '很努力', '很开心', '很难过', '很生气',
])


def is_chinese_char(char: str) -> bool:
    """True for CJK unified ideographs (basic, extension A and B)."""
    code = ord(char)
    return (
        0x4E00 <= code <= 0x9FFF or
        0x3400 <= code <= 0x4DBF or
        0x20000 <= code <= 0x2A6DF
    )


def clean_text(text: str) -> str:
    """Replace punctuation with spaces and collapse whitespace."""
    text = PUNCTUATION_RE.sub(' ', text)
    return re.sub(r'\s+', ' ', text).strip()


def split_by_script(text: str) -> List[Tuple[bool, str]]:
    """
    Split text into runs of Chinese and non-Chinese characters.

    Returns:
        List of (is_chinese, run) pairs in original order
    """
    runs: List[Tuple[bool, str]] = []
    current = ''
    current_chinese = False

    for i, char in enumerate(text):
        chinese = is_chinese_char(char)
        if i == 0 or chinese == current_chinese:
            current += char
        else:
            runs.append((current_chinese, current))
            current = char
        current_chinese = chinese

    if current:
        runs.append((current_chinese, current))
    return runs


class DictionaryTokenizer(Tokenizer):
    """
    Greedy longest-match tokenizer over built-in phrase dictionaries.

    Usage:
        tok = DictionaryTokenizer(extra_phrases=["音乐", "电影"])
        tok.tokenize("我喜欢音乐和电影")
        # ['我', '喜', '欢', '音乐', '和', '电影']
    """

    def __init__(self, extra_phrases: Optional[Iterable[str]] = None):
        """
        Args:
            extra_phrases: Additional 2- or 3-character phrases to recognize
        """
        self.two_char_words: Set[str] = set(COMMON_TWO_CHAR_WORDS)
        self.three_char_words: Set[str] = set(COMMON_THREE_CHAR_WORDS)
        for phrase in extra_phrases or []:
            self.add_phrase(phrase)

    def add_phrase(self, phrase: str) -> None:
        """Register a 2- or 3-character phrase. Other lengths are ignored."""
        if len(phrase) == 2:
            self.two_char_words.add(phrase)
        elif len(phrase) == 3:
            self.three_char_words.add(phrase)

    def tokenize(self, text: str) -> List[str]:
        cleaned = clean_text(text)
        if not cleaned:
            return []

        tokens: List[str] = []
        for chinese, run in split_by_script(cleaned):
            if chinese:
                tokens.extend(self._segment_chinese(run))
            else:
                tokens.extend(w for w in run.split() if w)
        return tokens

    def _segment_chinese(self, run: str) -> List[str]:
        """Match 3-char, then 2-char phrases, else emit single characters."""
        words = []
        i = 0
        n = len(run)
        while i < n:
            if i + 3 <= n and run[i:i + 3] in self.three_char_words:
                words.append(run[i:i + 3])
                i += 3
            elif i + 2 <= n and run[i:i + 2] in self.two_char_words:
                words.append(run[i:i + 2])
                i += 2
            else:
                words.append(run[i])
                i += 1
        return words
