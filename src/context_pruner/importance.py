"""Token estimation and multi-factor importance scoring."""

import math
import re
import time
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .config import PruningConfig
from .errors import PruningTimeoutError
from .mentions import mention_kind, EXPLICIT, NAMED
from .topic import TopicRelevanceAnalyzer
from .types import CharacterProfile, Message, MessageImportance, parse_timestamp


CHINESE_CHAR_RE = re.compile(r'[\u4e00-\u9fff]')
SPECIAL_CHAR_RE = re.compile(r'[^A-Za-z0-9_\s\u4e00-\u9fff]')

# Weights of the eight components in the final score
COMPONENT_WEIGHTS: Dict[str, float] = {
    "base_score": 0.15,
    "type_weight": 0.15,
    "time_weight": 0.15,
    "length_weight": 0.08,
    "mention_weight": 0.12,
    "emotion_weight": 0.10,
    "topic_relevance": 0.15,
    "personality_relevance": 0.10,
}

BASE_SCORES = {"system": 1.0, "user": 0.8, "assistant": 0.6}
RECENT_WINDOW = 5
MAX_EMOTION_WEIGHT = 2.5

EMOTION_EMOJIS = {
    '😊': 0.15, '😄': 0.15, '😃': 0.15, '😁': 0.15, '🙂': 0.1,
    '😢': 0.2, '😭': 0.25, '😞': 0.15, '😔': 0.15, '😟': 0.15,
    '😡': 0.25, '😠': 0.2, '🤬': 0.3, '😤': 0.15,
    '❤️': 0.2, '💕': 0.15, '💖': 0.15, '💔': 0.25,
    '😱': 0.2, '😨': 0.15, '😰': 0.15, '😳': 0.15,
    '🤔': 0.1, '😏': 0.1, '😎': 0.1, '🙄': 0.1,
}

EMOTION_WORDS = {
    # positive
    '开心': 0.15, '高兴': 0.15, '快乐': 0.15, '兴奋': 0.2, '激动': 0.2,
    '喜欢': 0.1, '爱': 0.15, '感谢': 0.1, '谢谢': 0.1, '棒': 0.1,
    # negative
    '难过': 0.2, '伤心': 0.2, '痛苦': 0.25, '失望': 0.15, '沮丧': 0.15,
    '生气': 0.2, '愤怒': 0.25, '讨厌': 0.15, '烦': 0.1, '郁闷': 0.15,
    '害怕': 0.15, '恐惧': 0.2, '担心': 0.1, '焦虑': 0.15,
    # intensifiers
    '非常': 0.1, '特别': 0.1, '超级': 0.15, '极其': 0.15, '太': 0.1,
    '真的': 0.05, '确实': 0.05, '绝对': 0.1,
}


def estimate_tokens(text: str) -> int:
    """
    Estimate the token cost of a text.

    Chinese characters × 1.5 + other words × 1.0 + symbols × 0.5, rounded up.
    """
    if not text:
        return 0
    chinese = len(CHINESE_CHAR_RE.findall(text))
    words = sum(1 for w in text.split() if w and not CHINESE_CHAR_RE.search(w))
    special = len(SPECIAL_CHAR_RE.findall(text))
    return math.ceil(chinese * 1.5 + words * 1.0 + special * 0.5)


def length_weight(tokens: int) -> float:
    """Favor mid-length messages (20-200 tokens)."""
    if tokens < 5:
        return 0.3
    if tokens < 20:
        return 0.7
    if tokens <= 200:
        return 1.0
    if tokens <= 500:
        return 0.8
    return 0.6


def mention_weight(message: Message, character: Optional[CharacterProfile]) -> float:
    """2.0 for an explicit @-mention, 1.5 for the bare name, else 1.0."""
    kind = mention_kind(message, character)
    if kind == EXPLICIT:
        return 2.0
    if kind == NAMED:
        return 1.5
    return 1.0


def emotion_weight(text: str) -> float:
    """
    Heuristic emotional intensity, from 1.0 up to 2.5.

    Combines emoji, an emotion lexicon, punctuation runs and shouting.
    """
    content = text or ""
    score = 1.0

    for emoji, weight in EMOTION_EMOJIS.items():
        if emoji in content:
            score += weight
    for word, weight in EMOTION_WORDS.items():
        if word in content:
            score += weight

    exclamations = content.count('!') + content.count('！')
    questions = content.count('?') + content.count('？')
    ellipses = content.count('...') + content.count('…')
    score += min(exclamations * 0.1, 0.3)
    score += min(questions * 0.05, 0.2)
    score += min(ellipses * 0.1, 0.2)

    if content:
        upper_ratio = sum(1 for c in content if 'A' <= c <= 'Z') / len(content)
        if upper_ratio > 0.3:
            score += 0.15

    return min(score, MAX_EMOTION_WEIGHT)


class ImportanceScorer:
    """
    Scores every message in a history by how much it is worth keeping.

    final = Σ weight_i × component_i over the eight components in
    COMPONENT_WEIGHTS. Topic and personality components come from the
    topic analyzer.
    """

    def __init__(self, config: PruningConfig, analyzer: TopicRelevanceAnalyzer):
        self.config = config
        self.analyzer = analyzer

    def score(
        self,
        messages: Sequence[Message],
        tokens: Sequence[int],
        character: Optional[CharacterProfile] = None,
        topic_text: Optional[str] = None,
        now: Optional[datetime] = None,
        affinity: Optional[Dict[str, float]] = None,
        deadline: Optional[float] = None,
    ) -> List[MessageImportance]:
        """
        Compute importance for each message.

        Args:
            messages: Full history, chronological
            tokens: Estimated tokens per message (same order)
            character: Target character
            topic_text: Topic used for relevance scoring
            now: Reference time for decay (default: newest message)
            affinity: Optional character id -> [0, 1] signal from
                relationship/emotion providers
            deadline: time.perf_counter() value after which scoring aborts

        Returns:
            MessageImportance per message, same order as input

        Raises:
            PruningTimeoutError: deadline passed mid-scoring
        """
        if not messages:
            return []

        now = max(m.timestamp for m in messages) if now is None else parse_timestamp(now)
        total = len(messages)
        owned = self._owned_positions(messages, character)
        started = time.perf_counter()

        scores = []
        for index, message in enumerate(messages):
            if deadline is not None and time.perf_counter() > deadline:
                elapsed = (time.perf_counter() - started) * 1000
                raise PruningTimeoutError(elapsed, self.config.processing_timeout)

            relevance = self.analyzer.analyze_topic_relevance(
                message, topic_text, character, messages
            )
            components = {
                "base_score": BASE_SCORES.get(message.role, 0.5),
                "type_weight": self._type_weight(message),
                "time_weight": self._time_weight(message, now, index, total),
                "length_weight": length_weight(tokens[index]),
                "mention_weight": mention_weight(message, character),
                "emotion_weight": emotion_weight(message.text),
                "topic_relevance": relevance.topic_relevance,
                "personality_relevance": self._personality_relevance(
                    message, index, owned, character, relevance.character_relevance, affinity
                ),
            }
            final = sum(COMPONENT_WEIGHTS[name] * value for name, value in components.items())

            scores.append(MessageImportance(
                message_id=message.id,
                final_score=final,
                tokens=tokens[index],
                **components,
            ))

        return scores

    def _type_weight(self, message: Message) -> float:
        if message.role == "system":
            return self.config.system_message_weight
        if message.role == "user":
            return self.config.user_message_weight
        if message.role == "assistant":
            return self.config.ai_message_weight
        return 0.5

    def _time_weight(self, message: Message, now: datetime, index: int, total: int) -> float:
        position = (index + 1) / total
        hours = max(0.0, (now - message.timestamp).total_seconds() / 3600)
        decay = self.config.time_decay_factor ** hours
        bonus = self.config.recent_message_bonus if index >= total - RECENT_WINDOW else 1.0
        return position * decay * bonus

    @staticmethod
    def _owned_positions(
        messages: Sequence[Message],
        character: Optional[CharacterProfile],
    ) -> set:
        if character is None:
            return set()
        return {i for i, m in enumerate(messages) if m.character_id == character.id}

    def _personality_relevance(
        self,
        message: Message,
        index: int,
        owned: set,
        character: Optional[CharacterProfile],
        character_relevance: float,
        affinity: Optional[Dict[str, float]],
    ) -> float:
        """
        Blend persona relevance with turn ownership.

        Ownership is 1.0 for the character's own turns, 0.75 right
        before/after one of them, 0.5 otherwise.
        """
        if character is None:
            return character_relevance

        if index in owned:
            ownership = 1.0
        elif index - 1 in owned or index + 1 in owned:
            ownership = 0.75
        else:
            ownership = 0.5

        if affinity and message.character_id in affinity:
            ownership = max(ownership, min(1.0, max(0.0, affinity[message.character_id])))

        w = self.config.personality_weight
        return (1 - w) * character_relevance + w * ownership
