"""Tests for token estimation, importance scoring and budget selection."""

import time
import pytest
from datetime import datetime, timedelta
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from context_pruner import (
    CharacterProfile,
    Message,
    MessageImportance,
    PruningConfig,
    PruningTimeoutError,
    TopicRelevanceAnalyzer,
)
from context_pruner.budget import TokenBudget, retention_floor
from context_pruner.importance import (
    COMPONENT_WEIGHTS,
    ImportanceScorer,
    emotion_weight,
    estimate_tokens,
    length_weight,
    mention_weight,
)
from context_pruner.mentions import parse_mentions


BASE = datetime(2024, 5, 1, 12, 0)


@pytest.fixture
def alice():
    return CharacterProfile(id="alice", name="Alice", personality="cheerful", interests=["jazz"])


def importance(message_id, score, tokens):
    return MessageImportance(
        message_id=message_id,
        base_score=0, type_weight=0, time_weight=0, length_weight=0,
        mention_weight=0, emotion_weight=0, topic_relevance=0, personality_relevance=0,
        final_score=score,
        tokens=tokens,
    )


class TestTokenEstimate:
    """Test the token cost heuristic."""

    def test_empty(self):
        assert estimate_tokens("") == 0

    def test_words(self):
        assert estimate_tokens("hello world") == 2

    def test_symbols_count_half(self):
        assert estimate_tokens("hello, world!") == 3

    def test_chinese(self):
        assert estimate_tokens("你好") == 3

    def test_rounds_up(self):
        assert estimate_tokens("你好!") == 4


class TestComponents:
    """Test individual score components."""

    def test_length_buckets(self):
        assert length_weight(4) == 0.3
        assert length_weight(19) == 0.7
        assert length_weight(200) == 1.0
        assert length_weight(500) == 0.8
        assert length_weight(501) == 0.6

    def test_explicit_mention(self, alice):
        msg = Message(id="1", role="user", text="@Alice what do you think?")
        assert mention_weight(msg, alice) == 2.0

    def test_mention_by_id(self, alice):
        msg = Message(id="1", role="user", text="ping @alice")
        assert mention_weight(msg, alice) == 2.0

    def test_listed_mention(self, alice):
        msg = Message(id="1", role="user", text="what do you think?", mentions=["Alice"])
        assert mention_weight(msg, alice) == 2.0

    def test_named(self, alice):
        msg = Message(id="1", role="user", text="I told Alice about it")
        assert mention_weight(msg, alice) == 1.5

    def test_not_mentioned(self, alice):
        msg = Message(id="1", role="user", text="nothing to see here")
        assert mention_weight(msg, alice) == 1.0
        assert mention_weight(msg, None) == 1.0

    def test_parse_mentions(self):
        assert parse_mentions("@Alice and @Bob, also @Alice") == ["Alice", "Bob"]

    def test_emotion_neutral(self):
        assert emotion_weight("plain text") == 1.0
        assert emotion_weight("") == 1.0

    def test_emotion_punctuation(self):
        assert emotion_weight("wow!!!!!") == pytest.approx(1.3)

    def test_emotion_lexicon(self):
        assert emotion_weight("我很开心") == pytest.approx(1.15)

    def test_emotion_capped(self):
        text = "😭🤬💔😡 痛苦 愤怒 难过 伤心 恐惧!!!??? ... NO WAY"
        assert emotion_weight(text) == 2.5


class TestImportanceScorer:
    """Test the weighted importance score."""

    @pytest.fixture
    def messages(self):
        texts = [
            ("system", "You are Alice, a cheerful musician."),
            ("user", "Tell me about your favourite jazz records"),
            ("assistant", "I love the old Blue Note recordings"),
            ("user", "@Alice which one should I start with?"),
        ]
        return [
            Message(
                id=str(i), role=role, text=text,
                timestamp=BASE + timedelta(hours=i),
                character_id="alice" if role == "assistant" else None,
            )
            for i, (role, text) in enumerate(texts)
        ]

    @pytest.fixture
    def scorer(self):
        config = PruningConfig()
        return ImportanceScorer(config, TopicRelevanceAnalyzer(config.topic))

    def score(self, scorer, messages, **kwargs):
        tokens = [estimate_tokens(m.text) for m in messages]
        return scorer.score(messages, tokens, **kwargs)

    def test_one_score_per_message(self, scorer, messages):
        scores = self.score(scorer, messages)
        assert [s.message_id for s in scores] == ["0", "1", "2", "3"]

    def test_final_is_weighted_sum(self, scorer, messages):
        for s in self.score(scorer, messages):
            expected = sum(getattr(s, name) * w for name, w in COMPONENT_WEIGHTS.items())
            assert s.final_score == pytest.approx(expected)

    def test_role_priors(self, scorer, messages):
        scores = self.score(scorer, messages)
        assert scores[0].base_score == 1.0
        assert scores[1].base_score == 0.8
        assert scores[2].base_score == 0.6
        assert scores[0].type_weight == 1.0
        assert scores[2].type_weight == 0.6

    def test_time_weight(self, scorer, messages):
        scores = self.score(scorer, messages)
        # newest message: full position, no decay, recency bonus
        assert scores[3].time_weight == pytest.approx(1.0 * 1.2)
        # first message: position 1/4, three hours old
        assert scores[0].time_weight == pytest.approx(0.25 * 0.95 ** 3 * 1.2)

    def test_explicit_now(self, scorer, messages):
        scores = self.score(scorer, messages, now=BASE + timedelta(hours=4))
        assert scores[3].time_weight == pytest.approx(0.95 * 1.2)

    def test_mention_component(self, scorer, messages, alice):
        scores = self.score(scorer, messages, character=alice)
        assert scores[3].mention_weight == 2.0
        assert scores[1].mention_weight == 1.0

    def test_ownership(self, scorer, messages, alice):
        scores = self.score(scorer, messages, character=alice)
        relevance = [
            scorer.analyzer.analyze_topic_relevance(m, None, alice, messages).character_relevance
            for m in messages
        ]
        w = scorer.config.personality_weight
        # message 2 is Alice's own turn, 1 and 3 are adjacent, 0 is not
        assert scores[2].personality_relevance == pytest.approx((1 - w) * relevance[2] + w * 1.0)
        assert scores[1].personality_relevance == pytest.approx((1 - w) * relevance[1] + w * 0.75)
        assert scores[0].personality_relevance == pytest.approx((1 - w) * relevance[0] + w * 0.5)

    def test_affinity_raises_ownership(self, scorer, alice):
        messages = [
            Message(id="a", role="user", text="first turn", timestamp=BASE, character_id="bob"),
            Message(id="b", role="user", text="second turn", timestamp=BASE, character_id="carol"),
            Message(id="c", role="user", text="third turn", timestamp=BASE, character_id="carol"),
        ]
        plain = self.score(scorer, messages, character=alice)
        boosted = self.score(scorer, messages, character=alice, affinity={"bob": 1.0})
        assert boosted[0].personality_relevance > plain[0].personality_relevance
        assert boosted[1].personality_relevance == plain[1].personality_relevance

    def test_deadline(self, scorer, messages):
        with pytest.raises(PruningTimeoutError):
            self.score(scorer, messages, deadline=time.perf_counter() - 1)

    def test_empty(self, scorer):
        assert scorer.score([], []) == []


class TestTokenBudget:
    """Test budget-constrained selection."""

    def test_retention_floor(self):
        assert retention_floor(0.3, 10) == 3
        assert retention_floor(0.25, 3) == 1
        assert retention_floor(0.0, 5) == 0
        assert retention_floor(1.0, 4) == 4

    def test_greedy_by_score(self):
        messages = [
            Message(id="s", role="system", text="sys"),
            Message(id="a", role="user", text="a"),
            Message(id="b", role="user", text="b"),
            Message(id="c", role="user", text="c"),
        ]
        scores = [importance("s", 0.1, 10), importance("a", 0.9, 10),
                  importance("b", 0.2, 10), importance("c", 0.5, 10)]
        selection = TokenBudget(max_tokens=30, min_retain_ratio=0.0).allocate(messages, scores)
        assert selection.kept == [0, 1, 3]
        assert selection.retained_tokens == 30
        assert selection.forced == []

    def test_smaller_message_fills_gap(self):
        messages = [Message(id=str(i), role="user", text="x") for i in range(3)]
        scores = [importance("0", 0.9, 8), importance("1", 0.8, 5), importance("2", 0.1, 2)]
        selection = TokenBudget(max_tokens=10, min_retain_ratio=0.0).allocate(messages, scores)
        assert selection.kept == [0, 2]

    def test_ties_prefer_later(self):
        messages = [Message(id=str(i), role="user", text="x") for i in range(3)]
        scores = [importance(str(i), 0.5, 10) for i in range(3)]
        selection = TokenBudget(max_tokens=20, min_retain_ratio=0.0).allocate(messages, scores)
        assert selection.kept == [1, 2]

    def test_system_first(self):
        messages = [
            Message(id="s", role="system", text="sys"),
            Message(id="a", role="user", text="a"),
        ]
        scores = [importance("s", 0.0, 10), importance("a", 1.0, 10)]
        selection = TokenBudget(max_tokens=10, min_retain_ratio=0.0).allocate(messages, scores)
        assert selection.kept == [0]

    def test_system_competes_without_priority(self):
        messages = [
            Message(id="s", role="system", text="sys"),
            Message(id="a", role="user", text="a"),
        ]
        scores = [importance("s", 0.0, 10), importance("a", 1.0, 10)]
        budget = TokenBudget(max_tokens=10, min_retain_ratio=0.0, prioritize_system=False)
        assert budget.allocate(messages, scores).kept == [1]

    def test_floor_forces_recent(self):
        messages = [Message(id=str(i), role="user", text="x") for i in range(4)]
        scores = [importance(str(i), 1.0, 10) for i in range(4)]
        selection = TokenBudget(max_tokens=0, min_retain_ratio=0.5).allocate(messages, scores)
        assert selection.kept == [2, 3]
        assert selection.forced == [3, 2]
        assert selection.retained_tokens == 20

    def test_floor_skips_already_kept(self):
        messages = [Message(id=str(i), role="user", text="x") for i in range(4)]
        scores = [importance("0", 1.0, 5), importance("1", 0.1, 50),
                  importance("2", 0.1, 50), importance("3", 0.1, 50)]
        selection = TokenBudget(max_tokens=5, min_retain_ratio=0.5).allocate(messages, scores)
        assert selection.kept == [0, 3]
        assert selection.forced == [3]

    def test_set_budget(self):
        budget = TokenBudget()
        budget.set_budget(-10)
        assert budget.max_tokens == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
