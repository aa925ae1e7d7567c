"""Topic clustering and relevance scoring for chat messages."""

import hashlib
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from .cache import BoundedCache
from .config import TopicConfig
from .mentions import mention_kind
from .segmenter import TextSegmenter, jaccard
from .tfidf import TfidfCalculator
from .types import (
    CharacterProfile,
    Document,
    DocumentVector,
    Message,
    RelevanceScore,
    TopicCluster,
    TopicInfo,
    TopicTransition,
)

NEUTRAL = 0.5
TOPIC_KEYWORD_BONUS = 0.1
MENTION_BONUS = 0.3
INTEREST_BONUS = 0.1
MAX_INTEREST_BONUS = 0.5
CENTER_KEYWORDS = 5
TRANSITION_WINDOW = 5


def keyword_overlap(keywords1: Sequence[str], keywords2: Sequence[str]) -> float:
    """Jaccard overlap of two keyword lists."""
    return jaccard(set(keywords1), set(keywords2))


class TopicRelevanceAnalyzer:
    """
    Tracks conversation topics and scores message relevance.

    Topics are found by clustering messages whose TF-IDF keywords
    overlap. Each update decays existing topic weights, so topics that
    stop being discussed fade out and get evicted.

    A message's relevance combines:
    - Topic relevance (token overlap with the current topic)
    - Character relevance (overlap with the persona, mentions, interests)
    - Historical relevance (similarity to the previous few messages)

    One analyzer belongs to one session; its caches are not thread-safe.
    """

    def __init__(
        self,
        config: Optional[TopicConfig] = None,
        segmenter: Optional[TextSegmenter] = None,
        tfidf: Optional[TfidfCalculator] = None,
        enable_caching: bool = True,
        max_cache_size: int = 1000,
    ):
        """
        Initialize analyzer.

        Args:
            config: Topic settings (defaults to TopicConfig())
            segmenter: Segmenter shared with the TF-IDF engine
            tfidf: TF-IDF engine used for clustering
            enable_caching: Cache relevance scores
            max_cache_size: Max cached relevance scores
        """
        self.config = config or TopicConfig()
        self.segmenter = segmenter or TextSegmenter(
            enable_caching=enable_caching, max_cache_size=max_cache_size
        )
        self.tfidf = tfidf or TfidfCalculator(self.segmenter)
        self.cache = BoundedCache(max_cache_size, enabled=enable_caching)

        self.current_topics: Dict[str, TopicInfo] = {}
        self.message_topic_map: Dict[str, str] = {}  # message id -> topic id

    # ------------------------------------------------------------------
    # Relevance
    # ------------------------------------------------------------------

    def analyze_topic_relevance(
        self,
        message: Message,
        topic_text: Optional[str] = None,
        character: Optional[CharacterProfile] = None,
        history: Optional[Sequence[Message]] = None,
    ) -> RelevanceScore:
        """
        Score how relevant a message is to a topic, a character and history.

        Missing inputs count as a neutral 0.5 for their part.

        Args:
            message: Message to score
            topic_text: Current topic (free text or joined keywords)
            character: Target character
            history: Conversation the message belongs to

        Returns:
            RelevanceScore with the three parts and a weighted final score
        """
        key = (message.id, topic_text or "", character.id if character else None)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        topic_relevance = self._topic_relevance(message, topic_text)
        character_relevance = self._character_relevance(message, character)
        historical_relevance = self._historical_relevance(message, history)

        final_score = (
            topic_relevance * self.config.keyword_weight +
            character_relevance * self.config.semantic_weight +
            historical_relevance * self.config.temporal_weight
        )

        matched = self._matched_keywords(message, topic_text)

        result = RelevanceScore(
            message_id=message.id,
            topic_relevance=topic_relevance,
            character_relevance=character_relevance,
            historical_relevance=historical_relevance,
            final_score=final_score,
            matched_keywords=matched,
            explanation=self._explain(
                topic_relevance, character_relevance, historical_relevance, matched
            ),
        )
        self.cache.set(key, result)
        return result

    def _topic_relevance(self, message: Message, topic_text: Optional[str]) -> float:
        if not topic_text:
            return NEUTRAL

        topic_tokens = set(self.segmenter.segment(topic_text))
        if not topic_tokens:
            # Topic made only of punctuation/stop-words
            return NEUTRAL

        message_tokens = set(self.segmenter.segment(message.text))
        score = jaccard(message_tokens, topic_tokens)

        for kw in self.segmenter.extract_keywords(topic_text, 10, min_length=1):
            if kw.term in message_tokens:
                score += TOPIC_KEYWORD_BONUS

        return min(score, 1.0)

    def _character_relevance(
        self,
        message: Message,
        character: Optional[CharacterProfile],
    ) -> float:
        if character is None:
            return NEUTRAL

        description = character.description()
        score = self.segmenter.similarity(message.text, description)

        if mention_kind(message, character) is not None:
            score += MENTION_BONUS

        score += self._interest_bonus(message, character, description)
        return min(score, 1.0)

    def _interest_bonus(
        self,
        message: Message,
        character: CharacterProfile,
        description: str,
    ) -> float:
        keywords = [k.lower() for k in character.interests if k]
        for kw in self.segmenter.extract_keywords(description, 10):
            if kw.term not in keywords:
                keywords.append(kw.term)

        text = (message.text or "").lower()
        tokens = set(self.segmenter.segment(message.text))
        matches = sum(1 for k in keywords if k in tokens or k in text)
        return min(matches * INTEREST_BONUS, MAX_INTEREST_BONUS)

    def _historical_relevance(
        self,
        message: Message,
        history: Optional[Sequence[Message]],
    ) -> float:
        if not history:
            return NEUTRAL

        prior = list(history)
        for i, m in enumerate(prior):
            if m.id == message.id:
                prior = prior[:i]
                break
        prior = [m for m in prior[-self.config.history_window:] if m.id != message.id]
        if not prior:
            return NEUTRAL

        sims = [self.segmenter.similarity(message.text, m.text) for m in prior]
        return max(sims) * 0.6 + (sum(sims) / len(sims)) * 0.4

    def _matched_keywords(self, message: Message, topic_text: Optional[str]) -> List[str]:
        if not topic_text:
            return []
        topic_tokens = set(self.segmenter.segment(topic_text))
        matched = []
        for token in self.segmenter.segment(message.text):
            if token in topic_tokens and token not in matched:
                matched.append(token)
        return matched

    def _explain(
        self,
        topic_relevance: float,
        character_relevance: float,
        historical_relevance: float,
        matched: List[str],
    ) -> str:
        parts = []
        pct = f"{topic_relevance * 100:.1f}%"
        if topic_relevance > 0.7:
            parts.append(f"highly relevant to current topic ({pct})")
        elif topic_relevance > 0.4:
            parts.append(f"moderately relevant to current topic ({pct})")
        else:
            parts.append(f"weakly relevant to current topic ({pct})")

        if character_relevance > 0.6:
            parts.append("strong match with character interests")
        if historical_relevance > 0.6:
            parts.append("closely linked to recent dialogue")
        if matched:
            parts.append(f"matched keywords: {', '.join(matched[:3])}")

        return "; ".join(parts)

    # ------------------------------------------------------------------
    # Topic tracking
    # ------------------------------------------------------------------

    def identify_topics(self, messages: Sequence[Message], top_k: int = 5) -> List[TopicInfo]:
        """
        Cluster a message window into topics and update tracked topics.

        Args:
            messages: Recent message window (chronological)
            top_k: Number of topics to return

        Returns:
            Up to top_k tracked topics, highest weight first
        """
        if not messages:
            return []

        corpus = self.tfidf.build_corpus(Document.from_message(m) for m in messages)
        clusters = self._cluster(messages, corpus.document_vectors)
        reference_time = max(m.timestamp for m in messages)
        self._update_topics(clusters, reference_time)

        return self.get_current_topics()[:top_k]

    def _cluster(
        self,
        messages: Sequence[Message],
        vectors: List[DocumentVector],
    ) -> List[TopicCluster]:
        """Greedy single-pass clustering on keyword overlap."""
        vector_map = {v.document_id: v for v in vectors}
        processed = set()
        clusters = []

        for message in messages:
            if message.id in processed:
                continue
            vector = vector_map.get(message.id)
            if vector is None:
                continue

            members = [message]
            processed.add(message.id)

            for other in messages:
                if other.id in processed:
                    continue
                other_vector = vector_map.get(other.id)
                if other_vector is None:
                    continue
                if keyword_overlap(vector.keywords, other_vector.keywords) > self.config.cluster_threshold:
                    members.append(other)
                    processed.add(other.id)

            # A topic needs at least two messages
            if len(members) < 2:
                continue

            clusters.append(TopicCluster(
                cluster_id=_topic_id(members),
                center_keywords=vector.keywords[:CENTER_KEYWORDS],
                messages=members,
                coherence_score=self._coherence(members),
                start=min(m.timestamp for m in members),
                end=max(m.timestamp for m in members),
            ))

        clusters.sort(key=lambda c: c.coherence_score, reverse=True)
        return clusters

    def _coherence(self, members: List[Message]) -> float:
        """Mean pairwise similarity of cluster members."""
        total = 0.0
        pairs = 0
        for i in range(len(members)):
            for j in range(i + 1, len(members)):
                total += self.segmenter.similarity(members[i].text, members[j].text)
                pairs += 1
        return total / pairs if pairs else 0.0

    def _update_topics(self, clusters: List[TopicCluster], reference_time) -> None:
        for topic in self.current_topics.values():
            topic.weight *= self.config.topic_decay_factor

        for cluster in clusters:
            existing = self.current_topics.get(cluster.cluster_id)
            created_at = cluster.start
            if existing is not None:
                created_at = min(existing.created_at, cluster.start)

            self.current_topics[cluster.cluster_id] = TopicInfo(
                id=cluster.cluster_id,
                keywords=cluster.center_keywords,
                weight=cluster.coherence_score * len(cluster.messages),
                message_ids=[m.id for m in cluster.messages],
                created_at=created_at,
                last_updated=reference_time,
            )
            for m in cluster.messages:
                self.message_topic_map[m.id] = cluster.cluster_id

        self._cleanup_topics(reference_time)

    def _cleanup_topics(self, reference_time) -> None:
        max_age = timedelta(hours=self.config.max_topic_age_hours)

        for topic_id, topic in list(self.current_topics.items()):
            if reference_time - topic.last_updated > max_age or topic.weight < self.config.min_topic_weight:
                self._drop_topic(topic_id)

        if len(self.current_topics) > self.config.max_topics:
            ranked = sorted(self.current_topics.values(), key=lambda t: t.weight, reverse=True)
            for topic in ranked[self.config.max_topics:]:
                self._drop_topic(topic.id)

    def _drop_topic(self, topic_id: str) -> None:
        topic = self.current_topics.pop(topic_id, None)
        if topic is None:
            return
        for message_id in topic.message_ids:
            if self.message_topic_map.get(message_id) == topic_id:
                del self.message_topic_map[message_id]

    def detect_topic_transition(self, messages: Sequence[Message]) -> Optional[TopicTransition]:
        """
        Detect whether the conversation just moved to a new topic.

        Looks at the last few messages, takes the two strongest topics
        and flags a transition when they share few keywords and the
        newer one clearly outweighs the older one.

        Returns:
            TopicTransition, or None if no confident transition
        """
        if len(messages) < 2:
            return None

        recent = list(messages[-TRANSITION_WINDOW:])
        topics = self.identify_topics(recent, 2)
        if len(topics) < 2:
            return None

        first, second = topics
        if second.created_at > first.created_at:
            new_topic, old_topic = second, first
        else:
            new_topic, old_topic = first, second

        confidence = self._transition_confidence(new_topic, old_topic)
        if confidence <= self.config.transition_threshold:
            return None

        positions = {m.id: i for i, m in enumerate(messages)}
        indices = [positions[mid] for mid in new_topic.message_ids if mid in positions]
        transition_point = min(indices) if indices else max(0, len(messages) - 3)

        return TopicTransition(
            from_topic=old_topic,
            to_topic=new_topic,
            transition_point=transition_point,
            confidence=confidence,
            trigger_keywords=new_topic.keywords[:3],
        )

    @staticmethod
    def _transition_confidence(new_topic: TopicInfo, old_topic: TopicInfo) -> float:
        # Low overlap and a dominant new topic -> high confidence
        overlap = keyword_overlap(new_topic.keywords, old_topic.keywords)
        weight_ratio = new_topic.weight / (old_topic.weight + 0.1)
        return (1 - overlap) * min(weight_ratio, 2.0) * 0.5

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_current_topics(self) -> List[TopicInfo]:
        """Tracked topics, highest weight first."""
        return sorted(self.current_topics.values(), key=lambda t: t.weight, reverse=True)

    def get_message_topic(self, message_id: str) -> Optional[TopicInfo]:
        topic_id = self.message_topic_map.get(message_id)
        return self.current_topics.get(topic_id) if topic_id else None

    @property
    def cache_hits(self) -> int:
        return self.cache.hits

    def update_config(self, **changes) -> None:
        data = {**self.config.__dict__, **changes}
        self.config = TopicConfig.from_dict(data)
        # Cached scores depend on the weights
        self.cache.clear()

    def clear_cache(self) -> None:
        self.cache.clear()
        self.tfidf.clear_cache()

    def reset(self) -> None:
        """Forget all tracked topics."""
        self.current_topics.clear()
        self.message_topic_map.clear()
        self.cache.clear()

    def get_stats(self) -> Dict[str, float]:
        topics = list(self.current_topics.values())
        return {
            "active_topics": len(topics),
            "total_messages": len(self.message_topic_map),
            "cache_size": len(self.cache),
            "average_topic_weight": sum(t.weight for t in topics) / len(topics) if topics else 0.0,
        }


def _topic_id(members: Sequence[Message]) -> str:
    """Stable id derived from the member message ids."""
    digest = hashlib.sha1("|".join(m.id for m in members).encode("utf-8")).hexdigest()
    return f"topic_{digest[:12]}"
