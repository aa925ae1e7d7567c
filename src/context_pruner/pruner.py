"""Context pruner: keeps the most important turns within a token budget."""

import logging
import time
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .budget import TokenBudget, retention_floor
from .config import PruningConfig
from .errors import PruningTimeoutError
from .importance import ImportanceScorer, estimate_tokens
from .logger import PruningLogger
from .segmenter import TextSegmenter
from .topic import TopicRelevanceAnalyzer
from .types import CharacterProfile, Message, PruningMetadata, PruningResult

logger = logging.getLogger(__name__)

DYNAMIC = "dynamic"
FALLBACK = "fallback"
DEFAULT_AVERAGE_TOKENS = 50


class ContextPruner:
    """
    Main entry point for context pruning.

    Each call:
    1. Estimates the token cost of every message
    2. Returns the history unchanged if it already fits
    3. Identifies the dominant topic of the recent window
    4. Scores every message by importance
    5. Fills the token budget, then enforces the retention floor

    Any failure along the way degrades to a plain recency window;
    prune() never raises.

    Usage:
        pruner = ContextPruner(PruningConfig(max_tokens=2000))

        result = pruner.prune(history, character=alice, current_topic="travel")

        send_to_model(result.pruned_messages)
    """

    def __init__(
        self,
        config: Optional[PruningConfig] = None,
        analyzer: Optional[TopicRelevanceAnalyzer] = None,
        segmenter: Optional[TextSegmenter] = None,
        event_logger: Optional[PruningLogger] = None,
        session_id: Optional[str] = None,
    ):
        """
        Initialize pruner.

        Args:
            config: Pruning settings (defaults to PruningConfig())
            analyzer: Topic analyzer override (owns its own segmenter)
            segmenter: Segmenter override, used when no analyzer is given
            event_logger: JSONL event logger (default: from config.log_path)
            session_id: Tag written with log events
        """
        self.config = config or PruningConfig()
        self.session_id = session_id

        if analyzer is not None:
            self.analyzer = analyzer
            self.segmenter = analyzer.segmenter
        else:
            self.segmenter = segmenter or TextSegmenter(
                enable_caching=self.config.enable_caching,
                max_cache_size=self.config.max_cache_size,
            )
            self.analyzer = TopicRelevanceAnalyzer(
                self.config.clustering_topic(),
                segmenter=self.segmenter,
                enable_caching=self.config.enable_caching,
                max_cache_size=self.config.max_cache_size,
            )

        self.event_logger = event_logger or PruningLogger(self.config.log_path)

        self._calls = 0
        self._fallbacks = 0
        self._last_processing_time = 0.0

    async def prune_context(
        self,
        messages: Sequence[Message],
        character: Optional[CharacterProfile] = None,
        current_topic: Optional[str] = None,
        now: Optional[datetime] = None,
        affinity: Optional[Dict[str, float]] = None,
    ) -> PruningResult:
        """
        Async entry point for callers composing pruning with I/O.

        The work is synchronous; nothing here yields mid-computation.
        See prune() for arguments.
        """
        return self.prune(messages, character, current_topic, now, affinity)

    def prune(
        self,
        messages: Sequence[Message],
        character: Optional[CharacterProfile] = None,
        current_topic: Optional[str] = None,
        now: Optional[datetime] = None,
        affinity: Optional[Dict[str, float]] = None,
    ) -> PruningResult:
        """
        Select the messages to send with the next model call.

        Args:
            messages: Full history, chronological
            character: Character the reply is generated for
            current_topic: Topic hint, used when no topic can be identified
            now: Reference time for time decay (default: newest message)
            affinity: Optional character id -> [0, 1] relationship signal

        Returns:
            PruningResult with kept messages in original order
        """
        start = time.perf_counter()
        messages = list(messages or ())
        self._calls += 1

        try:
            result = self._prune(messages, character, current_topic, now, affinity, start)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            logger.warning("Pruning failed, falling back to recency window: %s", reason)
            self._fallbacks += 1
            result = self._fallback(messages, character, reason, start)
            self._write_event(self.event_logger.log_fallback, reason, len(messages), self.session_id)
        else:
            logger.debug(
                "Pruned %d -> %d messages (%d/%d tokens) in %.1fms",
                len(messages), len(result.pruned_messages),
                result.retained_tokens, result.total_tokens, result.processing_time,
            )
            self._write_event(self.event_logger.log_prune, result, self.session_id)

        self._last_processing_time = result.processing_time
        return result

    def _prune(
        self,
        messages: List[Message],
        character: Optional[CharacterProfile],
        current_topic: Optional[str],
        now: Optional[datetime],
        affinity: Optional[Dict[str, float]],
        start: float,
    ) -> PruningResult:
        tokens = [estimate_tokens(m.text) for m in messages]
        total = sum(tokens)
        character_id = character.id if character else None

        if total <= self.config.max_tokens:
            return PruningResult(
                pruned_messages=list(messages),
                removed_messages=[],
                total_tokens=total,
                retained_tokens=total,
                retain_ratio=1.0,
                processing_time=_elapsed_ms(start),
                metadata=PruningMetadata(strategy=DYNAMIC, character_id=character_id),
            )

        deadline = None
        if self.config.processing_timeout > 0:
            deadline = start + self.config.processing_timeout / 1000.0

        # Dominant topic of the recent window, else the caller's hint
        window = messages[-self.config.topic_window:]
        topics = self.analyzer.identify_topics(window, top_k=1)
        topic_keywords = list(topics[0].keywords) if topics else []
        topic_text = " ".join(topic_keywords) if topic_keywords else current_topic

        if deadline is not None and time.perf_counter() > deadline:
            raise PruningTimeoutError(_elapsed_ms(start), self.config.processing_timeout)

        scorer = ImportanceScorer(self.config, self.analyzer)
        scores = scorer.score(
            messages,
            tokens,
            character=character,
            topic_text=topic_text,
            now=now,
            affinity=affinity,
            deadline=deadline,
        )

        budget = TokenBudget(
            max_tokens=self.config.max_tokens,
            min_retain_ratio=self.config.min_retain_ratio,
            prioritize_system=self.config.system_message_priority > 0,
        )
        selection = budget.allocate(messages, scores)
        kept = selection.kept_set

        return PruningResult(
            pruned_messages=[m for i, m in enumerate(messages) if i in kept],
            removed_messages=[m for i, m in enumerate(messages) if i not in kept],
            total_tokens=total,
            retained_tokens=selection.retained_tokens,
            retain_ratio=selection.retained_tokens / total,
            processing_time=_elapsed_ms(start),
            importance_scores=scores,
            metadata=PruningMetadata(
                strategy=DYNAMIC,
                character_id=character_id,
                topic_keywords=topic_keywords,
                cache_hits=self.segmenter.cache_hits + self.analyzer.cache_hits,
                forced_inclusions=len(selection.forced),
            ),
        )

    def _fallback(
        self,
        messages: List[Message],
        character: Optional[CharacterProfile],
        reason: str,
        start: float,
    ) -> PruningResult:
        """
        Keep the most recent messages, without scoring.

        Keeps max(retention floor, budget / average tokens) messages.
        Must not raise.
        """
        count = len(messages)
        try:
            tokens = [estimate_tokens(m.text) for m in messages]
        except Exception:
            tokens = []

        total = sum(tokens)
        average = total / len(tokens) if tokens else 0
        if average <= 0:
            average = DEFAULT_AVERAGE_TOKENS

        keep = max(
            retention_floor(self.config.min_retain_ratio, count),
            int(self.config.max_tokens // average),
        )
        keep = min(keep, count)
        cut = count - keep

        retained = sum(tokens[cut:]) if tokens else 0
        return PruningResult(
            pruned_messages=messages[cut:],
            removed_messages=messages[:cut],
            total_tokens=total,
            retained_tokens=retained,
            retain_ratio=retained / total if total else 1.0,
            processing_time=_elapsed_ms(start),
            metadata=PruningMetadata(
                strategy=FALLBACK,
                character_id=getattr(character, "id", None),
                fallback_reason=reason,
            ),
        )

    def _write_event(self, log_fn, *args) -> None:
        try:
            log_fn(*args)
        except OSError as e:
            logger.warning("Could not write pruning log: %s", e)

    def estimate_tokens(self, text: str) -> int:
        """Estimated token cost of a text."""
        return estimate_tokens(text)

    def update_config(self, **changes) -> PruningConfig:
        """
        Apply config changes (normalized like a fresh PruningConfig).

        Returns:
            The new config
        """
        self.config = self.config.replace(**changes)
        self.analyzer.config = self.config.clustering_topic()
        self.analyzer.cache.clear()
        for cache in (self.segmenter.cache, self.analyzer.cache):
            cache.configure(self.config.max_cache_size, self.config.enable_caching)
        return self.config

    def get_config(self) -> PruningConfig:
        return self.config

    def clear_cache(self) -> None:
        self.segmenter.clear_cache()
        self.analyzer.clear_cache()

    def get_stats(self) -> Dict:
        """Get pruner statistics."""
        return {
            "calls": self._calls,
            "fallbacks": self._fallbacks,
            "last_processing_time_ms": self._last_processing_time,
            "analyzer": self.analyzer.get_stats(),
            "segmenter_cache": self.segmenter.cache_stats(),
        }


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
