"""
Event logging for context pruning.
"""

from pathlib import Path
from typing import Optional
import json
from datetime import datetime


class PruningLogger:
    """
    Logs pruning activity to JSONL files.

    Files:
    - prune.jsonl: Every pruning call (dynamic and fast path)
    - fallback.jsonl: Calls that degraded to the recency window

    With log_path=None nothing is written; the logger still tracks the
    last run in memory.
    """

    def __init__(self, log_path: Optional[str] = None):
        """
        Initialize logger.

        Args:
            log_path: Path to log directory, or None to disable file output
        """
        self.log_path = Path(log_path) if log_path else None
        if self.log_path is not None:
            self.log_path.mkdir(parents=True, exist_ok=True)

        self._last_prune: Optional[str] = None
        self._last_fallback: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return self.log_path is not None

    def _log(self, file: str, entry: dict):
        """Write a log entry to file."""
        entry["timestamp"] = datetime.now().isoformat()
        if self.log_path is None:
            return
        with open(self.log_path / file, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def log_prune(self, result, session_id: Optional[str] = None):
        """Log a pruning result."""
        self._last_prune = datetime.now().isoformat()
        self._log("prune.jsonl", {
            "event": "prune",
            "session_id": session_id,
            "strategy": result.metadata.strategy,
            "messages_in": len(result.pruned_messages) + len(result.removed_messages),
            "messages_kept": len(result.pruned_messages),
            "total_tokens": result.total_tokens,
            "retained_tokens": result.retained_tokens,
            "retain_ratio": result.retain_ratio,
            "forced_inclusions": result.metadata.forced_inclusions,
            "topic_keywords": result.metadata.topic_keywords,
            "cache_hits": result.metadata.cache_hits,
            "processing_time_ms": result.processing_time,
        })

    def log_fallback(self, reason: str, message_count: int, session_id: Optional[str] = None):
        """Log a degradation to the recency window."""
        self._last_fallback = datetime.now().isoformat()
        self._log("fallback.jsonl", {
            "event": "fallback",
            "session_id": session_id,
            "reason": reason,
            "message_count": message_count,
        })

    def last_prune_time(self) -> Optional[str]:
        return self._last_prune

    def last_fallback_time(self) -> Optional[str]:
        return self._last_fallback

    def get_prune_stats(self, hours: int = 24) -> dict:
        """Get pruning statistics for the last N hours."""
        if self.log_path is None:
            return {}
        log_file = self.log_path / "prune.jsonl"
        if not log_file.exists():
            return {}

        since = datetime.now().timestamp() - (hours * 3600)
        count = 0
        by_strategy = {}
        tokens_saved = 0

        with open(log_file, encoding="utf-8") as f:
            for line in f:
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    # Partial line from an interrupted write
                    continue
                ts = datetime.fromisoformat(entry["timestamp"]).timestamp()
                if ts > since:
                    count += 1
                    strategy = entry.get("strategy", "unknown")
                    by_strategy[strategy] = by_strategy.get(strategy, 0) + 1
                    tokens_saved += entry.get("total_tokens", 0) - entry.get("retained_tokens", 0)

        return {
            "prune_count": count,
            "by_strategy": by_strategy,
            "total_tokens_saved": tokens_saved,
        }
