"""Per-conversation pruning sessions."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .config import PruningConfig
from .logger import PruningLogger
from .pruner import ContextPruner
from .types import CharacterProfile, Message, PruningResult


@dataclass
class PrunerSession:
    """
    State for one conversation.

    Owns a single ContextPruner (and through it the topic analyzer,
    TF-IDF engine and caches). Tracks:
    - Turn count and timing
    - The last pruning result summary
    - How often the pruner had to fall back
    """
    session_id: str
    pruner: ContextPruner
    created_at: datetime = field(default_factory=datetime.utcnow)

    turn_count: int = 0
    fallback_count: int = 0
    last_turn_at: Optional[datetime] = None
    last_summary: Dict = field(default_factory=dict)
    topic_history: List[List[str]] = field(default_factory=list)

    async def prune_context(
        self,
        messages: Sequence[Message],
        character: Optional[CharacterProfile] = None,
        current_topic: Optional[str] = None,
        affinity: Optional[Dict[str, float]] = None,
    ) -> PruningResult:
        """Prune this conversation's history and record the turn."""
        result = await self.pruner.prune_context(
            messages, character, current_topic, affinity=affinity
        )
        self.on_turn(result)
        return result

    def on_turn(self, result: PruningResult):
        """
        Update state after each turn.

        Args:
            result: Pruning result of the turn
        """
        self.turn_count += 1
        self.last_turn_at = datetime.utcnow()
        if result.strategy == "fallback":
            self.fallback_count += 1

        if result.metadata.topic_keywords:
            self.topic_history.append(list(result.metadata.topic_keywords))
            # Keep topic history bounded
            if len(self.topic_history) > 20:
                self.topic_history.pop(0)

        self.last_summary = {
            "strategy": result.strategy,
            "kept": len(result.pruned_messages),
            "removed": len(result.removed_messages),
            "retained_tokens": result.retained_tokens,
            "total_tokens": result.total_tokens,
            "processing_time_ms": result.processing_time,
        }

    def get_session_duration_minutes(self) -> float:
        """Get session duration in minutes."""
        return (datetime.utcnow() - self.created_at).total_seconds() / 60

    def get_stats(self) -> Dict:
        """Get session statistics."""
        return {
            "session_id": self.session_id,
            "turn_count": self.turn_count,
            "fallback_count": self.fallback_count,
            "duration_minutes": self.get_session_duration_minutes(),
            "last_result": dict(self.last_summary),
        }


class SessionRegistry:
    """
    Maps session ids to sessions, creating them on demand.

    Every session gets its own pruner built from the shared config;
    pruner instances and their caches are never shared.
    """

    def __init__(self, config: Optional[PruningConfig] = None):
        self.config = config or PruningConfig()
        self.sessions: Dict[str, PrunerSession] = {}
        self._event_logger = PruningLogger(self.config.log_path)

    def get(self, session_id: str = "default") -> PrunerSession:
        """Get or create a session."""
        session = self.sessions.get(session_id)
        if session is None:
            pruner = ContextPruner(
                self.config,
                event_logger=self._event_logger,
                session_id=session_id,
            )
            session = PrunerSession(session_id, pruner)
            self.sessions[session_id] = session
        return session

    def close(self, session_id: str) -> bool:
        """Drop a session. Returns False if it did not exist."""
        return self.sessions.pop(session_id, None) is not None

    def __contains__(self, session_id: str) -> bool:
        return session_id in self.sessions

    def __len__(self) -> int:
        return len(self.sessions)

    def get_stats(self) -> Dict:
        return {
            "sessions": len(self.sessions),
            "turns": sum(s.turn_count for s in self.sessions.values()),
            "fallbacks": sum(s.fallback_count for s in self.sessions.values()),
        }
