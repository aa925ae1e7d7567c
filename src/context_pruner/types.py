"""Core data types for context pruning."""

from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional, Tuple, Union
from datetime import datetime, timezone


ROLES = ("system", "user", "assistant")


def parse_timestamp(value: Union[datetime, str, int, float, None]) -> datetime:
    """
    Normalize a timestamp to a naive UTC datetime.

    Accepts datetimes, ISO-8601 strings, or epoch milliseconds
    (the format chat front-ends usually send).
    """
    if value is None:
        return datetime(1970, 1, 1)
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, (int, float)):
        ts = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    else:
        ts = datetime.fromisoformat(str(value).replace('Z', '+00:00'))

    # Compare everything as naive UTC
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


@dataclass(frozen=True)
class Message:
    """A single chat turn, produced upstream and read-only here."""
    id: str
    role: str
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime(1970, 1, 1))
    character_id: Optional[str] = None
    mentions: Tuple[str, ...] = ()

    def __post_init__(self):
        # Lists are accepted for convenience but stored as tuples
        if not isinstance(self.mentions, tuple):
            object.__setattr__(self, "mentions", tuple(self.mentions or ()))
        # Aware and naive inputs must compare, so everything becomes naive UTC
        object.__setattr__(self, "timestamp", parse_timestamp(self.timestamp))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Build a message from a dict with snake_case or camelCase keys."""
        return cls(
            id=str(data["id"]),
            role=data.get("role", "user"),
            text=data.get("text", data.get("content", "")) or "",
            timestamp=parse_timestamp(data.get("timestamp")),
            character_id=data.get("character_id", data.get("characterId")),
            mentions=tuple(data.get("mentions") or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "character_id": self.character_id,
            "mentions": list(self.mentions),
        }


@dataclass
class CharacterProfile:
    """Character persona supplied by the profile provider."""
    id: str
    name: str
    personality: str = ""
    background: str = ""
    interests: List[str] = field(default_factory=list)

    def description(self) -> str:
        """Synthesized description used for text similarity."""
        return f"{self.name} {self.personality} {self.background}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CharacterProfile":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            personality=data.get("personality", "") or "",
            background=data.get("background", "") or "",
            interests=list(data.get("interests", data.get("interestKeywords", [])) or []),
        )


@dataclass
class Keyword:
    """Keyword extracted from a single text."""
    term: str
    frequency: int
    score: float


@dataclass
class Document:
    """A document registered with the TF-IDF engine."""
    id: str
    content: str

    @classmethod
    def from_message(cls, message: Message) -> "Document":
        return cls(id=message.id, content=message.text)


@dataclass
class DocumentVector:
    """Sparse TF-IDF vector for one document."""
    document_id: str
    vector: Dict[str, float]
    magnitude: float
    keywords: List[str] = field(default_factory=list)


@dataclass
class CorpusStats:
    """Snapshot of corpus-level counters."""
    total_documents: int
    total_terms: int
    vocabulary_size: int


@dataclass
class CorpusResult:
    """Result of building a corpus."""
    document_vectors: List[DocumentVector]
    vocabulary: List[str]
    stats: CorpusStats
    processing_time: float  # ms


@dataclass
class SimilarityResult:
    """Pairwise document similarity."""
    document_id1: str
    document_id2: str
    similarity: float
    common_terms: List[str]
    method: str  # "cosine" or "jaccard"


@dataclass
class TopicInfo:
    """A tracked conversation topic with decaying salience."""
    id: str
    keywords: List[str]
    weight: float
    message_ids: List[str]
    created_at: datetime
    last_updated: datetime


@dataclass
class TopicCluster:
    """Messages grouped by overlapping keywords."""
    cluster_id: str
    center_keywords: List[str]
    messages: List[Message]
    coherence_score: float
    start: datetime
    end: datetime


@dataclass
class TopicTransition:
    """Detected shift from one topic to another."""
    from_topic: Optional[TopicInfo]
    to_topic: TopicInfo
    transition_point: int  # message index
    confidence: float
    trigger_keywords: List[str] = field(default_factory=list)


@dataclass
class RelevanceScore:
    """Relevance of one message to topic, character and history."""
    message_id: str
    topic_relevance: float
    character_relevance: float
    historical_relevance: float
    final_score: float
    matched_keywords: List[str] = field(default_factory=list)
    explanation: str = ""


@dataclass
class MessageImportance:
    """Importance breakdown for one message."""
    message_id: str
    base_score: float
    type_weight: float
    time_weight: float
    length_weight: float
    mention_weight: float
    emotion_weight: float
    topic_relevance: float
    personality_relevance: float
    final_score: float
    tokens: int


@dataclass
class PruningMetadata:
    """Diagnostics attached to a pruning result."""
    strategy: str  # "dynamic" or "fallback"
    character_id: Optional[str] = None
    topic_keywords: List[str] = field(default_factory=list)
    cache_hits: int = 0
    fallback_reason: Optional[str] = None
    forced_inclusions: int = 0


@dataclass
class PruningResult:
    """Output of a pruning call."""
    pruned_messages: List[Message]
    removed_messages: List[Message]
    total_tokens: int
    retained_tokens: int
    retain_ratio: float
    processing_time: float  # ms
    importance_scores: List[MessageImportance] = field(default_factory=list)
    metadata: PruningMetadata = field(default_factory=lambda: PruningMetadata(strategy="dynamic"))

    @property
    def strategy(self) -> str:
        return self.metadata.strategy

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation."""
        return {
            "pruned_messages": [m.to_dict() for m in self.pruned_messages],
            "removed_messages": [m.to_dict() for m in self.removed_messages],
            "total_tokens": self.total_tokens,
            "retained_tokens": self.retained_tokens,
            "retain_ratio": self.retain_ratio,
            "processing_time": self.processing_time,
            "importance_scores": [asdict(s) for s in self.importance_scores],
            "metadata": asdict(self.metadata),
        }
