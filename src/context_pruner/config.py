"""
Configuration for context pruning.

Values are normalized when the config is constructed: negative budgets,
ratios outside [0, 1] and similar mistakes are clamped instead of rejected.
"""

import re
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError


DEFAULT_CONFIG_PATHS = [
    "./context-pruner.yaml",
    str(Path.home() / ".context-pruner" / "config.yaml"),
]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _snake_case(key: str) -> str:
    """maxTokens -> max_tokens"""
    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    out = {}
    for key, value in data.items():
        key = _snake_case(key)
        if key in names:
            out[key] = value
    return out


@dataclass
class TopicConfig:
    """Settings for topic clustering and relevance scoring."""
    max_topics: int = 10
    topic_decay_factor: float = 0.95
    cluster_threshold: float = 0.3       # keyword overlap to join a cluster
    transition_threshold: float = 0.6
    keyword_weight: float = 0.4          # topic relevance
    semantic_weight: float = 0.4         # character relevance
    temporal_weight: float = 0.2         # historical relevance
    max_topic_age_hours: float = 24.0
    min_topic_weight: float = 0.1
    history_window: int = 10             # prior messages for historical relevance

    def __post_init__(self):
        self.max_topics = max(1, int(self.max_topics))
        self.topic_decay_factor = _clamp(float(self.topic_decay_factor), 0.0, 1.0)
        self.cluster_threshold = _clamp(float(self.cluster_threshold), 0.0, 1.0)
        self.transition_threshold = max(0.0, float(self.transition_threshold))
        self.keyword_weight = max(0.0, float(self.keyword_weight))
        self.semantic_weight = max(0.0, float(self.semantic_weight))
        self.temporal_weight = max(0.0, float(self.temporal_weight))
        self.max_topic_age_hours = max(0.0, float(self.max_topic_age_hours))
        self.min_topic_weight = max(0.0, float(self.min_topic_weight))
        self.history_window = max(1, int(self.history_window))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TopicConfig":
        return cls(**_known_fields(cls, data or {}))


@dataclass
class PruningConfig:
    """Configuration for ContextPruner."""

    # Budget
    max_tokens: int = 4000
    min_retain_ratio: float = 0.3

    # Role weights
    system_message_weight: float = 1.0
    user_message_weight: float = 0.8
    ai_message_weight: float = 0.6

    # Time decay
    time_decay_factor: float = 0.95      # per hour
    recent_message_bonus: float = 1.2    # last 5 messages

    # Relevance
    topic_relevance_threshold: float = 0.3
    personality_weight: float = 0.4
    topic_window: int = 50               # messages clustered for topics

    # Performance
    enable_caching: bool = True
    max_cache_size: int = 1000
    processing_timeout: float = 5000     # ms, <= 0 disables

    # System messages are pre-selected when > 0
    system_message_priority: int = 10

    # Logging
    log_path: Optional[str] = None

    topic: TopicConfig = field(default_factory=TopicConfig)

    def __post_init__(self):
        if isinstance(self.topic, dict):
            self.topic = TopicConfig.from_dict(self.topic)

        self.max_tokens = max(0, int(self.max_tokens))
        self.min_retain_ratio = _clamp(float(self.min_retain_ratio), 0.0, 1.0)
        self.system_message_weight = max(0.0, float(self.system_message_weight))
        self.user_message_weight = max(0.0, float(self.user_message_weight))
        self.ai_message_weight = max(0.0, float(self.ai_message_weight))
        # Factor of 0 would zero every old message; keep it strictly positive
        self.time_decay_factor = _clamp(float(self.time_decay_factor), 1e-6, 1.0)
        self.recent_message_bonus = max(0.0, float(self.recent_message_bonus))
        self.topic_relevance_threshold = _clamp(float(self.topic_relevance_threshold), 0.0, 1.0)
        self.personality_weight = _clamp(float(self.personality_weight), 0.0, 1.0)
        self.topic_window = max(2, int(self.topic_window))
        self.enable_caching = bool(self.enable_caching)
        self.max_cache_size = max(1, int(self.max_cache_size))
        self.processing_timeout = float(self.processing_timeout)
        self.system_message_priority = int(self.system_message_priority)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PruningConfig":
        """
        Build a config from a dict.

        Keys may be snake_case or camelCase (maxTokens, minRetainRatio, ...).
        Unknown keys are ignored.
        """
        data = dict(data or {})
        # Handle nested pruning section
        if "pruning" in data and isinstance(data["pruning"], dict):
            data = data["pruning"]
        return cls(**_known_fields(cls, data))

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "PruningConfig":
        """
        Load config from a YAML file or return defaults.

        An explicit path that does not exist raises ConfigError; without
        a path the default locations are tried.
        """
        if config_path:
            if not Path(config_path).exists():
                raise ConfigError(f"Config file not found: {config_path}")
        else:
            for path in DEFAULT_CONFIG_PATHS:
                if Path(path).exists():
                    config_path = path
                    break

        if not config_path:
            return cls()

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config root must be a mapping: {config_path}")
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        """Export config to dict."""
        return asdict(self)

    def save(self, path: str):
        """Save config to YAML file."""
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump({"pruning": self.to_dict()}, f, default_flow_style=False, sort_keys=False)

    def replace(self, **changes) -> "PruningConfig":
        """Copy with changes applied (and normalized)."""
        data = self.to_dict()
        if "topic" in changes and isinstance(changes["topic"], TopicConfig):
            changes["topic"] = asdict(changes["topic"])
        data.update(_known_fields(PruningConfig, changes))
        return PruningConfig(**data)

    def clustering_topic(self) -> TopicConfig:
        """Topic settings with the relevance threshold as cluster threshold."""
        data = asdict(self.topic)
        data["cluster_threshold"] = self.topic_relevance_threshold
        return TopicConfig(**data)
