"""Tests for configuration loading and normalization."""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from context_pruner import PruningConfig, TopicConfig, ConfigError


class TestDefaults:
    """Test default values."""

    def test_pruning_defaults(self):
        config = PruningConfig()
        assert config.max_tokens == 4000
        assert config.min_retain_ratio == 0.3
        assert config.system_message_weight == 1.0
        assert config.user_message_weight == 0.8
        assert config.ai_message_weight == 0.6
        assert config.time_decay_factor == 0.95
        assert config.recent_message_bonus == 1.2
        assert config.topic_relevance_threshold == 0.3
        assert config.personality_weight == 0.4
        assert config.enable_caching is True
        assert config.max_cache_size == 1000
        assert config.processing_timeout == 5000
        assert config.system_message_priority == 10
        assert config.topic_window == 50
        assert config.log_path is None

    def test_topic_defaults(self):
        topic = PruningConfig().topic
        assert isinstance(topic, TopicConfig)
        assert topic.max_topics == 10
        assert topic.topic_decay_factor == 0.95
        assert topic.transition_threshold == 0.6
        assert topic.history_window == 10


class TestClamping:
    """Invalid values are clamped, not rejected."""

    def test_negative_budget(self):
        assert PruningConfig(max_tokens=-100).max_tokens == 0

    def test_ratio_bounds(self):
        assert PruningConfig(min_retain_ratio=1.5).min_retain_ratio == 1.0
        assert PruningConfig(min_retain_ratio=-0.2).min_retain_ratio == 0.0

    def test_decay_stays_positive(self):
        assert PruningConfig(time_decay_factor=0).time_decay_factor > 0
        assert PruningConfig(time_decay_factor=3).time_decay_factor == 1.0

    def test_cache_size(self):
        assert PruningConfig(max_cache_size=0).max_cache_size == 1

    def test_personality_weight(self):
        assert PruningConfig(personality_weight=7).personality_weight == 1.0

    def test_topic_config(self):
        topic = TopicConfig(max_topics=0, cluster_threshold=2, history_window=-1)
        assert topic.max_topics == 1
        assert topic.cluster_threshold == 1.0
        assert topic.history_window == 1


class TestFromDict:
    """Test dict construction."""

    def test_camel_case(self):
        config = PruningConfig.from_dict({
            "maxTokens": 2000,
            "minRetainRatio": 0.5,
            "systemMessagePriority": 0,
            "topic": {"maxTopics": 3},
        })
        assert config.max_tokens == 2000
        assert config.min_retain_ratio == 0.5
        assert config.system_message_priority == 0
        assert config.topic.max_topics == 3

    def test_nested_pruning_section(self):
        config = PruningConfig.from_dict({"pruning": {"max_tokens": 123}})
        assert config.max_tokens == 123

    def test_unknown_keys_ignored(self):
        config = PruningConfig.from_dict({"max_tokens": 10, "colour": "blue"})
        assert config.max_tokens == 10

    def test_clustering_topic(self):
        config = PruningConfig(topic_relevance_threshold=0.7, topic=TopicConfig(max_topics=3))
        topic = config.clustering_topic()
        assert topic.cluster_threshold == 0.7
        assert topic.max_topics == 3
        assert config.topic.cluster_threshold == 0.3

    def test_replace(self):
        config = PruningConfig()
        smaller = config.replace(max_tokens=100, topic=TopicConfig(max_topics=2))
        assert smaller.max_tokens == 100
        assert smaller.topic.max_topics == 2
        assert config.max_tokens == 4000


class TestYaml:
    """Test YAML loading and saving."""

    def test_roundtrip(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        config = PruningConfig(max_tokens=1234, min_retain_ratio=0.4, topic=TopicConfig(max_topics=4))
        config.save(str(path))

        loaded = PruningConfig.load(str(path))
        assert loaded.to_dict() == config.to_dict()

    def test_load_camel_case_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("pruning:\n  maxTokens: 900\n  processingTimeout: 0\n")
        config = PruningConfig.load(str(path))
        assert config.max_tokens == 900
        assert config.processing_timeout == 0

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(ConfigError):
            PruningConfig.load(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("max_tokens: [1, 2\n")
        with pytest.raises(ConfigError):
            PruningConfig.load(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError):
            PruningConfig.load(str(path))

    def test_default_location(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert PruningConfig.load().max_tokens == 4000

        (tmp_path / "context-pruner.yaml").write_text("max_tokens: 42\n")
        assert PruningConfig.load().max_tokens == 42


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
