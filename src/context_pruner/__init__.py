"""
context-pruner: Token-budgeted context selection for chat histories

Decides which prior turns survive when a conversation outgrows the
model's token budget:
- Chinese-aware segmentation and TF-IDF statistics
- Topic clustering and relevance scoring
- Eight-factor importance scoring with a retention floor

Usage:
    from context_pruner import ContextPruner, PruningConfig

    pruner = ContextPruner(PruningConfig(max_tokens=2000))
    result = await pruner.prune_context(history, character=profile)
    print(result.pruned_messages)
"""

from .config import PruningConfig, TopicConfig
from .errors import ConfigError, DocumentNotFoundError, PrunerError, PruningTimeoutError
from .logger import PruningLogger
from .pruner import ContextPruner
from .segmenter import TextSegmenter
from .session import PrunerSession, SessionRegistry
from .tfidf import TfidfCalculator
from .tokenizers import DictionaryTokenizer, Tokenizer
from .topic import TopicRelevanceAnalyzer
from .types import (
    CharacterProfile,
    Document,
    DocumentVector,
    Message,
    MessageImportance,
    PruningMetadata,
    PruningResult,
    RelevanceScore,
    TopicInfo,
    TopicTransition,
)

__version__ = "0.1.0"
__all__ = [
    "ContextPruner",
    "PruningConfig",
    "TopicConfig",
    "PruningLogger",
    "TextSegmenter",
    "TfidfCalculator",
    "TopicRelevanceAnalyzer",
    "Tokenizer",
    "DictionaryTokenizer",
    "PrunerSession",
    "SessionRegistry",
    "Message",
    "CharacterProfile",
    "Document",
    "DocumentVector",
    "MessageImportance",
    "PruningMetadata",
    "PruningResult",
    "RelevanceScore",
    "TopicInfo",
    "TopicTransition",
    "PrunerError",
    "DocumentNotFoundError",
    "PruningTimeoutError",
    "ConfigError",
]
