"""Base class for tokenizers."""

from abc import ABC, abstractmethod
from typing import List


class Tokenizer(ABC):
    """
    Base class for word segmentation.

    The segmenter delegates the script-aware splitting to a tokenizer
    and keeps stop-word filtering and caching for itself, so swapping
    in a different tokenizer does not touch scoring or selection.

    Implementations:
    - DictionaryTokenizer: built-in phrase dictionaries (default, zero deps)
    """

    @property
    def name(self) -> str:
        """Short identifier, used in cache keys and stats."""
        return type(self).__name__

    @abstractmethod
    def tokenize(self, text: str) -> List[str]:
        """
        Split text into raw tokens.

        Args:
            text: Raw text (may contain punctuation)

        Returns:
            Ordered tokens; stop-words are NOT removed here
        """
        pass

    def tokenize_batch(self, texts: List[str]) -> List[List[str]]:
        """Tokenize several texts. Override for efficiency."""
        return [self.tokenize(t) for t in texts]
