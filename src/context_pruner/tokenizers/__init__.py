"""Tokenizers for context-pruner."""

from .base import Tokenizer
from .dictionary import DictionaryTokenizer, is_chinese_char

__all__ = ["Tokenizer", "DictionaryTokenizer", "is_chinese_char"]
