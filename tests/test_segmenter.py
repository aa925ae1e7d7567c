"""Tests for tokenizers and the text segmenter."""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from context_pruner import TextSegmenter, DictionaryTokenizer, Tokenizer
from context_pruner.tokenizers import is_chinese_char
from context_pruner.tokenizers.dictionary import clean_text, split_by_script


class BrokenTokenizer(Tokenizer):
    def tokenize(self, text):
        raise RuntimeError("tokenizer exploded")


class TestDictionaryTokenizer:
    """Test script splitting and phrase matching."""

    def test_is_chinese_char(self):
        assert is_chinese_char("中")
        assert is_chinese_char("㐀")
        assert not is_chinese_char("a")
        assert not is_chinese_char("，")

    def test_clean_text_strips_punctuation(self):
        assert clean_text("你好，世界！Hello, world.") == "你好 世界 Hello world"

    def test_split_by_script(self):
        runs = split_by_script("我喜欢Python编程")
        assert runs == [(True, "我喜欢"), (False, "Python"), (True, "编程")]

    def test_three_char_phrase_wins(self):
        tok = DictionaryTokenizer()
        assert tok.tokenize("我不知道怎么办") == ["我", "不知道", "怎么办"]

    def test_unknown_characters_split_singly(self):
        tok = DictionaryTokenizer()
        assert tok.tokenize("喜欢") == ["喜", "欢"]

    def test_extra_phrases(self):
        tok = DictionaryTokenizer(extra_phrases=["喜欢", "编程", "toolong"])
        assert tok.tokenize("喜欢编程") == ["喜欢", "编程"]
        assert "toolong" not in tok.two_char_words | tok.three_char_words

    def test_name(self):
        assert DictionaryTokenizer().name == "DictionaryTokenizer"

    def test_tokenize_batch(self):
        tok = DictionaryTokenizer()
        assert tok.tokenize_batch(["a b", "c"]) == [["a", "b"], ["c"]]


class TestTextSegmenter:
    """Test segmentation, keywords and similarity."""

    @pytest.fixture
    def seg(self):
        return TextSegmenter()

    def test_empty_text(self, seg):
        assert seg.segment("") == []
        assert seg.segment("   \n") == []

    def test_latin_lowercased_and_stop_words_removed(self, seg):
        assert seg.segment("The Hello World, hello!") == ["hello", "world", "hello"]

    def test_chinese_stop_words_removed(self, seg):
        assert seg.segment("我不知道怎么办") == ["不知道", "怎么办"]

    def test_mixed_script(self, seg):
        assert seg.segment("我喜欢Python编程") == ["喜", "欢", "python", "编", "程"]

    def test_custom_tokenizer(self):
        seg = TextSegmenter(tokenizer=DictionaryTokenizer(extra_phrases=["喜欢", "编程"]))
        assert seg.segment("我喜欢编程") == ["喜欢", "编程"]

    def test_failing_tokenizer_returns_whole_text(self, caplog):
        seg = TextSegmenter(tokenizer=BrokenTokenizer())
        assert seg.segment("some text") == ["some text"]
        assert "Segmentation failed" in caplog.text

    def test_deterministic(self, seg):
        text = "今天天气很好，我们去公园散步吧"
        assert seg.segment(text) == TextSegmenter().segment(text)

    def test_cache_hits(self, seg):
        seg.segment("cached text")
        seg.segment("cached text")
        assert seg.cache_hits == 1

    def test_cache_returns_copy(self, seg):
        first = seg.segment("alpha beta")
        first.append("mutated")
        assert seg.segment("alpha beta") == ["alpha", "beta"]

    def test_cache_evicts_oldest_half(self):
        seg = TextSegmenter(max_cache_size=4)
        for text in ["a1", "b1", "c1", "d1"]:
            seg.segment(text)
        assert len(seg.cache) == 4

        seg.segment("e1")
        assert len(seg.cache) == 3
        assert "a1" not in seg.cache
        assert "e1" in seg.cache

    def test_cache_shrinks_on_configure(self):
        seg = TextSegmenter(max_cache_size=4)
        for text in ["a1", "b1", "c1", "d1"]:
            seg.segment(text)

        seg.cache.configure(max_size=2, enabled=True)
        assert len(seg.cache) == 2
        assert "c1" in seg.cache
        assert "d1" in seg.cache
        assert "a1" not in seg.cache

    def test_caching_disabled(self):
        seg = TextSegmenter(enable_caching=False)
        seg.segment("alpha")
        seg.segment("alpha")
        assert seg.cache_hits == 0
        assert len(seg.cache) == 0

    def test_clear_cache(self, seg):
        seg.segment("alpha")
        seg.clear_cache()
        assert seg.cache_stats()["size"] == 0

    def test_extract_keywords_scores(self, seg):
        keywords = seg.extract_keywords("apple apple apple banana cherry")
        # banana and cherry tie on score; first-seen order is kept
        assert [k.term for k in keywords] == ["banana", "cherry", "apple"]
        assert keywords[2].frequency == 3

    def test_extract_keywords_skips_short_terms(self, seg):
        terms = [k.term for k in seg.extract_keywords("x yy zz")]
        assert "x" not in terms
        assert set(terms) == {"yy", "zz"}

    def test_extract_keywords_top_k(self, seg):
        assert len(seg.extract_keywords("aa bb cc dd ee", k=2)) == 2

    def test_extract_keywords_empty(self, seg):
        assert seg.extract_keywords("") == []

    def test_similarity(self, seg):
        assert seg.similarity("hello world", "world hello") == 1.0
        assert seg.similarity("hello", "world") == 0.0
        assert seg.similarity("", "") == 0.0
        assert seg.similarity("alpha beta", "beta gamma") == pytest.approx(1 / 3)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
