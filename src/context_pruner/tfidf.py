"""
TF-IDF document statistics over a small message corpus.

Raw term counts and document frequencies are the only stored state.
IDF is read from the live DF counts on every query, so vectors always
reflect the current corpus, including after add_document/remove_document.

    TF(t, d)  = log(1 + count(t, d))
    IDF(t)    = log(N / (DF(t) + 1)) + 1
    w(t, d)   = TF × IDF
"""

import math
import time
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .errors import DocumentNotFoundError
from .segmenter import TextSegmenter
from .types import (
    CorpusResult,
    CorpusStats,
    Document,
    DocumentVector,
    SimilarityResult,
)

DocumentLike = Union[Document, Tuple[str, str]]

KEYWORDS_PER_DOCUMENT = 10


class TfidfCalculator:
    """
    Sparse TF-IDF engine with incremental updates.

    Usage:
        engine = TfidfCalculator()
        engine.build_corpus([("m1", "我喜欢音乐"), ("m2", "音乐让我开心")])
        engine.cosine_similarity("m1", "m2")
        engine.add_document(("m3", "今天天气很好"))
        engine.find_most_similar("m1", k=2)
    """

    def __init__(self, segmenter: Optional[TextSegmenter] = None):
        """
        Args:
            segmenter: Shared segmenter (its cache is reused across calls)
        """
        self.segmenter = segmenter or TextSegmenter()
        self._term_counts: Dict[str, Dict[str, int]] = {}  # doc_id -> term -> count
        self._doc_lengths: Dict[str, int] = {}
        self._document_frequency: Dict[str, int] = {}
        self._total_terms = 0

    # ------------------------------------------------------------------
    # Corpus construction
    # ------------------------------------------------------------------

    def build_corpus(self, documents: Iterable[DocumentLike]) -> CorpusResult:
        """
        Reset state and compute vectors for a new set of documents.

        Args:
            documents: Document records or (id, content) pairs

        Returns:
            CorpusResult with one vector per distinct id, in first-seen order
        """
        start = time.perf_counter()
        self.reset()

        ids = []
        for doc in documents:
            doc = _as_document(doc)
            if doc.id in self._term_counts:
                # Later duplicates replace earlier ones, as in add_document
                self.remove_document(doc.id)
            else:
                ids.append(doc.id)
            self._register(doc)

        vectors = [self.get_vector(doc_id) for doc_id in ids]
        elapsed = (time.perf_counter() - start) * 1000

        return CorpusResult(
            document_vectors=vectors,
            vocabulary=list(self._document_frequency.keys()),
            stats=self.corpus_stats(),
            processing_time=elapsed,
        )

    def add_document(self, document: DocumentLike) -> DocumentVector:
        """
        Register one document without rebuilding the corpus.

        An id that is already registered is replaced.
        """
        doc = _as_document(document)
        if doc.id in self._term_counts:
            self.remove_document(doc.id)
        self._register(doc)
        return self.get_vector(doc.id)

    def remove_document(self, document_id: str) -> bool:
        """
        Unregister a document.

        Terms whose last occurrence was in this document leave the
        vocabulary. Returns False if the id is unknown.
        """
        counts = self._term_counts.pop(document_id, None)
        if counts is None:
            return False

        self._total_terms -= self._doc_lengths.pop(document_id, 0)
        for term in counts:
            df = self._document_frequency.get(term, 0)
            if df > 1:
                self._document_frequency[term] = df - 1
            else:
                self._document_frequency.pop(term, None)
        return True

    def reset(self) -> None:
        """Drop all registered documents."""
        self._term_counts.clear()
        self._doc_lengths.clear()
        self._document_frequency.clear()
        self._total_terms = 0

    def _register(self, doc: Document) -> None:
        tokens = self.segmenter.segment(doc.content or "")

        counts: Dict[str, int] = {}
        for token in tokens:
            counts[token] = counts.get(token, 0) + 1

        for term in counts:
            self._document_frequency[term] = self._document_frequency.get(term, 0) + 1

        self._term_counts[doc.id] = counts
        self._doc_lengths[doc.id] = len(tokens)
        self._total_terms += len(tokens)

    # ------------------------------------------------------------------
    # Weights
    # ------------------------------------------------------------------

    @property
    def vocabulary(self) -> List[str]:
        return list(self._document_frequency.keys())

    @property
    def document_ids(self) -> List[str]:
        return list(self._term_counts.keys())

    def document_frequency(self, term: str) -> int:
        return self._document_frequency.get(term, 0)

    def idf(self, term: str) -> float:
        """Smoothed IDF from the current DF counts (unknown terms use DF=1)."""
        total = len(self._term_counts)
        if total == 0:
            return 0.0
        df = self._document_frequency.get(term) or 1
        return math.log(total / (df + 1)) + 1

    @staticmethod
    def tf(count: int) -> float:
        return math.log(1 + count)

    def get_vector(self, document_id: str) -> DocumentVector:
        """Compute the TF-IDF vector of a registered document."""
        counts = self._term_counts.get(document_id)
        if counts is None:
            raise DocumentNotFoundError(document_id)

        vector: Dict[str, float] = {}
        for term, count in counts.items():
            weight = self.tf(count) * self.idf(term)
            if weight > 0:
                vector[term] = weight

        magnitude = math.sqrt(sum(w * w for w in vector.values()))
        ranked = sorted(vector.items(), key=lambda item: item[1], reverse=True)

        return DocumentVector(
            document_id=document_id,
            vector=vector,
            magnitude=magnitude,
            keywords=[term for term, _ in ranked[:KEYWORDS_PER_DOCUMENT]],
        )

    # ------------------------------------------------------------------
    # Similarity
    # ------------------------------------------------------------------

    def cosine_similarity(self, id1: str, id2: str) -> float:
        """Cosine of the two document vectors; 0.0 if either is zero."""
        v1, v2 = self._pair(id1, id2)
        return _cosine(v1, v2)

    def jaccard_similarity(self, id1: str, id2: str) -> float:
        """Jaccard index of the two term sets, ignoring weights."""
        v1, v2 = self._pair(id1, id2)
        terms1, terms2 = set(v1.vector), set(v2.vector)
        union = terms1 | terms2
        if not union:
            return 0.0
        return len(terms1 & terms2) / len(union)

    def _pair(self, id1: str, id2: str) -> Tuple[DocumentVector, DocumentVector]:
        missing = [i for i in (id1, id2) if i not in self._term_counts]
        if missing:
            raise DocumentNotFoundError(*missing)
        return self.get_vector(id1), self.get_vector(id2)

    def _similarity(self, method: str, v1: DocumentVector, v2: DocumentVector) -> float:
        if method == "cosine":
            return _cosine(v1, v2)
        if method == "jaccard":
            terms1, terms2 = set(v1.vector), set(v2.vector)
            union = terms1 | terms2
            return len(terms1 & terms2) / len(union) if union else 0.0
        raise ValueError(f"Unknown similarity method: {method}")

    def find_most_similar(
        self,
        document_id: str,
        k: int = 5,
        method: str = "cosine",
    ) -> List[SimilarityResult]:
        """
        Rank the other documents by similarity to one document.

        Args:
            document_id: Reference document
            k: Number of results
            method: "cosine" or "jaccard"

        Returns:
            Up to k SimilarityResult, highest first
        """
        target = self.get_vector(document_id)
        results = []
        for other_id in self._term_counts:
            if other_id == document_id:
                continue
            other = self.get_vector(other_id)
            results.append(SimilarityResult(
                document_id1=document_id,
                document_id2=other_id,
                similarity=self._similarity(method, target, other),
                common_terms=[t for t in target.vector if t in other.vector],
                method=method,
            ))

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:max(0, k)]

    def calculate_all_similarities(self, method: str = "cosine") -> List[SimilarityResult]:
        """Similarity for every document pair, highest first."""
        ids = self.document_ids
        vectors = {doc_id: self.get_vector(doc_id) for doc_id in ids}
        results = []
        for i, id1 in enumerate(ids):
            for id2 in ids[i + 1:]:
                v1, v2 = vectors[id1], vectors[id2]
                results.append(SimilarityResult(
                    document_id1=id1,
                    document_id2=id2,
                    similarity=self._similarity(method, v1, v2),
                    common_terms=[t for t in v1.vector if t in v2.vector],
                    method=method,
                ))
        results.sort(key=lambda r: r.similarity, reverse=True)
        return results

    # ------------------------------------------------------------------
    # Keywords & stats
    # ------------------------------------------------------------------

    def get_document_keywords(self, document_id: str, k: int = 10) -> List[Dict[str, float]]:
        """Top-k terms of one document by TF-IDF weight."""
        if document_id not in self._term_counts:
            return []
        vector = self.get_vector(document_id).vector
        ranked = sorted(vector.items(), key=lambda item: item[1], reverse=True)
        return [{"term": term, "tfidf": weight} for term, weight in ranked[:k]]

    def get_global_keywords(self, k: int = 20) -> List[Dict[str, float]]:
        """Most distinctive terms in the corpus (highest IDF first)."""
        results = [
            {"term": term, "df": df, "idf": self.idf(term)}
            for term, df in self._document_frequency.items()
        ]
        results.sort(key=lambda r: r["idf"], reverse=True)
        return results[:k]

    def corpus_stats(self) -> CorpusStats:
        return CorpusStats(
            total_documents=len(self._term_counts),
            total_terms=self._total_terms,
            vocabulary_size=len(self._document_frequency),
        )

    def get_stats(self) -> Dict[str, float]:
        total_docs = len(self._term_counts)
        return {
            "total_documents": total_docs,
            "vocabulary_size": len(self._document_frequency),
            "total_terms": self._total_terms,
            "average_document_length": self._total_terms / total_docs if total_docs else 0,
            "cache_size": len(self.segmenter.cache),
        }

    def clear_cache(self) -> None:
        self.segmenter.clear_cache()


def _as_document(doc: DocumentLike) -> Document:
    if isinstance(doc, Document):
        return doc
    doc_id, content = doc
    return Document(id=str(doc_id), content=content or "")


def _cosine(v1: DocumentVector, v2: DocumentVector) -> float:
    if v1.magnitude == 0 or v2.magnitude == 0:
        return 0.0
    # Iterate the smaller vector
    small, large = (v1.vector, v2.vector) if len(v1.vector) <= len(v2.vector) else (v2.vector, v1.vector)
    dot = sum(w * large.get(term, 0.0) for term, w in small.items())
    return dot / (v1.magnitude * v2.magnitude)
