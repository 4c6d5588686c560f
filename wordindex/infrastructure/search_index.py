# wordindex/infrastructure/search_index.py

import logging
import math
import re
from bisect import bisect_left
from typing import Callable, Dict, List, Mapping, Optional

import numpy as np
from rank_bm25 import BM25Okapi

from wordindex.domain.interfaces import SearchIndexPort
from wordindex.domain.models import SearchResult, Word


logger = logging.getLogger(__name__)

DEFAULT_FIELD_WEIGHTS: Dict[str, float] = {"word": 10.0, "sentence": 5.0}

# A vocabulary term that only starts with the query token scores at half weight
PREFIX_MATCH_FACTOR = 0.5

FIELD_EXTRACTORS: Dict[str, Callable[[Word], str]] = {
    "word": lambda w: w.text,
    "sentence": lambda w: w.sentence,
}

_SPLIT_RE = re.compile(r"[\s\-]+")
_EDGE_RE = re.compile(r"^\W+|\W+$")


def analyze(text: str) -> List[str]:
    """Lowercase, split on whitespace and hyphens, trim punctuation at the edges."""
    tokens = []
    for raw in _SPLIT_RE.split(text.lower()):
        token = _EDGE_RE.sub("", raw)
        if token:
            tokens.append(token)
    return tokens


class FieldBM25(BM25Okapi):
    """
    BM25 over one field. Uses lunr's idf, which stays positive even for
    terms present in most documents, so tiny corpora never score negative.
    """

    def __init__(self, corpus: List[List[str]], k1: float = 1.2, b: float = 0.75):
        super().__init__(corpus, k1=k1, b=b)
        self._doc_len_array = np.array(self.doc_len, dtype=float)

    def _calc_idf(self, nd):
        for word, freq in nd.items():
            self.idf[word] = math.log(1 + abs((self.corpus_size - freq + 0.5) / (freq + 0.5)))

    def term_scores(self, term: str, doc_ids: np.ndarray) -> np.ndarray:
        """BM25 contribution of a single term for the given documents."""
        tf = np.array([self.doc_freqs[i].get(term, 0) for i in doc_ids], dtype=float)
        doc_len = self._doc_len_array[doc_ids]
        norm = self.k1 * (1 - self.b + self.b * doc_len / self.avgdl)
        return self.idf.get(term, 0.0) * tf * (self.k1 + 1) / (tf + norm)


class _FieldIndex:

    def __init__(self, name: str, weight: float, corpus: List[List[str]]):
        self.name = name
        self.weight = weight
        postings: Dict[str, List[int]] = {}
        for doc_id, tokens in enumerate(corpus):
            for token in set(tokens):
                postings.setdefault(token, []).append(doc_id)
        self.postings = {term: np.array(ids, dtype=np.int64) for term, ids in postings.items()}
        self.vocabulary = sorted(self.postings)
        self.scorer = FieldBM25(corpus) if self.vocabulary else None

    def expand(self, token: str) -> Dict[str, float]:
        """Vocabulary terms matched by `token`: exact at 1.0, prefix at PREFIX_MATCH_FACTOR."""
        matches: Dict[str, float] = {}
        start = bisect_left(self.vocabulary, token)
        for term in self.vocabulary[start:]:
            if not term.startswith(token):
                break
            matches[term] = 1.0 if term == token else PREFIX_MATCH_FACTOR
        return matches


class SearchIndex(SearchIndexPort):
    """
    Immutable, field-weighted inverted index over one snapshot of words.

    Score = sum over fields of (field weight x BM25 of the matched terms).
    Ranking is a total order: score descending, then page, row and
    index_in_row ascending, so equal scores always come out in reading order.

    `page`, `row` and `index_in_row` ride along on each Word for retrieval;
    they are never scored.
    """

    def __init__(self, words: List[Word], fields: List[_FieldIndex]):
        self._words = words
        self._fields = fields

    @classmethod
    def build(
        cls,
        words: List[Word],
        field_weights: Optional[Mapping[str, float]] = None,
    ) -> "SearchIndex":
        weights = dict(DEFAULT_FIELD_WEIGHTS if field_weights is None else field_weights)
        unknown = set(weights) - set(FIELD_EXTRACTORS)
        if unknown:
            raise ValueError(f"Unknown search fields: {sorted(unknown)}")

        snapshot = list(words)
        fields = [
            _FieldIndex(name, float(weight), [analyze(FIELD_EXTRACTORS[name](w)) for w in snapshot])
            for name, weight in weights.items()
        ]
        logger.info(
            "[SearchIndex] Indexed %d words, fields: %s",
            len(snapshot), ", ".join(f"{f.name}^{f.weight:g}" for f in fields),
        )
        return cls(snapshot, fields)

    def __len__(self) -> int:
        return len(self._words)

    @property
    def field_weights(self) -> Dict[str, float]:
        return {f.name: f.weight for f in self._fields}

    def query(self, term: str, limit: Optional[int] = None) -> List[SearchResult]:
        query_tokens = analyze(term)
        if not query_tokens or not self._words:
            return []

        scores = np.zeros(len(self._words), dtype=float)
        matched = np.zeros(len(self._words), dtype=bool)

        for field in self._fields:
            if field.scorer is None:
                continue
            term_factors: Dict[str, float] = {}
            for token in query_tokens:
                for vocab_term, factor in field.expand(token).items():
                    term_factors[vocab_term] = max(factor, term_factors.get(vocab_term, 0.0))

            for vocab_term in sorted(term_factors):
                doc_ids = field.postings[vocab_term]
                scores[doc_ids] += (
                    field.weight * term_factors[vocab_term] * field.scorer.term_scores(vocab_term, doc_ids)
                )
                matched[doc_ids] = True

        results = [
            SearchResult(word=self._words[idx], score=float(scores[idx]))
            for idx in np.flatnonzero(matched)
        ]
        results.sort(key=SearchResult.sort_key)
        if limit is not None:
            results = results[:limit]
        return results

    def words_for_page(self, page: int) -> List[Word]:
        return [w for w in self._words if w.page == page]
