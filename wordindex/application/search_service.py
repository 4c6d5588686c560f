# wordindex/application/search_service.py

import logging
import threading
from typing import Callable, List, Optional

from wordindex.domain.errors import IndexNotBuiltError
from wordindex.domain.interfaces import SearchIndexPort, WordStorePort
from wordindex.domain.models import (
    IndexStats,
    SearchResponse,
    SearchResult,
    SearchStatus,
    Word,
)


logger = logging.getLogger(__name__)

IndexBuilder = Callable[[List[Word]], SearchIndexPort]


def filter_results_for_page(results: List[SearchResult], page: int) -> List[SearchResult]:
    """Results an overlay renderer should draw on `page`."""
    return [r for r in results if r.word.page == page]


class WordSearchService:
    """
    Core use case: ranked lookup of indexed words.

    Lifecycle:
    - build_index() snapshots the store (or the given words) into a new
      index and swaps it in; queries running against the old index finish
      on the old index
    - search() before any build reports INDEX_NOT_BUILT instead of raising

    This service never decides when re-indexing is needed; that belongs to
    main.py / api.py (composition roots).
    """

    def __init__(self, word_store: WordStorePort, index_builder: IndexBuilder):
        self._word_store = word_store
        self._index_builder = index_builder
        self._index: Optional[SearchIndexPort] = None
        self._swap_lock = threading.Lock()

    def build_index(self, words: Optional[List[Word]] = None) -> SearchIndexPort:
        snapshot = self._word_store.all_words() if words is None else list(words)
        new_index = self._index_builder(snapshot)
        with self._swap_lock:
            self._index = new_index
        logger.info("[SearchService] Index built with %d words.", len(snapshot))
        return new_index

    def is_ready(self) -> bool:
        return self._index is not None

    def current_index(self) -> SearchIndexPort:
        index = self._index
        if index is None:
            raise IndexNotBuiltError()
        return index

    def search(
        self,
        query: str,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> SearchResponse:
        if not query or not query.strip():
            return SearchResponse(query=query or "", status=SearchStatus.EMPTY_QUERY)

        index = self._index
        if index is None:
            logger.warning("[SearchService] Search index not built yet")
            return SearchResponse(query=query, status=SearchStatus.INDEX_NOT_BUILT)

        results = index.query(query.strip())
        if page is not None:
            results = filter_results_for_page(results, page)
        if limit is not None:
            results = results[:limit]

        logger.debug("[SearchService] '%s' matched %d words", query, len(results))
        return SearchResponse(query=query, status=SearchStatus.OK, results=results)

    def words_for_page(self, page: int) -> List[Word]:
        index = self._index
        if index is not None:
            return index.words_for_page(page)
        return self._word_store.words_for_page(page)

    def stats(self) -> IndexStats:
        metadata = self._word_store.get_index_metadata()
        return IndexStats(
            total_words=self._word_store.count(),
            unique_words=len({w.lower() for w in self._word_store.list_distinct("text")}),
            pages=self._word_store.list_distinct("page"),
            fingerprint=metadata.get("sha256"),
        )
