# wordindex/infrastructure/word_store.py

import threading
from typing import Any, List

from wordindex.domain.interfaces import WORD_FIELDS, WordStorePort
from wordindex.domain.models import Word


class InMemoryWordStore(WordStorePort):
    """
    Word store held in process memory.
    Replacement builds the new list first and swaps the reference, so
    readers see either the old set or the new one, never a mix.
    """

    def __init__(self):
        self._words: List[Word] = []
        self._metadata: dict[str, str] = {}
        self._lock = threading.Lock()

    def replace_all(self, words: List[Word]) -> None:
        snapshot = list(words)
        with self._lock:
            self._words = snapshot

    def query_by_word_prefix(self, prefix: str) -> List[Word]:
        needle = prefix.lower()
        return [w for w in self._words if w.text.lower().startswith(needle)]

    def count(self) -> int:
        return len(self._words)

    def list_distinct(self, field: str) -> List[Any]:
        if field not in WORD_FIELDS:
            raise ValueError(f"Unknown word field '{field}'. Expected one of {WORD_FIELDS}.")
        return sorted({getattr(w, field) for w in self._words})

    def all_words(self) -> List[Word]:
        return list(self._words)

    def words_for_page(self, page: int) -> List[Word]:
        return [w for w in self._words if w.page == page]

    def save_index_metadata(self, metadata: dict[str, str]) -> None:
        """In-memory store does not persist metadata between sessions."""
        with self._lock:
            self._metadata = dict(metadata)

    def get_index_metadata(self) -> dict[str, str]:
        return dict(self._metadata)
