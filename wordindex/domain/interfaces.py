# wordindex/domain/interfaces.py

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from .models import PageGeometry, SearchResult, Word


WORD_FIELDS = ("text", "page", "row", "index_in_row", "sentence")


class DocumentDecoderPort(ABC):
    """
    Port for anything that can hand out page geometry.
    Failures are per page: `page_geometry` raises FragmentDecodeError
    and the remaining pages stay readable.
    """

    @abstractmethod
    def page_count(self) -> int: ...

    @abstractmethod
    def page_geometry(self, page_number: int) -> PageGeometry: ...


class WordStorePort(ABC):

    @abstractmethod
    def replace_all(self, words: List[Word]) -> None:
        """
        Atomically swap the stored word set for `words`.
        On failure the previous set must survive untouched.
        """
        ...

    @abstractmethod
    def query_by_word_prefix(self, prefix: str) -> List[Word]:
        """Case-insensitive prefix match on word text, in document order."""
        ...

    @abstractmethod
    def count(self) -> int: ...

    @abstractmethod
    def list_distinct(self, field: str) -> List[Any]: ...

    @abstractmethod
    def all_words(self) -> List[Word]: ...

    @abstractmethod
    def words_for_page(self, page: int) -> List[Word]: ...

    @abstractmethod
    def save_index_metadata(self, metadata: dict[str, str]) -> None: ...

    @abstractmethod
    def get_index_metadata(self) -> dict[str, str]:
        """
        Return whatever was saved with the last successful run
        (document fingerprint, run id). Empty dict if nothing was saved.
        """
        ...


class SearchIndexPort(ABC):
    """A built, read-only search index. Safe for concurrent queries."""

    @abstractmethod
    def query(self, term: str, limit: Optional[int] = None) -> List[SearchResult]: ...

    @abstractmethod
    def words_for_page(self, page: int) -> List[Word]: ...

    @abstractmethod
    def __len__(self) -> int: ...
