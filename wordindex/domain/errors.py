# wordindex/domain/errors.py

from typing import Optional


class WordIndexError(Exception):
    """Base class for every error raised by the word index."""


class FragmentDecodeError(WordIndexError):
    """A single page produced unusable fragment data. The page is skipped."""

    def __init__(self, page: int, reason: str):
        self.page = page
        self.reason = reason
        super().__init__(f"Page {page}: {reason}")


class DocumentDecodeError(WordIndexError, RuntimeError):
    """The document could not be read at all, or every page failed."""

    def __init__(self, document: str, reason: str, run_id: Optional[str] = None):
        self.document = document
        self.run_id = run_id
        super().__init__(f"Failed to decode '{document}': {reason}")


class ToleranceConfigError(WordIndexError, ValueError):
    """Row tolerance is negative or not a finite number."""


class StoreWriteError(WordIndexError, RuntimeError):
    """
    Replacing the stored word set failed.
    The store keeps its previous contents.
    """

    def __init__(self, message: str, run_id: Optional[str] = None, document: Optional[str] = None):
        self.run_id = run_id
        self.document = document
        context = []
        if run_id:
            context.append(f"run={run_id}")
        if document:
            context.append(f"document='{document}'")
        suffix = f" ({', '.join(context)})" if context else ""
        super().__init__(f"{message}{suffix}")


class IndexNotBuiltError(WordIndexError, RuntimeError):
    def __init__(self, message: str = "Index not built. Call build_index() first."):
        super().__init__(message)
