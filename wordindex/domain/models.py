# wordindex/domain/models.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


SENTENCE_TERMINATORS = (".", "!", "?")

BBox = Tuple[float, float, float, float]


def is_sentence_end(token: str) -> bool:
    return token.endswith(SENTENCE_TERMINATORS)


@dataclass(frozen=True)
class TextFragment:
    """
    One positioned text run as supplied by the document decoder.
    Coordinates are in native document space (PDF user space, Y grows upward).
    """
    content: str
    anchor_x: float
    anchor_y: float
    width: float
    height: float


@dataclass(frozen=True)
class PageTransform:
    """Page-to-viewport transform: uniform scale plus Y-axis orientation."""
    scale: float = 1.5
    page_height: float = 0.0
    flip_y: bool = True
    offset_x: float = 0.0
    offset_y: float = 0.0


@dataclass(frozen=True)
class ProjectedFragment:
    """A fragment in top-left-origin viewport space. `y` is the baseline."""
    content: str
    x: float
    y: float
    width: float
    height: float


@dataclass
class PageGeometry:
    page_number: int
    fragments: List[TextFragment]
    transform: PageTransform = field(default_factory=PageTransform)


@dataclass
class Row:
    """
    Fragments judged to lie on one text line.
    `anchor_y` is the Y of the first fragment assigned, never a centroid.
    """
    anchor_y: float
    fragments: List[ProjectedFragment] = field(default_factory=list)
    over_merged: bool = False

    @property
    def text(self) -> str:
        return " ".join(f.content for f in self.fragments)


@dataclass(frozen=True)
class Word:
    text: str
    page: int
    row: int
    index_in_row: int
    bbox: BBox
    sentence: str

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "page": self.page,
            "row": self.row,
            "index_in_row": self.index_in_row,
            "bbox": list(self.bbox),
            "sentence": self.sentence,
        }


class SentenceBuffer:
    """
    Running accumulator of words since the last sentence terminator.
    Lives for exactly one indexing run.
    """

    def __init__(self):
        self._tokens: List[str] = []

    def push(self, token: str) -> str:
        """Append `token` and return the sentence so far, including it."""
        self._tokens.append(token)
        sentence = " ".join(self._tokens)
        if is_sentence_end(token):
            self._tokens = []
        return sentence

    def __len__(self) -> int:
        return len(self._tokens)


@dataclass(frozen=True)
class SearchResult:
    """A word matched by a query. Derived, never stored."""
    word: Word
    score: float

    def sort_key(self) -> tuple:
        return (-self.score, self.word.page, self.word.row, self.word.index_in_row)

    def to_dict(self) -> dict:
        payload = self.word.to_dict()
        payload["score"] = round(float(self.score), 4)
        return payload

    def __repr__(self) -> str:
        return (
            f"SearchResult(score={self.score:.4f}, "
            f"word='{self.word.text}', "
            f"page={self.word.page}, row={self.word.row}, "
            f"index={self.word.index_in_row})"
        )


class SearchStatus(str, Enum):
    OK = "ok"
    EMPTY_QUERY = "empty_query"
    INDEX_NOT_BUILT = "index_not_built"


@dataclass
class SearchResponse:
    query: str
    status: SearchStatus
    results: List[SearchResult] = field(default_factory=list)


@dataclass(frozen=True)
class OverMergedRow:
    page: int
    row: int
    fragment_count: int


@dataclass
class IndexingReport:
    run_id: str
    document: str
    page_count: int
    words: List[Word] = field(default_factory=list, repr=False)
    failed_pages: Dict[int, str] = field(default_factory=dict)
    over_merged_rows: List[OverMergedRow] = field(default_factory=list)
    committed: bool = False
    cancelled: bool = False

    @property
    def word_count(self) -> int:
        return len(self.words)


@dataclass
class IndexStats:
    total_words: int
    unique_words: int
    pages: List[int]
    fingerprint: Optional[str] = None
