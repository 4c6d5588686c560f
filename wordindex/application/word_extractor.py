# wordindex/application/word_extractor.py

import logging
from typing import List, Tuple

from wordindex.domain.models import (
    BBox,
    ProjectedFragment,
    Row,
    SentenceBuffer,
    Word,
    is_sentence_end,
)


logger = logging.getLogger(__name__)


def tokenize(text: str) -> List[str]:
    """Split on whitespace runs. Punctuation stays attached to its word."""
    return text.split()


def word_bbox(fragment: ProjectedFragment, token: str) -> BBox:
    """
    Approximate a word's box from its fragment's box, assuming every
    character in the fragment has the same width.

    A token repeated inside one fragment always maps to its first occurrence.
    """
    content = fragment.content
    offset = max(content.find(token), 0)
    width = max(fragment.width, 0.0)
    height = max(fragment.height, 0.0)

    char_width = width / len(content) if content else 0.0
    x0 = fragment.x + offset * char_width
    x1 = x0 + len(token) * char_width
    y0 = fragment.y - height
    y1 = fragment.y
    return (x0, y0, x1, y1)


def extract_words(
    row: Row,
    page: int,
    row_number: int,
    sentence_buffer: SentenceBuffer,
) -> List[Word]:
    # First pass: collect every token in the row so numbering spans fragments
    row_tokens: List[Tuple[str, BBox]] = []
    for fragment in row.fragments:
        for token in tokenize(fragment.content):
            row_tokens.append((token, word_bbox(fragment, token)))

    # Second pass: sequential numbering + sentence tracking
    words = []
    for index, (token, bbox) in enumerate(row_tokens, start=1):
        words.append(Word(
            text=token,
            page=page,
            row=row_number,
            index_in_row=index,
            bbox=bbox,
            sentence=sentence_buffer.push(token),
        ))

    logger.debug(
        "[WordExtractor] Page %d row %d: %d words [%s]",
        page, row_number, len(words), ", ".join(w.text for w in words),
    )
    return words
