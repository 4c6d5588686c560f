# tests/test_word_extractor.py

import pytest

from wordindex.application.word_extractor import extract_words, is_sentence_end, tokenize, word_bbox
from wordindex.domain.models import ProjectedFragment, Row, SentenceBuffer


def _frag(content: str, x: float = 10.0, y: float = 100.0, width: float = None, height: float = 12.0) -> ProjectedFragment:
    # 10 px per character unless told otherwise
    if width is None:
        width = 10.0 * len(content)
    return ProjectedFragment(content=content, x=x, y=y, width=width, height=height)


def _row(*fragments: ProjectedFragment) -> Row:
    return Row(anchor_y=fragments[0].y if fragments else 0.0, fragments=list(fragments))


# ── Tokenizing ───────────────────────────────────────────────────────────────

def test_tokenize_splits_whitespace_runs_and_drops_empties():
    assert tokenize("  Hello \t  world.\n ") == ["Hello", "world."]


def test_tokenize_keeps_punctuation_attached():
    assert tokenize("Wait, what?! (yes)") == ["Wait,", "what?!", "(yes)"]


def test_tokenize_blank_text():
    assert tokenize("   ") == []


@pytest.mark.parametrize("token, expected", [
    ("end.", True),
    ("really!", True),
    ("why?", True),
    ("e.g", False),
    ('quote."', False),
    ("comma,", False),
])
def test_is_sentence_end_checks_last_character(token, expected):
    assert is_sentence_end(token) is expected


# ── Bounding boxes ───────────────────────────────────────────────────────────

def test_word_bbox_uses_proportional_character_width():
    fragment = _frag("Hello world.", x=10.0, y=100.0, width=120.0, height=12.0)

    assert word_bbox(fragment, "Hello") == pytest.approx((10.0, 88.0, 60.0, 100.0))
    assert word_bbox(fragment, "world.") == pytest.approx((70.0, 88.0, 130.0, 100.0))


def test_repeated_token_maps_to_first_occurrence():
    fragment = _frag("the cat the", x=0.0)
    assert word_bbox(fragment, "the") == pytest.approx((0.0, 88.0, 30.0, 100.0))


def test_word_bbox_clamps_negative_dimensions():
    fragment = _frag("abc", x=5.0, y=50.0, width=-30.0, height=-4.0)
    x0, y0, x1, y1 = word_bbox(fragment, "abc")
    assert x0 <= x1
    assert y0 <= y1


# ── Row extraction ───────────────────────────────────────────────────────────

def test_index_in_row_is_contiguous_across_fragments():
    row = _row(_frag("The quick", x=0.0), _frag("brown fox", x=100.0), _frag("jumps", x=200.0))
    words = extract_words(row, page=1, row_number=3, sentence_buffer=SentenceBuffer())

    assert [w.text for w in words] == ["The", "quick", "brown", "fox", "jumps"]
    assert [w.index_in_row for w in words] == [1, 2, 3, 4, 5]
    assert all(w.page == 1 and w.row == 3 for w in words)


def test_every_bbox_is_well_formed():
    row = _row(_frag("one two three", x=0.0), _frag("four", x=200.0, width=0.0))
    for word in extract_words(row, 1, 1, SentenceBuffer()):
        x0, y0, x1, y1 = word.bbox
        assert x0 <= x1
        assert y0 <= y1


def test_sentence_resets_after_terminator():
    buffer = SentenceBuffer()
    first = extract_words(_row(_frag("Hello world.")), 1, 1, buffer)
    second = extract_words(_row(_frag("New start", y=120.0)), 1, 2, buffer)

    assert [w.text for w in first] == ["Hello", "world."]
    assert [w.sentence for w in first] == ["Hello", "Hello world."]
    assert [w.sentence for w in second] == ["New", "New start"]


def test_sentence_spans_row_breaks():
    buffer = SentenceBuffer()
    extract_words(_row(_frag("This sentence")), 1, 1, buffer)
    words = extract_words(_row(_frag("continues here.", y=120.0)), 1, 2, buffer)

    assert words[0].sentence == "This sentence continues"
    assert words[1].sentence == "This sentence continues here."
    assert len(buffer) == 0


def test_word_after_terminator_starts_fresh_sentence():
    row = _row(_frag("Stop! Go? Now. then"))
    words = extract_words(row, 1, 1, SentenceBuffer())

    for previous, current in zip(words, words[1:]):
        if is_sentence_end(previous.text):
            assert current.sentence == current.text


def test_fresh_buffers_give_identical_sentences():
    row = _row(_frag("A short one. And another"), _frag("that keeps going!", x=400.0))
    first = extract_words(row, 1, 1, SentenceBuffer())
    second = extract_words(row, 1, 1, SentenceBuffer())
    assert [w.sentence for w in first] == [w.sentence for w in second]


def test_empty_row_produces_no_words():
    assert extract_words(_row(_frag("   ")), 1, 1, SentenceBuffer()) == []


def test_sentence_buffer_resets_only_on_terminators():
    buffer = SentenceBuffer()
    assert buffer.push("One") == "One"
    assert buffer.push("two,") == "One two,"
    assert len(buffer) == 2
    assert buffer.push("done?") == "One two, done?"
    assert len(buffer) == 0
