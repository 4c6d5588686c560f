# tests/test_indexing_service.py

import threading
from unittest.mock import MagicMock

import pytest

from wordindex.application.indexing_service import IndexingOptions, IndexingService
from wordindex.domain.errors import DocumentDecodeError, StoreWriteError, ToleranceConfigError
from wordindex.domain.models import PageGeometry, PageTransform, TextFragment, Word
from wordindex.infrastructure.memory_decoder import InMemoryDocumentDecoder
from wordindex.infrastructure.word_store import InMemoryWordStore


PAGE_HEIGHT = 800.0


def _fragment(content: str, x: float, native_y: float, height: float = 10.0) -> dict:
    return {
        "content": content,
        "anchor_x": x,
        "anchor_y": native_y,
        "width": 10.0 * len(content),
        "height": height,
    }


def _page(*fragments: dict) -> dict:
    return {
        "fragments": list(fragments),
        "transform": {"scale": 1.0, "page_height": PAGE_HEIGHT},
    }


def _old_word() -> Word:
    return Word("stale", 9, 1, 1, (0.0, 0.0, 1.0, 1.0), "stale")


class _CancellingDecoder(InMemoryDocumentDecoder):
    """Sets the cancel event once the given page has been served."""

    def __init__(self, pages, event: threading.Event, cancel_after: int):
        super().__init__(pages)
        self._event = event
        self._cancel_after = cancel_after

    def page_geometry(self, page_number: int) -> PageGeometry:
        geometry = super().page_geometry(page_number)
        if page_number == self._cancel_after:
            self._event.set()
        return geometry


# ── Full runs ────────────────────────────────────────────────────────────────

def test_index_document_extracts_words_in_reading_order():
    decoder = InMemoryDocumentDecoder([
        _page(_fragment("world.", 70, 700), _fragment("Hello", 10, 700), _fragment("Next line", 10, 680)),
    ])
    store = InMemoryWordStore()

    report = IndexingService(store).index_document(decoder, document="doc.pdf")

    assert report.committed is True
    assert report.cancelled is False
    assert report.page_count == 1
    assert [(w.text, w.row, w.index_in_row) for w in report.words] == [
        ("Hello", 1, 1), ("world.", 1, 2), ("Next", 2, 1), ("line", 2, 2),
    ]
    assert store.all_words() == report.words


def test_projected_boxes_use_top_left_viewport():
    decoder = InMemoryDocumentDecoder([_page(_fragment("Hi", 10, 700, height=12.0))])
    report = IndexingService(InMemoryWordStore()).index_document(decoder)

    # native baseline 700 on an 800-high page -> viewport y 100
    assert report.words[0].bbox == pytest.approx((10.0, 88.0, 30.0, 100.0))


def test_sentence_carries_across_pages():
    decoder = InMemoryDocumentDecoder([
        _page(_fragment("This goes", 10, 700)),
        _page(_fragment("on here.", 10, 700)),
    ])
    report = IndexingService(InMemoryWordStore()).index_document(decoder)

    page_two = [w for w in report.words if w.page == 2]
    assert page_two[0].sentence == "This goes on"
    assert page_two[1].sentence == "This goes on here."


def test_each_run_starts_with_a_fresh_sentence():
    decoder = InMemoryDocumentDecoder([_page(_fragment("no terminator", 10, 700))])
    service = IndexingService(InMemoryWordStore())

    first = service.index_document(decoder)
    second = service.index_document(decoder)

    assert [w.sentence for w in first.words] == [w.sentence for w in second.words]
    assert first.run_id != second.run_id


def test_page_geometry_objects_are_accepted():
    geometry = PageGeometry(
        page_number=1,
        fragments=[TextFragment("Plain words", 0.0, 50.0, 110.0, 10.0)],
        transform=PageTransform(scale=2.0, page_height=100.0),
    )
    report = IndexingService(InMemoryWordStore()).index_document(InMemoryDocumentDecoder([geometry]))
    assert [w.text for w in report.words] == ["Plain", "words"]


def test_zero_pages_commit_an_empty_word_set():
    store = InMemoryWordStore()
    store.replace_all([_old_word()])

    report = IndexingService(store).index_document(InMemoryDocumentDecoder([]))

    assert report.committed is True
    assert report.words == []
    assert store.count() == 0


# ── Failing pages ────────────────────────────────────────────────────────────

def test_malformed_page_is_skipped_and_reported():
    decoder = InMemoryDocumentDecoder([
        _page(_fragment("Good start", 10, 700)),
        {"fragments": [{"content": "missing geometry"}]},
        _page(_fragment("finish.", 10, 700)),
    ])
    report = IndexingService(InMemoryWordStore()).index_document(decoder)

    assert list(report.failed_pages) == [2]
    assert "malformed" in report.failed_pages[2]
    assert sorted({w.page for w in report.words}) == [1, 3]
    # the failed page contributed nothing to the running sentence
    assert report.words[-1].sentence == "Good start finish."


def test_non_finite_geometry_fails_only_its_page():
    decoder = InMemoryDocumentDecoder([
        _page(_fragment("ok", 10, 700)),
        _page({"content": "bad", "anchor_x": "nan", "anchor_y": 10, "width": 1, "height": 1}),
    ])
    report = IndexingService(InMemoryWordStore()).index_document(decoder)

    assert 2 in report.failed_pages
    assert report.committed is True


def test_all_pages_failing_raises_and_leaves_store_untouched():
    store = InMemoryWordStore()
    store.replace_all([_old_word()])
    decoder = InMemoryDocumentDecoder([{"fragments": [{}]}, {"fragments": [{}]}])

    with pytest.raises(DocumentDecodeError, match="all 2 pages failed") as excinfo:
        IndexingService(store).index_document(decoder, document="broken.pdf")

    assert excinfo.value.run_id is not None
    assert store.all_words() == [_old_word()]


# ── Cancellation ─────────────────────────────────────────────────────────────

def test_cancel_before_start_commits_nothing():
    store = MagicMock()
    event = threading.Event()
    event.set()

    report = IndexingService(store).index_document(
        InMemoryDocumentDecoder([_page(_fragment("a", 0, 700))]), cancel_event=event,
    )

    assert report.cancelled is True
    assert report.committed is False
    store.replace_all.assert_not_called()


def test_cancel_between_pages_keeps_previous_words():
    store = InMemoryWordStore()
    store.replace_all([_old_word()])
    event = threading.Event()
    decoder = _CancellingDecoder(
        [_page(_fragment("one", 0, 700)), _page(_fragment("two", 0, 700))], event, cancel_after=1,
    )

    report = IndexingService(store).index_document(decoder, cancel_event=event)

    assert report.cancelled is True
    assert [w.text for w in report.words] == ["one"]
    assert store.all_words() == [_old_word()]


# ── Store failures ───────────────────────────────────────────────────────────

def test_store_write_error_carries_run_context():
    store = MagicMock()
    store.replace_all.side_effect = StoreWriteError("disk full")

    with pytest.raises(StoreWriteError, match="disk full") as excinfo:
        IndexingService(store).index_document(
            InMemoryDocumentDecoder([_page(_fragment("a", 0, 700))]), document="doc.pdf",
        )

    assert excinfo.value.run_id is not None
    assert excinfo.value.document == "doc.pdf"


# ── Options ──────────────────────────────────────────────────────────────────

def test_manual_boundaries_apply_per_page():
    page = _page(_fragment("top", 0, 760), _fragment("still", 50, 740), _fragment("bottom", 0, 700))
    options = IndexingOptions(manual_boundaries={1: [80.0]})

    report = IndexingService(InMemoryWordStore(), options).index_document(
        InMemoryDocumentDecoder([page, page])
    )

    page_one = [(w.text, w.row) for w in report.words if w.page == 1]
    page_two_rows = {w.row for w in report.words if w.page == 2}
    assert page_one == [("top", 1), ("still", 1), ("bottom", 2)]
    assert page_two_rows == {1, 2, 3}


def test_over_merged_rows_are_reported():
    page = _page(*[_fragment(f"w{i}", i * 40, 700) for i in range(4)])
    options = IndexingOptions(tolerance=1.0, over_merge_threshold=3)

    report = IndexingService(InMemoryWordStore(), options).index_document(InMemoryDocumentDecoder([page]))

    assert len(report.over_merged_rows) == 1
    flagged = report.over_merged_rows[0]
    assert (flagged.page, flagged.row, flagged.fragment_count) == (1, 1, 4)


@pytest.mark.parametrize("tolerance", [-1.0, float("nan")])
def test_invalid_tolerance_rejected_at_configuration(tolerance):
    with pytest.raises(ToleranceConfigError):
        IndexingOptions(tolerance=tolerance)


# ── Geometry without a transform ─────────────────────────────────────────────

def test_payload_without_transform_is_viewport_space():
    decoder = InMemoryDocumentDecoder([{
        "fragments": [
            {"content": "top", "anchor_x": 0, "anchor_y": 100, "width": 30, "height": 10},
            {"content": "bottom", "anchor_x": 0, "anchor_y": 30, "width": 60, "height": 10},
        ],
    }])
    options = IndexingOptions(manual_boundaries={1: [50.0, 120.0]})

    report = IndexingService(InMemoryWordStore(), options).index_document(decoder)

    assert [(w.text, w.row) for w in report.words] == [("bottom", 1), ("top", 2)]
    assert report.words[0].bbox == pytest.approx((0.0, 20.0, 60.0, 30.0))
    assert all(w.bbox[1] >= 0 for w in report.words)


def test_flip_without_page_height_fails_the_page():
    decoder = InMemoryDocumentDecoder([
        _page(_fragment("fine", 0, 700)),
        {"fragments": [_fragment("flipped", 0, 700)], "transform": {"flip_y": True}},
    ])
    report = IndexingService(InMemoryWordStore()).index_document(decoder)

    assert "page_height" in report.failed_pages[2]
    assert [w.text for w in report.words] == ["fine"]
