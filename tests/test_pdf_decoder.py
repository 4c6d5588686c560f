# tests/test_pdf_decoder.py

import pytest

from wordindex.application.indexing_service import IndexingService
from wordindex.domain.errors import DocumentDecodeError, FragmentDecodeError
from wordindex.infrastructure.pdf_decoder import PdfDocumentDecoder
from wordindex.infrastructure.word_store import InMemoryWordStore

fitz = pytest.importorskip("fitz")


@pytest.fixture
def sample_pdf(tmp_path):
    path = tmp_path / "sample.pdf"
    document = fitz.open()
    page = document.new_page(width=612, height=792)
    page.insert_text((72, 72), "Hello world.", fontsize=12)
    page = document.new_page(width=612, height=792)
    page.insert_text((72, 100), "Second page", fontsize=12)
    document.save(str(path))
    document.close()
    return path


@pytest.fixture(params=["default", "pymupdf"])
def decoder(request, sample_pdf, monkeypatch):
    if request.param == "pymupdf":
        monkeypatch.setattr(PdfDocumentDecoder, "_open_pdfplumber", lambda self: None)
    with PdfDocumentDecoder(str(sample_pdf), scale=1.5) as opened:
        yield opened


def test_reports_page_count_and_name(decoder):
    assert decoder.page_count() == 2
    assert decoder.name == "sample.pdf"
    assert decoder.backend in ("pdfplumber", "pymupdf")


def test_fragments_are_in_native_space(decoder):
    geometry = decoder.page_geometry(1)

    assert geometry.page_number == 1
    assert geometry.transform.page_height == pytest.approx(792.0)
    assert geometry.transform.scale == 1.5
    fragment = geometry.fragments[0]
    assert "Hello" in fragment.content
    # baseline at 72pt from the top -> about 720pt from the bottom
    assert fragment.anchor_y == pytest.approx(720.0, abs=5.0)
    assert fragment.width > 0
    assert fragment.height > 0


def test_page_out_of_range_fails_that_page(decoder):
    with pytest.raises(FragmentDecodeError):
        decoder.page_geometry(5)


def test_full_pipeline_over_a_pdf(decoder):
    report = IndexingService(InMemoryWordStore()).index_document(decoder, document=decoder.name)

    assert [(w.text, w.page) for w in report.words] == [
        ("Hello", 1), ("world.", 1), ("Second", 2), ("page", 2),
    ]
    assert report.failed_pages == {}


def test_missing_file_raises(tmp_path):
    with pytest.raises(DocumentDecodeError, match="file not found"):
        PdfDocumentDecoder(str(tmp_path / "absent.pdf"))


def test_unreadable_file_raises(tmp_path):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"this is not a pdf")
    with pytest.raises(DocumentDecodeError, match="no PDF backend"):
        PdfDocumentDecoder(str(path))
