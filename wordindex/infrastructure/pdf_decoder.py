# wordindex/infrastructure/pdf_decoder.py

import logging
from pathlib import Path
from typing import List, Optional

from wordindex.domain.errors import DocumentDecodeError, FragmentDecodeError
from wordindex.domain.interfaces import DocumentDecoderPort
from wordindex.domain.models import PageGeometry, PageTransform, TextFragment


logger = logging.getLogger(__name__)

DEFAULT_SCALE = 1.5


class PdfDocumentDecoder(DocumentDecoderPort):
    """
    Reads positioned text runs from a PDF, one page at a time.

    Fragments are reported in native PDF space (origin bottom-left, Y up),
    anchored at the run's baseline, together with the transform that maps
    them to a top-left viewport at `scale`.

    pdfplumber is tried first; PyMuPDF is the fallback when pdfplumber is
    missing or cannot open the file.
    """

    def __init__(self, file_path: str, scale: float = DEFAULT_SCALE):
        self._path = Path(file_path)
        self._scale = scale
        if not self._path.exists():
            raise DocumentDecodeError(str(file_path), "file not found")

        self._backend: Optional[str] = None
        self._document = self._open_pdfplumber()
        if self._document is not None:
            self._backend = "pdfplumber"
        else:
            self._document = self._open_pymupdf()
            if self._document is None:
                raise DocumentDecodeError(self._path.name, "no PDF backend could open the file")
            self._backend = "pymupdf"

        logger.info(
            "[PdfDecoder] Opened '%s' with %s (%d pages)",
            self._path.name, self._backend, self.page_count(),
        )

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def name(self) -> str:
        return self._path.name

    def page_count(self) -> int:
        if self._backend == "pdfplumber":
            return len(self._document.pages)
        return self._document.page_count

    def page_geometry(self, page_number: int) -> PageGeometry:
        try:
            if self._backend == "pdfplumber":
                return self._page_pdfplumber(page_number)
            return self._page_pymupdf(page_number)
        except FragmentDecodeError:
            raise
        except Exception as error:
            raise FragmentDecodeError(page_number, f"{self._backend} error: {error}") from error

    def close(self) -> None:
        if self._document is not None:
            self._document.close()
            self._document = None

    def __enter__(self) -> "PdfDocumentDecoder":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ─── Private: Backends ────────────────────────────────────────────────────

    def _open_pdfplumber(self):
        try:
            import pdfplumber
        except ImportError:
            return None
        try:
            return pdfplumber.open(str(self._path))
        except Exception as error:
            logger.warning("[PdfDecoder] pdfplumber error on %s: %s", self._path.name, error)
            return None

    def _open_pymupdf(self):
        try:
            import fitz
        except ImportError:
            return None
        try:
            return fitz.open(str(self._path))
        except Exception as error:
            logger.warning("[PdfDecoder] PyMuPDF error on %s: %s", self._path.name, error)
            return None

    def _page_pdfplumber(self, page_number: int) -> PageGeometry:
        page = self._document.pages[page_number - 1]
        page_height = float(page.height)
        # keep_blank_chars keeps a whole text run together, spaces included
        runs = page.extract_words(keep_blank_chars=True, use_text_flow=True)
        fragments: List[TextFragment] = [
            TextFragment(
                content=run["text"],
                anchor_x=float(run["x0"]),
                anchor_y=page_height - float(run["bottom"]),
                width=float(run["x1"]) - float(run["x0"]),
                height=float(run["bottom"]) - float(run["top"]),
            )
            for run in runs
        ]
        return PageGeometry(
            page_number=page_number,
            fragments=fragments,
            transform=PageTransform(scale=self._scale, page_height=page_height),
        )

    def _page_pymupdf(self, page_number: int) -> PageGeometry:
        page = self._document[page_number - 1]
        page_height = float(page.rect.height)
        fragments: List[TextFragment] = []
        for block in page.get_text("dict")["blocks"]:
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    if not span["text"].strip():
                        continue
                    # PyMuPDF already reports top-left coordinates; convert back to native
                    origin_x, origin_y = span["origin"]
                    x0, _, x1, _ = span["bbox"]
                    fragments.append(TextFragment(
                        content=span["text"],
                        anchor_x=float(origin_x),
                        anchor_y=page_height - float(origin_y),
                        width=float(x1) - float(x0),
                        height=float(span["size"]),
                    ))
        return PageGeometry(
            page_number=page_number,
            fragments=fragments,
            transform=PageTransform(scale=self._scale, page_height=page_height),
        )
