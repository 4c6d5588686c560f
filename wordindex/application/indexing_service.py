# wordindex/application/indexing_service.py

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from wordindex.application.projection import project_page
from wordindex.application.row_clusterer import (
    DEFAULT_OVER_MERGE_THRESHOLD,
    cluster_rows,
    validate_tolerance,
)
from wordindex.application.word_extractor import extract_words
from wordindex.domain.errors import DocumentDecodeError, FragmentDecodeError, StoreWriteError
from wordindex.domain.interfaces import DocumentDecoderPort, WordStorePort
from wordindex.domain.models import (
    IndexingReport,
    OverMergedRow,
    Row,
    SentenceBuffer,
    Word,
)


logger = logging.getLogger(__name__)


@dataclass
class IndexingOptions:
    tolerance: Optional[float] = None
    # page number -> sorted Y cut-lines overriding tolerance clustering
    manual_boundaries: Dict[int, List[float]] = field(default_factory=dict)
    over_merge_threshold: int = DEFAULT_OVER_MERGE_THRESHOLD

    def __post_init__(self):
        self.tolerance = validate_tolerance(self.tolerance)


@dataclass
class IndexingContext:
    """All mutable state of one indexing run. Never shared between runs."""
    run_id: str
    document: str
    sentence_buffer: SentenceBuffer = field(default_factory=SentenceBuffer)
    words: List[Word] = field(default_factory=list)
    failed_pages: Dict[int, str] = field(default_factory=dict)
    over_merged_rows: List[OverMergedRow] = field(default_factory=list)


class IndexingService:
    """
    Turns a document's page geometry into the ordered word set and
    replaces the store's contents with it.

    Pages run strictly in order: the sentence buffer must see words in
    document order. Projection and clustering are page-local; extraction
    only starts once a page has been fully clustered, so a page that fails
    to decode never leaks words into the running sentence.
    """

    def __init__(self, word_store: WordStorePort, options: Optional[IndexingOptions] = None):
        self._word_store = word_store
        self._options = options or IndexingOptions()

    def index_document(
        self,
        decoder: DocumentDecoderPort,
        document: str = "",
        cancel_event: Optional[threading.Event] = None,
    ) -> IndexingReport:
        context = IndexingContext(run_id=uuid.uuid4().hex[:12], document=document)
        total_pages = decoder.page_count()
        logger.info("[Indexer] Run %s: processing %d pages of '%s'", context.run_id, total_pages, document)

        for page_number in range(1, total_pages + 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    "[Indexer] Run %s cancelled before page %d, nothing committed",
                    context.run_id, page_number,
                )
                return self._report(context, total_pages, committed=False, cancelled=True)

            try:
                rows = self._prepare_page(decoder, page_number)
            except FragmentDecodeError as error:
                logger.warning("[Indexer] Run %s: skipping page %d: %s", context.run_id, page_number, error.reason)
                context.failed_pages[page_number] = error.reason
                continue

            self._extract_page(context, page_number, rows)

        if total_pages > 0 and len(context.failed_pages) == total_pages:
            raise DocumentDecodeError(document, f"all {total_pages} pages failed to decode", run_id=context.run_id)

        self._commit(context)
        logger.info(
            "[Indexer] Run %s complete. Extracted %d words (%d pages skipped).",
            context.run_id, len(context.words), len(context.failed_pages),
        )
        return self._report(context, total_pages, committed=True, cancelled=False)

    # ─── Per-page stages ──────────────────────────────────────────────────────

    def _prepare_page(self, decoder: DocumentDecoderPort, page_number: int) -> List[Row]:
        geometry = decoder.page_geometry(page_number)
        projected = project_page(geometry.fragments, geometry.transform, page_number)
        rows = cluster_rows(
            projected,
            tolerance=self._options.tolerance,
            manual_boundaries=self._options.manual_boundaries.get(page_number),
            over_merge_threshold=self._options.over_merge_threshold,
        )
        logger.debug(
            "[Indexer] Page %d: %d fragments grouped into %d rows",
            page_number, len(projected), len(rows),
        )
        return rows

    def _extract_page(self, context: IndexingContext, page_number: int, rows: List[Row]) -> None:
        for row_number, row in enumerate(rows, start=1):
            if row.over_merged:
                context.over_merged_rows.append(
                    OverMergedRow(page=page_number, row=row_number, fragment_count=len(row.fragments))
                )
            context.words.extend(
                extract_words(row, page_number, row_number, context.sentence_buffer)
            )

    def _commit(self, context: IndexingContext) -> None:
        try:
            self._word_store.replace_all(context.words)
        except StoreWriteError as error:
            if error.run_id is None:
                raise StoreWriteError(str(error), run_id=context.run_id, document=context.document) from error
            raise
        logger.info("[Indexer] Run %s: stored %d words", context.run_id, len(context.words))

    @staticmethod
    def _report(context: IndexingContext, total_pages: int, committed: bool, cancelled: bool) -> IndexingReport:
        return IndexingReport(
            run_id=context.run_id,
            document=context.document,
            page_count=total_pages,
            words=list(context.words),
            failed_pages=dict(context.failed_pages),
            over_merged_rows=list(context.over_merged_rows),
            committed=committed,
            cancelled=cancelled,
        )
