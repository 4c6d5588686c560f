# main.py

import argparse
import logging
import sys
from functools import partial
from typing import List, Optional

from wordindex.application.indexing_service import IndexingService
from wordindex.application.search_service import WordSearchService
from wordindex.config import AppConfig, load_config, parse_boundaries
from wordindex.domain.errors import WordIndexError
from wordindex.infrastructure.file_hasher import document_fingerprint, is_up_to_date
from wordindex.infrastructure.pdf_decoder import PdfDocumentDecoder
from wordindex.infrastructure.search_index import SearchIndex
from wordindex.infrastructure.sqlite_store import SqliteWordStore
from wordindex.interface.cli import (
    display_welcome_banner,
    display_indexing_report,
    display_index_up_to_date,
    display_stats,
    prompt_for_query,
    display_results,
    display_error,
    ask_continue,
)
from wordindex.log import configure_logging


logger = logging.getLogger("main")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index every word of a PDF and search it.")
    parser.add_argument("pdf", help="PDF document to index")
    parser.add_argument("--scale", type=float, help="viewport scale (default 1.5)")
    parser.add_argument("--tolerance", type=float, help="fixed row tolerance in viewport pixels")
    parser.add_argument("--boundaries", help='manual row cut-lines, e.g. "1:50,120;3:200"')
    parser.add_argument("--page", type=int, help="only show matches on this page")
    parser.add_argument("--rebuild", action="store_true", help="re-index even if the document is unchanged")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)

    try:
        config = load_config()
        if args.scale is not None:
            config.scale = args.scale
        if args.tolerance is not None:
            config.tolerance = args.tolerance
        if args.boundaries:
            config.manual_boundaries = parse_boundaries(args.boundaries)
        options = config.indexing_options()
    except ValueError as error:
        display_error(str(error))
        sys.exit(2)

    configure_logging(config.log_level)
    display_welcome_banner()

    # ── 1. Initialize infrastructure ─────────────────────────────────────────
    try:
        word_store = SqliteWordStore(config.db_path)
    except RuntimeError as error:
        display_error(str(error))
        sys.exit(1)

    search_service = WordSearchService(
        word_store=word_store,
        index_builder=partial(SearchIndex.build, field_weights=config.field_weights()),
    )
    indexing_service = IndexingService(word_store, options)

    # ── 2. Re-indexing decision ──────────────────────────────────────────────
    try:
        fingerprint = document_fingerprint(args.pdf, config.scale, config.tolerance)
    except OSError as error:
        display_error(f"Cannot read '{args.pdf}': {error}")
        sys.exit(1)

    unchanged = is_up_to_date(word_store.get_index_metadata(), fingerprint)
    if unchanged and not args.rebuild and not config.manual_boundaries:
        logger.info("[Main] Document unchanged since last run, skipping indexing.")
        display_index_up_to_date(search_service.stats())
    else:
        _build_full_index(indexing_service, word_store, args.pdf, config, fingerprint)

    search_service.build_index()
    display_stats(search_service.stats())

    # ── 3. Interactive search loop ────────────────────────────────────────────
    while True:
        query = prompt_for_query()
        response = search_service.search(query, page=args.page, limit=config.search_limit)
        display_results(response, page=args.page)

        if not ask_continue():
            break


def _build_full_index(
    service: IndexingService,
    store: SqliteWordStore,
    pdf_path: str,
    config: AppConfig,
    fingerprint: dict[str, str],
) -> None:
    """Decode every page, rebuild the word set, persist it with its fingerprint."""
    logger.info("[Main] Performing full index build...")
    try:
        with PdfDocumentDecoder(pdf_path, scale=config.scale) as decoder:
            report = service.index_document(decoder, document=decoder.name)
        store.save_index_metadata({**fingerprint, "run_id": report.run_id})
    except WordIndexError as error:
        display_error(str(error))
        sys.exit(1)

    display_indexing_report(report)


if __name__ == "__main__":
    main()
