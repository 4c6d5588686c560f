import logging
import os
import shutil
import threading
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from wordindex.application.indexing_service import IndexingOptions, IndexingService
from wordindex.application.search_service import WordSearchService
from wordindex.config import load_config
from wordindex.domain.errors import (
    DocumentDecodeError,
    StoreWriteError,
    ToleranceConfigError,
)
from wordindex.domain.models import IndexingReport, SearchStatus
from wordindex.infrastructure.file_hasher import document_fingerprint
from wordindex.infrastructure.memory_decoder import InMemoryDocumentDecoder
from wordindex.infrastructure.pdf_decoder import PdfDocumentDecoder
from wordindex.infrastructure.search_index import SearchIndex
from wordindex.infrastructure.sqlite_store import SqliteWordStore
from wordindex.log import configure_logging


logger = logging.getLogger("api")

# ── Configuration ────────────────────────────────────────────────────────────
config = load_config()
configure_logging(config.log_level)


# ── API Models ───────────────────────────────────────────────────────────────
class PagePayload(BaseModel):
    # Loose: a malformed fragment fails its page, not the request
    fragments: List[dict] = Field(default_factory=list)
    # Empty: fragment coordinates are already top-down viewport pixels
    transform: dict = Field(default_factory=dict)


class GeometryIndexRequest(BaseModel):
    document: str = "geometry"
    pages: List[PagePayload]
    tolerance: Optional[float] = None
    manual_boundaries: Dict[int, List[float]] = Field(default_factory=dict)


class IndexResponse(BaseModel):
    run_id: str
    document: str
    page_count: int
    word_count: int
    failed_pages: Dict[int, str]
    over_merged_rows: List[dict]


class SearchResponseModel(BaseModel):
    query: str
    status: str
    page: Optional[int] = None
    results: List[dict]


# ── App Initialization ───────────────────────────────────────────────────────
app = FastAPI(
    title="Page Word Index API",
    description="Row-clustered word index and ranked word search over PDF pages.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:8080", "http://127.0.0.1:8080"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize infrastructure (global scope for singleton behavior)
word_store = SqliteWordStore(config.db_path)
search_service = WordSearchService(
    word_store=word_store,
    index_builder=partial(SearchIndex.build, field_weights=config.field_weights()),
)
# One indexing run at a time; queries keep using the previous index meanwhile
_indexing_lock = threading.Lock()

if word_store.count() > 0:
    search_service.build_index()
    logger.info("[API] Persistent word set detected. Service is READY.")
else:
    logger.warning("[API] Word store is empty. POST a document to /index first.")


def _report_to_response(report: IndexingReport) -> IndexResponse:
    return IndexResponse(
        run_id=report.run_id,
        document=report.document,
        page_count=report.page_count,
        word_count=report.word_count,
        failed_pages=report.failed_pages,
        over_merged_rows=[
            {"page": d.page, "row": d.row, "fragment_count": d.fragment_count}
            for d in report.over_merged_rows
        ],
    )


def _run_indexing(decoder, document: str, options: IndexingOptions, metadata: Dict[str, str]) -> IndexingReport:
    service = IndexingService(word_store, options)
    try:
        with _indexing_lock:
            report = service.index_document(decoder, document=document)
            # Fingerprint and word set are written under the same lock
            word_store.save_index_metadata({**metadata, "run_id": report.run_id})
            search_service.build_index(report.words)
    except DocumentDecodeError as error:
        raise HTTPException(status_code=422, detail=str(error))
    except StoreWriteError as error:
        logger.error("[API] Indexing failed: %s", error)
        raise HTTPException(status_code=500, detail=f"Indexing failed: {error}")
    return report


# ── Endpoints ────────────────────────────────────────────────────────────────
@app.get("/")
def read_root():
    return {
        "message": "Page Word Index API is running.",
        "status": "ready" if search_service.is_ready() else "indexing_required",
        "words_indexed": word_store.count(),
    }


@app.get("/status")
def get_status():
    """Readiness of the search index and what the store currently holds."""
    metadata = word_store.get_index_metadata()
    return {
        "is_ready": search_service.is_ready(),
        "words_indexed": word_store.count(),
        "document": metadata.get("document"),
        "run_id": metadata.get("run_id"),
    }


@app.get("/stats")
def get_stats():
    stats = search_service.stats()
    return {
        "total_words": stats.total_words,
        "unique_words": stats.unique_words,
        "pages": stats.pages,
        "fingerprint": stats.fingerprint,
    }


@app.post("/index", response_model=IndexResponse)
def index_pdf(file: UploadFile = File(...)):
    """Upload a PDF, re-index it in full and swap in a fresh search index."""
    if not file.filename:
        raise HTTPException(status_code=422, detail="Uploaded file has no filename.")

    os.makedirs(config.data_directory, exist_ok=True)
    file_path = Path(config.data_directory) / Path(file.filename).name
    with open(file_path, "wb") as buffer:
        shutil.copyfileobj(file.file, buffer)

    try:
        decoder = PdfDocumentDecoder(str(file_path), scale=config.scale)
    except DocumentDecodeError as error:
        raise HTTPException(status_code=422, detail=str(error))

    fingerprint = document_fingerprint(str(file_path), config.scale, config.tolerance)
    with decoder:
        report = _run_indexing(decoder, file_path.name, config.indexing_options(), fingerprint)
    return _report_to_response(report)


@app.post("/index/geometry", response_model=IndexResponse)
def index_geometry(request: GeometryIndexRequest):
    """Index page geometry supplied directly as JSON fragments."""
    try:
        options = IndexingOptions(
            tolerance=request.tolerance,
            manual_boundaries=request.manual_boundaries,
            over_merge_threshold=config.over_merge_threshold,
        )
    except ToleranceConfigError as error:
        raise HTTPException(status_code=422, detail=str(error))

    decoder = InMemoryDocumentDecoder([page.model_dump() for page in request.pages])
    report = _run_indexing(decoder, request.document, options, {"document": request.document})
    return _report_to_response(report)


@app.get("/search", response_model=SearchResponseModel)
def search(
    q: str = Query("", description="word or word prefix"),
    page: Optional[int] = Query(None, ge=1, description="only results on this page"),
    limit: Optional[int] = Query(None, ge=1),
):
    response = search_service.search(q, page=page, limit=limit or config.search_limit)
    if response.status is SearchStatus.INDEX_NOT_BUILT:
        raise HTTPException(
            status_code=503,
            detail="Search index not built. Index a document via /index first.",
        )
    return SearchResponseModel(
        query=response.query,
        status=response.status.value,
        page=page,
        results=[r.to_dict() for r in response.results],
    )


@app.get("/pages/{page}/words")
def get_page_words(page: int):
    return {"page": page, "words": [w.to_dict() for w in search_service.words_for_page(page)]}


@app.get("/words")
def get_words_by_prefix(prefix: str = Query(..., min_length=1)):
    words = word_store.query_by_word_prefix(prefix)
    return {"prefix": prefix, "count": len(words), "words": [w.to_dict() for w in words]}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
