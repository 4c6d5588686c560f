"""Configuration loader for the word index."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from wordindex.application.indexing_service import IndexingOptions
from wordindex.application.row_clusterer import DEFAULT_OVER_MERGE_THRESHOLD, validate_tolerance


DATA_DIRECTORY = "data"
DEFAULT_DB_PATH = "./data/words.db"
DEFAULT_SCALE = 1.5
DEFAULT_WORD_WEIGHT = 10.0
DEFAULT_SENTENCE_WEIGHT = 5.0
DEFAULT_SEARCH_LIMIT = 25


def _get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is not None:
        value = value.strip()
        if value == "":
            return default
        return value
    return default


def _get_int(key: str, default: int) -> int:
    value = _get_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be an integer") from exc


def _get_float(key: str, default: Optional[float]) -> Optional[float]:
    value = _get_env(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be a number") from exc


@dataclass
class AppConfig:
    data_directory: str = DATA_DIRECTORY
    db_path: str = DEFAULT_DB_PATH
    scale: float = DEFAULT_SCALE
    tolerance: Optional[float] = None
    over_merge_threshold: int = DEFAULT_OVER_MERGE_THRESHOLD
    word_weight: float = DEFAULT_WORD_WEIGHT
    sentence_weight: float = DEFAULT_SENTENCE_WEIGHT
    search_limit: int = DEFAULT_SEARCH_LIMIT
    log_level: str = "INFO"
    manual_boundaries: Dict[int, List[float]] = field(default_factory=dict)

    def field_weights(self) -> Dict[str, float]:
        return {"word": self.word_weight, "sentence": self.sentence_weight}

    def indexing_options(self) -> IndexingOptions:
        return IndexingOptions(
            tolerance=self.tolerance,
            manual_boundaries=dict(self.manual_boundaries),
            over_merge_threshold=self.over_merge_threshold,
        )


def parse_boundaries(text: str) -> Dict[int, List[float]]:
    """
    Parse "PAGE:Y1,Y2;PAGE:Y1" into {page: [y, ...]}.
    Cut-lines are sorted; the row clusterer sorts again anyway.
    """
    boundaries: Dict[int, List[float]] = {}
    for chunk in text.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        page_part, sep, values_part = chunk.partition(":")
        if not sep:
            raise ValueError(f"Boundary entry '{chunk}' must look like PAGE:Y1,Y2")
        try:
            page = int(page_part)
            values = [float(v) for v in values_part.split(",") if v.strip()]
        except ValueError as exc:
            raise ValueError(f"Boundary entry '{chunk}' must look like PAGE:Y1,Y2") from exc
        boundaries.setdefault(page, []).extend(values)
    return {page: sorted(values) for page, values in boundaries.items()}


def load_config() -> AppConfig:
    data_directory = _get_env("WORDINDEX_DATA_DIR", DATA_DIRECTORY)
    db_path = _get_env("WORDINDEX_DB_PATH", DEFAULT_DB_PATH)
    scale = _get_float("WORDINDEX_SCALE", DEFAULT_SCALE)
    if scale <= 0:
        raise ValueError("WORDINDEX_SCALE must be greater than zero")

    tolerance = validate_tolerance(_get_float("WORDINDEX_TOLERANCE", None))
    over_merge_threshold = _get_int("WORDINDEX_OVER_MERGE_THRESHOLD", DEFAULT_OVER_MERGE_THRESHOLD)
    word_weight = _get_float("WORDINDEX_WORD_WEIGHT", DEFAULT_WORD_WEIGHT)
    sentence_weight = _get_float("WORDINDEX_SENTENCE_WEIGHT", DEFAULT_SENTENCE_WEIGHT)
    search_limit = _get_int("WORDINDEX_SEARCH_LIMIT", DEFAULT_SEARCH_LIMIT)
    log_level = _get_env("WORDINDEX_LOG_LEVEL", "INFO").upper()
    boundaries = parse_boundaries(_get_env("WORDINDEX_BOUNDARIES", "") or "")

    return AppConfig(
        data_directory=data_directory,
        db_path=db_path,
        scale=scale,
        tolerance=tolerance,
        over_merge_threshold=over_merge_threshold,
        word_weight=word_weight,
        sentence_weight=sentence_weight,
        search_limit=search_limit,
        log_level=log_level,
        manual_boundaries=boundaries,
    )
