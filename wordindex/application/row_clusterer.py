# wordindex/application/row_clusterer.py

import logging
import math
from bisect import bisect_right
from typing import Dict, List, Optional, Sequence

from wordindex.domain.errors import ToleranceConfigError
from wordindex.domain.models import ProjectedFragment, Row


logger = logging.getLogger(__name__)

# Tolerance = 10% of the average fragment height on the page
TOLERANCE_HEIGHT_RATIO = 0.1
TOLERANCE_EPSILON = 1e-3
FALLBACK_FRAGMENT_HEIGHT = 12.0
DEFAULT_OVER_MERGE_THRESHOLD = 20


def validate_tolerance(tolerance: Optional[float]) -> Optional[float]:
    """Reject negative and non-finite tolerances. None means "compute it"."""
    if tolerance is None:
        return None
    try:
        value = float(tolerance)
    except (TypeError, ValueError) as error:
        raise ToleranceConfigError(f"Row tolerance must be a number, got {tolerance!r}") from error
    if not math.isfinite(value) or value < 0:
        raise ToleranceConfigError(f"Row tolerance must be a finite value >= 0, got {tolerance!r}")
    return value


def compute_tolerance(fragments: Sequence[ProjectedFragment]) -> float:
    heights = [f.height for f in fragments if f.height > 0]
    average_height = sum(heights) / len(heights) if heights else FALLBACK_FRAGMENT_HEIGHT
    return max(TOLERANCE_EPSILON, average_height * TOLERANCE_HEIGHT_RATIO)


def cluster_rows(
    fragments: Sequence[ProjectedFragment],
    tolerance: Optional[float] = None,
    manual_boundaries: Optional[Sequence[float]] = None,
    over_merge_threshold: int = DEFAULT_OVER_MERGE_THRESHOLD,
) -> List[Row]:
    """
    Group fragments into rows, top to bottom.

    Manual boundaries, when given, are authoritative cut-lines and bypass
    tolerance entirely. Otherwise clustering is greedy first-fit: each
    fragment (in ascending Y) joins the earliest-created row whose anchor
    is within `tolerance`, or opens a new row anchored at its own Y.
    """
    tolerance = validate_tolerance(tolerance)
    if not fragments:
        return []

    # Stable sort: equal Y keeps the decoder's order
    ordered = sorted(fragments, key=lambda f: f.y)

    if manual_boundaries is not None:
        rows = _assign_to_boundaries(ordered, manual_boundaries)
    else:
        if tolerance is None:
            tolerance = compute_tolerance(ordered)
        logger.debug("[RowClusterer] Using tolerance %.3f for %d fragments", tolerance, len(ordered))
        rows = _first_fit(ordered, tolerance)

    for row in rows:
        row.fragments.sort(key=lambda f: f.x)
    rows.sort(key=lambda r: r.anchor_y)

    for number, row in enumerate(rows, start=1):
        if len(row.fragments) > over_merge_threshold:
            row.over_merged = True
            logger.warning(
                "[RowClusterer] Row %d holds %d fragments (threshold %d) at Y=%.1f: %.50s",
                number, len(row.fragments), over_merge_threshold, row.anchor_y, row.text,
            )

    return rows


def _first_fit(ordered: Sequence[ProjectedFragment], tolerance: float) -> List[Row]:
    rows: List[Row] = []
    for fragment in ordered:
        for row in rows:
            if abs(fragment.y - row.anchor_y) <= tolerance:
                row.fragments.append(fragment)
                break
        else:
            rows.append(Row(anchor_y=fragment.y, fragments=[fragment]))
    return rows


def _assign_to_boundaries(
    ordered: Sequence[ProjectedFragment],
    boundaries: Sequence[float],
) -> List[Row]:
    cut_lines = sorted(float(b) for b in boundaries if math.isfinite(float(b)))
    buckets: Dict[int, Row] = {}
    for fragment in ordered:
        # A fragment sitting exactly on a cut-line belongs to the row below it
        slot = bisect_right(cut_lines, fragment.y)
        if slot not in buckets:
            buckets[slot] = Row(anchor_y=fragment.y)
        buckets[slot].fragments.append(fragment)
    return [buckets[slot] for slot in sorted(buckets)]
