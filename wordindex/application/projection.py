# wordindex/application/projection.py

import math
from typing import List, Tuple

from wordindex.domain.errors import FragmentDecodeError
from wordindex.domain.models import PageTransform, ProjectedFragment, TextFragment


def project_point(x: float, y: float, transform: PageTransform) -> Tuple[float, float]:
    """Map a native point into viewport space (top-left origin, Y down)."""
    vx = (x + transform.offset_x) * transform.scale
    if transform.flip_y:
        vy = (transform.page_height - y + transform.offset_y) * transform.scale
    else:
        vy = (y + transform.offset_y) * transform.scale
    return vx, vy


def project_fragment(
    fragment: TextFragment,
    transform: PageTransform,
    page: int = 0,
) -> ProjectedFragment:
    if not isinstance(fragment.content, str):
        raise FragmentDecodeError(page, f"fragment content is not text: {fragment.content!r}")

    values = (fragment.anchor_x, fragment.anchor_y, fragment.width, fragment.height)
    try:
        finite = all(math.isfinite(float(v)) for v in values)
    except (TypeError, ValueError):
        finite = False
    if not finite:
        raise FragmentDecodeError(page, f"non-numeric geometry for fragment {fragment.content[:30]!r}")

    x, y = project_point(float(fragment.anchor_x), float(fragment.anchor_y), transform)
    factor = abs(transform.scale)
    return ProjectedFragment(
        content=fragment.content,
        x=x,
        y=y,
        width=float(fragment.width) * factor,
        height=float(fragment.height) * factor,
    )


def project_page(
    fragments: List[TextFragment],
    transform: PageTransform,
    page: int = 0,
) -> List[ProjectedFragment]:
    return [project_fragment(fragment, transform, page) for fragment in fragments]
