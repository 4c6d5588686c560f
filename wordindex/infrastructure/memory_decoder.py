# wordindex/infrastructure/memory_decoder.py

from typing import Iterable, List, Union

from wordindex.domain.errors import FragmentDecodeError
from wordindex.domain.interfaces import DocumentDecoderPort
from wordindex.domain.models import PageGeometry, PageTransform, TextFragment


# Identity: coordinates are already top-down viewport pixels
VIEWPORT_TRANSFORM = PageTransform(scale=1.0, flip_y=False)


class InMemoryDocumentDecoder(DocumentDecoderPort):
    """
    Serves page geometry the caller already holds, either as PageGeometry
    objects or as raw JSON-style dicts:

        {"fragments": [{"content": ..., "anchor_x": ..., "anchor_y": ...,
                        "width": ..., "height": ...}],
         "transform": {"scale": 1.5, "page_height": 792.0}}

    A dict without a transform is already in top-down viewport space and is
    used as is. A Y flip needs a positive page height.

    Raw dicts are parsed lazily so one malformed page only fails itself.
    """

    def __init__(self, pages: Iterable[Union[PageGeometry, dict]]):
        self._pages: List[Union[PageGeometry, dict]] = list(pages)

    def page_count(self) -> int:
        return len(self._pages)

    def page_geometry(self, page_number: int) -> PageGeometry:
        if not 1 <= page_number <= len(self._pages):
            raise FragmentDecodeError(page_number, f"page out of range (1..{len(self._pages)})")

        page = self._pages[page_number - 1]
        if isinstance(page, PageGeometry):
            return PageGeometry(page_number, page.fragments, page.transform)
        return _parse_page(page_number, page)


def _parse_page(page_number: int, payload: dict) -> PageGeometry:
    try:
        fragments = [
            TextFragment(
                content=str(item["content"]),
                anchor_x=float(item["anchor_x"]),
                anchor_y=float(item["anchor_y"]),
                width=float(item["width"]),
                height=float(item["height"]),
            )
            for item in payload.get("fragments", [])
        ]
        transform = _parse_transform(payload.get("transform"))
    except (KeyError, TypeError, ValueError, AttributeError) as error:
        raise FragmentDecodeError(page_number, f"malformed fragment data: {error}") from error
    return PageGeometry(page_number, fragments, transform)


def _parse_transform(payload) -> PageTransform:
    if not payload:
        return VIEWPORT_TRANSFORM
    transform = PageTransform(**payload)
    if transform.flip_y and not transform.page_height > 0:
        raise ValueError("flip_y needs a positive page_height")
    return transform
