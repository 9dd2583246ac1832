"""
Pagination over ordered collections.
"""

from typing import Any, List, Sequence

from .models import Page


def paginate(items: Sequence[Any], page_number: int, page_size: int) -> Page:
    """Slice one page out of an ordered collection.

    Out-of-range requests are clamped instead of raising: a page size below
    1 becomes 1 and the page number is clamped into [1, total_pages]. An
    empty collection yields one empty page.

    Args:
        items: Ordered records or group entries
        page_number: Requested 1-based page
        page_size: Requested number of items per page

    Returns:
        The clamped Page
    """
    page_size = max(1, int(page_size))
    total_items = len(items)
    total_pages = Page.count_pages(total_items, page_size)
    page_number = min(max(1, int(page_number)), total_pages)

    start = (page_number - 1) * page_size
    return Page(
        items=list(items[start:start + page_size]),
        page_number=page_number,
        page_size=page_size,
        total_pages=total_pages,
        total_items=total_items,
    )


def page_window(page: Page, width: int = 5) -> List[int]:
    """Page numbers to offer in a pager, centred on the current page.

    All pages are listed when there are at most ``width``; otherwise the
    window is pinned to the first or last pages near either end.
    """
    width = max(1, width)
    if page.total_pages <= width:
        return list(range(1, page.total_pages + 1))

    half = width // 2
    first = page.page_number - half
    first = max(1, min(first, page.total_pages - width + 1))
    return list(range(first, first + width))
