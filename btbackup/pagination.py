# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Paginated collections - Lazy iteration over token-paged listings.

Both the table listing and the object listing return results one page
at a time with a continuation token. `iter_pages` turns such a page
fetcher into a lazy async sequence; each page fetch is the only
suspension point.
"""

from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Generic, List, TypeVar

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of a listing."""

    items: List[T] = field(default_factory=list)

    # Empty when this is the last page
    next_page_token: str = ""


PageFetcher = Callable[[str | None], Awaitable[Page[T]]]


async def iter_pages(fetch_page: PageFetcher[T]) -> AsyncIterator[T]:
    """
    Yield every item of a paginated listing.

    Args:
        fetch_page: Coroutine function taking a page token (None for the
            first page) and returning a Page

    Yields:
        Items in listing order, fetching the next page only when needed
    """
    token: str | None = None
    while True:
        page = await fetch_page(token)
        for item in page.items:
            yield item
        if not page.next_page_token:
            return
        token = page.next_page_token
