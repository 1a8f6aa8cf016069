from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from .errors import EnrichmentFetchFailure
from .provider import ItemOutcome
from .query import SearchQuery
from .utils import profile_label

logger = structlog.get_logger(__name__)

FetchItem = Callable[[Dict[str, Any]], Awaitable[ItemOutcome]]
OnItem = Callable[[Dict[str, Any], List[str]], Awaitable[None]]
OnFirstPage = Callable[[Dict[str, Any]], None]

_SENTINEL = object()


@dataclass
class StreamStats:
    pages_fetched: int = 0
    candidates_seen: int = 0
    items_forwarded: int = 0
    skipped: int = 0
    failed: int = 0
    total_elements: Optional[int] = None
    stopped_early: bool = False


def _total_pages(data: Dict[str, Any]) -> int:
    pagination = data.get("pagination") or {}
    try:
        return int(pagination.get("totalPages") or 1)
    except (TypeError, ValueError):
        return 1


async def scrape_profiles(
    client,
    query: SearchQuery,
    fetch_item: FetchItem,
    on_item: OnItem,
    on_first_page: Optional[OnFirstPage] = None,
    *,
    max_items: Optional[int] = None,
    concurrency: int = 8,
    page_concurrency: int = 2,
    queue_size: int = 50,
) -> StreamStats:
    """
    Page through a profile search and hand every candidate to a pool of workers.

    The producer fetches pages in look-ahead windows of page_concurrency and enqueues
    candidates in provider order. Workers call fetch_item for each candidate and forward
    fetched elements to on_item. An outcome with done set stops the producer from
    requesting more pages; already queued candidates still pass through fetch_item.

    A failing page fetch is fatal and propagates. A failing candidate is logged and
    counted, and the run carries on.
    """
    stats = StreamStats()
    stop = asyncio.Event()
    queue: asyncio.Queue = asyncio.Queue(maxsize=max(queue_size, concurrency))

    async def enqueue_page(data: Dict[str, Any]) -> bool:
        if data.get("status") == 429:
            return False
        elements = data.get("elements") or []
        if not elements:
            return False
        for element in elements:
            if stop.is_set():
                return False
            await queue.put(element)
        return True

    async def produce() -> None:
        first = await client.search_page(query, 1)
        stats.pages_fetched += 1
        pagination = first.get("pagination") or {}
        stats.total_elements = pagination.get("totalElements")
        if on_first_page is not None:
            on_first_page(first)

        total_pages = _total_pages(first)
        if not await enqueue_page(first):
            return

        page = 2
        while page <= total_pages and not stop.is_set():
            window = range(page, min(page + max(1, page_concurrency), total_pages + 1))
            pages = await asyncio.gather(*(client.search_page(query, p) for p in window))
            for data in pages:
                stats.pages_fetched += 1
                if not await enqueue_page(data):
                    return
            page = window.stop

    async def handle(candidate: Dict[str, Any]) -> None:
        stats.candidates_seen += 1
        try:
            outcome = await fetch_item(candidate)
        except EnrichmentFetchFailure as e:
            stats.failed += 1
            logger.warning("enrichment_failed", profile=profile_label(candidate), error=str(e))
            return
        except Exception as e:
            stats.failed += 1
            logger.exception("candidate_failed", profile=profile_label(candidate), error=str(e))
            return

        if outcome.skipped:
            stats.skipped += 1
            if outcome.done and not stop.is_set():
                stats.stopped_early = True
                stop.set()
            return
        if not outcome.element:
            stats.failed += 1
            logger.warning("empty_profile", profile=profile_label(candidate), status=outcome.status)
            return

        try:
            await on_item(outcome.element, outcome.payments)
        except Exception as e:
            stats.failed += 1
            logger.exception("item_output_failed", profile=profile_label(outcome.element), error=str(e))
            return
        stats.items_forwarded += 1
        if max_items is not None and stats.items_forwarded >= max_items:
            stop.set()

    async def work() -> None:
        while True:
            candidate = await queue.get()
            try:
                if candidate is _SENTINEL:
                    return
                await handle(candidate)
            finally:
                queue.task_done()

    workers = [asyncio.create_task(work()) for _ in range(max(1, concurrency))]
    try:
        await produce()
    except BaseException:
        for w in workers:
            w.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise

    for _ in workers:
        await queue.put(_SENTINEL)
    await asyncio.gather(*workers)

    logger.info(
        "search_complete",
        pages=stats.pages_fetched,
        candidates=stats.candidates_seen,
        items=stats.items_forwarded,
        skipped=stats.skipped,
        failed=stats.failed,
    )
    return stats
