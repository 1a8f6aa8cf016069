from __future__ import annotations

import threading
from typing import Optional

import structlog

from .errors import NoBudget

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ITEMS = 1_000_000
FREE_TIER_LIMIT = 10

FREE_TIER_MESSAGE = (
    "Free users are limited up to 10 items per run. "
    "Please upgrade to a paid plan to scrape more items."
)


class Budget:
    """
    Remaining item capacity for one run.

    consume() is the only mutator. It must be called once per candidate the provider
    surfaces, before that candidate is enriched or emitted.
    """

    def __init__(self, remaining: int, free_tier_exceeded: bool = False):
        self._remaining = remaining
        self._consumed = 0
        self._lock = threading.Lock()
        self.initial = remaining
        self.free_tier_exceeded = free_tier_exceeded

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def consumed(self) -> int:
        return self._consumed

    def consume(self) -> bool:
        with self._lock:
            self._remaining -= 1
            self._consumed += 1
            return self._remaining >= 0

    def __repr__(self) -> str:
        return f"Budget(remaining={self._remaining}, consumed={self._consumed})"


def log_free_tier_notice() -> None:
    logger.warning("free_tier_limit", limit=FREE_TIER_LIMIT, detail=FREE_TIER_MESSAGE)


def initialize_budget(
    account_max_paid_items: Optional[int],
    user_max_items: Optional[int],
    is_paying: bool,
) -> Budget:
    """
    Compute the run's item cap.

    Order: account cap (DEFAULT_MAX_ITEMS when missing or 0), then the user's maxItems, then the free-tier
    clamp. Raises NoBudget when nothing is left to scrape.
    """
    # The host reports 0 when no account cap is set
    cap = account_max_paid_items or DEFAULT_MAX_ITEMS
    if user_max_items is not None and user_max_items < cap:
        cap = user_max_items

    free_tier_exceeded = False
    if not is_paying and cap > FREE_TIER_LIMIT:
        free_tier_exceeded = True
        cap = FREE_TIER_LIMIT
        log_free_tier_notice()

    if cap <= 0:
        raise NoBudget("No items left to scrape. Please increase the maxItems input or reduce the filters.")

    logger.info("budget_initialized", remaining=cap, free_tier_exceeded=free_tier_exceeded)
    return Budget(cap, free_tier_exceeded=free_tier_exceeded)
