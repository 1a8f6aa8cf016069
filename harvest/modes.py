from __future__ import annotations

from enum import Enum
from typing import Dict, Union


class ScrapeMode(str, Enum):
    SHORT = "short"
    FULL = "full"
    EMAIL = "email"


MODE_LABELS: Dict[str, ScrapeMode] = {
    "Short ($2 per 1k)": ScrapeMode.SHORT,
    "Full ($6 per 1k)": ScrapeMode.FULL,
    "Full + email search ($10 per 1k)": ScrapeMode.EMAIL,
}

MODE_CODES: Dict[str, ScrapeMode] = {
    "1": ScrapeMode.SHORT,
    "2": ScrapeMode.FULL,
    "3": ScrapeMode.EMAIL,
}

# Email lookups cost more per item, keep fewer of them in flight
ITEM_CONCURRENCY: Dict[ScrapeMode, int] = {
    ScrapeMode.SHORT: 8,
    ScrapeMode.FULL: 8,
    ScrapeMode.EMAIL: 6,
}


def resolve_mode(token: Union[str, int, None]) -> ScrapeMode:
    """
    Map a mode label or numeric code to a ScrapeMode. Anything unrecognised falls back to FULL.
    """
    if token is None:
        return ScrapeMode.FULL
    key = str(token)
    return MODE_LABELS.get(key) or MODE_CODES.get(key.strip()) or ScrapeMode.FULL


def find_email(mode: ScrapeMode) -> bool:
    return mode is ScrapeMode.EMAIL


def item_concurrency(mode: ScrapeMode) -> int:
    return ITEM_CONCURRENCY.get(mode, 8)
