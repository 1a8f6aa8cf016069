"""
Budgeted profile harvest.

Resolves the scrape mode, pages through the provider's profile search, enriches each
candidate according to the mode and pushes the results to the dataset sink with the
billing decision for the account.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import structlog

from config import AccountContext, HarvestInput, Settings

from . import billing
from .budget import Budget, initialize_budget, log_free_tier_notice
from .errors import MissingIdentity, NoBudget
from .modes import ScrapeMode, find_email, item_concurrency, resolve_mode
from .provider import HarvestApiClient, ItemOutcome, account_headers, profile_url
from .query import SearchQuery, normalize_query
from .sink import ChargeLedger, DatasetSink
from .stream import StreamStats, scrape_profiles
from .utils import profile_label

logger = structlog.get_logger(__name__)


@dataclass
class RunState:
    budget: Budget
    scraped_items: int = 0
    request_success: bool = False
    rate_limited: bool = False
    total_found: Optional[int] = None
    last_write: Optional[asyncio.Task] = None
    pending_writes: Set[asyncio.Task] = field(default_factory=set)
    stats: Optional[StreamStats] = None

    @property
    def free_tier_exceeded(self) -> bool:
        return self.budget.free_tier_exceeded

    def track_write(self, write: asyncio.Task) -> None:
        self.last_write = write
        self.pending_writes.add(write)
        write.add_done_callback(self.pending_writes.discard)

    async def settle(self) -> None:
        """Wait for every write still in flight, the most recent one included."""
        pending = list(self.pending_writes)
        if self.last_write is not None and self.last_write not in pending:
            pending.append(self.last_write)
        if not pending:
            return
        results = await asyncio.gather(*pending, return_exceptions=True)
        for r in results:
            if isinstance(r, Exception):
                logger.error("dataset_write_failed", error=str(r))


class HarvestOrchestrator:
    def __init__(
        self,
        client: HarvestApiClient,
        query: SearchQuery,
        mode: ScrapeMode,
        budget: Budget,
        account: AccountContext,
        sink: DatasetSink,
        ledger: ChargeLedger,
        page_concurrency: int = 2,
        queue_size: int = 50,
    ):
        self.client = client
        self.query = query
        self.mode = mode
        self.account = account
        self.sink = sink
        self.ledger = ledger
        self.page_concurrency = page_concurrency
        self.queue_size = queue_size
        self.state = RunState(budget=budget)

    async def fetch_item(self, candidate: Dict[str, Any]) -> ItemOutcome:
        # Placeholder rows without an identity cost nothing
        if not (candidate.get("id") or candidate.get("linkedinUrl")):
            return ItemOutcome.skip()

        if not self.state.budget.consume():
            return ItemOutcome.skip(done=True)

        if self.mode is ScrapeMode.SHORT:
            return ItemOutcome(
                status=200,
                entity_id=candidate.get("id") or candidate.get("publicIdentifier"),
                element=candidate,
            )

        return await self.client.get_profile(profile_url(candidate), find_email=find_email(self.mode))

    async def on_item(self, item: Dict[str, Any], payments: List[str]) -> None:
        logger.info("profile_scraped", profile=profile_label(item))
        self.state.scraped_items += 1

        decision = billing.decide(self.mode, payments, self.account.is_pay_per_event)
        self.state.track_write(self.sink.push_item(item, decision.channel))
        if decision.event:
            self.ledger.charge(decision.event)

    def on_first_page(self, data: Dict[str, Any]) -> None:
        if data.get("status") == 429:
            self.state.rate_limited = True
            logger.error("too_many_requests", detail="Too many requests")
        elif data.get("pagination"):
            self.state.request_success = True
            self.state.total_found = data["pagination"].get("totalElements")
            logger.info("profiles_found", total=self.state.total_found)

    async def run(self) -> RunState:
        logger.info(
            "harvest_start",
            mode=self.mode.value,
            search=self.query.search,
            left_items=self.state.budget.remaining,
        )
        try:
            self.state.stats = await scrape_profiles(
                self.client,
                self.query,
                self.fetch_item,
                self.on_item,
                self.on_first_page,
                max_items=self.state.budget.initial,
                concurrency=item_concurrency(self.mode),
                page_concurrency=self.page_concurrency,
                queue_size=self.queue_size,
            )
        finally:
            await self.state.settle()

        if billing.should_charge_start(self.state.scraped_items, self.state.request_success):
            self.ledger.charge(billing.ACTOR_START)

        if self.state.free_tier_exceeded:
            log_free_tier_notice()

        logger.info(
            "harvest_complete",
            scraped=self.state.scraped_items,
            left_items=max(self.state.budget.remaining, 0),
            charges=self.ledger.summary(),
        )
        return self.state


async def run_harvest(
    harvest_input: HarvestInput,
    settings: Settings,
    account: AccountContext,
    http_client,
    sink: DatasetSink,
    ledger: ChargeLedger,
) -> Optional[RunState]:
    """
    Validate the input, size the budget and run the harvest.

    Returns None when the run ends before touching the provider (missing name, no budget).
    """
    try:
        query = normalize_query(harvest_input.query_fields())
    except MissingIdentity as e:
        logger.warning("missing_identity", detail=str(e))
        return None

    mode = resolve_mode(harvest_input.profile_scraper_mode)

    try:
        budget = initialize_budget(account.max_paid_items, harvest_input.max_items, account.is_paying)
    except NoBudget as e:
        logger.warning("no_budget", detail=str(e))
        return None

    client = HarvestApiClient(
        http_client,
        settings,
        account,
        extra_headers=account_headers(account, budget.remaining, harvest_input.max_items),
    )
    orchestrator = HarvestOrchestrator(
        client,
        query,
        mode,
        budget,
        account,
        sink,
        ledger,
        page_concurrency=settings.page_concurrency,
        queue_size=settings.queue_size,
    )
    return await orchestrator.run()
