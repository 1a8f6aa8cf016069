from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential_jitter
from tenacity.wait import wait_base

from config import AccountContext, Settings

from .errors import EnrichmentFetchFailure, ProviderSearchFailure
from .query import SearchQuery

logger = structlog.get_logger(__name__)

PROFILE_SEARCH_PATH = "/linkedin/profile-search"
PROFILE_PATH = "/linkedin/profile"
LINKEDIN_PROFILE_URL = "https://www.linkedin.com/in/{handle}"


@dataclass
class ItemOutcome:
    """
    Result of handling one search candidate.

    skipped marks a candidate that produced nothing; skipped + done also asks the
    search to stop fetching further pages.
    """

    status: int = 200
    entity_id: Optional[str] = None
    element: Optional[Dict[str, Any]] = None
    payments: List[str] = field(default_factory=list)
    skipped: bool = False
    done: bool = False

    @classmethod
    def skip(cls, done: bool = False) -> "ItemOutcome":
        return cls(status=0, skipped=True, done=done)


def profile_url(candidate: Dict[str, Any]) -> str:
    return LINKEDIN_PROFILE_URL.format(handle=candidate.get("publicIdentifier") or candidate.get("id"))


def account_headers(
    account: AccountContext,
    left_items: Optional[int] = None,
    user_max_items: Optional[int] = None,
) -> Dict[str, str]:
    """
    Diagnostic headers describing the host account, sent with every provider request.
    """
    return {
        "x-apify-userid": account.user_id,
        "x-apify-actor-id": account.actor_id,
        "x-apify-actor-run-id": account.actor_run_id,
        "x-apify-actor-build-id": account.actor_build_id,
        "x-apify-memory-mbytes": str(account.memory_mbytes),
        "x-apify-actor-max-paid-dataset-items": str(account.max_paid_items or 0),
        "x-apify-username": account.username,
        "x-apify-user-is-paying": "" if account.is_paying_flag is None else str(account.is_paying_flag).lower(),
        "x-apify-user-is-paying2": str(account.is_paying).lower(),
        "x-apify-max-total-charge-usd": str(account.max_total_charge_usd),
        "x-apify-is-pay-per-event": str(account.is_pay_per_event).lower(),
        "x-apify-user-left-items": str(left_items),
        "x-apify-user-max-items": str(user_max_items),
    }


def listing_headers(account: AccountContext) -> Dict[str, str]:
    # Free accounts get a single search slot and a short queue on the provider side
    return {
        "x-sub-user": account.username if account.is_paying else "",
        "x-concurrency": "" if account.is_paying else "1",
        "x-queue-size": "20" if account.is_paying else "5",
    }


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


class HarvestApiClient:
    """
    Thin async client for the HarvestAPI LinkedIn endpoints.

    Transport errors and 5xx responses are retried here; callers only see the final outcome.
    """

    def __init__(
        self,
        http_client,
        settings: Settings,
        account: Optional[AccountContext] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        retry_attempts: int = 3,
        retry_wait: Optional[wait_base] = None,
    ):
        self.http_client = http_client
        self.base_url = settings.base_url.rstrip("/")
        self.account = account or AccountContext()
        self.retry_attempts = retry_attempts
        self.retry_wait = retry_wait or wait_exponential_jitter(1, 3)
        self.headers: Dict[str, str] = {"X-API-Key": settings.api_token}
        self.headers.update(extra_headers or {})

    async def _get(self, path: str, params: Dict[str, str], headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        request_headers = {**self.headers, **(headers or {})}
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                r = await self.http_client.get(url, params=params, headers=request_headers)
                if r.status_code >= 500:
                    r.raise_for_status()
                return r
        raise RuntimeError(f"retry loop ended without a response from {url}")

    async def search_page(self, query: SearchQuery, page: int) -> Dict[str, Any]:
        """
        Fetch one page of profile search results.

        A 429 comes back as {"status": 429, "elements": []} so the caller can report it;
        anything else that is not a success raises ProviderSearchFailure.
        """
        params = {**query.to_params(), "page": str(page)}
        try:
            r = await self._get(PROFILE_SEARCH_PATH, params, headers=listing_headers(self.account))
        except httpx.HTTPError as e:
            raise ProviderSearchFailure(f"profile search failed on page {page}: {e}") from e

        if r.status_code == 429:
            return {"status": 429, "elements": []}
        if r.status_code >= 400:
            raise ProviderSearchFailure(f"profile search failed on page {page}: HTTP {r.status_code} {r.text[:500]}")
        try:
            data = r.json() or {}
        except ValueError as e:
            raise ProviderSearchFailure(f"profile search returned invalid JSON on page {page}") from e

        data.setdefault("status", r.status_code)
        data["elements"] = data.get("elements") or []
        logger.debug("search_page_fetched", page=page, elements=len(data["elements"]))
        return data

    async def get_profile(self, url: str, find_email: bool = False) -> ItemOutcome:
        params = {"url": url}
        if find_email:
            params["findEmail"] = "true"
        try:
            r = await self._get(PROFILE_PATH, params)
        except httpx.HTTPError as e:
            raise EnrichmentFetchFailure(f"profile fetch failed for {url}: {e}") from e

        if r.status_code == 404:
            return ItemOutcome(status=404)
        if r.status_code >= 400:
            raise EnrichmentFetchFailure(f"profile fetch failed for {url}: HTTP {r.status_code}")
        try:
            data = r.json() or {}
        except ValueError as e:
            raise EnrichmentFetchFailure(f"profile fetch returned invalid JSON for {url}") from e

        element = data.get("element")
        return ItemOutcome(
            status=int(data.get("status") or r.status_code),
            entity_id=data.get("entityId") or (element or {}).get("id"),
            element=element,
            payments=list(data.get("payments") or []),
        )
