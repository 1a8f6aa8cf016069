import asyncio

import httpx
import pytest
from tenacity import wait_none

from config import AccountContext, Settings
from harvest.errors import EnrichmentFetchFailure, ProviderSearchFailure
from harvest.provider import HarvestApiClient, account_headers, listing_headers, profile_url
from harvest.query import normalize_query

SETTINGS = Settings(api_token="secret", base_url="https://api.test/")
QUERY = normalize_query({"first_name": "Jane", "last_name": "Doe", "locations": ["Paris", "Lyon"]})


def call(handler, method, *args, account=None, **client_kwargs):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            client = HarvestApiClient(http_client, SETTINGS, account, retry_wait=wait_none(), **client_kwargs)
            return await getattr(client, method)(*args)

    return asyncio.run(go())


def test_search_page_sends_query_and_headers():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(
            200,
            json={"elements": [{"id": "1"}], "pagination": {"totalPages": 1, "totalElements": 1}},
        )

    free = AccountContext(username="jane", is_paying_flag=False)
    data = call(handler, "search_page", QUERY, 1, account=free)

    request = seen["request"]
    assert request.url.path == "/linkedin/profile-search"
    assert request.url.params["search"] == "Jane Doe"
    assert request.url.params["location"] == "Paris,Lyon"
    assert request.url.params["page"] == "1"
    assert request.headers["x-api-key"] == "secret"
    assert request.headers["x-concurrency"] == "1"
    assert request.headers["x-queue-size"] == "5"
    assert data["status"] == 200
    assert data["elements"] == [{"id": "1"}]


def test_search_page_rate_limited_is_not_an_error():
    data = call(lambda request: httpx.Response(429), "search_page", QUERY, 1)
    assert data == {"status": 429, "elements": []}


def test_search_page_client_error_raises():
    with pytest.raises(ProviderSearchFailure):
        call(lambda request: httpx.Response(401, text="bad key"), "search_page", QUERY, 1)


def test_search_page_retries_server_errors():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"elements": []})

    data = call(handler, "search_page", QUERY, 2)
    assert len(attempts) == 3
    assert data["elements"] == []


def test_search_page_gives_up_after_retries():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(ProviderSearchFailure):
        call(handler, "search_page", QUERY, 1, retry_attempts=2)
    assert len(attempts) == 2


def test_get_profile_requests_email_and_reads_payments():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={
                "status": 200,
                "element": {"id": "ACo1", "publicIdentifier": "jane-doe", "emails": ["jane@example.com"]},
                "payments": ["linkedinProfileWithEmail"],
            },
        )

    outcome = call(handler, "get_profile", "https://www.linkedin.com/in/jane-doe", True)
    assert seen["params"] == {"url": "https://www.linkedin.com/in/jane-doe", "findEmail": "true"}
    assert outcome.element["publicIdentifier"] == "jane-doe"
    assert outcome.entity_id == "ACo1"
    assert outcome.payments == ["linkedinProfileWithEmail"]


def test_get_profile_without_email_omits_flag():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"element": {"id": "x"}})

    call(handler, "get_profile", "https://www.linkedin.com/in/x", False)
    assert "findEmail" not in seen["params"]


def test_get_profile_not_found_has_no_element():
    outcome = call(lambda request: httpx.Response(404), "get_profile", "https://www.linkedin.com/in/gone")
    assert outcome.status == 404
    assert outcome.element is None


def test_get_profile_failure_raises_enrichment_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(EnrichmentFetchFailure):
        call(handler, "get_profile", "https://www.linkedin.com/in/x", False, retry_attempts=1)


def test_profile_url_prefers_public_handle():
    assert profile_url({"id": "ACo1", "publicIdentifier": "jane"}) == "https://www.linkedin.com/in/jane"
    assert profile_url({"id": "ACo1"}) == "https://www.linkedin.com/in/ACo1"


def test_account_headers():
    account = AccountContext(user_id="u1", username="jane", is_paying_flag=None, is_pay_per_event=True)
    headers = account_headers(account, left_items=10, user_max_items=None)
    assert headers["x-apify-userid"] == "u1"
    assert headers["x-apify-user-is-paying"] == ""
    assert headers["x-apify-user-is-paying2"] == "true"
    assert headers["x-apify-is-pay-per-event"] == "true"
    assert headers["x-apify-user-left-items"] == "10"
    assert listing_headers(account) == {"x-sub-user": "jane", "x-concurrency": "", "x-queue-size": "20"}
