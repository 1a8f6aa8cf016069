import asyncio

import pytest

from harvest.errors import EnrichmentFetchFailure, ProviderSearchFailure
from harvest.provider import ItemOutcome


def candidate(i):
    return {
        "id": f"ACoAA{i}",
        "publicIdentifier": f"person-{i}",
        "linkedinUrl": f"https://www.linkedin.com/in/person-{i}",
    }


class FakeProvider:
    """In-memory stand-in for HarvestApiClient."""

    def __init__(self, pages, first_status=200, fail_on_page=None, broken=(), with_email=()):
        self.pages = pages
        self.first_status = first_status
        self.fail_on_page = fail_on_page
        self.broken = set(broken)
        self.with_email = set(with_email)
        self.search_calls = []
        self.profile_calls = []

    async def search_page(self, query, page):
        self.search_calls.append(page)
        await asyncio.sleep(0)
        if page == self.fail_on_page:
            raise ProviderSearchFailure(f"page {page} failed")
        if page == 1 and self.first_status == 429:
            return {"status": 429, "elements": []}
        elements = self.pages[page - 1] if page <= len(self.pages) else []
        return {
            "status": 200,
            "elements": list(elements),
            "pagination": {
                "totalPages": len(self.pages),
                "totalElements": sum(len(p) for p in self.pages),
                "pageNumber": page,
            },
        }

    async def get_profile(self, url, find_email=False):
        self.profile_calls.append((url, find_email))
        await asyncio.sleep(0)
        handle = url.rsplit("/", 1)[-1]
        if handle in self.broken:
            raise EnrichmentFetchFailure(f"profile fetch failed for {url}")
        payments = ["linkedinProfile"]
        if find_email and handle in self.with_email:
            payments.append("linkedinProfileWithEmail")
        return ItemOutcome(
            status=200,
            entity_id=handle,
            element={"publicIdentifier": handle, "linkedinUrl": url, "headline": "Engineer"},
            payments=payments,
        )


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def make_pages():
    def build(*sizes):
        pages, n = [], 0
        for size in sizes:
            pages.append([candidate(n + i) for i in range(size)])
            n += size
        return pages

    return build
