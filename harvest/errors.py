from __future__ import annotations


class HarvestError(Exception):
    """Base class for run-level harvest failures."""


class ConfigurationInvalid(HarvestError):
    pass


class MissingIdentity(ConfigurationInvalid):
    """Raised when firstName or lastName is empty after trimming."""


class NoBudget(HarvestError):
    """Raised when the computed item cap leaves nothing to scrape."""


class ProviderSearchFailure(HarvestError):
    """The paginated profile search failed after transport retries."""


class EnrichmentFetchFailure(HarvestError):
    """A single full-profile fetch failed; the candidate is lost."""
