from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .modes import ScrapeMode

SHORT_PROFILE = "short-profile"
FULL_PROFILE = "full-profile"
FULL_PROFILE_WITH_EMAIL = "full-profile-with-email"
ACTOR_START = "actor-start"

# Capability reported by the provider when it found an email for the profile
EMAIL_CAPABILITY = "linkedinProfileWithEmail"

# Runs that produced this few items still register a start charge
START_CHARGE_MAX_ITEMS = 5


@dataclass(frozen=True)
class BillingDecision:
    """
    Where an item goes and what it is charged as.

    channel None means the default dataset. For pay-per-event accounts the channel
    name is also the event charged for the push.
    """

    channel: Optional[str] = None
    event: Optional[str] = None


def decide(
    mode: ScrapeMode,
    capabilities: Optional[Iterable[str]],
    is_pay_per_event: bool,
) -> BillingDecision:
    if not is_pay_per_event:
        return BillingDecision()

    if mode is ScrapeMode.SHORT:
        channel = SHORT_PROFILE
    elif mode is ScrapeMode.EMAIL and EMAIL_CAPABILITY in set(capabilities or ()):
        channel = FULL_PROFILE_WITH_EMAIL
    else:
        channel = FULL_PROFILE
    return BillingDecision(channel=channel, event=channel)


def should_charge_start(scraped_items: int, request_success: bool) -> bool:
    return request_success and scraped_items <= START_CHARGE_MAX_ITEMS
