from __future__ import annotations

from dataclasses import dataclass, field
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes"}


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@dataclass
class Settings:
    # Provider
    api_token: str = os.getenv("HARVESTAPI_TOKEN", "")
    base_url: str = os.getenv("HARVESTAPI_URL", "https://api.harvest-api.com")

    # Paths
    input_json: str = os.getenv("INPUT_JSON", "INPUT.json")
    output_dir: str = os.getenv("OUTPUT_DIR", "output")

    # Behavior
    page_concurrency: int = int(os.getenv("PAGE_CONCURRENCY", "2"))
    queue_size: int = int(os.getenv("QUEUE_SIZE", "50"))
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "30"))
    connect_timeout: float = float(os.getenv("CONNECT_TIMEOUT", "10"))

    # Logging
    log_file: str = os.getenv("LOG_FILE", "harvest.log")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class AccountContext:
    """Facts about the host account and the current run, passed explicitly into the harvest."""

    user_id: str = ""
    username: str = ""
    actor_id: str = ""
    actor_run_id: str = ""
    actor_build_id: str = ""
    memory_mbytes: Optional[int] = None
    max_paid_items: Optional[int] = None
    # None means the host did not say; only an explicit False marks a free account
    is_paying_flag: Optional[bool] = None
    is_pay_per_event: bool = False
    max_total_charge_usd: Optional[float] = None

    @property
    def is_paying(self) -> bool:
        return self.is_paying_flag is not False

    @classmethod
    def from_env(cls) -> "AccountContext":
        charge = os.getenv("ACTOR_MAX_TOTAL_CHARGE_USD")
        try:
            max_charge = float(charge) if charge else None
        except ValueError:
            max_charge = None
        return cls(
            user_id=os.getenv("APIFY_USER_ID", ""),
            username=os.getenv("APIFY_USERNAME", ""),
            actor_id=os.getenv("APIFY_ACTOR_ID", ""),
            actor_run_id=os.getenv("APIFY_ACTOR_RUN_ID", ""),
            actor_build_id=os.getenv("APIFY_ACTOR_BUILD_ID", ""),
            memory_mbytes=_env_int("APIFY_MEMORY_MBYTES"),
            max_paid_items=_env_int("ACTOR_MAX_PAID_DATASET_ITEMS"),
            is_paying_flag=_env_bool("APIFY_USER_IS_PAYING"),
            is_pay_per_event=bool(_env_bool("APIFY_IS_PAY_PER_EVENT", False)),
            max_total_charge_usd=max_charge,
        )


@dataclass
class HarvestInput:
    profile_scraper_mode: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    current_companies: List[str] = field(default_factory=list)
    past_companies: List[str] = field(default_factory=list)
    schools: List[str] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)
    industry_ids: List[str] = field(default_factory=list)
    max_items: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HarvestInput":
        def as_list(key: str) -> List[str]:
            value = data.get(key) or []
            if isinstance(value, str):
                return [value]
            return [str(v) for v in value if v is not None]

        mode = data.get("profileScraperMode")
        max_items = data.get("maxItems")
        return cls(
            profile_scraper_mode=str(mode) if mode is not None else None,
            first_name=str(data.get("firstName") or ""),
            last_name=str(data.get("lastName") or ""),
            current_companies=as_list("currentCompanies"),
            past_companies=as_list("pastCompanies"),
            schools=as_list("schools"),
            locations=as_list("locations"),
            industry_ids=as_list("industryIds"),
            max_items=int(max_items) if max_items is not None else None,
        )

    @classmethod
    def from_file(cls, path: str) -> "HarvestInput":
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Input JSON not found: {p}")
        return cls.from_dict(json.loads(p.read_text(encoding="utf-8")) or {})

    def query_fields(self) -> Dict[str, Any]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "current_companies": self.current_companies,
            "past_companies": self.past_companies,
            "schools": self.schools,
            "locations": self.locations,
            "industry_ids": self.industry_ids,
        }


SETTINGS = Settings()
