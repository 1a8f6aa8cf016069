from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from .errors import MissingIdentity

_WS_RE = re.compile(r"\s+")

# SearchQuery attribute -> provider query parameter
LIST_PARAMS: Dict[str, str] = {
    "current_companies": "currentCompany",
    "past_companies": "pastCompany",
    "schools": "school",
    "locations": "location",
    "industry_ids": "industryId",
}


def clean_value(value: Optional[str]) -> str:
    # The provider joins list filters with commas, so a comma inside a value would split it
    return _WS_RE.sub(" ", (value or "").replace(",", " ")).strip()


def clean_values(values: Optional[Iterable[Optional[str]]]) -> Tuple[str, ...]:
    out = []
    for v in values or ():
        c = clean_value(None if v is None else str(v))
        if c:
            out.append(c)
    return tuple(out)


@dataclass(frozen=True)
class SearchQuery:
    first_name: str
    last_name: str
    current_companies: Tuple[str, ...] = ()
    past_companies: Tuple[str, ...] = ()
    schools: Tuple[str, ...] = ()
    locations: Tuple[str, ...] = ()
    industry_ids: Tuple[str, ...] = ()

    @property
    def search(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_params(self) -> Dict[str, str]:
        """
        Provider query parameters. Empty filters are left out entirely.
        """
        params: Dict[str, str] = {}
        if self.search:
            params["search"] = self.search
        if self.first_name:
            params["firstName"] = self.first_name
        if self.last_name:
            params["lastName"] = self.last_name
        for attr, key in LIST_PARAMS.items():
            values = getattr(self, attr)
            if values:
                params[key] = ",".join(values)
        return params


def normalize_query(raw: Dict[str, Any]) -> SearchQuery:
    """
    Build a SearchQuery from raw input fields.

    Raises MissingIdentity before anything touches the network if either name is blank.
    """
    first_name = str(raw.get("first_name") or "").strip()
    last_name = str(raw.get("last_name") or "").strip()
    if not first_name or not last_name:
        raise MissingIdentity("Please provide firstName and lastName inputs.")

    return SearchQuery(
        first_name=first_name,
        last_name=last_name,
        **{attr: clean_values(raw.get(attr)) for attr in LIST_PARAMS},
    )
