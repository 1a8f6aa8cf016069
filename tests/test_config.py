import json

import pytest

from config import AccountContext, HarvestInput


def test_harvest_input_from_file(tmp_path):
    path = tmp_path / "INPUT.json"
    path.write_text(
        json.dumps(
            {
                "profileScraperMode": "Full + email search ($10 per 1k)",
                "firstName": "Jane",
                "lastName": "Doe",
                "locations": ["Paris", None],
                "maxItems": 25,
            }
        ),
        encoding="utf-8",
    )
    harvest_input = HarvestInput.from_file(str(path))
    assert harvest_input.profile_scraper_mode == "Full + email search ($10 per 1k)"
    assert harvest_input.locations == ["Paris"]
    assert harvest_input.max_items == 25
    assert harvest_input.query_fields()["first_name"] == "Jane"


def test_harvest_input_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        HarvestInput.from_file(str(tmp_path / "missing.json"))


def test_numeric_mode_code_kept_as_string():
    assert HarvestInput.from_dict({"profileScraperMode": 3}).profile_scraper_mode == "3"


def test_account_from_env(monkeypatch):
    monkeypatch.setenv("APIFY_USER_ID", "u1")
    monkeypatch.setenv("APIFY_USER_IS_PAYING", "false")
    monkeypatch.setenv("APIFY_IS_PAY_PER_EVENT", "true")
    monkeypatch.setenv("ACTOR_MAX_PAID_DATASET_ITEMS", "250")
    account = AccountContext.from_env()
    assert account.user_id == "u1"
    assert not account.is_paying
    assert account.is_pay_per_event
    assert account.max_paid_items == 250


def test_unknown_paying_flag_counts_as_paying(monkeypatch):
    monkeypatch.delenv("APIFY_USER_IS_PAYING", raising=False)
    assert AccountContext.from_env().is_paying
