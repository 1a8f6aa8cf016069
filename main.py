from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import httpx
import structlog

from config import SETTINGS, AccountContext, HarvestInput, Settings
from harvest.orchestrator import run_harvest
from harvest.sink import ChargeLedger, DatasetSink
from harvest.utils import configure_logging_async


logger = structlog.get_logger(__name__)


async def main_async(
    settings: Settings,
    harvest_input: HarvestInput,
    account: Optional[AccountContext] = None,
) -> int:
    """
    Run one harvest and return the process exit code.

    Early exits (missing name, no budget) are normal completions. A failed profile
    search is not caught here and ends the process with a traceback.
    """
    await configure_logging_async(settings.log_file, settings.log_level)
    account = account or AccountContext.from_env()
    logger.info(
        "start",
        mode=harvest_input.profile_scraper_mode,
        max_items=harvest_input.max_items,
        is_paying=account.is_paying,
        is_pay_per_event=account.is_pay_per_event,
    )

    if not settings.api_token:
        logger.warning("missing_api_token", env="HARVESTAPI_TOKEN")

    sink = DatasetSink(settings.output_dir)
    ledger = ChargeLedger(str(Path(settings.output_dir) / "charges.jsonl"))

    timeout = httpx.Timeout(
        connect=settings.connect_timeout,
        read=settings.request_timeout,
        write=settings.request_timeout,
        pool=settings.request_timeout,
    )
    limits = httpx.Limits(max_keepalive_connections=20, max_connections=100)
    async with httpx.AsyncClient(
        timeout=timeout,
        limits=limits,
        headers={"Accept": "application/json"},
        http2=True,
    ) as http_client:
        try:
            state = await run_harvest(harvest_input, settings, account, http_client, sink, ledger)
        finally:
            await asyncio.to_thread(ledger.flush)

    if state is None:
        return 0

    sink.export()
    logger.info(
        "summary",
        scraped=state.scraped_items,
        total_found=state.total_found,
        rate_limited=state.rate_limited,
        failed=state.stats.failed if state.stats else 0,
        channels=dict(sink.counts),
        charges=ledger.summary(),
    )
    return 0


def parse_args(argv: Optional[list] = None) -> tuple[Settings, HarvestInput]:
    import argparse
    parser = argparse.ArgumentParser(description="LinkedIn profile search harvester")
    parser.add_argument("--input", dest="input_json", default=SETTINGS.input_json)
    parser.add_argument("--output-dir", dest="output_dir", default=SETTINGS.output_dir)
    parser.add_argument("--mode", dest="mode", default=None, help="Mode label or code: 1 short, 2 full, 3 full + email")
    parser.add_argument("--first-name", dest="first_name", default=None)
    parser.add_argument("--last-name", dest="last_name", default=None)
    parser.add_argument("--max-items", dest="max_items", type=int, default=None)
    parser.add_argument("--page-concurrency", type=int, default=SETTINGS.page_concurrency)
    parser.add_argument("--log-level", dest="log_level", default=SETTINGS.log_level)

    args = parser.parse_args(argv)

    if Path(args.input_json).exists():
        harvest_input = HarvestInput.from_file(args.input_json)
    else:
        harvest_input = HarvestInput()

    # CLI flags win over the input file
    if args.mode is not None:
        harvest_input.profile_scraper_mode = args.mode
    if args.first_name is not None:
        harvest_input.first_name = args.first_name
    if args.last_name is not None:
        harvest_input.last_name = args.last_name
    if args.max_items is not None:
        harvest_input.max_items = args.max_items

    s = Settings(
        api_token=SETTINGS.api_token,
        base_url=SETTINGS.base_url,
        input_json=args.input_json,
        output_dir=args.output_dir,
        page_concurrency=args.page_concurrency,
        queue_size=SETTINGS.queue_size,
        request_timeout=SETTINGS.request_timeout,
        connect_timeout=SETTINGS.connect_timeout,
        log_file=SETTINGS.log_file,
        log_level=args.log_level,
    )
    return s, harvest_input


if __name__ == "__main__":
    settings, harvest_input = parse_args()
    sys.exit(asyncio.run(main_async(settings, harvest_input)))
