from __future__ import annotations

import asyncio
import json
import threading
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_CHANNEL = "default"


def to_json_line(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=str) + "\n"


class DatasetSink:
    """
    Local stand-in for the host's dataset: one JSON Lines file per output channel.
    """

    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.counts: Counter = Counter()
        self._lock = threading.Lock()

    def channel_path(self, channel: Optional[str]) -> Path:
        return self.output_dir / f"{channel or DEFAULT_CHANNEL}.jsonl"

    def _append(self, item: Dict[str, Any], channel: Optional[str]) -> None:
        line = to_json_line(item)
        with self._lock:
            with self.channel_path(channel).open("a", encoding="utf-8") as f:
                f.write(line)
            self.counts[channel or DEFAULT_CHANNEL] += 1

    def push_item(self, item: Dict[str, Any], channel: Optional[str] = None) -> asyncio.Task:
        """
        Schedule a write and return the pending task. Must be called from a running loop.
        """
        return asyncio.create_task(asyncio.to_thread(self._append, item, channel))

    def read_channel(self, channel: Optional[str] = None) -> List[Dict[str, Any]]:
        p = self.channel_path(channel)
        if not p.exists():
            return []
        return pd.read_json(p, lines=True, dtype=False).to_dict(orient="records")

    def export(self) -> List[str]:
        """Write a flat CSV next to every non-empty channel file."""
        written = []
        for channel in sorted(self.counts):
            p = self.channel_path(channel)
            if not p.exists() or p.stat().st_size == 0:
                continue
            df = pd.json_normalize(pd.read_json(p, lines=True, dtype=False).to_dict(orient="records"))
            out = p.with_suffix(".csv")
            df.to_csv(out, index=False)
            written.append(str(out))
        logger.info("dataset_exported", files=written, counts=dict(self.counts))
        return written


class ChargeLedger:
    """
    Records billing events for the run.

    charge() only counts and buffers, so it is safe to call from the event loop.
    flush() appends the buffered records to the ledger file and is meant to run
    once at the end of the run, off the loop.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self.events: Counter = Counter()
        self._pending: List[Dict[str, str]] = []
        self._lock = threading.Lock()

    def charge(self, event_name: str) -> None:
        record = {"eventName": event_name, "chargedAt": datetime.now(timezone.utc).isoformat()}
        with self._lock:
            self.events[event_name] += 1
            if self.path is not None:
                self._pending.append(record)

    def flush(self) -> int:
        with self._lock:
            records, self._pending = self._pending, []
        if self.path is None or not records:
            return 0
        try:
            with self.path.open("a", encoding="utf-8") as f:
                f.writelines(to_json_line(r) for r in records)
        except OSError as e:
            logger.warning("charge_record_failed", records=len(records), error=str(e))
            return 0
        return len(records)

    def summary(self) -> Dict[str, int]:
        return dict(self.events)
