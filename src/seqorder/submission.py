from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    success: bool
    order_id: str = ""
    error: str = ""


class Submitter(Protocol):
    def submit(self, snapshot: dict) -> SubmissionResult:
        ...


class JsonFileSubmitter:
    """Writes each submitted snapshot to ``<orders_dir>/<prefix>-<epoch ms>.json``."""

    def __init__(self, orders_dir: Path | str, prefix: str = "ORDER", clock=time.time):
        self.orders_dir = Path(orders_dir)
        self.prefix = prefix
        self._clock = clock

    def _next_order_id(self) -> str:
        order_id = f"{self.prefix}-{int(self._clock() * 1000)}"
        suffix = 1
        candidate = order_id
        while (self.orders_dir / f"{candidate}.json").exists():
            candidate = f"{order_id}-{suffix}"
            suffix += 1
        return candidate

    def submit(self, snapshot: dict) -> SubmissionResult:
        try:
            self.orders_dir.mkdir(parents=True, exist_ok=True)
            order_id = self._next_order_id()
            payload = {**snapshot, "order_id": order_id}
            path = self.orders_dir / f"{order_id}.json"
            path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Order submission failed: %s", exc)
            return SubmissionResult(success=False, error=f"{type(exc).__name__}: {exc}")

        logger.info("Order %s written to %s", order_id, path)
        return SubmissionResult(success=True, order_id=order_id)
