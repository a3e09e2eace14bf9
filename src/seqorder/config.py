from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


@dataclass(frozen=True, slots=True)
class OrderFormConfig:
    catalog_workbook: Path | None = None
    directory_workbook: Path | None = None
    orders_dir: Path = PROJECT_ROOT / "orders"
    order_prefix: str = "ORDER"

    @classmethod
    def from_env(cls, env_file: Path | str | None = None) -> "OrderFormConfig":
        load_dotenv(env_file or PROJECT_ROOT / ".env")

        def _path(name: str) -> Path | None:
            value = os.environ.get(name, "").strip()
            return Path(value) if value else None

        prefix = os.environ.get("SEQORDER_ORDER_PREFIX", "ORDER").strip()
        if not prefix or not prefix.replace("-", "").replace("_", "").isalnum():
            raise ValueError(f"Invalid SEQORDER_ORDER_PREFIX: {prefix!r}")

        return cls(
            catalog_workbook=_path("SEQORDER_CATALOG_WORKBOOK"),
            directory_workbook=_path("SEQORDER_DIRECTORY_WORKBOOK"),
            orders_dir=_path("SEQORDER_ORDERS_DIR") or PROJECT_ROOT / "orders",
            order_prefix=prefix,
        )
