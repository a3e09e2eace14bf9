from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .catalog import CatalogIndex
from .config import OrderFormConfig
from .directory import CustomerDirectory, SalesDirectory
from .engine import OrderSession
from .loaders import load_catalog, load_customer_directory, load_sales_directory
from .submission import JsonFileSubmitter, Submitter

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RuntimeAssets:
    catalog_item_count: int
    package_count: int
    sales_code_count: int
    customer_count: int


def _assets(catalog: CatalogIndex, sales: SalesDirectory, customers: CustomerDirectory) -> RuntimeAssets:
    return RuntimeAssets(
        catalog_item_count=len(catalog),
        package_count=len(catalog.presets),
        sales_code_count=len(sales),
        customer_count=len(customers),
    )


def build_session_from_excels(
    catalog_path: Path | str | None,
    directory_path: Path | str,
    submitter: Submitter | None = None,
) -> tuple[OrderSession, RuntimeAssets]:
    catalog = load_catalog(catalog_path) if catalog_path else CatalogIndex.default()
    sales = load_sales_directory(directory_path)
    customers = load_customer_directory(directory_path)
    session = OrderSession(catalog=catalog, sales=sales, customers=customers, submitter=submitter)
    return session, _assets(catalog, sales, customers)


def build_session_from_config(config: OrderFormConfig) -> tuple[OrderSession, RuntimeAssets]:
    submitter = JsonFileSubmitter(config.orders_dir, prefix=config.order_prefix)
    if config.directory_workbook is not None:
        return build_session_from_excels(config.catalog_workbook, config.directory_workbook, submitter)

    logger.warning("No directory workbook configured; sales codes will not resolve")
    catalog = load_catalog(config.catalog_workbook) if config.catalog_workbook else CatalogIndex.default()
    sales = SalesDirectory({})
    customers = CustomerDirectory([])
    session = OrderSession(catalog=catalog, sales=sales, customers=customers, submitter=submitter)
    return session, _assets(catalog, sales, customers)
