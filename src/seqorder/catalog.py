from __future__ import annotations

from dataclasses import dataclass, field

from .policy_tables import (
    DEFAULT_BUNDLE_BINDINGS,
    DEFAULT_CATALOG_ROWS,
    DEFAULT_PACKAGE_PRESETS,
)
from .state_schema import CategoryId, SampleType


class CatalogError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class PackageBinding:
    sample_type: SampleType | None = None
    yield_per_sample_gb: float | None = None

    @property
    def is_empty(self) -> bool:
        return self.sample_type is None and self.yield_per_sample_gb is None


@dataclass(frozen=True, slots=True)
class CatalogItem:
    code: str
    category: CategoryId
    description: str
    yield_gb_per_unit: float | None = None
    binding: PackageBinding | None = None

    @property
    def label(self) -> str:
        return f"{self.code} {self.description}".strip()


@dataclass(frozen=True, slots=True)
class DefaultService:
    category: CategoryId
    catalog_code: str
    default_quantity: int
    exclude_from_multiplier: bool = False


@dataclass(frozen=True, slots=True)
class PackagePreset:
    package_id: str
    name: str
    categories: tuple[CategoryId, ...]
    default_services: tuple[DefaultService, ...] = ()
    recommended_sample_type: SampleType | None = None
    yield_per_sample_gb: float | None = None
    service_filters: dict[CategoryId, tuple[str, ...]] = field(default_factory=dict)

    def defaults_for(self, category: CategoryId) -> list[DefaultService]:
        return [d for d in self.default_services if d.category == category]

    def default_for(self, category: CategoryId, catalog_code: str) -> DefaultService | None:
        for d in self.default_services:
            if d.category == category and d.catalog_code == catalog_code:
                return d
        return None

    def allowed_codes(self, category: CategoryId) -> tuple[str, ...]:
        return tuple(self.service_filters.get(category, ()))

    @property
    def binding(self) -> PackageBinding:
        return PackageBinding(
            sample_type=self.recommended_sample_type,
            yield_per_sample_gb=self.yield_per_sample_gb,
        )


class CatalogIndex:
    """Read-only lookup of catalog items by category plus the package presets."""

    def __init__(self, items: list[CatalogItem], presets: list[PackagePreset] | None = None):
        self._items_by_code: dict[str, CatalogItem] = {}
        self._items_by_category: dict[CategoryId, list[CatalogItem]] = {c: [] for c in CategoryId}
        for item in items:
            if item.code in self._items_by_code:
                raise CatalogError(f"Duplicate catalog code: {item.code}")
            self._items_by_code[item.code] = item
            self._items_by_category[item.category].append(item)

        self._presets: dict[str, PackagePreset] = {}
        for preset in presets or []:
            if preset.package_id in self._presets:
                raise CatalogError(f"Duplicate package id: {preset.package_id}")
            self._presets[preset.package_id] = preset

    @classmethod
    def default(cls) -> "CatalogIndex":
        items = []
        for code, category, description, yield_gb in DEFAULT_CATALOG_ROWS:
            binding = None
            if code in DEFAULT_BUNDLE_BINDINGS:
                sample_type, per_sample = DEFAULT_BUNDLE_BINDINGS[code]
                binding = PackageBinding(sample_type=sample_type, yield_per_sample_gb=per_sample)
            items.append(
                CatalogItem(
                    code=code,
                    category=category,
                    description=description,
                    yield_gb_per_unit=yield_gb,
                    binding=binding,
                )
            )

        presets = []
        for package_id, definition in DEFAULT_PACKAGE_PRESETS.items():
            presets.append(
                PackagePreset(
                    package_id=package_id,
                    name=definition["name"],
                    categories=tuple(definition["categories"]),
                    default_services=tuple(
                        DefaultService(
                            category=category,
                            catalog_code=code,
                            default_quantity=qty,
                            exclude_from_multiplier=excluded,
                        )
                        for category, code, qty, excluded in definition["default_services"]
                    ),
                    recommended_sample_type=definition.get("recommended_sample_type"),
                    yield_per_sample_gb=definition.get("yield_per_sample_gb"),
                    service_filters={k: tuple(v) for k, v in definition.get("service_filters", {}).items()},
                )
            )
        return cls(items, presets)

    def items(self, category: CategoryId) -> list[CatalogItem]:
        return list(self._items_by_category.get(category, []))

    def get(self, code: str) -> CatalogItem | None:
        return self._items_by_code.get(code)

    def yield_coefficient(self, code: str) -> float:
        item = self._items_by_code.get(code)
        if item is None or item.yield_gb_per_unit is None:
            return 0.0
        return float(item.yield_gb_per_unit)

    @property
    def presets(self) -> list[PackagePreset]:
        return list(self._presets.values())

    def find_preset(self, package_id: str) -> PackagePreset | None:
        return self._presets.get(package_id)

    def __len__(self) -> int:
        return len(self._items_by_code)
