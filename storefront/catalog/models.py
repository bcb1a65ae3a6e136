"""
Catalog data model: products, filter dimensions, selections and facets.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from storefront.data.legacy_fields import parse_list, parse_quantity


# ---------------------------------------------------------------------------
# Filter dimensions
# ---------------------------------------------------------------------------

CATEGORICAL = "categorical"
FLAG = "flag"


@dataclass(frozen=True)
class FilterDimension:
    key: str        # FilterSelection / FacetCatalog key
    param: str      # query-parameter key
    column: str     # backend column on the products table
    attribute: str  # Product attribute
    label: str
    kind: str = CATEGORICAL

    @property
    def is_flag(self) -> bool:
        return self.kind == FLAG


DIMENSIONS: Tuple[FilterDimension, ...] = (
    FilterDimension("form_factor", "form_factor", "form_factor", "form_factor", "Form Factor"),
    FilterDimension("processor", "processor", "processor", "processor", "Processor"),
    FilterDimension("screen_size", "screen_size", "screen_size", "screen_size", "Screen Size"),
    FilterDimension("memory", "memory", "memory", "memory", "Memory"),
    FilterDimension("storage", "storage", "storage", "storage", "Storage"),
    FilterDimension("copilot_pc", "copilot", "copilot", "copilot", "Copilot + PC", FLAG),
    FilterDimension("five_g_enabled", "five_g", "five_g_Enabled", "five_g_enabled", "5G Enabled", FLAG),
)

DIMENSIONS_BY_KEY: Dict[str, FilterDimension] = {d.key: d for d in DIMENSIONS}
DIMENSIONS_BY_PARAM: Dict[str, FilterDimension] = {d.param: d for d in DIMENSIONS}
CATEGORICAL_DIMENSIONS = tuple(d for d in DIMENSIONS if not d.is_flag)
FLAG_DIMENSIONS = tuple(d for d in DIMENSIONS if d.is_flag)


# ---------------------------------------------------------------------------
# Product
# ---------------------------------------------------------------------------

def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "t")
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    text = str(value).strip().replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


class Product(BaseModel):
    """A product row normalized for the catalog (stored row is left untouched)."""
    id: str
    slug: Optional[str] = None
    name: str = ""
    sku: Optional[str] = None
    form_factor: Optional[str] = None
    processor: Optional[str] = None
    memory: Optional[str] = None
    storage: Optional[str] = None
    screen_size: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    copilot: bool = False
    five_g_enabled: bool = False
    total_inventory: int = 0
    stock_quantity: int = 0
    post_status: Optional[str] = None
    inventory_type: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    gallery: List[str] = Field(default_factory=list)
    date: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Product":
        return cls(
            id=str(row.get("id") or ""),
            slug=_clean_text(row.get("slug")),
            name=_clean_text(row.get("product_name") or row.get("name")) or "",
            sku=_clean_text(row.get("sku")),
            form_factor=_clean_text(row.get("form_factor")),
            processor=_clean_text(row.get("processor")),
            memory=_clean_text(row.get("memory")),
            storage=_clean_text(row.get("storage")),
            screen_size=_clean_text(row.get("screen_size")),
            technologies=parse_list(row.get("technologies")),
            copilot=_as_bool(row.get("copilot")),
            five_g_enabled=_as_bool(row.get("five_g_Enabled", row.get("five_g_enabled"))),
            total_inventory=parse_quantity(row.get("total_inventory"), default=0),
            stock_quantity=parse_quantity(row.get("stock_quantity"), default=0),
            post_status=_clean_text(row.get("post_status")),
            inventory_type=_clean_text(row.get("inventory_type")),
            description=_clean_text(row.get("description")),
            thumbnail=_clean_text(row.get("thumbnail")),
            gallery=parse_list(row.get("gallery")),
            date=_as_datetime(row.get("date")),
        )

    def value_for(self, dimension: FilterDimension) -> Any:
        return getattr(self, dimension.attribute)

    def is_published(self, published_status: str = "Publish") -> bool:
        return (self.post_status or "").lower() == published_status.lower()

    @property
    def in_stock(self) -> bool:
        return self.stock_quantity > 0

    def listed_timestamp(self) -> float:
        """Listing date as a POSIX timestamp; a missing date is the earliest possible."""
        if self.date is None:
            return float("-inf")
        dt = self.date if self.date.tzinfo else self.date.replace(tzinfo=timezone.utc)
        return dt.timestamp()


# ---------------------------------------------------------------------------
# Filter selection
# ---------------------------------------------------------------------------

def _to_frozen(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset(v for v in values if v)


@dataclass(frozen=True)
class FilterSelection:
    """Selected values per filter dimension; an empty set means no constraint."""
    form_factor: FrozenSet[str] = frozenset()
    processor: FrozenSet[str] = frozenset()
    screen_size: FrozenSet[str] = frozenset()
    memory: FrozenSet[str] = frozenset()
    storage: FrozenSet[str] = frozenset()
    copilot_pc: FrozenSet[str] = frozenset()
    five_g_enabled: FrozenSet[str] = frozenset()

    @classmethod
    def from_mapping(cls, mapping: Optional[Dict[str, Iterable[str]]] = None) -> "FilterSelection":
        """Build from {dimension_key: values}; unknown keys are ignored."""
        kwargs = {}
        for key, values in (mapping or {}).items():
            if key in DIMENSIONS_BY_KEY:
                if isinstance(values, str):
                    values = [values]
                kwargs[key] = _to_frozen(values)
        return cls(**kwargs)

    def get(self, key: str) -> FrozenSet[str]:
        return getattr(self, key)

    def with_values(self, key: str, values: Iterable[str]) -> "FilterSelection":
        if key not in DIMENSIONS_BY_KEY:
            raise KeyError(key)
        return replace(self, **{key: _to_frozen(values)})

    def toggle(self, key: str, value: str) -> "FilterSelection":
        current = self.get(key)
        updated = current - {value} if value in current else current | {value}
        return self.with_values(key, updated)

    def cleared(self) -> "FilterSelection":
        return FilterSelection()

    def items(self) -> List[Tuple[str, FrozenSet[str]]]:
        return [(f.name, getattr(self, f.name)) for f in fields(self)]

    def active_count(self) -> int:
        return sum(len(values) for _, values in self.items())

    def is_empty(self) -> bool:
        return self.active_count() == 0

    def as_dict(self) -> Dict[str, List[str]]:
        return {key: sorted(values) for key, values in self.items()}


# ---------------------------------------------------------------------------
# Facet catalog
# ---------------------------------------------------------------------------

BROWSE = "browse"
ENTRY = "entry"


@dataclass
class FacetCatalog:
    """Selectable values per dimension, in display order."""
    values: Dict[str, List[str]] = field(default_factory=dict)
    context: str = BROWSE

    def get(self, key: str) -> List[str]:
        return list(self.values.get(key, []))

    def as_dict(self) -> Dict[str, List[str]]:
        return {key: list(vals) for key, vals in self.values.items()}
