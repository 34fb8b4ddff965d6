import re
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence

from repairfinder.models.dto import CategoryInfo, ServiceRecord

ALL_CATEGORIES = "all"

class Category(str, Enum):
    MOBILE = "mobile"
    LAPTOP = "laptop"
    APPLIANCES = "appliances"
    ELECTRONICS = "electronics"
    CLOTHING = "clothing"
    FURNITURE = "furniture"
    BIKES = "bikes"
    TOOLS = "tools"

CATEGORY_LABELS: Dict[Category, str] = {
    Category.MOBILE: "Mobile Phones",
    Category.LAPTOP: "Laptops & Computers",
    Category.APPLIANCES: "Home Appliances",
    Category.ELECTRONICS: "Electronics",
    Category.CLOTHING: "Clothing & Textiles",
    Category.FURNITURE: "Furniture",
    Category.BIKES: "Bikes & Scooters",
    Category.TOOLS: "Tools & Equipment",
}

# OSM type values that count as each category; empty means "match by text"
CATEGORY_TYPES: Dict[str, FrozenSet[str]] = {
    Category.MOBILE.value: frozenset({"mobile_phone", "electronics"}),
    Category.LAPTOP.value: frozenset({"computer", "electronics"}),
    Category.APPLIANCES.value: frozenset({"appliance"}),
    Category.ELECTRONICS.value: frozenset({"electronics"}),
    Category.CLOTHING.value: frozenset({"tailor", "shoemaker"}),
    Category.FURNITURE.value: frozenset(),
    Category.BIKES.value: frozenset({"bicycle", "bicycle_repair_station"}),
    Category.TOOLS.value: frozenset({"hardware"}),
}

_WORD = re.compile(r"[a-z]+")

def _singular(word: str) -> str:
    return word[:-1] if len(word) > 3 and word.endswith("s") else word

def category_id(value) -> Optional[str]:
    """Plain string id for a Category member or a raw string."""
    if isinstance(value, Category):
        return value.value
    return value or None

class CategoryMapper:
    """
    Narrows already-fetched services to a user-facing category.

    Categories without a known OSM vocabulary (including ids not in the table)
    fall back to a substring match on name or address.
    """

    def __init__(self, table: Optional[Dict[str, FrozenSet[str]]] = None):
        self.table = CATEGORY_TYPES if table is None else table

    def types_for(self, category: str) -> FrozenSet[str]:
        return self.table.get(category, frozenset())

    def apply(self, services: Sequence[ServiceRecord], category: Optional[str]) -> List[ServiceRecord]:
        category = category_id(category)
        if not category or category == ALL_CATEGORIES:
            return list(services)

        allowed = self.types_for(category)
        if allowed:
            return [s for s in services if s.type.lower() in allowed]

        needle = category.lower()
        return [s for s in services if needle in s.name.lower() or needle in s.address.lower()]

    @staticmethod
    def list_categories() -> List[CategoryInfo]:
        return [CategoryInfo(id=c.value, label=CATEGORY_LABELS[c]) for c in Category]

    @staticmethod
    def resolve(value: Optional[str]) -> Optional[str]:
        """Map a loose label (e.g. from the product analyzer) onto a known category id.

        Every word of ``value`` must name a word of the category label, ignoring
        a plural "s"; "computers" and "home appliance" resolve, "a" does not.
        """
        if not value:
            return None
        key = value.strip().lower()
        if key in CATEGORY_TYPES:
            return key
        words = {_singular(w) for w in _WORD.findall(key)}
        if not words:
            return None
        for category, label in CATEGORY_LABELS.items():
            label_words = {_singular(w) for w in _WORD.findall(label.lower())}
            if words <= label_words:
                return category.value
        return None
