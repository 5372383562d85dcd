# inventory_hub/core/bom.py
from collections import defaultdict
from typing import Dict, Iterable, List, NamedTuple, Set

from inventory_hub.core.sku_resolution import normalize_sku


class BomLine(NamedTuple):
    component_id: int
    quantity_per_unit: int


class BomIndex:
    """In-memory Bill of Materials: product SKU -> component requirements.

    Product SKUs are keyed uppercase so lookups are case-insensitive.
    """

    def __init__(self, entries: Iterable = ()):
        """Build the index.

        Args:
            entries: Objects or tuples exposing product_sku, component_id and
                     quantity_per_unit (BOMEntry rows or (sku, id, qty) tuples)
        """
        self._by_product: Dict[str, List[BomLine]] = defaultdict(list)
        self._by_component: Dict[int, Set[str]] = defaultdict(set)

        for entry in entries:
            if isinstance(entry, tuple):
                product_sku, component_id, quantity = entry
            else:
                product_sku = entry.product_sku
                component_id = entry.component_id
                quantity = entry.quantity_per_unit
            self.add(product_sku, component_id, quantity)

    def add(self, product_sku: str, component_id: int, quantity_per_unit: int) -> None:
        key = normalize_sku(product_sku)
        if not key:
            return
        self._by_product[key].append(BomLine(component_id, quantity_per_unit))
        self._by_component[component_id].add(key)

    def entries_for(self, product_sku: str) -> List[BomLine]:
        """Component lines for one product SKU (empty list when unmapped)."""
        key = normalize_sku(product_sku)
        if not key:
            return []
        return list(self._by_product.get(key, ()))

    def has_product(self, product_sku: str) -> bool:
        key = normalize_sku(product_sku)
        return bool(key) and key in self._by_product

    def product_skus(self) -> Set[str]:
        return set(self._by_product)

    def components(self) -> Set[int]:
        return set(self._by_component)

    def products_using(self, component_id: int) -> Set[str]:
        return set(self._by_component.get(component_id, ()))

    def __len__(self):
        return sum(len(lines) for lines in self._by_product.values())
