# inventory_hub/services/catalog_service.py
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from inventory_hub.core.bom import BomIndex
from inventory_hub.core.sku_resolution import normalize_sku
from inventory_hub.exceptions import NotFoundError, ValidationError
from inventory_hub.logging_setup import get_logger
from inventory_hub.models import BOMEntry, Component, ComponentSupplier, SKUMapping, Supplier
from inventory_hub.utils.math_utils import to_money

logger = get_logger('catalog')

COMPONENT_FIELDS = (
    'brand_id', 'sku', 'name', 'description', 'category', 'safety_days',
    'minimum_order_quantity', 'lead_time_days', 'is_active'
)

SUPPLIER_FIELDS = (
    'name', 'code', 'contact_name', 'contact_email', 'contact_phone', 'address',
    'country', 'default_lead_time_days', 'min_order_qty', 'payment_terms',
    'currency', 'is_active', 'notes'
)

NON_NEGATIVE_INT_FIELDS = ('safety_days', 'lead_time_days', 'default_lead_time_days')
POSITIVE_INT_FIELDS = ('minimum_order_quantity', 'min_order_qty')


def _check_numbers(data: Mapping[str, Any]) -> Dict[str, str]:
    errors = {}
    for field in NON_NEGATIVE_INT_FIELDS:
        value = data.get(field)
        if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 0):
            errors[field] = f"{field} must be a non-negative integer"
    for field in POSITIVE_INT_FIELDS:
        value = data.get(field)
        if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 1):
            errors[field] = f"{field} must be a positive integer"
    return errors


def _mapping_pair(entry) -> Optional[Tuple[str, str]]:
    """Normalized (old, current) of an import entry, or None when unusable."""
    if not isinstance(entry, Mapping):
        return None
    old, current = entry.get('old_sku'), entry.get('current_sku')
    if not isinstance(old, str) or not isinstance(current, str):
        return None
    old, current = normalize_sku(old), normalize_sku(current)
    if not old or not current or old == current:
        return None
    return old, current


class CatalogService:
    """Master data: components, suppliers, BOM entries and SKU mappings."""

    def __init__(self, session: Session):
        """Initialize the catalog service.

        Args:
            session: Database session
        """
        self.session = session

    # Components

    def get_component(self, component_id: int) -> Component:
        component = self.session.get(Component, component_id)
        if component is None:
            raise NotFoundError(
                f"Component with ID {component_id} not found",
                details={'component_id': component_id}
            )
        return component

    def get_components(self, brand_id: Optional[int] = None, active_only: bool = True) -> List[Component]:
        """Get components, optionally filtered by brand.

        Args:
            brand_id: Optional brand ID filter
            active_only: Skip deactivated components

        Returns:
            List of components ordered by SKU
        """
        query = self.session.query(Component)

        if brand_id is not None:
            query = query.filter(Component.brand_id == brand_id)

        if active_only:
            query = query.filter(Component.is_active.is_(True))

        return query.order_by(Component.sku).all()

    def create_component(self, data: Mapping[str, Any]) -> Component:
        """Create a component.

        Args:
            data: sku and name are required; other COMPONENT_FIELDS optional

        Returns:
            The new Component
        """
        errors = _check_numbers(data)
        if not data.get('sku'):
            errors['sku'] = 'SKU is required'
        if not data.get('name'):
            errors['name'] = 'Name is required'
        if errors:
            raise ValidationError('; '.join(errors.values()), details={'fields': errors})

        sku = normalize_sku(data['sku'])
        brand_id = data.get('brand_id')

        existing = (
            self.session.query(Component)
            .filter(Component.sku == sku, Component.brand_id == brand_id)
            .first()
        )
        if existing is not None:
            raise ValidationError(
                f"Component with SKU {sku} already exists",
                details={'sku': sku, 'brand_id': brand_id}
            )

        values = {field: data[field] for field in COMPONENT_FIELDS if data.get(field) is not None}
        values['sku'] = sku
        component = Component(**values)

        self.session.add(component)
        self.session.flush()
        logger.info(f"Created component {sku} (ID {component.id})")
        return component

    def update_component(self, component_id: int, updates: Mapping[str, Any]) -> Component:
        """Update a component.

        Unknown fields are ignored with a warning.
        """
        component = self.get_component(component_id)

        errors = _check_numbers(updates)
        if errors:
            raise ValidationError('; '.join(errors.values()), details={'fields': errors})

        for field, value in updates.items():
            if field not in COMPONENT_FIELDS:
                logger.warning(f"Field {field} cannot be updated on Component")
                continue
            if field == 'sku':
                value = normalize_sku(value)
            setattr(component, field, value)

        self.session.flush()
        return component

    def deactivate_component(self, component_id: int) -> Component:
        """Components are never hard-deleted; history and POs still refer to them."""
        component = self.get_component(component_id)
        component.is_active = False
        self.session.flush()
        logger.info(f"Deactivated component {component.sku}")
        return component

    # Suppliers

    def get_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.session.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError(
                f"Supplier with ID {supplier_id} not found",
                details={'supplier_id': supplier_id}
            )
        return supplier

    def get_suppliers(self, active_only: bool = True) -> List[Supplier]:
        query = self.session.query(Supplier)
        if active_only:
            query = query.filter(Supplier.is_active.is_(True))
        return query.order_by(Supplier.name).all()

    def create_supplier(self, data: Mapping[str, Any]) -> Supplier:
        errors = _check_numbers(data)
        if not data.get('name'):
            errors['name'] = 'Supplier name is required'
        if errors:
            raise ValidationError('; '.join(errors.values()), details={'fields': errors})

        supplier = Supplier(**{
            field: data[field] for field in SUPPLIER_FIELDS if data.get(field) is not None
        })
        self.session.add(supplier)
        self.session.flush()
        logger.info(f"Created supplier {supplier.name} (ID {supplier.id})")
        return supplier

    def update_supplier(self, supplier_id: int, updates: Mapping[str, Any]) -> Supplier:
        supplier = self.get_supplier(supplier_id)

        errors = _check_numbers(updates)
        if errors:
            raise ValidationError('; '.join(errors.values()), details={'fields': errors})

        for field, value in updates.items():
            if field in SUPPLIER_FIELDS:
                setattr(supplier, field, value)
            else:
                logger.warning(f"Field {field} cannot be updated on Supplier")

        self.session.flush()
        return supplier

    def deactivate_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.get_supplier(supplier_id)
        supplier.is_active = False
        self.session.flush()
        logger.info(f"Deactivated supplier {supplier.name}")
        return supplier

    def link_supplier(
        self,
        component_id: int,
        supplier_id: int,
        supplier_sku: Optional[str] = None,
        unit_cost=None,
        lead_time_days: Optional[int] = None,
        min_order_qty: Optional[int] = None,
        priority: int = 1,
        is_preferred: bool = False
    ) -> ComponentSupplier:
        """Create or update the link between a component and a supplier.

        Marking a link preferred clears the flag on the component's other links.
        """
        self.get_component(component_id)
        self.get_supplier(supplier_id)

        errors = _check_numbers({'lead_time_days': lead_time_days, 'min_order_qty': min_order_qty})
        if errors:
            raise ValidationError('; '.join(errors.values()), details={'fields': errors})

        link = (
            self.session.query(ComponentSupplier)
            .filter(
                ComponentSupplier.component_id == component_id,
                ComponentSupplier.supplier_id == supplier_id
            )
            .one_or_none()
        )
        if link is None:
            link = ComponentSupplier(component_id=component_id, supplier_id=supplier_id)
            self.session.add(link)

        link.supplier_sku = supplier_sku
        link.unit_cost = to_money(unit_cost) if unit_cost is not None else None
        link.lead_time_days = lead_time_days
        link.min_order_qty = min_order_qty
        link.priority = priority
        link.is_preferred = is_preferred

        self.session.flush()

        if is_preferred:
            others = (
                self.session.query(ComponentSupplier)
                .filter(
                    ComponentSupplier.component_id == component_id,
                    ComponentSupplier.id != link.id
                )
                .all()
            )
            for other in others:
                other.is_preferred = False
            self.session.flush()

        return link

    # Bill of materials

    def set_bom_entry(
        self,
        product_sku: str,
        component_id: int,
        quantity_per_unit: int = 1,
        brand_id: Optional[int] = None,
        notes: Optional[str] = None
    ) -> BOMEntry:
        """Insert or update the quantity of a component in a product's BOM."""
        if not product_sku:
            raise ValidationError("Product SKU is required", details={'product_sku': product_sku})
        if not isinstance(quantity_per_unit, int) or isinstance(quantity_per_unit, bool) or quantity_per_unit < 1:
            raise ValidationError(
                "quantity_per_unit must be a positive integer",
                details={'quantity_per_unit': quantity_per_unit}
            )
        self.get_component(component_id)

        sku = normalize_sku(product_sku)
        entry = (
            self.session.query(BOMEntry)
            .filter(BOMEntry.product_sku == sku, BOMEntry.component_id == component_id)
            .one_or_none()
        )
        if entry is None:
            entry = BOMEntry(product_sku=sku, component_id=component_id)
            self.session.add(entry)

        entry.quantity_per_unit = quantity_per_unit
        entry.brand_id = brand_id
        entry.notes = notes

        self.session.flush()
        return entry

    def delete_bom_entry(self, product_sku: str, component_id: int) -> None:
        sku = normalize_sku(product_sku)
        entry = (
            self.session.query(BOMEntry)
            .filter(BOMEntry.product_sku == sku, BOMEntry.component_id == component_id)
            .one_or_none()
        )
        if entry is None:
            raise NotFoundError(
                f"BOM entry {sku} / component {component_id} not found",
                details={'product_sku': sku, 'component_id': component_id}
            )
        self.session.delete(entry)
        self.session.flush()

    def get_bom_entries(
        self,
        product_sku: Optional[str] = None,
        component_id: Optional[int] = None
    ) -> List[BOMEntry]:
        query = self.session.query(BOMEntry)
        if product_sku:
            query = query.filter(BOMEntry.product_sku == normalize_sku(product_sku))
        if component_id is not None:
            query = query.filter(BOMEntry.component_id == component_id)
        return query.order_by(BOMEntry.product_sku, BOMEntry.component_id).all()

    def load_bom_index(self) -> BomIndex:
        """Load the whole BOM table into memory."""
        return BomIndex(self.session.query(BOMEntry).all())

    # SKU mappings

    def create_sku_mapping(
        self,
        old_sku: str,
        current_sku: str,
        brand_id: Optional[int] = None,
        platform: Optional[str] = None,
        notes: Optional[str] = None
    ) -> SKUMapping:
        """Map a legacy SKU to its current SKU.

        Mappings are resolved in a single hop, so chains are rejected: the
        old SKU may not be another mapping's target and the current SKU may
        not be another mapping's source.
        """
        old = normalize_sku(old_sku)
        current = normalize_sku(current_sku)

        if not old or not current:
            raise ValidationError(
                "old_sku and current_sku are required",
                details={'old_sku': old_sku, 'current_sku': current_sku}
            )
        if old == current:
            raise ValidationError("old_sku and current_sku must differ", details={'sku': old})

        if self.session.query(SKUMapping).filter(SKUMapping.old_sku == old).first() is not None:
            raise ValidationError(f"SKU {old} is already mapped", details={'old_sku': old})

        if self.session.query(SKUMapping).filter(SKUMapping.current_sku == old).first() is not None:
            raise ValidationError(
                f"SKU {old} is the current SKU of another mapping",
                details={'old_sku': old}
            )

        if self.session.query(SKUMapping).filter(SKUMapping.old_sku == current).first() is not None:
            raise ValidationError(
                f"SKU {current} is itself mapped to another SKU",
                details={'current_sku': current}
            )

        mapping = SKUMapping(
            old_sku=old,
            current_sku=current,
            brand_id=brand_id,
            platform=platform,
            notes=notes,
        )
        self.session.add(mapping)
        self.session.flush()
        logger.info(f"Mapped SKU {old} -> {current}")
        return mapping

    def delete_sku_mapping(self, old_sku: str) -> None:
        old = normalize_sku(old_sku)
        mapping = self.session.query(SKUMapping).filter(SKUMapping.old_sku == old).one_or_none()
        if mapping is None:
            raise NotFoundError(f"SKU mapping for {old} not found", details={'old_sku': old})
        self.session.delete(mapping)
        self.session.flush()

    def get_sku_mappings(self, brand_id: Optional[int] = None) -> List[SKUMapping]:
        query = self.session.query(SKUMapping)
        if brand_id is not None:
            query = query.filter(SKUMapping.brand_id == brand_id)
        return query.order_by(SKUMapping.old_sku).all()

    def import_sku_mappings(self, entries: List[Mapping[str, Any]], dry_run: bool = False) -> Dict[str, Any]:
        """Bulk-load SKU mappings, e.g. from a SKU audit export.

        Entries without both SKUs, or mapping a SKU to itself, are ignored.
        Entries whose old SKU is already mapped are skipped. An entry that
        would break the no-chain rule is reported in ``errors`` and does not
        stop the rest of the import.

        Args:
            entries: [{old_sku, current_sku, brand_id, platform, notes}]
            dry_run: Only classify the entries, write nothing

        Returns:
            Summary dict with counts, ``errors`` and (dry run) a ``preview``
        """
        if not isinstance(entries, list):
            raise ValidationError("mappings must be a list", details={'mappings': type(entries).__name__})

        valid = [entry for entry in entries if _mapping_pair(entry) is not None]

        existing = set(self.load_sku_mapping_table())
        pending = []
        for entry in valid:
            old = normalize_sku(entry['old_sku'])
            if old in existing:
                continue
            existing.add(old)
            pending.append(entry)

        summary = {
            'total': len(entries),
            'valid': len(valid),
            'skipped_existing': len(valid) - len(pending),
        }

        if dry_run:
            summary['to_insert'] = len(pending)
            summary['preview'] = [
                {'old_sku': normalize_sku(e['old_sku']), 'current_sku': normalize_sku(e['current_sku'])}
                for e in pending[:10]
            ]
            return summary

        inserted = 0
        errors = []
        for entry in pending:
            try:
                self.create_sku_mapping(
                    entry['old_sku'],
                    entry['current_sku'],
                    brand_id=entry.get('brand_id'),
                    platform=entry.get('platform'),
                    notes=entry.get('notes') or 'Bulk import',
                )
            except ValidationError as e:
                errors.append({'old_sku': normalize_sku(entry['old_sku']), 'error': e.message})
            else:
                inserted += 1

        summary['inserted'] = inserted
        summary['errors'] = errors
        logger.info(f"Imported {inserted} SKU mappings ({len(errors)} rejected)")
        return summary

    def load_sku_mapping_table(self) -> Dict[str, str]:
        """Load all SKU mappings as an old_sku -> current_sku dict."""
        rows = self.session.query(SKUMapping.old_sku, SKUMapping.current_sku).all()
        return {normalize_sku(old): normalize_sku(current) for old, current in rows}
