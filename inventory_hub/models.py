# inventory_hub/models.py
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Boolean, ForeignKey, Text, Enum,
    Numeric, JSON, Index, UniqueConstraint
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
import enum

Base = declarative_base()


def _enum_column(enum_cls, **kwargs):
    """String-backed enum column storing the member values ('draft', 'count', ...)."""
    return Column(
        Enum(
            enum_cls,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            validate_strings=True,
            length=20,
        ),
        **kwargs
    )


class PurchaseOrderStatus(enum.Enum):
    """Lifecycle states of a purchase order.

    Values:
        DRAFT: Being created, no stock effect
        PENDING: Awaiting approval
        APPROVED: Approved, ready to send
        SENT: Sent to supplier, quantities count as on order
        CONFIRMED: Supplier confirmed
        PARTIAL: Some items received
        RECEIVED: Fully received (terminal)
        CANCELLED: Cancelled, may be re-opened as draft
    """
    DRAFT = 'draft'
    PENDING = 'pending'
    APPROVED = 'approved'
    SENT = 'sent'
    CONFIRMED = 'confirmed'
    PARTIAL = 'partial'
    RECEIVED = 'received'
    CANCELLED = 'cancelled'

    def __str__(self):
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'PurchaseOrderStatus':
        """Create a PurchaseOrderStatus from its string value.

        Raises:
            ValueError if the string value is not valid
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ', '.join(m.value for m in cls)
            raise ValueError(f"Invalid purchase order status: {value}. Valid values are: {valid}")


class TransactionType(enum.Enum):
    COUNT = 'count'
    ADJUST = 'adjust'
    RECEIVE = 'receive'

    def __str__(self):
        return self.value


class AdjustmentType(enum.Enum):
    COUNT = 'count'
    ADD = 'add'
    REMOVE = 'remove'

    def __str__(self):
        return self.value


class StockStatus(enum.Enum):
    OK = 'ok'
    WARNING = 'warning'
    CRITICAL = 'critical'
    OUT_OF_STOCK = 'out_of_stock'

    def __str__(self):
        return self.value


class ReferenceType(enum.Enum):
    MANUAL = 'manual'
    PURCHASE_ORDER = 'purchase_order'

    def __str__(self):
        return self.value


class Brand(Base):
    __tablename__ = 'brand'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20), unique=True)


class Supplier(Base):
    __tablename__ = 'supplier'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50))

    contact_name = Column(String(255))
    contact_email = Column(String(255))
    contact_phone = Column(String(50))
    address = Column(Text)
    country = Column(String(100))

    # Default terms
    default_lead_time_days = Column(Integer, default=14)
    min_order_qty = Column(Integer, default=1)
    payment_terms = Column(String(100))
    currency = Column(String(3), default='GBP')

    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    component_links = relationship("ComponentSupplier", back_populates="supplier")
    purchase_orders = relationship("PurchaseOrder", back_populates="supplier")


class Component(Base):
    __tablename__ = 'component'

    id = Column(Integer, primary_key=True)
    brand_id = Column(Integer, ForeignKey('brand.id', ondelete='SET NULL'))

    sku = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    category = Column(String(50))

    # Reorder settings
    safety_days = Column(Integer, default=14, nullable=False)
    minimum_order_quantity = Column(Integer, default=1, nullable=False)
    lead_time_days = Column(Integer)  # overrides supplier default when set

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    brand = relationship("Brand")
    stock_level = relationship("StockLevel", back_populates="component", uselist=False)
    supplier_links = relationship("ComponentSupplier", back_populates="component")
    bom_entries = relationship("BOMEntry", back_populates="component")

    __table_args__ = (
        UniqueConstraint('brand_id', 'sku', name='uq_component_brand_sku'),
        Index('idx_component_active', 'is_active'),
    )


class ComponentSupplier(Base):
    __tablename__ = 'component_supplier'

    id = Column(Integer, primary_key=True)
    component_id = Column(Integer, ForeignKey('component.id', ondelete='CASCADE'), nullable=False)
    supplier_id = Column(Integer, ForeignKey('supplier.id', ondelete='CASCADE'), nullable=False)

    supplier_sku = Column(String(100))
    unit_cost = Column(Numeric(10, 2))
    lead_time_days = Column(Integer)
    min_order_qty = Column(Integer)

    priority = Column(Integer, default=1)  # 1 = primary supplier
    is_preferred = Column(Boolean, default=False, nullable=False)

    component = relationship("Component", back_populates="supplier_links")
    supplier = relationship("Supplier", back_populates="component_links")

    __table_args__ = (
        UniqueConstraint('component_id', 'supplier_id', name='uq_component_supplier'),
    )


class StockLevel(Base):
    """Physical and committed stock for one component.

    ``version`` is the optimistic concurrency counter: every flush of a
    changed row checks and bumps it, so two writers that read the same
    version cannot both commit.
    """
    __tablename__ = 'stock_level'

    id = Column(Integer, primary_key=True)
    component_id = Column(Integer, ForeignKey('component.id', ondelete='CASCADE'),
                          nullable=False, unique=True)

    on_hand = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)
    on_order = Column(Integer, nullable=False, default=0)

    last_count_date = Column(Date)
    last_movement_at = Column(DateTime)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    component = relationship("Component", back_populates="stock_level")

    __mapper_args__ = {'version_id_col': version}

    @hybrid_property
    def available(self):
        return self.on_hand - self.reserved


class StockTransaction(Base):
    """Append-only audit ledger of on-hand movements."""
    __tablename__ = 'stock_transaction'

    id = Column(Integer, primary_key=True)
    component_id = Column(Integer, ForeignKey('component.id', ondelete='CASCADE'), nullable=False)

    transaction_type = _enum_column(TransactionType, nullable=False)

    # positive = add, negative = remove
    quantity = Column(Integer, nullable=False)
    quantity_before = Column(Integer)
    quantity_after = Column(Integer)

    reference_type = _enum_column(ReferenceType)
    reference_id = Column(Integer)

    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    component = relationship("Component")

    __table_args__ = (
        Index('idx_stock_transaction_component', 'component_id'),
        Index('idx_stock_transaction_reference', 'reference_type', 'reference_id'),
    )


class BOMEntry(Base):
    __tablename__ = 'bom_entry'

    id = Column(Integer, primary_key=True)
    product_sku = Column(String(100), nullable=False)
    brand_id = Column(Integer, ForeignKey('brand.id', ondelete='SET NULL'))
    component_id = Column(Integer, ForeignKey('component.id', ondelete='CASCADE'), nullable=False)
    quantity_per_unit = Column(Integer, nullable=False, default=1)
    notes = Column(Text)

    component = relationship("Component", back_populates="bom_entries")

    __table_args__ = (
        UniqueConstraint('product_sku', 'component_id', name='uq_bom_product_component'),
        Index('idx_bom_product_sku', 'product_sku'),
    )


class SKUMapping(Base):
    __tablename__ = 'sku_mapping'

    id = Column(Integer, primary_key=True)
    old_sku = Column(String(100), nullable=False, unique=True)
    current_sku = Column(String(100), nullable=False)
    brand_id = Column(Integer, ForeignKey('brand.id'))
    platform = Column(String(20))  # shopify, etsy or NULL for all
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_sku_mapping_current_sku', 'current_sku'),
    )


class PurchaseOrder(Base):
    __tablename__ = 'purchase_order'

    id = Column(Integer, primary_key=True)
    supplier_id = Column(Integer, ForeignKey('supplier.id', ondelete='RESTRICT'), nullable=False)
    brand_id = Column(Integer, ForeignKey('brand.id', ondelete='SET NULL'))

    po_number = Column(String(50), nullable=False, unique=True)
    status = _enum_column(PurchaseOrderStatus, nullable=False, default=PurchaseOrderStatus.DRAFT)

    ordered_date = Column(Date)
    expected_date = Column(Date)
    received_date = Column(Date)

    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), default='GBP')

    shipping_address = Column(Text)
    notes = Column(Text)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    supplier = relationship("Supplier", back_populates="purchase_orders")
    brand = relationship("Brand")
    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id"
    )

    __table_args__ = (
        Index('idx_po_status', 'status'),
        Index('idx_po_supplier', 'supplier_id'),
    )


class PurchaseOrderItem(Base):
    __tablename__ = 'purchase_order_item'

    id = Column(Integer, primary_key=True)
    purchase_order_id = Column(Integer, ForeignKey('purchase_order.id', ondelete='CASCADE'), nullable=False)
    component_id = Column(Integer, ForeignKey('component.id', ondelete='RESTRICT'), nullable=False)

    quantity_ordered = Column(Integer, nullable=False)
    quantity_received = Column(Integer, nullable=False, default=0)
    unit_price = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text)

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    component = relationship("Component")

    @property
    def line_total(self):
        return self.quantity_ordered * self.unit_price

    @property
    def is_complete(self):
        return (self.quantity_received or 0) >= self.quantity_ordered

    @property
    def outstanding(self):
        """Units ordered but not yet received (never negative)."""
        return max(0, self.quantity_ordered - (self.quantity_received or 0))


class PoSequence(Base):
    """Last allocated PO sequence per ``PO-YYYYMM`` prefix."""
    __tablename__ = 'po_sequence'

    prefix = Column(String(9), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}


class Order(Base):
    """Sales order as ingested by the platform sync jobs.

    Only read here, as order history for velocity.
    """
    __tablename__ = 'sales_order'

    id = Column(Integer, primary_key=True)
    brand_id = Column(Integer, ForeignKey('brand.id'))
    platform = Column(String(20), nullable=False)  # shopify, etsy, manual
    platform_order_id = Column(String(100))
    order_date = Column(Date, nullable=False)
    line_items = Column(JSON)
    raw_data = Column(JSON)
    excluded_at = Column(DateTime)

    __table_args__ = (
        Index('idx_sales_order_date', 'order_date'),
    )
