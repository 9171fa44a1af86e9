# bullion/models.py
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


class MetalType(str, Enum):
    GOLD = "Gold"
    SILVER = "Silver"

    @classmethod
    def parse(cls, value) -> "MetalType":
        """Case-insensitive lookup; raises ValueError for anything else."""
        text = str(getattr(value, "value", value) or "").strip().lower()
        for metal in cls:
            if metal.value.lower() == text:
                return metal
        raise ValueError(f"Unknown metal type: {value!r}")


class ItemStatus(str, Enum):
    IN_STOCK = "InStock"
    SOLD = "Sold"
    BUYBACK_PENDING = "BuybackPending"
    RESERVED = "Reserved"


class TransactionType(str, Enum):
    PURCHASE = "Purchase"  # we buy stock from a supplier
    SALE = "Sale"          # we sell to a customer
    BUYBACK = "Buyback"    # we buy back from a customer


class TransactionStatus(str, Enum):
    DRAFT = "Draft"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class CustomerType(str, Enum):
    INDIVIDUAL = "Individual"
    CORPORATE = "Corporate"


class NotificationType(str, Enum):
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


class SnapshotSource(str, Enum):
    MANUAL = "Manual"
    API = "API"


class Product(Base):
    __tablename__ = "products"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    metal_type = Column(String, nullable=False)
    weight_grams = Column(Float, nullable=False)
    purity = Column(Float, nullable=False)                # e.g. 999.9
    manufacturer = Column(String, nullable=False, default="")
    packaging = Column(String, nullable=False, default="")
    sku = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Customer(Base):
    __tablename__ = "customers"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)                 # person or company name
    type = Column(String, nullable=False, default=CustomerType.INDIVIDUAL.value)
    phone = Column(String, nullable=False)
    email = Column(String, nullable=True)
    national_id = Column(String, nullable=True)
    economic_code = Column(String, nullable=True)         # corporate only
    province = Column(String, nullable=True)
    city = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    postal_code = Column(String, nullable=True)
    documents = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Item(Base):
    __tablename__ = "items"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    serial_number = Column(String, unique=True, nullable=False)
    product_id = Column(String, ForeignKey("products.id"), nullable=False)
    status = Column(String, nullable=False, default=ItemStatus.IN_STOCK.value)
    location = Column(String, nullable=False, default="")
    purchase_date = Column(String, nullable=False)        # ISO timestamp
    cost_price = Column(Float, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    purchase_link = Column(String, nullable=True)
    sale_link = Column(String, nullable=True)
    buyback_link = Column(String, nullable=True)

    product = relationship("Product")


Index("ix_items_product_status", Item.product_id, Item.status)


class Txn(Base):
    __tablename__ = "transactions"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False)
    type = Column(String, nullable=False)
    date = Column(String, nullable=False)                 # ISO timestamp
    customer_id = Column(String, nullable=True)           # sales and buybacks
    supplier_name = Column(String, nullable=True)         # purchases
    spot_price_gold = Column(Float, nullable=False)
    spot_price_silver = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    fees = Column(Float, nullable=False, default=0)
    status = Column(String, nullable=False, default=TransactionStatus.COMPLETED.value)

    lines = relationship(
        "TxnLine",
        order_by="TxnLine.seq",
        cascade="all, delete-orphan",
        back_populates="txn",
    )


Index("ix_txn_type_date", Txn.type, Txn.date)


class TxnLine(Base):
    __tablename__ = "transaction_lines"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String, ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = Column(String, nullable=False)
    item_serial_number = Column(Text, nullable=True)      # comma-joined for purchases
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    subtotal = Column(Float, nullable=False)

    txn = relationship("Txn", back_populates="lines")


class PriceSnapshot(Base):
    __tablename__ = "price_snapshots"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False)
    transaction_id = Column(String, ForeignKey("transactions.id"), unique=True, nullable=False)
    date = Column(String, nullable=False)
    gold_price = Column(Float, nullable=False)
    silver_price = Column(Float, nullable=False)
    source = Column(String, nullable=False, default=SnapshotSource.MANUAL.value)


class Notification(Base):
    __tablename__ = "notifications"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False)
    type = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    date = Column(String, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
