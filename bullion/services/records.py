"""Read models and result types shared by the ledger services."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, List, Optional

from bullion.ledger_utils import split_serials
from bullion.models import Customer, Item, Notification, PriceSnapshot, Product, Txn, TxnLine

UNKNOWN_PRODUCT = "Unknown product"
ANONYMOUS_CUSTOMER = "Anonymous"


class LedgerError(Exception):
    """Raised when a ledger command cannot be processed."""


class ValidationError(LedgerError):
    """Bad user input; nothing was written."""

    def __init__(self, message: str, duplicates: Optional[List[str]] = None):
        super().__init__(message)
        self.duplicates = list(duplicates or [])


def positive_amount(raw: Any, label: str) -> float:
    """Coerce a form amount to a float > 0 or raise ``ValidationError``."""
    try:
        value = float(raw) if raw not in (None, "") else math.nan
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(f"{label} must be numeric.") from exc
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise ValidationError(f"{label} must be greater than zero.")
    return value


@dataclass
class ProductRecord:
    id: str
    name: str
    metal_type: str
    weight_grams: float
    purity: float
    manufacturer: str
    packaging: str
    sku: Optional[str] = None


@dataclass
class CustomerRecord:
    id: str
    name: str
    type: str
    phone: str
    email: Optional[str] = None
    national_id: Optional[str] = None
    economic_code: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    documents: bool = False


@dataclass
class ItemRecord:
    serial_number: str
    product_id: str
    status: str
    location: str
    purchase_date: str
    cost_price: float
    notes: Optional[str] = None
    purchase_link: Optional[str] = None
    sale_link: Optional[str] = None
    buyback_link: Optional[str] = None


@dataclass
class TransactionLineRecord:
    product_id: str
    item_serial_number: Optional[str]
    quantity: int
    unit_price: float
    subtotal: float

    @property
    def serials(self) -> List[str]:
        return split_serials(self.item_serial_number)


@dataclass
class TransactionRecord:
    id: str
    type: str
    date: str
    customer_id: Optional[str]
    supplier_name: Optional[str]
    lines: List[TransactionLineRecord]
    spot_price_gold: float
    spot_price_silver: float
    total_amount: float
    fees: float
    status: str

    @property
    def is_balanced(self) -> bool:
        """Line subtotals add up to the transaction total."""
        return math.isclose(sum(line.subtotal for line in self.lines), self.total_amount, rel_tol=1e-9, abs_tol=1e-6)

    @property
    def serials(self) -> List[str]:
        return [sn for line in self.lines for sn in line.serials]


@dataclass
class SnapshotRecord:
    id: str
    transaction_id: str
    date: str
    gold_price: float
    silver_price: float
    source: str


@dataclass
class NotificationRecord:
    id: str
    type: str
    message: str
    date: str
    read: bool


@dataclass
class LedgerResult:
    ok: bool
    message: str
    transaction: Optional[TransactionRecord] = None
    duplicates: List[str] = field(default_factory=list)
    entity_id: Optional[str] = None
    payload: Any = None

    @classmethod
    def failure(cls, exc: LedgerError) -> "LedgerResult":
        return cls(ok=False, message=str(exc), duplicates=list(getattr(exc, "duplicates", [])))


def product_record(p: Product) -> ProductRecord:
    return ProductRecord(
        id=p.id,
        name=p.name,
        metal_type=p.metal_type,
        weight_grams=float(p.weight_grams),
        purity=float(p.purity),
        manufacturer=p.manufacturer or "",
        packaging=p.packaging or "",
        sku=p.sku,
    )


def customer_record(c: Customer) -> CustomerRecord:
    return CustomerRecord(
        id=c.id,
        name=c.name,
        type=c.type,
        phone=c.phone,
        email=c.email,
        national_id=c.national_id,
        economic_code=c.economic_code,
        province=c.province,
        city=c.city,
        address=c.address,
        postal_code=c.postal_code,
        documents=bool(c.documents),
    )


def item_record(i: Item) -> ItemRecord:
    return ItemRecord(
        serial_number=i.serial_number,
        product_id=i.product_id,
        status=i.status,
        location=i.location or "",
        purchase_date=i.purchase_date,
        cost_price=float(i.cost_price),
        notes=i.notes,
        purchase_link=i.purchase_link,
        sale_link=i.sale_link,
        buyback_link=i.buyback_link,
    )


def _line_record(line: TxnLine) -> TransactionLineRecord:
    return TransactionLineRecord(
        product_id=line.product_id,
        item_serial_number=line.item_serial_number,
        quantity=int(line.quantity),
        unit_price=float(line.unit_price),
        subtotal=float(line.subtotal),
    )


def transaction_record(t: Txn) -> TransactionRecord:
    return TransactionRecord(
        id=t.id,
        type=t.type,
        date=t.date,
        customer_id=t.customer_id,
        supplier_name=t.supplier_name,
        lines=[_line_record(line) for line in t.lines],
        spot_price_gold=float(t.spot_price_gold),
        spot_price_silver=float(t.spot_price_silver),
        total_amount=float(t.total_amount),
        fees=float(t.fees or 0),
        status=t.status,
    )


def snapshot_record(s: PriceSnapshot) -> SnapshotRecord:
    return SnapshotRecord(
        id=s.id,
        transaction_id=s.transaction_id,
        date=s.date,
        gold_price=float(s.gold_price),
        silver_price=float(s.silver_price),
        source=s.source,
    )


def notification_record(n: Notification) -> NotificationRecord:
    return NotificationRecord(id=n.id, type=n.type, message=n.message, date=n.date, read=bool(n.read))
