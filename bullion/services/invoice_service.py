"""Invoice data for printing a sale; layout lives in the presentation layer."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from bullion.db import SessionLocal
from bullion.models import Customer, CustomerType, Product, Txn
from bullion.services.base import ServiceBase
from bullion.services.ledger_service import CartQuote
from bullion.services.records import (
    ANONYMOUS_CUSTOMER,
    UNKNOWN_PRODUCT,
    CustomerRecord,
    customer_record,
)


@dataclass
class InvoiceRow:
    row: int
    desc: str
    weight: float
    purity: float
    price: float
    total: float
    serial: Optional[str] = None


@dataclass
class Invoice:
    id: str
    date: str
    customer: CustomerRecord
    items: List[InvoiceRow] = field(default_factory=list)
    total_amount: float = 0.0
    discount: float = 0.0
    tax: float = 0.0

    @property
    def subtotal(self) -> float:
        return self.total_amount

    @property
    def final_total(self) -> float:
        return self.subtotal - self.discount + self.tax


def _anonymous() -> CustomerRecord:
    return CustomerRecord(id="unknown", name=ANONYMOUS_CUSTOMER, type=CustomerType.INDIVIDUAL.value, phone="-")


class InvoiceService(ServiceBase):
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        super().__init__(session_factory)

    def _customer(self, session: Session, customer_id: Optional[str]) -> CustomerRecord:
        if not customer_id:
            return _anonymous()
        c = session.execute(select(Customer).where(Customer.id == customer_id)).scalar_one_or_none()
        return customer_record(c) if c else _anonymous()

    def invoice_for_transaction(self, transaction_id: str) -> Optional[Invoice]:
        """Rebuild an invoice from a stored transaction, tolerating dangling references."""
        session = self._session()
        try:
            txn = session.execute(select(Txn).where(Txn.id == transaction_id)).scalar_one_or_none()
            if txn is None:
                return None
            products = {p.id: p for p in session.execute(select(Product)).scalars()}
            rows = []
            for index, line in enumerate(txn.lines, start=1):
                product = products.get(line.product_id)
                rows.append(
                    InvoiceRow(
                        row=index,
                        desc=product.name if product else UNKNOWN_PRODUCT,
                        serial=line.item_serial_number,
                        weight=float(product.weight_grams) if product else 0.0,
                        purity=float(product.purity) if product else 0.0,
                        price=float(line.unit_price),
                        total=float(line.subtotal),
                    )
                )
            return Invoice(
                id=txn.id,
                date=txn.date,
                customer=self._customer(session, txn.customer_id),
                items=rows,
                total_amount=float(txn.total_amount),
            )
        finally:
            session.close()

    def invoice_for_cart(self, transaction_id: str, date: str, customer_id: str, quote: CartQuote) -> Invoice:
        """Point-of-sale invoice: each row shows the item's own sale price."""
        session = self._session()
        try:
            customer = self._customer(session, customer_id)
        finally:
            session.close()
        return Invoice(
            id=transaction_id,
            date=date,
            customer=customer,
            items=[
                InvoiceRow(
                    row=index,
                    desc=line.product_name,
                    serial=line.serial,
                    weight=line.weight,
                    purity=line.purity,
                    price=line.price,
                    total=line.price,
                )
                for index, line in enumerate(quote.lines, start=1)
            ],
            total_amount=quote.total,
        )
