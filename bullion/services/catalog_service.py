"""Product catalog and customer directory."""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from bullion.db import SessionLocal
from bullion.ledger_utils import IdGenerator
from bullion.models import Customer, CustomerType, MetalType, NotificationType, Product
from bullion.services.base import ServiceBase
from bullion.services.notification_service import NotificationService
from bullion.services.records import (
    CustomerRecord,
    LedgerError,
    LedgerResult,
    ProductRecord,
    ValidationError,
    customer_record,
    positive_amount,
    product_record,
)

log = logging.getLogger(__name__)

_CUSTOMER_FIELDS = (
    "email",
    "national_id",
    "economic_code",
    "province",
    "city",
    "address",
    "postal_code",
)


def _text(data: Dict[str, object], key: str) -> str:
    return str(data.get(key) or "").strip()


def _positive(data: Dict[str, object], key: str, label: str) -> float:
    return positive_amount(data.get(key), label)


class CatalogService(ServiceBase):
    """Append-only products plus customers created on demand."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        ids: Optional[IdGenerator] = None,
        notifications: Optional[NotificationService] = None,
    ):
        super().__init__(session_factory, ids)
        self.notifications = notifications or NotificationService(session_factory, self._ids)

    # ------------------------------------------------------------------
    # Products
    def add_product(self, data: Dict[str, object]) -> LedgerResult:
        session = self._session()
        try:
            name = _text(data, "name")
            if not name:
                raise ValidationError("Product name is required.")
            try:
                metal = MetalType.parse(data.get("metal_type"))
            except ValueError as exc:
                raise ValidationError("Metal type must be Gold or Silver.") from exc
            weight = _positive(data, "weight_grams", "Weight")
            purity = _positive(data, "purity", "Purity")

            product = Product(
                id=self._unique_id(session, Product, self._ids.product_id),
                name=name,
                metal_type=metal.value,
                weight_grams=weight,
                purity=purity,
                manufacturer=_text(data, "manufacturer"),
                packaging=_text(data, "packaging"),
                sku=_text(data, "sku") or None,
            )
            session.add(product)
            session.flush()
            self.notifications.add(
                session, NotificationType.SUCCESS, f'New product "{name}" added to the catalog.'
            )
            session.commit()
            log.info("Product %s (%s) added", product.id, name)
            return LedgerResult(
                ok=True, message="Product added.", entity_id=product.id, payload=product_record(product)
            )
        except LedgerError as exc:
            session.rollback()
            log.warning("Product rejected: %s", exc)
            return LedgerResult.failure(exc)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def list_products(self) -> List[ProductRecord]:
        session = self._session()
        try:
            rows = session.execute(select(Product).order_by(Product.seq)).scalars()
            return [product_record(p) for p in rows]
        finally:
            session.close()

    def get_product(self, product_id: str) -> Optional[ProductRecord]:
        session = self._session()
        try:
            p = session.execute(select(Product).where(Product.id == product_id)).scalar_one_or_none()
            return product_record(p) if p else None
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Customers
    def add_customer(self, data: Dict[str, object]) -> LedgerResult:
        session = self._session()
        try:
            name = _text(data, "name")
            phone = _text(data, "phone")
            if not name or not phone:
                raise ValidationError("Customer name and phone are required.")
            try:
                ctype = CustomerType(data.get("type") or CustomerType.INDIVIDUAL.value)
            except ValueError as exc:
                raise ValidationError("Customer type must be Individual or Corporate.") from exc

            customer = Customer(
                id=self._unique_id(session, Customer, self._ids.customer_id),
                name=name,
                type=ctype.value,
                phone=phone,
                documents=bool(data.get("documents")),
                **{key: (_text(data, key) or None) for key in _CUSTOMER_FIELDS},
            )
            session.add(customer)
            session.flush()
            self.notifications.add(
                session, NotificationType.SUCCESS, f"New customer ({name}) added."
            )
            session.commit()
            log.info("Customer %s added", customer.id)
            return LedgerResult(
                ok=True, message="Customer added.", entity_id=customer.id, payload=customer_record(customer)
            )
        except LedgerError as exc:
            session.rollback()
            log.warning("Customer rejected: %s", exc)
            return LedgerResult.failure(exc)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def list_customers(self) -> List[CustomerRecord]:
        session = self._session()
        try:
            rows = session.execute(select(Customer).order_by(Customer.seq)).scalars()
            return [customer_record(c) for c in rows]
        finally:
            session.close()

    def get_customer(self, customer_id: str) -> Optional[CustomerRecord]:
        session = self._session()
        try:
            c = session.execute(select(Customer).where(Customer.id == customer_id)).scalar_one_or_none()
            return customer_record(c) if c else None
        finally:
            session.close()

    def search_customers(self, term: str) -> List[CustomerRecord]:
        """Case-insensitive name match or phone substring."""
        term_n = (term or "").strip()
        session = self._session()
        try:
            stmt = select(Customer).order_by(Customer.seq)
            if term_n:
                stmt = stmt.where(
                    or_(
                        func.lower(Customer.name).contains(term_n.lower(), autoescape=True),
                        Customer.phone.contains(term_n, autoescape=True),
                    )
                )
            return [customer_record(c) for c in session.execute(stmt).scalars()]
        finally:
            session.close()
