"""Serialized inventory and the purchase/sale/buyback transaction ledger."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from bullion.core.config import (
    LOCATION_CUSTOMER,
    LOCATION_QUARANTINE,
    LOCATION_STORE_SAFE,
    settings,
)
from bullion.db import SessionLocal
from bullion.ledger_utils import IdGenerator, _now_iso, clean_serials, find_repeats, join_serials, parse_price_input
from bullion.models import (
    Customer,
    Item,
    ItemStatus,
    MetalType,
    NotificationType,
    PriceSnapshot,
    Product,
    SnapshotSource,
    TransactionStatus,
    TransactionType,
    Txn,
    TxnLine,
)
from bullion.pricing import BuybackPricing, BuybackQuote, SalePricing, StockInPricing, spot_for
from bullion.services.base import ServiceBase
from bullion.services.catalog_service import CatalogService
from bullion.services.notification_service import NotificationService
from bullion.services.records import (
    ItemRecord,
    LedgerError,
    LedgerResult,
    SnapshotRecord,
    TransactionRecord,
    ValidationError,
    item_record,
    positive_amount,
    snapshot_record,
    transaction_record,
)

log = logging.getLogger(__name__)

MANUAL_INTAKE_NOTE = "Bought back from customer (manual intake)"


@dataclass
class CartLine:
    serial: str
    product_id: str
    product_name: str
    metal_type: str
    weight: float
    purity: float
    price: int


@dataclass
class CartQuote:
    lines: List[CartLine] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(line.price for line in self.lines)

    @property
    def serials(self) -> List[str]:
        return [line.serial for line in self.lines]


@dataclass
class BuybackIntakeQuote:
    product_id: str
    serial: str
    existing: bool
    quote: BuybackQuote

    @property
    def final_price(self) -> int:
        return self.quote.final_price

    @property
    def is_valid(self) -> bool:
        return self.quote.is_valid


class LedgerService(ServiceBase):
    """Single-writer store for items, transactions and price snapshots.

    Every mutating call runs in one session: validation happens before any
    write and a failure rolls the whole command back, so callers never see
    a half-applied batch. Failures come back as ``LedgerResult(ok=False)``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        ids: Optional[IdGenerator] = None,
        spot_gold: Optional[float] = None,
        spot_silver: Optional[float] = None,
        notifications: Optional[NotificationService] = None,
    ):
        super().__init__(session_factory, ids)
        self.notifications = notifications or NotificationService(session_factory, self._ids)
        self.catalog = CatalogService(session_factory, self._ids, self.notifications)
        self.spot_gold = float(settings.INITIAL_GOLD_PRICE if spot_gold is None else spot_gold)
        self.spot_silver = float(settings.INITIAL_SILVER_PRICE if spot_silver is None else spot_silver)

    # ------------------------------------------------------------------
    # Spot prices
    def set_spot_prices(self, gold: Optional[float] = None, silver: Optional[float] = None) -> None:
        if gold is not None:
            self.spot_gold = float(gold)
        if silver is not None:
            self.spot_silver = float(silver)
        log.debug("Spot prices now gold=%s silver=%s", self.spot_gold, self.spot_silver)

    def set_spot_price_text(self, metal_type: str, text: str) -> float:
        value = parse_price_input(text)
        if MetalType.parse(metal_type) == MetalType.GOLD:
            self.set_spot_prices(gold=value)
        else:
            self.set_spot_prices(silver=value)
        return value

    def spot_for(self, metal_type: str) -> float:
        return spot_for(metal_type, self.spot_gold, self.spot_silver)

    # ------------------------------------------------------------------
    # Helpers
    def _product(self, session: Session, product_id: Optional[str]) -> Product:
        if not product_id:
            raise ValidationError("Select a product.")
        product = session.execute(select(Product).where(Product.id == product_id)).scalar_one_or_none()
        if product is None:
            raise ValidationError(f"Unknown product {product_id}.")
        return product

    def _customer(self, session: Session, customer_id: Optional[str]) -> Customer:
        if not customer_id:
            raise ValidationError("Select a customer.")
        customer = session.execute(select(Customer).where(Customer.id == customer_id)).scalar_one_or_none()
        if customer is None:
            raise ValidationError(f"Unknown customer {customer_id}.")
        return customer

    def _items_by_serial(self, session: Session, serials: Iterable[str]) -> Dict[str, Item]:
        serials = list(serials)
        if not serials:
            return {}
        rows = session.execute(select(Item).where(Item.serial_number.in_(serials))).scalars()
        return {item.serial_number: item for item in rows}

    def _new_transaction(
        self,
        session: Session,
        kind: TransactionType,
        make_id: Callable[[], str],
        *,
        total: float,
        lines: List[TxnLine],
        customer_id: Optional[str] = None,
        supplier_name: Optional[str] = None,
    ) -> Txn:
        txn = Txn(
            id=self._unique_id(session, Txn, make_id),
            type=kind.value,
            date=_now_iso(),
            customer_id=customer_id,
            supplier_name=supplier_name,
            spot_price_gold=self.spot_gold,
            spot_price_silver=self.spot_silver,
            total_amount=total,
            fees=0,
            status=TransactionStatus.COMPLETED.value,
            lines=lines,
        )
        session.add(txn)
        session.flush()
        self._snapshot(session, txn)
        return txn

    def _snapshot(self, session: Session, txn: Txn) -> PriceSnapshot:
        # Prices come from the transaction so the two can never disagree.
        snap = PriceSnapshot(
            id=self._unique_id(session, PriceSnapshot, self._ids.snapshot_id),
            transaction_id=txn.id,
            date=txn.date,
            gold_price=txn.spot_price_gold,
            silver_price=txn.spot_price_silver,
            source=SnapshotSource.MANUAL.value,
        )
        session.add(snap)
        session.flush()
        return snap

    def _run(self, what: str, command: Callable[[Session], LedgerResult]) -> LedgerResult:
        session = self._session()
        try:
            result = command(session)
            session.commit()
            return result
        except LedgerError as exc:
            session.rollback()
            log.warning("%s rejected: %s", what, exc)
            return LedgerResult.failure(exc)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Ledger commands
    def stock_in(
        self,
        product_id: str,
        serials: Sequence[str],
        cost_per_item: float,
        supplier: str = "",
    ) -> LedgerResult:
        """Receive a batch of serialized items; all or nothing."""

        def command(session: Session) -> LedgerResult:
            product = self._product(session, product_id)
            batch = clean_serials(serials)
            if not batch:
                raise ValidationError("Enter at least one serial number.")
            repeated = find_repeats(batch)
            existing = self._items_by_serial(session, batch)
            duplicates = [sn for sn in dict.fromkeys(batch) if sn in existing]
            duplicates += [sn for sn in repeated if sn not in existing]
            if duplicates:
                raise ValidationError(
                    f"Duplicate serial numbers, nothing was recorded: {join_serials(duplicates)}",
                    duplicates=duplicates,
                )
            cost = positive_amount(cost_per_item, "Cost per item")

            total = len(batch) * cost
            txn = self._new_transaction(
                session,
                TransactionType.PURCHASE,
                self._ids.purchase_id,
                total=total,
                supplier_name=(supplier or "").strip(),
                lines=[
                    TxnLine(
                        product_id=product.id,
                        item_serial_number=join_serials(batch),
                        quantity=len(batch),
                        unit_price=cost,
                        subtotal=total,
                    )
                ],
            )
            for sn in batch:
                session.add(
                    Item(
                        serial_number=sn,
                        product_id=product.id,
                        status=ItemStatus.IN_STOCK.value,
                        location=LOCATION_STORE_SAFE,
                        purchase_date=txn.date,
                        cost_price=cost,
                        purchase_link=txn.id,
                    )
                )
            session.flush()
            self.notifications.add(
                session,
                NotificationType.SUCCESS,
                f"{len(batch)} x {product.name} added to stock.",
            )
            log.info("Purchase %s: %d x %s at %s", txn.id, len(batch), product.id, cost)
            return LedgerResult(ok=True, message=f"Purchase {txn.id} recorded.", transaction=transaction_record(txn))

        return self._run("Stock-in", command)

    def sell(self, serials: Sequence[str], customer_id: str, total_amount: float) -> LedgerResult:
        """Sell in-stock items; each line gets an equal share of the caller's total."""

        def command(session: Session) -> LedgerResult:
            cart = clean_serials(serials)
            if not cart:
                raise ValidationError("The cart is empty.")
            self._customer(session, customer_id)
            repeated = find_repeats(cart)
            if repeated:
                raise ValidationError(f"Serial listed more than once: {join_serials(repeated)}", duplicates=repeated)
            items = self._items_by_serial(session, cart)
            missing = [sn for sn in cart if sn not in items]
            if missing:
                raise ValidationError(f"Unknown serial numbers: {join_serials(missing)}")
            unavailable = [sn for sn in cart if items[sn].status != ItemStatus.IN_STOCK.value]
            if unavailable:
                raise ValidationError(f"Not in stock: {join_serials(unavailable)}")
            total = positive_amount(total_amount, "Sale total")

            share = total / len(cart)
            txn = self._new_transaction(
                session,
                TransactionType.SALE,
                self._ids.sale_id,
                total=total,
                customer_id=customer_id,
                lines=[
                    TxnLine(
                        product_id=items[sn].product_id,
                        item_serial_number=sn,
                        quantity=1,
                        unit_price=share,
                        subtotal=share,
                    )
                    for sn in cart
                ],
            )
            for sn in cart:
                item = items[sn]
                item.status = ItemStatus.SOLD.value
                item.location = LOCATION_CUSTOMER
                item.sale_link = txn.id
            session.flush()
            self.notifications.check_low_stock(session)
            log.info("Sale %s: %d items, total %s", txn.id, len(cart), total)
            return LedgerResult(ok=True, message=f"Invoice {txn.id} recorded.", transaction=transaction_record(txn))

        return self._run("Sale", command)

    def buyback(self, product_id: Optional[str], serial: str, price: float, customer_id: str) -> LedgerResult:
        """Take an item back from a customer into quarantine at ``price``."""

        def command(session: Session) -> LedgerResult:
            sn = (serial or "").strip()
            if not sn:
                raise ValidationError("Serial number is required.")
            amount = positive_amount(price, "Buyback price")
            self._customer(session, customer_id)

            item = self._items_by_serial(session, [sn]).get(sn)
            if item is not None and item.status == ItemStatus.IN_STOCK.value:
                raise ValidationError(f"Item {sn} is already in stock.", duplicates=[sn])
            # A known serial keeps its own product.
            product = self._product(session, item.product_id if item is not None else product_id)

            txn = self._new_transaction(
                session,
                TransactionType.BUYBACK,
                self._ids.buyback_id,
                total=amount,
                customer_id=customer_id,
                lines=[
                    TxnLine(
                        product_id=product.id,
                        item_serial_number=sn,
                        quantity=1,
                        unit_price=amount,
                        subtotal=amount,
                    )
                ],
            )
            if item is None:
                item = Item(
                    serial_number=sn,
                    product_id=product.id,
                    purchase_date=txn.date,
                    notes=MANUAL_INTAKE_NOTE,
                )
                session.add(item)
            item.status = ItemStatus.IN_STOCK.value
            item.location = LOCATION_QUARANTINE
            item.cost_price = amount
            item.buyback_link = txn.id
            session.flush()
            self.notifications.add(
                session,
                NotificationType.INFO,
                f"Item {sn} bought back and returned to stock.",
            )
            log.info("Buyback %s: %s at %s", txn.id, sn, amount)
            return LedgerResult(ok=True, message=f"Buyback {txn.id} recorded.", transaction=transaction_record(txn))

        return self._run("Buyback", command)

    def add_product(self, data: Dict[str, object]) -> LedgerResult:
        return self.catalog.add_product(data)

    def add_customer(self, data: Dict[str, object]) -> LedgerResult:
        return self.catalog.add_customer(data)

    def check_low_stock(self) -> int:
        """Run the low-stock check on demand; returns the number of warnings."""
        session = self._session()
        try:
            emitted = self.notifications.check_low_stock(session)
            session.commit()
            return len(emitted)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Quotes
    def quote_stock_in(self, product_id: str, pricing: Optional[StockInPricing] = None) -> int:
        product = self.catalog.get_product(product_id)
        if product is None:
            return 0
        pricing = pricing or StockInPricing()
        return pricing.cost(self.spot_for(product.metal_type), product.weight_grams)

    def quote_sale(self, serials: Sequence[str], pricing: Optional[SalePricing] = None) -> CartQuote:
        """Price a cart at current spot; unknown or sold serials are skipped."""
        pricing = pricing or SalePricing()
        cart = clean_serials(serials)
        session = self._session()
        try:
            items = self._items_by_serial(session, cart)
            quote = CartQuote()
            seen = set()
            for sn in cart:
                item = items.get(sn)
                if item is None or item.status != ItemStatus.IN_STOCK.value or sn in seen:
                    continue
                seen.add(sn)
                product = item.product
                quote.lines.append(
                    CartLine(
                        serial=sn,
                        product_id=product.id,
                        product_name=product.name,
                        metal_type=product.metal_type,
                        weight=float(product.weight_grams),
                        purity=float(product.purity),
                        price=pricing.price(self.spot_for(product.metal_type), product.weight_grams),
                    )
                )
            return quote
        finally:
            session.close()

    def quote_buyback(
        self,
        serial: str,
        product_id: Optional[str] = None,
        pricing: Optional[BuybackPricing] = None,
    ) -> Optional[BuybackIntakeQuote]:
        pricing = pricing or BuybackPricing()
        sn = (serial or "").strip()
        session = self._session()
        try:
            item = self._items_by_serial(session, [sn]).get(sn) if sn else None
            pid = item.product_id if item is not None else product_id
            product = (
                session.execute(select(Product).where(Product.id == pid)).scalar_one_or_none() if pid else None
            )
            if product is None:
                return None
            return BuybackIntakeQuote(
                product_id=product.id,
                serial=sn,
                existing=item is not None,
                quote=pricing.quote(self.spot_for(product.metal_type), product.weight_grams),
            )
        finally:
            session.close()

    def sell_cart(
        self,
        serials: Sequence[str],
        customer_id: str,
        pricing: Optional[SalePricing] = None,
    ) -> LedgerResult:
        """Price the cart and sell it at the quoted total; the quote rides on ``payload``."""
        quote = self.quote_sale(serials, pricing)
        cart = clean_serials(serials)
        if len(quote.lines) != len(cart):
            # Let sell() produce the precise rejection for the bad serials.
            return self.sell(cart, customer_id, quote.total)
        result = self.sell(quote.serials, customer_id, quote.total)
        result.payload = quote
        return result

    # ------------------------------------------------------------------
    # Reads
    def list_items(self, status: Optional[ItemStatus] = None) -> List[ItemRecord]:
        session = self._session()
        try:
            stmt = select(Item).order_by(Item.seq)
            if status is not None:
                stmt = stmt.where(Item.status == ItemStatus(status).value)
            return [item_record(i) for i in session.execute(stmt).scalars()]
        finally:
            session.close()

    def get_item(self, serial: str) -> Optional[ItemRecord]:
        session = self._session()
        try:
            item = self._items_by_serial(session, [(serial or "").strip()]).get((serial or "").strip())
            return item_record(item) if item else None
        finally:
            session.close()

    def available_items(
        self,
        metal_type: Optional[str] = None,
        search: str = "",
        exclude: Iterable[str] = (),
    ) -> List[ItemRecord]:
        """In-stock items for the sale picker, filtered by metal and serial/name search."""
        session = self._session()
        try:
            stmt = (
                select(Item)
                .join(Product, Product.id == Item.product_id)
                .where(Item.status == ItemStatus.IN_STOCK.value)
                .order_by(Item.seq)
            )
            excluded = list(exclude)
            if excluded:
                stmt = stmt.where(Item.serial_number.not_in(excluded))
            if metal_type:
                stmt = stmt.where(Product.metal_type == MetalType.parse(metal_type).value)
            term = (search or "").strip().lower()
            if term:
                stmt = stmt.where(
                    or_(
                        func.lower(Item.serial_number).contains(term, autoescape=True),
                        func.lower(Product.name).contains(term, autoescape=True),
                    )
                )
            return [item_record(i) for i in session.execute(stmt).scalars()]
        finally:
            session.close()

    def stock_count(self, product_id: str) -> int:
        session = self._session()
        try:
            return session.execute(
                select(func.count(Item.seq)).where(
                    Item.product_id == product_id, Item.status == ItemStatus.IN_STOCK.value
                )
            ).scalar_one()
        finally:
            session.close()

    def list_transactions(self, kind: Optional[TransactionType] = None) -> List[TransactionRecord]:
        """Newest first; ties keep insertion order."""
        session = self._session()
        try:
            stmt = select(Txn).order_by(Txn.seq.desc())
            if kind is not None:
                stmt = stmt.where(Txn.type == TransactionType(kind).value)
            return [transaction_record(t) for t in session.execute(stmt).scalars()]
        finally:
            session.close()

    def get_transaction(self, transaction_id: str) -> Optional[TransactionRecord]:
        session = self._session()
        try:
            txn = session.execute(select(Txn).where(Txn.id == transaction_id)).scalar_one_or_none()
            return transaction_record(txn) if txn else None
        finally:
            session.close()

    def list_snapshots(self) -> List[SnapshotRecord]:
        session = self._session()
        try:
            rows = session.execute(select(PriceSnapshot).order_by(PriceSnapshot.seq)).scalars()
            return [snapshot_record(s) for s in rows]
        finally:
            session.close()

    def snapshot_for(self, transaction_id: str) -> Optional[SnapshotRecord]:
        session = self._session()
        try:
            snap = session.execute(
                select(PriceSnapshot).where(PriceSnapshot.transaction_id == transaction_id)
            ).scalar_one_or_none()
            return snapshot_record(snap) if snap else None
        finally:
            session.close()
