"""Dashboard figures and sales history built from the ledger."""
from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from bullion.db import SessionLocal
from bullion.ledger_utils import split_serials
from bullion.models import Customer, Item, ItemStatus, MetalType, Product, TransactionStatus, TransactionType, Txn
from bullion.services.base import ServiceBase
from bullion.services.records import TransactionRecord, transaction_record


@dataclass
class DailySales:
    date: str
    revenue: float = 0.0
    profit: float = 0.0


@dataclass
class DashboardStats:
    gold_weight_in_stock: float
    silver_weight_in_stock: float
    inventory_value: float
    stock_count: int
    total_revenue: float
    cost_of_goods_sold: float
    net_profit: float
    profit_margin_percent: float
    profit_in_gold_grams: float
    sales_count: int
    pending_buybacks: int
    daily: List[DailySales] = field(default_factory=list)


@dataclass
class SalesStats:
    total_revenue: float
    count: int
    avg_ticket: float


@dataclass
class SalesHistory:
    transactions: List[TransactionRecord]
    stats: SalesStats


def _date_key(iso: str) -> str:
    return (iso or "").split("T")[0]


class ReportingService(ServiceBase):
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        super().__init__(session_factory)

    def _sale_cost(self, txn: Txn, cost_by_serial: Dict[str, float]) -> float:
        # Cost is whatever the item carries now; a later buyback overwrites it.
        return sum(
            cost_by_serial.get(sn, 0.0)
            for line in txn.lines
            for sn in split_serials(line.item_serial_number)
        )

    def dashboard(self, spot_gold: float, spot_silver: float, days: int = 7) -> DashboardStats:
        session = self._session()
        try:
            products = {p.id: p for p in session.execute(select(Product)).scalars()}
            items = session.execute(select(Item).order_by(Item.seq)).scalars().all()
            cost_by_serial = {i.serial_number: float(i.cost_price) for i in items}

            gold_weight = silver_weight = value = 0.0
            stock_count = pending = 0
            for item in items:
                if item.status == ItemStatus.BUYBACK_PENDING.value:
                    pending += 1
                if item.status != ItemStatus.IN_STOCK.value:
                    continue
                stock_count += 1
                product = products.get(item.product_id)
                if product is None:
                    continue
                if product.metal_type == MetalType.GOLD.value:
                    gold_weight += product.weight_grams
                    value += product.weight_grams * spot_gold
                else:
                    silver_weight += product.weight_grams
                    value += product.weight_grams * spot_silver

            sales = session.execute(
                select(Txn)
                .where(Txn.type == TransactionType.SALE.value, Txn.status == TransactionStatus.COMPLETED.value)
                .order_by(Txn.seq)
            ).scalars().all()

            revenue = cogs = 0.0
            by_date: Dict[str, DailySales] = {}
            for sale in sales:
                cost = self._sale_cost(sale, cost_by_serial)
                revenue += sale.total_amount
                cogs += cost
                day = by_date.setdefault(_date_key(sale.date), DailySales(date=_date_key(sale.date)))
                day.revenue += sale.total_amount
                day.profit += sale.total_amount - cost

            profit = revenue - cogs
            return DashboardStats(
                gold_weight_in_stock=gold_weight,
                silver_weight_in_stock=silver_weight,
                inventory_value=value,
                stock_count=stock_count,
                total_revenue=revenue,
                cost_of_goods_sold=cogs,
                net_profit=profit,
                profit_margin_percent=(profit / revenue * 100) if revenue > 0 else 0.0,
                profit_in_gold_grams=(profit / spot_gold) if spot_gold > 0 else 0.0,
                sales_count=len(sales),
                pending_buybacks=pending,
                daily=sorted(by_date.values(), key=lambda d: d.date)[-days:],
            )
        finally:
            session.close()

    def sales_history(
        self,
        start: Optional[datetime.date] = None,
        end: Optional[datetime.date] = None,
        search: str = "",
    ) -> SalesHistory:
        """Sales in ``[start, end]`` matching id, customer name or serial; newest first."""
        term = (search or "").strip().lower()
        start_key = start.isoformat() if start else ""
        end_key = end.isoformat() if end else ""
        session = self._session()
        try:
            names = {c.id: c.name.lower() for c in session.execute(select(Customer)).scalars()}
            rows = session.execute(
                select(Txn).where(Txn.type == TransactionType.SALE.value).order_by(Txn.seq.desc())
            ).scalars()
            matched = []
            for txn in rows:
                day = _date_key(txn.date)
                if start_key and day < start_key:
                    continue
                if end_key and day > end_key:
                    continue
                if term and not (
                    term in txn.id.lower()
                    or term in names.get(txn.customer_id, "")
                    or any(term in (line.item_serial_number or "").lower() for line in txn.lines)
                ):
                    continue
                matched.append(transaction_record(txn))
            # Stable: equal dates keep newest-inserted first.
            matched.sort(key=lambda t: t.date, reverse=True)
            total = sum(t.total_amount for t in matched)
            count = len(matched)
            return SalesHistory(
                transactions=matched,
                stats=SalesStats(total_revenue=total, count=count, avg_ticket=(total / count) if count else 0.0),
            )
        finally:
            session.close()
