"""Demo catalog, customers, stock and a few historical sales."""
import datetime
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from bullion.core.config import LOCATION_CUSTOMER
from bullion.db import SessionLocal
from bullion.ledger_utils import join_serials
from bullion.models import (
    Customer,
    CustomerType,
    Item,
    ItemStatus,
    MetalType,
    PriceSnapshot,
    Product,
    SnapshotSource,
    TransactionStatus,
    TransactionType,
    Txn,
    TxnLine,
)

GOLD, SILVER = MetalType.GOLD.value, MetalType.SILVER.value

DEMO_PRODUCTS = [
    # id, name, metal, grams, purity, manufacturer, packaging, sku
    ("p1", "Parsis gold bar 1g", GOLD, 1, 995, "Parsis", "Vacuum card", "PG-001"),
    ("p2", "Parsis gold bar 10g", GOLD, 10, 995, "Parsis", "Vacuum card", "PG-010"),
    ("p3", "Swiss silver bar 1oz", SILVER, 31.1, 999, "PAMP", "Open", "SS-1OZ"),
    ("p4", "Parsis gold bar 2.5g", GOLD, 2.5, 995, "Parsis", "Vacuum card", "PG-0025"),
    ("p5", "Parsis gold bar 5g", GOLD, 5, 995, "Parsis", "Vacuum card", "PG-005"),
    ("p6", "Swiss gold bar 50g", GOLD, 50, 999.9, "Valcambi", "Vacuum card", "VG-050"),
    ("p7", "Swiss gold bar 100g", GOLD, 100, 999.9, "PAMP", "Vacuum card", "PG-100"),
    ("p8", "Silver bar 100g", SILVER, 100, 999, "Golran", "Vacuum", "SG-100"),
    ("p9", "Bahar Azadi full coin", GOLD, 8.133, 900, "Central Bank", "Pressed", "C-FULL"),
    ("p10", "Bahar Azadi half coin", GOLD, 4.066, 900, "Central Bank", "Pressed", "C-HALF"),
]

IND, CORP = CustomerType.INDIVIDUAL.value, CustomerType.CORPORATE.value

DEMO_CUSTOMERS = [
    dict(id="c1", name="Ali Rezaei", type=IND, phone="09123456789", national_id="0012345678", city="Tehran"),
    dict(id="c2", name="Sara Mohammadi", type=IND, phone="09198765432", national_id="0023456789", city="Isfahan"),
    dict(
        id="c3",
        name="Zarin Investment Co.",
        type=CORP,
        phone="02188888888",
        national_id="10101234567",
        economic_code="411122223333",
        city="Tehran",
    ),
    dict(id="c4", name="Noor Jewellers", type=CORP, phone="02177777777", city="Mashhad"),
    dict(id="c5", name="Mohammad Amini", type=IND, phone="09350000001"),
    dict(id="c6", name="Zahra Kazemi", type=IND, phone="09120000002"),
    dict(id="c7", name="Omid Trading", type=CORP, phone="02166666666"),
    dict(id="c8", name="Reza Karimi", type=IND, phone="09180000003"),
]

# product, count, first serial, cost, location
DEMO_STOCK = [
    ("p1", 8, 1000, 35_000_000, "Safe 1"),
    ("p2", 5, 2000, 350_000_000, "Showcase"),
    ("p3", 12, 3000, 15_000_000, "Silver drawer"),
    ("p4", 6, 4000, 88_000_000, "Safe 1"),
    ("p5", 4, 5000, 175_000_000, "Safe 1"),
    ("p9", 15, 9000, 320_000_000, "Coin showcase"),
    ("p10", 10, 10000, 160_000_000, "Coin showcase"),
    ("p7", 2, 7000, 3_500_000_000, "Central vault"),
]

# id, age, customer, product, first serial, count, item cost, total, gold spot, silver spot
DEMO_SALES = [
    ("TX-001", datetime.timedelta(days=7), "c1", "p1", 1100, 2, 34_000_000, 76_000_000, 36_000_000, 480_000),
    ("TX-002", datetime.timedelta(days=5), "c3", "p2", 2100, 1, 335_000_000, 375_000_000, 35_800_000, 475_000),
    ("TX-003", datetime.timedelta(days=2), "c2", "p9", 9100, 3, 310_000_000, 990_000_000, 36_200_000, 490_000),
    ("TX-004", datetime.timedelta(hours=1), "c4", "p4", 4100, 2, 85_000_000, 190_000_000, 36_500_000, 500_000),
]

SEED_PURCHASE_DATE = "2023-10-01"


def _serial(product_id: str, n: int) -> str:
    return f"SN-{product_id.upper().replace('P', '')}-{n}"


def seed_demo_data(
    session_factory: Callable[[], Session] = SessionLocal,
    now: Optional[datetime.datetime] = None,
) -> bool:
    """Load the demo data once; returns False when the catalog is already populated."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    with session_factory() as db:
        if db.execute(select(Product.seq).limit(1)).first() is not None:
            return False

        for pid, name, metal, grams, purity, maker, packaging, sku in DEMO_PRODUCTS:
            db.add(
                Product(
                    id=pid,
                    name=name,
                    metal_type=metal,
                    weight_grams=grams,
                    purity=purity,
                    manufacturer=maker,
                    packaging=packaging,
                    sku=sku,
                )
            )
        for data in DEMO_CUSTOMERS:
            db.add(Customer(**data))
        db.flush()

        for pid, count, first, cost, location in DEMO_STOCK:
            for n in range(first, first + count):
                db.add(
                    Item(
                        serial_number=_serial(pid, n),
                        product_id=pid,
                        status=ItemStatus.IN_STOCK.value,
                        location=location,
                        purchase_date=SEED_PURCHASE_DATE,
                        cost_price=cost,
                    )
                )

        for txn_id, age, cid, pid, first, count, cost, total, gold, silver in DEMO_SALES:
            serials = [_serial(pid, n) for n in range(first, first + count)]
            for sn in serials:
                db.add(
                    Item(
                        serial_number=sn,
                        product_id=pid,
                        status=ItemStatus.SOLD.value,
                        location=LOCATION_CUSTOMER,
                        purchase_date=SEED_PURCHASE_DATE,
                        cost_price=cost,
                        sale_link=txn_id,
                    )
                )
            date = (now - age).isoformat()
            db.add(
                Txn(
                    id=txn_id,
                    type=TransactionType.SALE.value,
                    date=date,
                    customer_id=cid,
                    spot_price_gold=gold,
                    spot_price_silver=silver,
                    total_amount=total,
                    fees=0,
                    status=TransactionStatus.COMPLETED.value,
                    lines=[
                        TxnLine(
                            product_id=pid,
                            item_serial_number=join_serials(serials),
                            quantity=count,
                            unit_price=total / count,
                            subtotal=total,
                        )
                    ],
                )
            )
            db.flush()
            db.add(
                PriceSnapshot(
                    id=f"SNP-{txn_id}",
                    transaction_id=txn_id,
                    date=date,
                    gold_price=gold,
                    silver_price=silver,
                    source=SnapshotSource.MANUAL.value,
                )
            )
        db.commit()
    return True
