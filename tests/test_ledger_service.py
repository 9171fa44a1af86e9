import re

from sqlalchemy import select

from bullion.models import Item, ItemStatus, NotificationType, PriceSnapshot, TransactionType, Txn
from bullion.pricing import SalePricing


def _warnings_for(ledger, name):
    return [
        n for n in ledger.notifications.list_notifications()
        if n.type == NotificationType.WARNING.value and f"{name} is down to" in n.message
    ]


def test_stock_in_creates_items_transaction_and_snapshot(ledger):
    result = ledger.stock_in(ledger.bar_10g, ["A-1", "A-2", "A-3"], 400_000_000, supplier="Parsis")
    assert result.ok
    txn = result.transaction
    assert re.fullmatch(r"PUR-\d{8}", txn.id)
    assert txn.type == TransactionType.PURCHASE.value
    assert txn.status == "Completed"
    assert txn.supplier_name == "Parsis"
    assert txn.total_amount == 1_200_000_000
    assert txn.fees == 0
    assert len(txn.lines) == 1
    assert txn.lines[0].item_serial_number == "A-1, A-2, A-3"
    assert txn.lines[0].quantity == 3
    assert txn.is_balanced

    items = ledger.list_items()
    assert [i.serial_number for i in items] == ["A-1", "A-2", "A-3"]
    assert all(i.status == ItemStatus.IN_STOCK.value for i in items)
    assert all(i.location == "Store Safe" and i.purchase_link == txn.id for i in items)
    assert all(i.cost_price == 400_000_000 for i in items)

    snap = ledger.snapshot_for(txn.id)
    assert snap.gold_price == 36_500_000
    assert snap.silver_price == 495_000
    assert snap.source == "Manual"
    messages = [n.message for n in ledger.notifications.list_notifications()]
    assert "3 x Parsis 10g added to stock." in messages


def test_stock_in_duplicate_serial_rejects_whole_batch(ledger, session_factory):
    assert ledger.stock_in(ledger.bar_10g, ["A-1", "A-2"], 100, "s").ok
    result = ledger.stock_in(ledger.bar_10g, ["B-1", "A-2", "B-2"], 100, "s")
    assert not result.ok
    assert result.duplicates == ["A-2"]
    assert "A-2" in result.message
    assert [i.serial_number for i in ledger.list_items()] == ["A-1", "A-2"]
    with session_factory() as session:
        assert len(session.execute(select(Txn)).scalars().all()) == 1
        assert len(session.execute(select(PriceSnapshot)).scalars().all()) == 1


def test_stock_in_rejects_serial_repeated_in_batch(ledger):
    result = ledger.stock_in(ledger.bar_10g, ["X-1", "X-1"], 100, "s")
    assert not result.ok
    assert result.duplicates == ["X-1"]
    assert ledger.list_items() == []


def test_stock_in_input_errors_are_no_ops(ledger):
    assert not ledger.stock_in(ledger.bar_10g, [" ", ""], 100, "s").ok
    assert not ledger.stock_in(ledger.bar_10g, ["A-1"], 0, "s").ok
    assert not ledger.stock_in("missing", ["A-1"], 100, "s").ok
    assert not ledger.stock_in("", ["A-1"], 100, "s").ok
    assert ledger.list_items() == []
    assert ledger.list_transactions() == []


def test_text_amounts_fail_without_recording(ledger):
    stocked = ledger.stock_in(ledger.bar_10g, ["A-1"], "1,000", "s")
    assert not stocked.ok
    assert stocked.message == "Cost per item must be numeric."
    assert ledger.list_items() == []

    assert ledger.stock_in(ledger.bar_10g, ["A-1"], "1000", "s").ok
    sale = ledger.sell(["A-1"], ledger.customer, "a lot")
    assert not sale.ok
    assert ledger.get_item("A-1").status == ItemStatus.IN_STOCK.value

    assert ledger.sell(["A-1"], ledger.customer, 2000).ok
    bought = ledger.buyback(ledger.bar_10g, "A-1", "cheap", ledger.customer)
    assert not bought.ok
    assert ledger.get_item("A-1").status == ItemStatus.SOLD.value
    assert len(ledger.list_transactions()) == 2


def test_snapshot_captures_spot_prices_at_creation(ledger):
    ledger.set_spot_prices(gold=40_000_000, silver=600_000)
    txn = ledger.stock_in(ledger.bar_10g, ["A-1", "A-2"], 100, "s").transaction
    ledger.set_spot_prices(gold=41_000_000, silver=610_000)
    sale = ledger.sell(["A-1"], ledger.customer, 500).transaction

    assert txn.spot_price_gold == 40_000_000
    assert ledger.snapshot_for(txn.id).gold_price == 40_000_000
    assert ledger.snapshot_for(txn.id).silver_price == 600_000
    assert ledger.snapshot_for(sale.id).gold_price == 41_000_000

    snapshots = ledger.list_snapshots()
    txns = ledger.list_transactions()
    assert sorted(s.transaction_id for s in snapshots) == sorted(t.id for t in txns)
    assert len({s.id for s in snapshots}) == len(snapshots)


def test_sell_splits_total_equally_across_lines(ledger):
    ledger.stock_in(ledger.bar_10g, ["A-1", "A-2"], 100, "s")
    ledger.stock_in(ledger.silver_100g, ["S-1"], 50, "s")
    result = ledger.sell(["A-1", "S-1", "A-2"], ledger.customer, 100)
    assert result.ok
    txn = result.transaction
    assert re.fullmatch(r"INV-\d{8}", txn.id)
    assert txn.customer_id == ledger.customer
    assert [line.item_serial_number for line in txn.lines] == ["A-1", "S-1", "A-2"]
    assert [line.product_id for line in txn.lines] == [ledger.bar_10g, ledger.silver_100g, ledger.bar_10g]
    for line in txn.lines:
        assert line.quantity == 1
        assert line.unit_price == line.subtotal == 100 / 3
    assert txn.is_balanced

    for serial in ("A-1", "A-2", "S-1"):
        item = ledger.get_item(serial)
        assert item.status == ItemStatus.SOLD.value
        assert item.location == "Customer"
        assert item.sale_link == txn.id


def test_sell_rejects_items_not_in_stock(ledger):
    ledger.stock_in(ledger.bar_10g, ["A-1", "A-2"], 100, "s")
    assert ledger.sell(["A-1"], ledger.customer, 500).ok
    result = ledger.sell(["A-2", "A-1"], ledger.customer, 500)
    assert not result.ok
    assert "A-1" in result.message
    assert ledger.get_item("A-2").status == ItemStatus.IN_STOCK.value
    assert len(ledger.list_transactions(TransactionType.SALE)) == 1


def test_sell_validation_errors(ledger):
    ledger.stock_in(ledger.bar_10g, ["A-1"], 100, "s")
    assert not ledger.sell([], ledger.customer, 100).ok
    assert not ledger.sell(["A-1"], "nobody", 100).ok
    assert not ledger.sell(["A-1"], "", 100).ok
    assert not ledger.sell(["A-1", "A-1"], ledger.customer, 100).ok
    assert not ledger.sell(["ZZZ"], ledger.customer, 100).ok
    assert not ledger.sell(["A-1"], ledger.customer, 0).ok
    assert ledger.get_item("A-1").status == ItemStatus.IN_STOCK.value


def test_low_stock_warning_emitted_once_per_sale(ledger):
    ledger.stock_in(ledger.bar_10g, ["A-1", "A-2", "A-3"], 100, "s")
    ledger.stock_in(ledger.silver_100g, ["S-1", "S-2", "S-3", "S-4"], 100, "s")
    assert _warnings_for(ledger, "Parsis 10g") == []

    assert ledger.sell(["A-1"], ledger.customer, 100).ok
    warnings = _warnings_for(ledger, "Parsis 10g")
    assert len(warnings) == 1
    assert "down to 2 in stock" in warnings[0].message
    assert _warnings_for(ledger, "Silver 100g") == []

    # no deduplication across sales
    assert ledger.sell(["A-2"], ledger.customer, 100).ok
    assert len(_warnings_for(ledger, "Parsis 10g")) == 2


def test_low_stock_not_checked_on_purchase_or_buyback(ledger):
    ledger.stock_in(ledger.coin_1g, ["C-1"], 100, "s")
    ledger.buyback(ledger.coin_1g, "C-2", 100, ledger.customer)
    assert _warnings_for(ledger, "Coin 1g") == []


def test_buyback_revives_sold_item(ledger):
    ledger.stock_in(ledger.coin_1g, ["C-1"], 40_000_000, "s")
    sale = ledger.sell(["C-1"], ledger.customer, 41_000_000).transaction

    quote = ledger.quote_buyback("C-1", product_id=ledger.bar_10g)
    assert quote.existing
    assert quote.product_id == ledger.coin_1g
    assert quote.final_price == 35_952_500

    result = ledger.buyback(ledger.bar_10g, "C-1", quote.final_price, ledger.customer)
    assert result.ok
    txn = result.transaction
    assert re.fullmatch(r"BB-\d{8}", txn.id)
    assert txn.total_amount == 35_952_500
    assert txn.lines[0].product_id == ledger.coin_1g

    item = ledger.get_item("C-1")
    assert item.status == ItemStatus.IN_STOCK.value
    assert item.location == "Quarantine"
    assert item.product_id == ledger.coin_1g
    assert item.cost_price == 35_952_500
    assert item.buyback_link == txn.id
    assert item.sale_link == sale.id
    assert ledger.snapshot_for(txn.id) is not None


def test_buyback_manual_intake_of_unknown_serial(ledger):
    result = ledger.buyback(ledger.silver_100g, "OLD-9", 45_000_000, ledger.customer)
    assert result.ok
    item = ledger.get_item("OLD-9")
    assert item.product_id == ledger.silver_100g
    assert item.status == ItemStatus.IN_STOCK.value
    assert item.location == "Quarantine"
    assert item.notes
    infos = [n for n in ledger.notifications.list_notifications() if n.type == NotificationType.INFO.value]
    assert len(infos) == 1
    assert "OLD-9" in infos[0].message


def test_buyback_validation_errors(ledger):
    ledger.stock_in(ledger.coin_1g, ["C-1"], 100, "s")
    assert not ledger.buyback(ledger.coin_1g, "C-1", 100, ledger.customer).ok
    assert not ledger.buyback(ledger.coin_1g, "", 100, ledger.customer).ok
    assert not ledger.buyback(ledger.coin_1g, "NEW", 0, ledger.customer).ok
    assert not ledger.buyback(ledger.coin_1g, "NEW", -5, ledger.customer).ok
    assert not ledger.buyback(None, "NEW", 100, ledger.customer).ok
    assert not ledger.buyback(ledger.coin_1g, "NEW", 100, "nobody").ok
    assert ledger.get_item("NEW") is None
    assert len(ledger.list_transactions()) == 1


def test_quote_and_sell_cart(ledger):
    ledger.stock_in(ledger.bar_10g, ["A-1", "A-2"], 100, "s")
    quote = ledger.quote_sale(["A-1", "A-2", "MISSING"])
    assert [line.price for line in quote.lines] == [413_020_000, 413_020_000]
    assert quote.total == 826_040_000

    result = ledger.sell_cart(["A-1", "A-2"], ledger.customer, SalePricing(ojorat_per_gram=0, profit_margin_percent=0))
    assert result.ok
    assert result.transaction.total_amount == 730_000_000
    assert result.payload.total == 730_000_000


def test_sell_cart_rejects_unknown_serial(ledger):
    ledger.stock_in(ledger.bar_10g, ["A-1"], 100, "s")
    result = ledger.sell_cart(["A-1", "NOPE"], ledger.customer)
    assert not result.ok
    assert "NOPE" in result.message
    assert ledger.get_item("A-1").status == ItemStatus.IN_STOCK.value


def test_quote_stock_in_uses_product_spot(ledger):
    assert ledger.quote_stock_in(ledger.bar_10g) == 386_000_000
    assert ledger.quote_stock_in(ledger.silver_100g) == 259_500_000
    assert ledger.quote_stock_in("missing") == 0


def test_spot_price_text_input(ledger):
    assert ledger.set_spot_price_text("Gold", "۳۷,۰۰۰,۰۰۰") == 37_000_000
    assert ledger.spot_gold == 37_000_000
    ledger.set_spot_price_text("Silver", "")
    assert ledger.spot_silver == 0
    ledger.set_spot_price_text("gold", "38,000,000")
    assert ledger.spot_gold == 38_000_000
    ledger.set_spot_price_text(" SILVER ", "500,000")
    assert ledger.spot_silver == 500_000


def test_transactions_listed_newest_first(ledger):
    first = ledger.stock_in(ledger.bar_10g, ["A-1"], 100, "s").transaction
    second = ledger.stock_in(ledger.bar_10g, ["A-2"], 100, "s").transaction
    third = ledger.sell(["A-1"], ledger.customer, 100).transaction
    assert [t.id for t in ledger.list_transactions()] == [third.id, second.id, first.id]
    assert [t.id for t in ledger.list_transactions(TransactionType.PURCHASE)] == [second.id, first.id]


def test_available_items_filters(ledger):
    ledger.stock_in(ledger.bar_10g, ["A-1", "A-2"], 100, "s")
    ledger.stock_in(ledger.silver_100g, ["S-1"], 100, "s")
    ledger.sell(["A-2"], ledger.customer, 100)
    assert [i.serial_number for i in ledger.available_items()] == ["A-1", "S-1"]
    assert [i.serial_number for i in ledger.available_items(metal_type="Silver")] == ["S-1"]
    assert [i.serial_number for i in ledger.available_items(metal_type="silver")] == ["S-1"]
    assert [i.serial_number for i in ledger.available_items(search="parsis")] == ["A-1"]
    assert [i.serial_number for i in ledger.available_items(exclude=["A-1"])] == ["S-1"]
    assert ledger.stock_count(ledger.bar_10g) == 1


def test_failed_command_leaves_no_rows(ledger, session_factory):
    ledger.stock_in(ledger.bar_10g, ["A-1"], 100, "s")
    ledger.stock_in(ledger.bar_10g, ["A-1", "A-9"], 100, "s")
    with session_factory() as session:
        serials = session.execute(select(Item.serial_number)).scalars().all()
        assert serials == ["A-1"]
