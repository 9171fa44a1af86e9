import random
import re

from bullion.ledger_utils import (
    IdGenerator,
    find_repeats,
    join_serials,
    parse_price_input,
    parse_serials,
    split_serials,
)


def test_parse_price_input_handles_persian_digits_and_separators():
    assert parse_price_input("۳۶,۵۰۰,۰۰۰") == 36_500_000
    assert parse_price_input("36٬500٬000") == 36_500_000
    assert parse_price_input("٤٩٥٬٠٠٠") == 495_000
    assert parse_price_input(" 1,234 rials") == 1234


def test_parse_price_input_defaults_to_zero():
    assert parse_price_input("") == 0
    assert parse_price_input(None) == 0
    assert parse_price_input("abc") == 0


def test_parse_price_input_ignores_non_persian_unicode_digits():
    assert parse_price_input("１２") == 0
    assert parse_price_input("१२3") == 3


def test_parse_price_input_too_large_gives_zero():
    assert parse_price_input("9" * 400) == 0


def test_parse_serials_trims_and_drops_empties():
    assert parse_serials(" SN-1, SN-2,,SN-3 ,") == ["SN-1", "SN-2", "SN-3"]
    assert split_serials(join_serials(["A", "B"])) == ["A", "B"]
    assert split_serials(None) == []


def test_find_repeats_reports_each_once():
    assert find_repeats(["A", "B", "A", "A", "C", "B"]) == ["A", "B"]


def test_id_formats():
    ids = IdGenerator(clock=lambda: 1_700_000_001_234, rng=random.Random(7))
    assert re.fullmatch(r"PUR-1234\d{4}", ids.purchase_id())
    assert re.fullmatch(r"INV-1234\d{4}", ids.sale_id())
    assert re.fullmatch(r"BB-1234\d{4}", ids.buyback_id())
    assert re.fullmatch(r"NOT-1700000001234-\d{1,3}", ids.notification_id())
    assert ids.customer_id() == "c-1700000001234"
    assert ids.snapshot_id() == "SNP-1700000001234"


def test_timestamp_ids_never_repeat_within_a_millisecond():
    ids = IdGenerator(clock=lambda: 1_700_000_001_234)
    assert ids.product_id() == "P-1700000001234"
    assert ids.product_id() == "P-1700000001235"
