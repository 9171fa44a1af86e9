import pytest

from bullion.db import Base, init_db, make_engine, make_session_factory
from bullion.services.ledger_service import LedgerService


@pytest.fixture()
def session_factory():
    engine = make_engine("sqlite:///:memory:")
    init_db(engine)
    Session = make_session_factory(engine)
    try:
        yield Session
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def ledger(session_factory):
    """Ledger with two gold products, one silver product and one customer."""
    service = LedgerService(session_factory=session_factory, spot_gold=36_500_000, spot_silver=495_000)
    catalog = service.catalog
    service.bar_10g = catalog.add_product(
        {"name": "Parsis 10g", "metal_type": "Gold", "weight_grams": 10, "purity": 995}
    ).entity_id
    service.coin_1g = catalog.add_product(
        {"name": "Coin 1g", "metal_type": "Gold", "weight_grams": 1, "purity": 900}
    ).entity_id
    service.silver_100g = catalog.add_product(
        {"name": "Silver 100g", "metal_type": "Silver", "weight_grams": 100, "purity": 999}
    ).entity_id
    service.customer = catalog.add_customer({"name": "Ali Rezaei", "phone": "09123456789"}).entity_id
    return service
