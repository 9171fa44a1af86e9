# bullion/dev_check.py
import logging

from bullion.core.config import settings
from bullion.seed import seed_demo_data
from bullion.services.invoice_service import InvoiceService
from bullion.services.ledger_service import LedgerService
from bullion.services.reporting_service import ReportingService


def main():
    if settings.DEBUG:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    print(f"{settings.APP_NAME} environment: {settings.ENV}")

    ledger = LedgerService()
    seed_demo_data()

    result = ledger.stock_in("p1", ["SN-DEV-1", "SN-DEV-2"], ledger.quote_stock_in("p1"), supplier="Dev Supplier")
    print("Stock-in:", result.message)

    result = ledger.sell_cart(["SN-DEV-1"], "c1")
    print("Sale:", result.message)
    if result.ok:
        invoice = InvoiceService().invoice_for_transaction(result.transaction.id)
        print("Invoice total:", invoice.final_total)

    quote = ledger.quote_buyback("SN-DEV-1")
    if quote and quote.is_valid:
        print("Buyback:", ledger.buyback(None, "SN-DEV-1", quote.final_price, "c1").message)

    print("Notifications:")
    for notif in ledger.notifications.list_notifications():
        print(" -", notif.type, notif.message)
    stats = ReportingService().dashboard(ledger.spot_gold, ledger.spot_silver)
    print("Dashboard:", stats)


if __name__ == "__main__":
    main()
