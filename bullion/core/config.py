import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    APP_NAME: str = os.getenv("APP_NAME", "Bullion POS")
    ENV: str = os.getenv("BULLION_ENV", "dev").lower()  # dev|stage|prod
    DEBUG: bool = os.getenv("DEBUG", "").lower() in {"1", "true", "yes"} or os.getenv("BULLION_ENV", "dev").lower() != "prod"

    # Nothing survives a restart unless a file URL is configured.
    DATABASE_URL: str = os.getenv("BULLION_DATABASE_URL", "sqlite:///:memory:")

    LOW_STOCK_THRESHOLD: int = int(_env_float("LOW_STOCK_THRESHOLD", 2))

    # Rials per gram
    INITIAL_GOLD_PRICE: float = _env_float("INITIAL_GOLD_PRICE", 36_500_000)
    INITIAL_SILVER_PRICE: float = _env_float("INITIAL_SILVER_PRICE", 495_000)

    # Per-flow pricing defaults
    STOCK_IN_FEE_PER_GRAM: float = _env_float("STOCK_IN_FEE_PER_GRAM", 2_100_000)
    SALE_OJORAT_PER_GRAM: float = _env_float("SALE_OJORAT_PER_GRAM", 2_100_000)
    SALE_PROFIT_MARGIN_PERCENT: float = _env_float("SALE_PROFIT_MARGIN_PERCENT", 7)
    BUYBACK_DEDUCTION_PERCENT: float = _env_float("BUYBACK_DEDUCTION_PERCENT", 1.5)
    BUYBACK_DEDUCTION_PER_GRAM: float = _env_float("BUYBACK_DEDUCTION_PER_GRAM", 50_000)
    BUYBACK_PACKAGING_FEE: float = _env_float("BUYBACK_PACKAGING_FEE", 0)


# singleton settings
settings = Settings()

DATABASE_URL = settings.DATABASE_URL
LOW_STOCK_THRESHOLD = settings.LOW_STOCK_THRESHOLD

# Where items sit after each ledger event
LOCATION_STORE_SAFE = "Store Safe"
LOCATION_CUSTOMER = "Customer"
LOCATION_QUARANTINE = "Quarantine"
