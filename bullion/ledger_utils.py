import datetime
import random
import re
import time
from typing import Callable, Iterable, List, Optional

# Latin comma and Arabic thousands separator
_THOUSANDS_RE = re.compile(r"[,٬]")
# ASCII only; other Unicode digits are dropped like any other character
_NON_DIGIT_RE = re.compile(r"[^0-9]")

# Persian (U+06F0..) and Arabic-Indic (U+0660..) digits to ASCII
_DIGIT_MAP = {ord(ch): str(i) for i, ch in enumerate("۰۱۲۳۴۵۶۷۸۹")}
_DIGIT_MAP.update({ord(ch): str(i) for i, ch in enumerate("٠١٢٣٤٥٦٧٨٩")})

SERIAL_SEPARATOR = ", "


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def parse_price_input(text: str) -> float:
    """Turn a live-edited price field into a number.

    '۳۶,۵۰۰,۰۰۰' and '36٬500٬000' both give 36500000; empty or garbage gives 0.
    """
    s = _THOUSANDS_RE.sub("", text or "")
    s = s.translate(_DIGIT_MAP)
    s = _NON_DIGIT_RE.sub("", s)
    if not s:
        return 0
    try:
        return float(int(s, 10))
    except (ValueError, OverflowError):
        return 0


def parse_serials(text: str) -> List[str]:
    """Split 'SN-1, SN-2,,SN-3 ' into ['SN-1', 'SN-2', 'SN-3']."""
    return [s.strip() for s in (text or "").split(",") if s.strip()]


def clean_serials(serials: Iterable[str]) -> List[str]:
    return [s.strip() for s in serials if s and s.strip()]


def join_serials(serials: Iterable[str]) -> str:
    return SERIAL_SEPARATOR.join(serials)


def split_serials(joined: Optional[str]) -> List[str]:
    return parse_serials(joined or "")


def find_repeats(values: Iterable[str]) -> List[str]:
    seen, repeats = set(), []
    for v in values:
        if v in seen and v not in repeats:
            repeats.append(v)
        seen.add(v)
    return repeats


class IdGenerator:
    """Readable ids: PUR-/INV-/BB-<last4 ms><4 random>, P-/c-/SNP-<ms>, NOT-<ms>-<n>.

    Timestamp-only ids never reuse a millisecond, so two products created in
    the same tick still get distinct ids.
    """

    def __init__(
        self,
        clock: Callable[[], int] = lambda: int(time.time() * 1000),
        rng: Optional[random.Random] = None,
    ):
        self._clock = clock
        self._rng = rng or random.Random()
        self._last_ms: dict = {}

    def _ms(self, prefix: str) -> int:
        ms = self._clock()
        last = self._last_ms.get(prefix)
        if last is not None and ms <= last:
            ms = last + 1
        self._last_ms[prefix] = ms
        return ms

    def transaction_id(self, prefix: str) -> str:
        stamp = str(self._clock())[-4:]
        return f"{prefix}-{stamp}{self._rng.randint(1000, 9999)}"

    def purchase_id(self) -> str:
        return self.transaction_id("PUR")

    def sale_id(self) -> str:
        return self.transaction_id("INV")

    def buyback_id(self) -> str:
        return self.transaction_id("BB")

    def product_id(self) -> str:
        return f"P-{self._ms('P')}"

    def customer_id(self) -> str:
        return f"c-{self._ms('c')}"

    def snapshot_id(self) -> str:
        return f"SNP-{self._ms('SNP')}"

    def notification_id(self) -> str:
        return f"NOT-{self._clock()}-{self._rng.randint(0, 999)}"
