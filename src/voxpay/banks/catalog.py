"""
Static catalog of Nigerian financial institutions and their CBN/NIP codes.

Loaded once at import; treated as read-only reference data.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple


@dataclass(frozen=True)
class BankCatalogEntry:
    name: str
    code: str


_NIGERIAN_BANKS: Tuple[Tuple[str, str], ...] = (
    ("Access Bank", "044"),
    ("Citibank Nigeria", "023"),
    ("Ecobank Nigeria", "050"),
    ("Fidelity Bank", "070"),
    ("First Bank of Nigeria", "011"),
    ("First City Monument Bank", "214"),
    ("Globus Bank", "00103"),
    ("Guaranty Trust Bank", "058"),
    ("Heritage Bank", "030"),
    ("Jaiz Bank", "301"),
    ("Keystone Bank", "082"),
    ("Lotus Bank", "303"),
    ("Optimus Bank", "107"),
    ("Parallex Bank", "104"),
    ("Polaris Bank", "076"),
    ("PremiumTrust Bank", "105"),
    ("Providus Bank", "101"),
    ("Signature Bank", "106"),
    ("Stanbic IBTC Bank", "221"),
    ("Standard Chartered Bank", "068"),
    ("Sterling Bank", "232"),
    ("Suntrust Bank", "100"),
    ("TAJ Bank", "302"),
    ("Titan Trust Bank", "102"),
    ("Union Bank of Nigeria", "032"),
    ("United Bank For Africa", "033"),
    ("Unity Bank", "215"),
    ("Wema Bank", "035"),
    ("Zenith Bank", "057"),
    ("Carbon", "565"),
    ("Kuda Bank", "50211"),
    ("Moniepoint MFB", "50515"),
    ("Rubies MFB", "125"),
    ("Sparkle Microfinance Bank", "51310"),
    ("VFD Microfinance Bank", "566"),
    ("PalmPay", "999991"),
    ("OPay", "999992"),
)

# Fintechs that issue phone-number-like account numbers outside NUBAN.
FINTECH_PREFIXES = frozenset({"90", "80", "81", "70"})
FINTECH_FALLBACK_CODES = ("999992", "999991")  # OPay, then PalmPay


class BankCatalog:
    """
    Ordered, read-only collection of catalog entries.
    """

    def __init__(self, entries: Iterable[BankCatalogEntry]):
        self._entries = tuple(entries)
        self._by_code = {e.code: e for e in self._entries}

    def __iter__(self) -> Iterator[BankCatalogEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def by_code(self, code: str) -> Optional[BankCatalogEntry]:
        return self._by_code.get(code)

    def name_for(self, code: str) -> str:
        entry = self.by_code(code)
        return entry.name if entry else ""


BANK_CATALOG = BankCatalog(BankCatalogEntry(name, code) for name, code in _NIGERIAN_BANKS)
