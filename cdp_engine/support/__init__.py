"""Support — внешние сервисы, потребляемые engine через протоколы.

- currencies: fungible multi-currency ledger
- oracle: источник цен с фиксацией при shutdown
- auction: auction house (collateral / surplus / debit)
"""

from .auction import AuctionHandler, AuctionManager, CollateralCustody, InMemoryAuctionHouse
from .currencies import InMemoryCurrencies, MultiCurrency
from .oracle import InMemoryPriceSource, LockablePriceSource, PriceSource

__all__ = [
    "MultiCurrency",
    "InMemoryCurrencies",
    "PriceSource",
    "LockablePriceSource",
    "InMemoryPriceSource",
    "AuctionManager",
    "AuctionHandler",
    "CollateralCustody",
    "InMemoryAuctionHouse",
]
