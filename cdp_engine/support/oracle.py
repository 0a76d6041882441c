"""
Oracle — источник цен collateral в stable currency

Отсутствие цены — валидное состояние "неизвестно" (None), а не ошибка.
При emergency shutdown цены фиксируются (lock_price): дальнейшие обновления
feed не влияют на расчёты.
"""

import logging
from typing import Optional, Protocol

from cdp_engine.core.domain.currency import CurrencyId
from cdp_engine.core.math.fixed_point import Price
from cdp_engine.state import WorldState

logger = logging.getLogger(__name__)


class PriceSource(Protocol):
    def get_price(self, currency_id: CurrencyId) -> Optional[Price]: ...


class LockablePriceSource(PriceSource, Protocol):
    def lock_price(self, currency_id: CurrencyId) -> None: ...

    def unlock_price(self, currency_id: CurrencyId) -> None: ...


class InMemoryPriceSource:
    """
    Feed цен поверх WorldState.prices.

    Stable currency всегда стоит 1.
    """

    def __init__(self, state: WorldState, stable_currency_id: CurrencyId):
        self._state = state
        self._stable_currency_id = stable_currency_id

    def set_price(self, currency_id: CurrencyId, price: Optional[Price]) -> None:
        """Обновление feed (None удаляет цену)."""
        with self._state.transaction():
            if price is None:
                self._state.prices.pop(currency_id, None)
            else:
                self._state.prices[currency_id] = Price.from_inner(price.inner)
        logger.debug("Feed price %s = %s", currency_id, price)

    def get_price(self, currency_id: CurrencyId) -> Optional[Price]:
        if currency_id == self._stable_currency_id:
            return Price.one()
        locked = self._state.locked_prices.get(currency_id)
        if locked is not None:
            return locked
        return self._state.prices.get(currency_id)

    def lock_price(self, currency_id: CurrencyId) -> None:
        """Фиксация текущей цены; без цены в feed lock не ставится."""
        price = self._state.prices.get(currency_id)
        if price is None:
            logger.warning("Cannot lock price of %s: no feed price", currency_id)
            return
        with self._state.transaction():
            self._state.locked_prices[currency_id] = price
        logger.info("Locked price %s = %s", currency_id, price)

    def unlock_price(self, currency_id: CurrencyId) -> None:
        with self._state.transaction():
            self._state.locked_prices.pop(currency_id, None)
