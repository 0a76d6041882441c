"""
Auction House — collateral / surplus / debit аукционы

Auction house — внешний сервис; engine потребляет его через протокол
AuctionManager и получает асинхронный callback о завершении.

InMemoryAuctionHouse — референсная реализация без торгов: исход аукциона
задаётся вызовом end_collateral_auction (победитель и платёж). Записи
аукционов хранятся в WorldState и откатываются вместе с транзакцией.

Завершение collateral auction:
1. платёж победителя (stable) переводится на аккаунт treasury
2. лот выдаётся из custody treasury: победителю и, при частичном лоте,
   остаток — refund_recipient
3. handler.on_auction_ended(auction_id, collateral_type, payment)
"""

import logging
from typing import Optional, Protocol

from cdp_engine.core.domain.currency import AccountId, CurrencyId
from cdp_engine.core.errors import InvalidAmount, UnknownAuction
from cdp_engine.core.math.fixed_point import validate_balance
from cdp_engine.state import AuctionKind, AuctionRecord, WorldState
from cdp_engine.support.currencies import MultiCurrency

logger = logging.getLogger(__name__)


class AuctionManager(Protocol):
    """Интерфейс auction house, потребляемый treasury и engine."""

    def new_collateral_auction(
        self, refund_recipient: AccountId, collateral_type: CurrencyId, amount: int, target: int
    ) -> int: ...

    def new_surplus_auction(self, amount: int) -> int: ...

    def new_debit_auction(self, initial_amount: int, fix_debit: int) -> int: ...

    def cancel_auction(self, auction_id: int) -> None: ...

    def get_total_collateral_in_auction(self, collateral_type: CurrencyId) -> int: ...

    def get_total_surplus_in_auction(self) -> int: ...

    def get_total_debit_in_auction(self) -> int: ...


class AuctionHandler(Protocol):
    """Callback-получатель исходов collateral auction (Risk Engine)."""

    def on_auction_ended(self, auction_id: int, collateral_type: CurrencyId, winning_payment: int) -> object: ...

    def on_auction_cancelled(self, auction_id: int) -> object: ...


class CollateralCustody(Protocol):
    """Выдача collateral из custody treasury."""

    def withdraw_collateral(self, to: AccountId, collateral_type: CurrencyId, amount: int) -> None: ...


class InMemoryAuctionHouse:
    """
    Реестр аукционов поверх WorldState.auctions.

    Handler и custody подключаются через bind() после сборки engine.
    """

    def __init__(
        self,
        state: WorldState,
        currencies: MultiCurrency,
        stable_currency_id: CurrencyId,
        treasury_account: AccountId,
    ):
        self._state = state
        self._currencies = currencies
        self._stable_currency_id = stable_currency_id
        self._treasury_account = treasury_account
        self._handler: Optional[AuctionHandler] = None
        self._custody: Optional[CollateralCustody] = None

    def bind(self, handler: AuctionHandler, custody: CollateralCustody) -> None:
        self._handler = handler
        self._custody = custody

    # -------------------------------------------------------------------------
    # Создание
    # -------------------------------------------------------------------------

    def _new_auction(self, record_kind: AuctionKind, amount: int, **kwargs) -> int:
        with self._state.transaction():
            auction_id = self._state.next_auction_id
            self._state.next_auction_id = auction_id + 1
            self._state.auctions[auction_id] = AuctionRecord(
                auction_id=auction_id, kind=record_kind, amount=amount, **kwargs
            )
        logger.info("Auction %d created: kind=%s amount=%d", auction_id, record_kind.value, amount)
        return auction_id

    def new_collateral_auction(
        self, refund_recipient: AccountId, collateral_type: CurrencyId, amount: int, target: int
    ) -> int:
        validate_balance(amount, "amount")
        validate_balance(target, "target")
        if amount == 0:
            raise InvalidAmount("collateral auction lot must be positive")
        return self._new_auction(
            AuctionKind.COLLATERAL,
            amount,
            target=target,
            collateral_type=collateral_type,
            refund_recipient=refund_recipient,
        )

    def new_surplus_auction(self, amount: int) -> int:
        validate_balance(amount, "amount")
        return self._new_auction(AuctionKind.SURPLUS, amount)

    def new_debit_auction(self, initial_amount: int, fix_debit: int) -> int:
        """initial_amount — native currency к выпуску, fix_debit — покрываемый долг."""
        validate_balance(initial_amount, "initial_amount")
        validate_balance(fix_debit, "fix_debit")
        return self._new_auction(AuctionKind.DEBIT, fix_debit, target=initial_amount)

    # -------------------------------------------------------------------------
    # Запросы
    # -------------------------------------------------------------------------

    def get_auction(self, auction_id: int) -> Optional[AuctionRecord]:
        return self._state.auctions.get(auction_id)

    def _total(self, kind: AuctionKind, collateral_type: Optional[CurrencyId] = None) -> int:
        return sum(
            record.amount
            for record in self._state.auctions.values()
            if record.kind == kind and (collateral_type is None or record.collateral_type == collateral_type)
        )

    def get_total_collateral_in_auction(self, collateral_type: CurrencyId) -> int:
        return self._total(AuctionKind.COLLATERAL, collateral_type)

    def get_total_surplus_in_auction(self) -> int:
        return self._total(AuctionKind.SURPLUS)

    def get_total_debit_in_auction(self) -> int:
        return self._total(AuctionKind.DEBIT)

    # -------------------------------------------------------------------------
    # Завершение / отмена
    # -------------------------------------------------------------------------

    def _take(self, auction_id: int) -> AuctionRecord:
        record = self._state.auctions.pop(auction_id, None)
        if record is None:
            raise UnknownAuction(f"auction {auction_id} does not exist")
        return record

    def end_collateral_auction(
        self,
        auction_id: int,
        winner: Optional[AccountId],
        payment: int,
        collateral_to_winner: Optional[int] = None,
    ) -> object:
        """
        Завершение collateral auction.

        Args:
            winner: победитель или None (торгов не было, лот остаётся в treasury)
            payment: платёж победителя в stable currency
            collateral_to_winner: часть лота победителю (по умолчанию весь лот);
                остаток возвращается refund_recipient

        Returns:
            Результат callback handler.on_auction_ended
        """
        validate_balance(payment, "payment")
        if self._handler is None or self._custody is None:
            raise RuntimeError("Auction house is not bound to an engine")

        with self._state.transaction():
            record = self._take(auction_id)
            if record.kind != AuctionKind.COLLATERAL:
                raise UnknownAuction(f"auction {auction_id} is not a collateral auction")

            if winner is None:
                if payment != 0:
                    raise InvalidAmount("payment without a winner")
            else:
                to_winner = record.amount if collateral_to_winner is None else collateral_to_winner
                if to_winner > record.amount:
                    raise InvalidAmount(f"collateral_to_winner {to_winner} exceeds lot {record.amount}")
                self._currencies.transfer(self._stable_currency_id, winner, self._treasury_account, payment)
                self._custody.withdraw_collateral(winner, record.collateral_type, to_winner)
                refund = record.amount - to_winner
                if refund > 0:
                    self._custody.withdraw_collateral(record.refund_recipient, record.collateral_type, refund)

            result = self._handler.on_auction_ended(auction_id, record.collateral_type, payment)

        logger.info("Collateral auction %d ended: winner=%s payment=%d", auction_id, winner, payment)
        return result

    def cancel_auction(self, auction_id: int) -> None:
        """Отмена аукциона; лот collateral auction остаётся в custody treasury."""
        with self._state.transaction():
            record = self._take(auction_id)
            if record.kind == AuctionKind.COLLATERAL and self._handler is not None:
                self._handler.on_auction_cancelled(auction_id)
        logger.info("Auction %d cancelled: kind=%s", auction_id, record.kind.value)
