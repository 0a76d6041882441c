"""
Currency — идентификаторы активов, аккаунтов и торговых пар
"""

from pydantic import BaseModel, Field, model_validator

# Непрозрачный идентификатор актива (например, 'XBTC', 'AUSD')
CurrencyId = str

# Непрозрачный идентификатор аккаунта
AccountId = str


class TradingPair(BaseModel):
    """
    Каноническая торговая пара: token_0 < token_1 (лексикографически).

    Immutable и hashable — используется как ключ пулов ликвидности.
    """

    token_0: CurrencyId = Field(..., min_length=1)
    token_1: CurrencyId = Field(..., min_length=1)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_canonical(self) -> "TradingPair":
        if self.token_0 >= self.token_1:
            raise ValueError(
                f"TradingPair must be canonical (token_0 < token_1), got {self.token_0}/{self.token_1}"
            )
        return self

    @classmethod
    def of(cls, currency_a: CurrencyId, currency_b: CurrencyId) -> "TradingPair":
        """Пара из двух валют в любом порядке."""
        if currency_a == currency_b:
            raise ValueError(f"TradingPair requires two distinct currencies, got {currency_a}")
        token_0, token_1 = sorted((currency_a, currency_b))
        return cls(token_0=token_0, token_1=token_1)

    def contains(self, currency_id: CurrencyId) -> bool:
        return currency_id in (self.token_0, self.token_1)

    def __str__(self) -> str:
        return f"{self.token_0}/{self.token_1}"
