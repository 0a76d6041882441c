"""
Auth — capability token для привилегированных вызовов

Привилегированные entrypoint'ы (set_collateral_params, set_global_stability_fee,
emergency_shutdown, open_collateral_refund, surplus/debit auctions) принимают
origin и проверяют его на границе. Проверка подписи и аккаунтов — вне scope:
сюда приходят уже авторизованные вызовы.
"""

import hmac
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any

from cdp_engine.core.errors import BadOrigin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capability:
    """Токен привилегированного origin. Выдаётся только Authority."""

    name: str
    token: str = field(repr=False)


class Authority:
    """
    Выдача и проверка capability.

    Каждый экземпляр Authority имеет собственный секрет: токен, выданный
    другим Authority, не принимается.
    """

    ROOT = "root"

    def __init__(self):
        self._secret = secrets.token_hex(32)

    def issue_root(self) -> Capability:
        return Capability(name=self.ROOT, token=self._secret)

    def ensure_root(self, origin: Any) -> Capability:
        """
        Проверка privileged origin.

        Raises:
            BadOrigin: origin не является root capability этого Authority
        """
        if not isinstance(origin, Capability) or origin.name != self.ROOT:
            logger.warning("Rejected privileged call: bad origin %r", origin)
            raise BadOrigin("privileged call requires root capability")
        if not hmac.compare_digest(origin.token, self._secret):
            logger.warning("Rejected privileged call: foreign capability")
            raise BadOrigin("capability was not issued by this authority")
        return origin
