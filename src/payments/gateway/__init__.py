"""Active payment gateway.

Order payment charges whichever gateway is installed here. Until a provider
adapter is installed with ``set_gateway`` at startup, a ``FakeGateway`` is
created on first use.
"""

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import ChargeResult, PaymentGateway

__all__ = ["ChargeResult", "PaymentGateway", "get_gateway", "reset_gateway", "set_gateway"]

_installed: list[PaymentGateway] = []


def get_gateway() -> PaymentGateway:
    if not _installed:
        _installed.append(FakeGateway())
    return _installed[0]


def set_gateway(gateway: PaymentGateway) -> None:
    _installed[:] = [gateway]


def reset_gateway() -> None:
    """Forget the installed gateway so the next charge starts from a fresh fake."""
    _installed.clear()
