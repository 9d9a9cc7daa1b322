"""Configurable fake payment gateway for development and testing.

Simulates a provider without any external calls. Replaying an idempotency
key returns the first result instead of charging again, the way real
providers behave.
"""

from decimal import Decimal
from uuid import uuid4

from payments.gateway.port import ChargeResult, PaymentGateway


class FakeGateway(PaymentGateway):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.charges: list[dict] = []
        self._results: dict[str, ChargeResult] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def charge(
        self,
        amount: Decimal,
        currency: str,
        payment_method: str,
        idempotency_key: str,
    ) -> ChargeResult:
        if idempotency_key in self._results:
            return self._results[idempotency_key]

        self.charges.append(
            {
                "amount": amount,
                "currency": currency,
                "payment_method": payment_method,
                "idempotency_key": idempotency_key,
            }
        )

        if self.should_succeed:
            result = ChargeResult(
                success=True,
                transaction_id=f"fake_txn_{uuid4().hex[:12]}",
                status="succeeded",
            )
        else:
            result = ChargeResult(success=False, status="failed", failure_reason=self.failure_reason)

        self._results[idempotency_key] = result
        return result
