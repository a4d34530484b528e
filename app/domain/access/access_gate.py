"""Pluggable entitlement checks for login and payment."""

import hmac
from abc import ABC, abstractmethod

from app.schemas.plan import PlanTag

# Demo transaction codes accepted by the payment flow
DEMO_TRANSACTION_CODES: dict[str, PlanTag] = {
    "1": PlanTag.FIVE_HOURS,
    "2": PlanTag.TWELVE_HOURS,
    "3": PlanTag.LIFETIME,
}


class AccessGate(ABC):
    """Decides whether a credential grants access and to which plan.

    Swap the implementation to back login and payment with a real identity or
    billing provider; nothing in the stream domain depends on it.
    """

    @abstractmethod
    def check_access_code(self, access_code: str) -> bool:
        """True if the shared secret is accepted."""

    @abstractmethod
    def redeem_transaction(self, requested_plan: PlanTag | None, transaction_code: str) -> PlanTag | None:
        """Plan granted by a transaction code, or None if the code is rejected."""


class StaticAccessGate(AccessGate):
    """Flat comparison against configured allow-lists."""

    def __init__(
        self,
        access_codes: list[str],
        transaction_codes: dict[str, PlanTag] | None = None,
    ):
        self._access_codes = [code for code in access_codes if code]
        self._transaction_codes = dict(
            DEMO_TRANSACTION_CODES if transaction_codes is None else transaction_codes
        )

    def check_access_code(self, access_code: str) -> bool:
        candidate = access_code.encode()
        return any(hmac.compare_digest(candidate, code.encode()) for code in self._access_codes)

    def redeem_transaction(
        self, requested_plan: PlanTag | None, transaction_code: str
    ) -> PlanTag | None:
        # Universal code: grants whatever plan was asked for
        if self.check_access_code(transaction_code):
            return requested_plan or PlanTag.FIVE_HOURS
        return self._transaction_codes.get(transaction_code)
