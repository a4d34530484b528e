"""Tests for the static access gate."""

from app.domain.access.access_gate import StaticAccessGate
from app.schemas.plan import PlanTag


class TestStaticAccessGate:
    def test_access_code(self):
        gate = StaticAccessGate(access_codes=["bintunet"])

        assert gate.check_access_code("bintunet") is True
        assert gate.check_access_code("BINTUNET") is False
        assert gate.check_access_code("") is False
        assert gate.check_access_code("пароль") is False

    def test_no_codes_rejects_everything(self):
        gate = StaticAccessGate(access_codes=["", ""])

        assert gate.check_access_code("") is False

    def test_demo_transaction_codes(self):
        gate = StaticAccessGate(access_codes=["bintunet"])

        assert gate.redeem_transaction(None, "1") == PlanTag.FIVE_HOURS
        assert gate.redeem_transaction(PlanTag.LIFETIME, "2") == PlanTag.TWELVE_HOURS
        assert gate.redeem_transaction(PlanTag.FIVE_HOURS, "3") == PlanTag.LIFETIME
        assert gate.redeem_transaction(PlanTag.FIVE_HOURS, "4") is None

    def test_universal_code_keeps_requested_plan(self):
        gate = StaticAccessGate(access_codes=["bintunet"])

        assert gate.redeem_transaction(PlanTag.TWELVE_HOURS, "bintunet") == PlanTag.TWELVE_HOURS
        assert gate.redeem_transaction(None, "bintunet") == PlanTag.FIVE_HOURS

    def test_custom_transaction_codes(self):
        gate = StaticAccessGate(access_codes=[], transaction_codes={"tx-42": PlanTag.LIFETIME})

        assert gate.redeem_transaction(None, "tx-42") == PlanTag.LIFETIME
        assert gate.redeem_transaction(None, "1") is None
