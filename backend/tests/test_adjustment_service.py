# Overview: Pytest coverage for manual balance adjustments.

from decimal import Decimal

import pytest

from wipledger.errors import InvalidQuantityError, NotFoundError
from wipledger.models import WipBalanceAdjustment
from wipledger.services import adjustment_service, balance_service
from wipledger.services.balance_service import BalanceKey


class TestAdjustBalance:

    def _balance(self, route):
        return balance_service.get_balance(BalanceKey(route.part_id, route.turning.id, 15))

    def test_same_value_is_a_no_op(self, db_session, route, stock):
        stock(15, 5)
        balance = self._balance(route)

        result = adjustment_service.adjust_balance(balance.id, Decimal("5"), comment="recount")

        assert result.delta == Decimal("0")
        assert result.adjustment_id is None
        assert result.changed is False
        assert db_session.query(WipBalanceAdjustment).count() == 0

    def test_adjustment_records_delta(self, db_session, route, stock):
        stock(15, "15.5")
        balance = self._balance(route)

        result = adjustment_service.adjust_balance(balance.id, Decimal("20"), comment=" recount ")
        db_session.commit()

        assert result.previous_quantity == Decimal("15.5")
        assert result.new_quantity == Decimal("20")
        assert result.delta == Decimal("4.5")
        assert balance_service.get_balance_by_id(balance.id).quantity == Decimal("20")

        [adjustment] = adjustment_service.list_adjustments(balance.id)
        assert adjustment.id == result.adjustment_id
        assert adjustment.comment == "recount"
        assert adjustment.user_id == 7

    def test_adjust_down_to_zero(self, db_session, route, stock):
        stock(15, 3)
        balance = self._balance(route)

        result = adjustment_service.adjust_balance(balance.id, Decimal("0"))

        assert result.delta == Decimal("-3")
        assert balance_service.get_balance_by_id(balance.id).quantity == Decimal("0")

    def test_negative_target_rejected(self, db_session, route, stock):
        stock(15, 3)
        balance = self._balance(route)

        with pytest.raises(InvalidQuantityError):
            adjustment_service.adjust_balance(balance.id, Decimal("-1"))

        assert balance_service.get_balance_by_id(balance.id).quantity == Decimal("3")

    def test_unknown_balance(self, db_session):
        with pytest.raises(NotFoundError):
            adjustment_service.adjust_balance(424242, Decimal("1"))
