# Overview: Pytest coverage for the balance store.

from decimal import Decimal

import pytest

from wipledger.errors import InsufficientBalanceError, InvalidQuantityError, NotFoundError
from wipledger.services import balance_service
from wipledger.services.balance_service import BalanceKey


class TestBalanceStore:
    """increment/decrement/upsert/set_quantity on one location."""

    def _key(self, route, op_number=15):
        return BalanceKey(route.part_id, route.steps[op_number].section_id, op_number)

    def test_upsert_creates_row_at_zero(self, db_session, route):
        key = self._key(route)
        assert balance_service.find_balance(key) is None

        change = balance_service.upsert(key, Decimal("12.5"))

        assert change.quantity_before == Decimal("0")
        assert change.quantity_after == Decimal("12.5")
        assert balance_service.current_quantity(key) == Decimal("12.5")

    def test_upsert_then_increment(self, db_session, route):
        key = self._key(route)
        balance_service.upsert(key, Decimal("10"))
        change = balance_service.increment(key, Decimal("5"))

        assert change.delta == Decimal("5")
        assert balance_service.get_balance(key).quantity == Decimal("15")

    def test_increment_requires_existing_row(self, db_session, route):
        with pytest.raises(NotFoundError):
            balance_service.increment(self._key(route), Decimal("1"))

    def test_decrement_below_zero_fails(self, db_session, route):
        key = self._key(route)
        balance_service.upsert(key, Decimal("3"))

        with pytest.raises(InsufficientBalanceError):
            balance_service.decrement(key, Decimal("3.001"))

        assert balance_service.current_quantity(key) == Decimal("3")

    def test_decrement_to_exactly_zero(self, db_session, route):
        key = self._key(route)
        balance_service.upsert(key, Decimal("3"))
        change = balance_service.decrement(key, Decimal("3"))

        assert change.quantity_after == Decimal("0")

    def test_decrement_missing_row_is_insufficient(self, db_session, route):
        with pytest.raises(InsufficientBalanceError):
            balance_service.decrement(self._key(route, 30), Decimal("1"))

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
    def test_non_positive_amounts_rejected(self, db_session, route, amount):
        key = self._key(route)
        balance_service.upsert(key, Decimal("5"))

        with pytest.raises(InvalidQuantityError):
            balance_service.increment(key, amount)
        with pytest.raises(InvalidQuantityError):
            balance_service.decrement(key, amount)
        with pytest.raises(InvalidQuantityError):
            balance_service.upsert(key, amount)

    def test_set_quantity_rejects_negative(self, db_session, route):
        key = self._key(route)
        balance = balance_service.upsert(key, Decimal("5")).balance

        with pytest.raises(InvalidQuantityError):
            balance_service.set_quantity(balance, Decimal("-0.001"))

        change = balance_service.set_quantity(balance, Decimal("2"))
        assert change.delta == Decimal("-3")

    def test_get_balance_by_id_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            balance_service.get_balance_by_id(424242)
