# Overview: Pytest coverage for launches and their hours-to-finish projection.

from decimal import Decimal

import pytest

from wipledger.errors import ConflictError, InsufficientBalanceError, InvalidQuantityError, NotFoundError
from wipledger.models import WipLaunch, WipLaunchOperation
from wipledger.services import balance_service, launch_service
from wipledger.services.balance_service import BalanceKey

from conftest import TEST_DATE


def _origin(route):
    return BalanceKey(route.part_id, route.turning.id, 15)


class TestAddLaunch:

    def test_projects_hours_along_route_tail(self, db_session, route, stock):
        stock(15, 100)

        result = launch_service.add_launch(
            part_id=route.part_id,
            from_op_number=15,
            launch_date=TEST_DATE,
            quantity=Decimal("40"),
        )
        db_session.commit()

        assert result.sum_hours_to_finish == Decimal("12.4")
        assert result.balance_before == Decimal("100")
        assert result.balance_after == Decimal("60")
        assert balance_service.current_quantity(_origin(route)) == Decimal("60")

        operations = (
            db_session.query(WipLaunchOperation)
            .filter_by(launch_id=result.launch_id)
            .order_by(WipLaunchOperation.op_number)
            .all()
        )
        assert [op.op_number for op in operations] == [15, 30, 35, 45]
        assert all(op.quantity == Decimal("40") for op in operations)
        assert [op.hours for op in operations] == [
            Decimal("4.48"), Decimal("3.48"), Decimal("1.6"), Decimal("2.84"),
        ]

    def test_only_origin_balance_changes(self, db_session, route, stock):
        stock(15, 100)
        stock(30, 5)

        launch_service.add_launch(part_id=route.part_id, from_op_number=30, launch_date=TEST_DATE, quantity=Decimal("5"))

        assert balance_service.current_quantity(_origin(route)) == Decimal("100")
        assert balance_service.current_quantity(BalanceKey(route.part_id, route.milling.id, 30)) == Decimal("0")
        assert balance_service.find_balance(BalanceKey(route.part_id, route.grinding.id, 45)) is None

    def test_tail_starts_at_origin(self, db_session, route, stock):
        stock(45, 10)

        result = launch_service.add_launch(
            part_id=route.part_id, from_op_number=45, launch_date=TEST_DATE, quantity=Decimal("10")
        )

        assert len(result.operations) == 1
        assert result.sum_hours_to_finish == Decimal("0.71")

    def test_insufficient_origin(self, db_session, route, stock):
        stock(15, 10)

        with pytest.raises(InsufficientBalanceError):
            launch_service.add_launch(
                part_id=route.part_id, from_op_number=15, launch_date=TEST_DATE, quantity=Decimal("10.5")
            )
        db_session.rollback()

        assert db_session.query(WipLaunch).count() == 0
        assert balance_service.current_quantity(_origin(route)) == Decimal("10")

    def test_operation_not_on_route(self, db_session, route):
        with pytest.raises(NotFoundError):
            launch_service.add_launch(
                part_id=route.part_id, from_op_number=50, launch_date=TEST_DATE, quantity=Decimal("1")
            )

    @pytest.mark.parametrize("quantity", ["0", "-1", "0.0004"])
    def test_quantity_must_be_positive_at_ledger_scale(self, db_session, route, stock, quantity):
        stock(15, 10)

        with pytest.raises(InvalidQuantityError):
            launch_service.add_launch(
                part_id=route.part_id, from_op_number=15, launch_date=TEST_DATE, quantity=Decimal(quantity)
            )
        db_session.rollback()

        assert balance_service.current_quantity(_origin(route)) == Decimal("10")
        assert db_session.query(WipLaunch).count() == 0


class TestAddLaunchesBatch:

    def _item(self, route, from_op_number, quantity):
        return {
            "part_id": route.part_id,
            "from_op_number": from_op_number,
            "launch_date": TEST_DATE,
            "quantity": Decimal(quantity),
        }

    def test_applies_items_in_order(self, db_session, route, stock):
        stock(15, 100)
        stock(45, 10)

        results = launch_service.add_launches_batch([
            self._item(route, 15, "40"),
            self._item(route, 15, "60"),
            self._item(route, 45, "10"),
        ])
        db_session.commit()

        assert [r.balance_after for r in results] == [Decimal("60"), Decimal("0"), Decimal("0")]
        assert results[2].sum_hours_to_finish == Decimal("0.71")
        assert db_session.query(WipLaunch).count() == 3

    def test_failing_item_rolls_back_earlier_items(self, db_session, route, stock):
        stock(15, 100)

        with pytest.raises(InsufficientBalanceError):
            launch_service.add_launches_batch([
                self._item(route, 15, "40"),
                self._item(route, 15, "61"),
            ])
        db_session.rollback()

        assert balance_service.current_quantity(_origin(route)) == Decimal("100")
        assert db_session.query(WipLaunch).count() == 0
        assert db_session.query(WipLaunchOperation).count() == 0


class TestDeleteLaunch:

    def test_delete_returns_quantity_to_origin(self, db_session, route, stock):
        stock(15, 100)
        result = launch_service.add_launch(
            part_id=route.part_id, from_op_number=15, launch_date=TEST_DATE, quantity=Decimal("40")
        )

        launch_service.delete_launch(result.launch_id)
        db_session.commit()

        assert balance_service.current_quantity(_origin(route)) == Decimal("100")
        assert db_session.query(WipLaunch).count() == 0
        assert db_session.query(WipLaunchOperation).count() == 0

    def test_missing_origin_balance_conflicts(self, db_session, route, stock):
        stock(15, 40)
        result = launch_service.add_launch(
            part_id=route.part_id, from_op_number=15, launch_date=TEST_DATE, quantity=Decimal("40")
        )
        db_session.delete(balance_service.get_balance(_origin(route)))
        db_session.flush()

        with pytest.raises(ConflictError):
            launch_service.delete_launch(result.launch_id)

    def test_unknown_launch(self, db_session):
        with pytest.raises(NotFoundError):
            launch_service.delete_launch(424242)
