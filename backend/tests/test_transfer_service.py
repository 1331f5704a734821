# Overview: Pytest coverage for transfers: scrap, labels, warehouse leg, revert and delete.

from decimal import Decimal

import pytest

from wipledger.errors import (
    AlreadyRevertedError,
    ConflictError,
    InsufficientBalanceError,
    InsufficientLabelQuantityError,
    InvalidQuantityError,
    NotFoundError,
    ValidationError,
)
from wipledger.models import TransferAudit, WarehouseItem, WipScrap, WipTransfer, WipTransferOperation
from wipledger.services import balance_service, label_service, transfer_service
from wipledger.services.balance_service import BalanceKey
from wipledger.services.transfer_service import ScrapInput

from conftest import TEST_DATE


WAREHOUSE = 999999


def _qty(route, op_number):
    return balance_service.current_quantity(BalanceKey(route.part_id, route.steps[op_number].section_id, op_number))


def _move(route, from_op, to_op, quantity, **kwargs):
    return transfer_service.add_transfer(
        part_id=route.part_id,
        from_op_number=from_op,
        to_op_number=to_op,
        transfer_date=TEST_DATE,
        quantity=Decimal(quantity),
        **kwargs,
    )


class TestAddTransfer:

    def test_moves_quantity_between_operations(self, db_session, route, stock):
        stock(15, 100)
        stock(30, 15)

        result = _move(route, 15, 30, "40")
        db_session.commit()

        assert result.from_balance_before == Decimal("100")
        assert result.from_balance_after == Decimal("60")
        assert result.to_balance_before == Decimal("15")
        assert result.to_balance_after == Decimal("55")
        assert _qty(route, 15) == Decimal("60")
        assert _qty(route, 30) == Decimal("55")

        transfer = db_session.get(WipTransfer, result.transfer_id)
        changes = sorted(op.quantity_change for op in transfer.operations)
        assert changes == [Decimal("-40"), Decimal("40")]
        assert transfer.user_id == 7

    def test_destination_created_on_first_transfer(self, db_session, route, stock):
        stock(15, 10)

        result = _move(route, 15, 45, "10")

        assert result.to_balance_before == Decimal("0")
        assert _qty(route, 45) == Decimal("10")
        assert _qty(route, 15) == Decimal("0")

    def test_scrap_is_deducted_from_origin_only(self, db_session, route, stock):
        stock(15, 120)

        result = _move(
            route, 15, 30, "80",
            scrap={"quantity": Decimal("40"), "scrap_type": "Technological", "comment": "burr"},
        )

        assert _qty(route, 15) == Decimal("0")
        assert _qty(route, 30) == Decimal("80")
        assert result.scrap_quantity == Decimal("40")

        scrap = db_session.get(WipScrap, result.scrap_id)
        assert scrap.quantity == Decimal("40")
        assert scrap.section_id == route.turning.id
        assert scrap.op_number == 15
        assert scrap.transfer_id == result.transfer_id

        origin_op = (
            db_session.query(WipTransferOperation)
            .filter_by(transfer_id=result.transfer_id, op_number=15)
            .one()
        )
        assert origin_op.quantity_change == Decimal("-120")

    def test_insufficient_origin_changes_nothing(self, db_session, route, stock):
        stock(15, 100)

        with pytest.raises(InsufficientBalanceError):
            _move(route, 15, 30, "90", scrap=ScrapInput(quantity=Decimal("20"), scrap_type="EmployeeFault"))
        db_session.rollback()

        assert _qty(route, 15) == Decimal("100")
        assert balance_service.find_balance(BalanceKey(route.part_id, route.milling.id, 30)) is None
        assert db_session.query(WipTransfer).count() == 0
        assert db_session.query(WipScrap).count() == 0
        assert db_session.query(TransferAudit).count() == 0

    def test_missing_origin_balance(self, db_session, route):
        with pytest.raises(InsufficientBalanceError):
            _move(route, 15, 30, "1")

    @pytest.mark.parametrize("to_op", [15, 30])
    def test_destination_must_follow_origin(self, db_session, route, stock, to_op):
        stock(30, 10)

        with pytest.raises(ConflictError):
            _move(route, 30, to_op, "1")

    def test_unknown_destination_operation(self, db_session, route, stock):
        stock(15, 10)

        with pytest.raises(NotFoundError):
            _move(route, 15, 40, "1")

    def test_unknown_scrap_type(self, db_session, route, stock):
        stock(15, 10)

        with pytest.raises(ValidationError):
            _move(route, 15, 30, "1", scrap={"quantity": Decimal("1"), "scrap_type": "Lost"})

    @pytest.mark.parametrize("quantity, scrap_quantity", [("0.0004", "5"), ("5", "0.0004")])
    def test_quantity_rounding_to_zero_changes_nothing(self, db_session, route, stock, quantity, scrap_quantity):
        stock(15, 10)

        with pytest.raises(InvalidQuantityError):
            _move(route, 15, 30, quantity, scrap={"quantity": Decimal(scrap_quantity), "scrap_type": "Technological"})
        db_session.rollback()

        assert _qty(route, 15) == Decimal("10")
        assert balance_service.find_balance(BalanceKey(route.part_id, route.milling.id, 30)) is None
        assert db_session.query(WipTransfer).count() == 0
        assert db_session.query(WipScrap).count() == 0

    def test_label_consumed_by_transferred_quantity(self, db_session, route, stock, label):
        stock(15, 50)

        result = _move(route, 15, 30, "30", label_id=label.id)

        assert result.label_remaining_before == Decimal("100")
        assert result.label_remaining_after == Decimal("70")
        assert label_service.get_label(label.id).is_assigned is True

    def test_label_shortage_blocks_transfer(self, db_session, route, stock, label):
        stock(15, 150)

        with pytest.raises(InsufficientLabelQuantityError):
            _move(route, 15, 30, "120", label_id=label.id)
        db_session.rollback()

        assert _qty(route, 15) == Decimal("150")

    def test_warehouse_destination(self, db_session, route, stock):
        stock(45, 12)

        result = _move(route, 45, WAREHOUSE, "12")

        assert result.is_warehouse_transfer is True
        assert result.to_section_id is None
        assert _qty(route, 45) == Decimal("0")
        item = db_session.get(WarehouseItem, result.warehouse_item_id)
        assert item.quantity == Decimal("12")

        audit = db_session.query(TransferAudit).filter_by(transfer_id=result.transfer_id).one()
        warehouse_ops = [op for op in audit.operations if op.is_warehouse]
        assert len(warehouse_ops) == 1
        assert warehouse_ops[0].balance_id is None
        assert warehouse_ops[0].balance_after == Decimal("12")

    def test_batch_rolls_back_as_a_whole(self, db_session, route, stock):
        stock(15, 10)
        items = [
            {"part_id": route.part_id, "from_op_number": 15, "to_op_number": 30,
             "transfer_date": TEST_DATE, "quantity": Decimal("10")},
            {"part_id": route.part_id, "from_op_number": 30, "to_op_number": 45,
             "transfer_date": TEST_DATE, "quantity": Decimal("11")},
        ]

        with pytest.raises(InsufficientBalanceError):
            transfer_service.add_transfers_batch(items)
        db_session.rollback()
        assert _qty(route, 15) == Decimal("10")

        items[1]["quantity"] = Decimal("10")
        results = transfer_service.add_transfers_batch(items)
        assert [r.to_balance_after for r in results] == [Decimal("10"), Decimal("10")]
        assert _qty(route, 45) == Decimal("10")


class TestRevertTransfer:

    def test_revert_restores_recorded_balances(self, db_session, route, stock):
        stock(15, 100)
        stock(30, 15)
        result = _move(route, 15, 30, "40")

        audit = transfer_service.revert_transfer(result.transfer_id)
        db_session.commit()

        assert _qty(route, 15) == Decimal("100")
        assert _qty(route, 30) == Decimal("15")
        assert audit.is_reverted is True
        assert audit.reverted_at is not None
        at_revert = {op.op_number: op.balance_at_revert for op in audit.operations}
        assert at_revert == {15: Decimal("60"), 30: Decimal("55")}

    def test_second_revert_fails(self, db_session, route, stock):
        stock(15, 10)
        result = _move(route, 15, 30, "4")
        transfer_service.revert_transfer(result.transfer_id)

        with pytest.raises(AlreadyRevertedError):
            transfer_service.revert_transfer(result.transfer_id)

    def test_revert_overwrites_with_recorded_values(self, db_session, route, stock):
        stock(15, 100)
        stock(30, 15)
        first = _move(route, 15, 30, "40")
        _move(route, 30, 45, "50")

        transfer_service.revert_transfer(first.transfer_id)

        assert _qty(route, 15) == Decimal("100")
        assert _qty(route, 30) == Decimal("15")
        assert _qty(route, 45) == Decimal("50")

    def test_scrap_stays_scrapped(self, db_session, route, stock):
        stock(15, 120)
        result = _move(route, 15, 30, "80", scrap={"quantity": Decimal("40"), "scrap_type": "Technological"})

        transfer_service.revert_transfer(result.transfer_id)

        assert _qty(route, 15) == Decimal("120")
        assert _qty(route, 30) == Decimal("0")
        assert db_session.query(WipScrap).count() == 1

    def test_revert_releases_label(self, db_session, route, stock, label):
        stock(15, 50)
        result = _move(route, 15, 30, "30", label_id=label.id)

        transfer_service.revert_transfer(result.transfer_id)

        refreshed = label_service.get_label(label.id)
        assert refreshed.remaining_quantity == Decimal("100")
        assert refreshed.is_assigned is True

    def test_revert_warehouse_transfer_removes_item(self, db_session, route, stock):
        stock(45, 12)
        result = _move(route, 45, WAREHOUSE, "12")

        transfer_service.revert_transfer(result.transfer_id)

        assert _qty(route, 45) == Decimal("12")
        assert db_session.query(WarehouseItem).count() == 0

    def test_unknown_transfer(self, db_session):
        with pytest.raises(NotFoundError):
            transfer_service.revert_transfer(424242)


class TestDeleteTransfer:

    def test_delete_reverts_and_keeps_audit(self, db_session, route, stock):
        stock(15, 120)
        result = _move(route, 15, 30, "80", scrap={"quantity": Decimal("40"), "scrap_type": "Technological"})

        audit = transfer_service.delete_transfer(result.transfer_id)
        db_session.commit()

        assert audit.is_reverted is True
        assert _qty(route, 15) == Decimal("120")
        assert db_session.get(WipTransfer, result.transfer_id) is None
        assert db_session.query(WipTransferOperation).count() == 0
        assert db_session.query(TransferAudit).filter_by(transfer_id=result.transfer_id).count() == 1

        scrap = db_session.query(WipScrap).one()
        assert scrap.transfer_id is None

    def test_delete_already_reverted_transfer(self, db_session, route, stock):
        stock(15, 10)
        result = _move(route, 15, 30, "4")
        transfer_service.revert_transfer(result.transfer_id)

        transfer_service.delete_transfer(result.transfer_id)

        assert _qty(route, 15) == Decimal("10")
        assert db_session.query(WipTransfer).count() == 0

    def test_delete_unknown_transfer(self, db_session):
        with pytest.raises(NotFoundError):
            transfer_service.delete_transfer(424242)
