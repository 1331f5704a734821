# Overview: Balance history and conservation across every kind of ledger change.

from decimal import Decimal

from wipledger.services import (
    adjustment_service,
    balance_service,
    cleanup_service,
    history_service,
    launch_service,
    receipt_service,
    transfer_service,
)
from wipledger.services.balance_service import BalanceKey

from conftest import TEST_DATE


class TestConservation:
    """Summing the ledger trail from zero lands on the stored quantity."""

    def _key(self, route, op_number):
        return BalanceKey(route.part_id, route.steps[op_number].section_id, op_number)

    def test_mixed_operations_reconstruct(self, db_session, route, stock, label):
        first = stock(15, 100)
        second = stock(15, 20)
        stock(30, 15)
        stock(35, 6)

        receipt_service.delete_receipt(second.receipt_id)
        receipt_service.revert_receipt(second.receipt_id, second.version_id)

        transfer_service.add_transfer(
            part_id=route.part_id, from_op_number=15, to_op_number=30, transfer_date=TEST_DATE,
            quantity=Decimal("40"), scrap={"quantity": Decimal("5"), "scrap_type": "EmployeeFault"},
        )
        undone = transfer_service.add_transfer(
            part_id=route.part_id, from_op_number=30, to_op_number=45, transfer_date=TEST_DATE,
            quantity=Decimal("10"), label_id=label.id,
        )
        transfer_service.revert_transfer(undone.transfer_id)

        launch_service.add_launch(part_id=route.part_id, from_op_number=15, launch_date=TEST_DATE, quantity=Decimal("7"))
        dropped = launch_service.add_launch(
            part_id=route.part_id, from_op_number=30, launch_date=TEST_DATE, quantity=Decimal("3")
        )
        launch_service.delete_launch(dropped.launch_id)

        milling = balance_service.get_balance(self._key(route, 30))
        adjustment_service.adjust_balance(milling.id, Decimal("52.25"), comment="recount")

        job = cleanup_service.preview_cleanup(op_number=35)
        cleanup_service.execute_cleanup(job.id, confirmed=True)
        db_session.commit()

        assert balance_service.current_quantity(self._key(route, 15)) == Decimal("68")
        assert balance_service.current_quantity(self._key(route, 30)) == Decimal("52.25")
        assert balance_service.current_quantity(self._key(route, 35)) == Decimal("0")
        assert history_service.find_conservation_mismatches() == []

        turning = balance_service.get_balance(self._key(route, 15))
        kinds = [entry.kind for entry in history_service.get_balance_history(turning.id)]
        assert kinds.count("receipt.created") == 2
        assert "receipt.deleted" in kinds
        assert "receipt.reverted" in kinds
        assert "transfer" in kinds
        assert "launch" in kinds
        assert first.receipt_id in [
            entry.reference_id for entry in history_service.get_balance_history(turning.id)
        ]

    def test_reverted_transfer_entries_cancel_out(self, db_session, route, stock):
        stock(15, 10)
        result = transfer_service.add_transfer(
            part_id=route.part_id, from_op_number=15, to_op_number=30, transfer_date=TEST_DATE,
            quantity=Decimal("4"),
        )
        transfer_service.revert_transfer(result.transfer_id)

        destination = balance_service.get_balance(self._key(route, 30))
        entries = history_service.get_balance_history(destination.id)

        assert [(e.kind, e.delta) for e in entries] == [
            ("transfer", Decimal("4")),
            ("transfer.reverted", Decimal("-4")),
        ]
        assert history_service.reconstruct_balance(destination.id) == Decimal("0")

    def test_direct_write_is_reported(self, db_session, route, stock):
        stock(15, 10)
        balance = balance_service.get_balance(self._key(route, 15))
        balance.quantity = Decimal("11")
        db_session.flush()

        [(mismatch, expected)] = history_service.find_conservation_mismatches()

        assert mismatch.id == balance.id
        assert expected == Decimal("10")
