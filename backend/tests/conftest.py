"""
Pytest fixtures for WIP ledger tests.

Provides test database setup, a seeded part route, and a test client.
"""

from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from wipledger import create_app
from wipledger.extensions import db
from wipledger.models import Operation, Part, PartRoute, Section
from wipledger.services import label_service, receipt_service


TEST_DATE = datetime(2024, 3, 1, 8, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_USER_ID': 7,
        'WIP_CLEANUP_TARGET': 'zero',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def route(db_session):
    """
    Part with a four-step route.

    op 015 @ Turning  (0.112 h)
    op 030 @ Milling  (0.087 h)
    op 035 @ Milling  (0.040 h)
    op 045 @ Grinding (0.071 h)
    """
    part = Part(name="Shaft", code="SH-01")
    turning = Section(name="Turning")
    milling = Section(name="Milling")
    grinding = Section(name="Grinding")
    lathe = Operation(name="Lathe")
    mill = Operation(name="Mill")
    drill = Operation(name="Drill")
    grinder = Operation(name="Grinder")
    db_session.add_all([part, turning, milling, grinding, lathe, mill, drill, grinder])
    db_session.flush()

    steps = {}
    for op_number, section, operation, norm in (
        (15, turning, lathe, "0.112"),
        (30, milling, mill, "0.087"),
        (35, milling, drill, "0.040"),
        (45, grinding, grinder, "0.071"),
    ):
        step = PartRoute(
            part_id=part.id,
            op_number=op_number,
            operation_id=operation.id,
            section_id=section.id,
            norm_hours=Decimal(norm),
        )
        db_session.add(step)
        steps[op_number] = step
    db_session.commit()

    return SimpleNamespace(
        part=part,
        part_id=part.id,
        turning=turning,
        milling=milling,
        grinding=grinding,
        steps=steps,
    )


@pytest.fixture(scope='function')
def stock(route, db_session):
    """Put `quantity` on (route part, op_number) through a receipt."""
    def _stock(op_number: int, quantity) -> receipt_service.ReceiptResult:
        step = route.steps[op_number]
        result = receipt_service.add_receipt(
            part_id=route.part_id,
            op_number=op_number,
            section_id=step.section_id,
            receipt_date=TEST_DATE,
            quantity=Decimal(str(quantity)),
            comment="opening stock",
        )
        db_session.commit()
        return result

    return _stock


@pytest.fixture(scope='function')
def label(route, db_session):
    """Label of 100 for the route part."""
    issued = label_service.issue_label(part_id=route.part_id, label_date=TEST_DATE, quantity=Decimal("100"))
    db_session.commit()
    return issued
