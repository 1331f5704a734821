# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/wipledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# WIP ledger:
# - python -m flask wip seed-route --part "Shaft" --code SH-01 --step 015:Turning:Lathe:0.112 --step 030:Milling:Mill:0.087
#   Create a part (if missing) and its route; each step is OP:SECTION:OPERATION:NORM_HOURS.
# - python -m flask wip issue-label --part-id 1 --quantity 100 [--date 2024-03-01] [--number 00042]
#   Issue a label for a part.
# - python -m flask wip check-balances
#   Rebuild every balance from its ledger trail and report mismatches.
# - python -m flask wip cleanup-preview [--part-id 1] [--section-id 2] [--op 015] [--min-quantity 0.5]
#   Stage a bulk cleanup job and list what it would touch.
# - python -m flask wip cleanup-execute 7 --yes
#   Execute a staged cleanup job.

from datetime import date
from decimal import Decimal

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Operation, Part, PartRoute, Section
from .services import cleanup_service, history_service, label_service
from .services.concurrency import run_and_commit
from .validation import (
    coerce_hours,
    coerce_quantity,
    format_decimal,
    format_op_number,
    parse_business_date,
    parse_op_number,
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@click.group('wip')
def wip_group():
    """WIP ledger bootstrap, inspection and cleanup."""


def _get_or_create(model, name: str):
    row = db.session.query(model).filter_by(name=name).first()
    if row is None:
        row = model(name=name)
        db.session.add(row)
        db.session.flush()
    return row


def _parse_step(raw: str):
    parts = raw.split(":")
    if len(parts) != 4:
        raise click.BadParameter(f"'{raw}' must look like OP:SECTION:OPERATION:NORM_HOURS")
    op_raw, section_name, operation_name, norm_raw = parts
    try:
        op_number = parse_op_number(op_raw)
        norm_hours = coerce_hours(norm_raw) if norm_raw else Decimal("0")
    except LedgerError as e:
        raise click.BadParameter(e.message)
    return op_number, section_name.strip(), operation_name.strip(), norm_hours


@wip_group.command('seed-route')
@click.option('--part', 'part_name', required=True, help='Part name')
@click.option('--code', 'part_code', default=None, help='Part code')
@click.option('--step', 'steps', multiple=True, required=True, help='OP:SECTION:OPERATION:NORM_HOURS')
@with_appcontext
def seed_route(part_name, part_code, steps):
    """Create a part and its route steps (existing steps are left alone)."""
    parsed = [_parse_step(raw) for raw in steps]

    def _seed():
        lines = []
        part = db.session.query(Part).filter_by(name=part_name).first()
        if part is None:
            part = Part(name=part_name, code=part_code)
            db.session.add(part)
            db.session.flush()
            lines.append(f"PASS Created part: {part.name} (ID: {part.id})")
        else:
            lines.append(f"PASS Using existing part: {part.name} (ID: {part.id})")

        for op_number, section_name, operation_name, norm_hours in parsed:
            existing = db.session.query(PartRoute).filter_by(part_id=part.id, op_number=op_number).first()
            if existing:
                lines.append(f"WARN  Step {format_op_number(op_number)} already on route, skipping...")
                continue
            section = _get_or_create(Section, section_name)
            operation = _get_or_create(Operation, operation_name)
            db.session.add(PartRoute(
                part_id=part.id,
                op_number=op_number,
                operation_id=operation.id,
                section_id=section.id,
                norm_hours=norm_hours,
            ))
            lines.append(
                f"PASS Step {format_op_number(op_number)}: {operation.name} @ {section.name} "
                f"({format_decimal(norm_hours)} h)"
            )
        return lines

    # Output is held back until the commit lands so a replay doesn't echo twice
    for line in run_and_commit(_seed):
        click.echo(line)

@wip_group.command('issue-label')
@click.option('--part-id', type=int, required=True)
@click.option('--quantity', required=True)
@click.option('--date', 'label_date', default=None, help='ISO date, defaults to today')
@click.option('--number', default=None, help='Label number, allocated when omitted')
@with_appcontext
def issue_label(part_id, quantity, label_date, number):
    """Issue a label for a part."""
    try:
        params = dict(
            part_id=part_id,
            label_date=parse_business_date(label_date) if label_date else date.today(),
            quantity=coerce_quantity(quantity),
            number=number,
        )
        label = run_and_commit(lambda: label_service.issue_label(**params))
    except LedgerError as e:
        db.session.rollback()
        raise click.ClickException(e.message)

    click.echo(
        f"PASS Issued label {label.number}/{label.label_year} (ID: {label.id}) "
        f"for {format_decimal(label.quantity)}"
    )


@wip_group.command('check-balances')
@with_appcontext
def check_balances():
    """Rebuild every balance from its ledger trail and compare."""
    mismatches = history_service.find_conservation_mismatches()
    if not mismatches:
        click.echo("PASS All balances match their ledger trail")
        return

    for balance, expected in mismatches:
        click.echo(
            f"FAIL Balance {balance.id} (part {balance.part_id}, section {balance.section_id}, "
            f"op {format_op_number(balance.op_number)}): stored {format_decimal(balance.quantity)}, "
            f"ledger {format_decimal(expected)}"
        )
    raise click.ClickException(f"{len(mismatches)} balance(s) out of balance")


@wip_group.command('cleanup-preview')
@click.option('--part-id', type=int, default=None)
@click.option('--section-id', type=int, default=None)
@click.option('--op', 'op_number', default=None, help='Operation number, e.g. 015')
@click.option('--min-quantity', default='0')
@click.option('--comment', default=None)
@with_appcontext
def cleanup_preview(part_id, section_id, op_number, min_quantity, comment):
    """Stage a bulk cleanup job. No balance is changed."""
    try:
        filters = dict(
            part_id=part_id,
            section_id=section_id,
            op_number=parse_op_number(op_number) if op_number else None,
            min_quantity=coerce_quantity(min_quantity, "min_quantity"),
            comment=comment,
        )
        job = run_and_commit(lambda: cleanup_service.preview_cleanup(**filters))
    except LedgerError as e:
        db.session.rollback()
        raise click.ClickException(e.message)

    click.echo(f"LIST Cleanup job {job.id}: {job.affected_count} balance(s), "
               f"{format_decimal(job.affected_quantity)} to remove")
    for item in job.stage_items:
        click.echo(f"  balance {item.balance_id}: {format_decimal(item.previous_quantity)}")


@wip_group.command('cleanup-execute')
@click.argument('job_id', type=int)
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def cleanup_execute(job_id, yes):
    """Execute a staged cleanup job."""
    if not yes:
        click.confirm(f"WARN Cleanup job {job_id} will rewrite balances. Continue?", abort=True)

    try:
        result = run_and_commit(lambda: cleanup_service.execute_cleanup(job_id, confirmed=True))
    except LedgerError as e:
        db.session.rollback()
        raise click.ClickException(e.message)

    click.echo(
        f"DONE Cleanup job {result.job_id}: {result.applied_count} applied, "
        f"{result.skipped_count} skipped, {format_decimal(result.affected_quantity)} removed"
    )
    for balance_id in result.skipped_balance_ids:
        click.echo(f"WARN  balance {balance_id} changed since preview, skipped")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(wip_group)
