"""
Rentflow CLI — operator commands for the contract lifecycle.

Usage:
    rentflow sweep                          — expire contracts past their end date
    rentflow contract show <id>             — print a contract and its audit trail
    rentflow contract resolve <id>          — re-check bills of a pending_transaction contract
    rentflow contract import <file.json>    — create a contract from a document-pipeline candidate
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click

from rentflow.core.errors import ContractError

logger = logging.getLogger(__name__)


def _engine():
    from rentflow.bootstrap import build_engine

    return build_engine()


def _fail(exc: ContractError) -> None:
    click.echo(f"Error [{exc.code}]: {exc}", err=True)
    raise SystemExit(1)


def _print_contract(contract) -> None:
    click.echo(f"Contract #{contract.id}  [{contract.status}]")
    click.echo(f"  Room:     {contract.room_id}")
    click.echo(f"  Tenant:   {contract.tenant_user_id}")
    click.echo(f"  Period:   {contract.start_date} -> {contract.end_date} ({contract.duration_months} months)")
    click.echo(f"  Rent:     {contract.rent_amount} every {contract.payment_cycle_months} month(s)")
    click.echo(f"  Deposit:  {contract.deposit_amount}")
    if contract.deleted_at:
        click.echo(f"  Deleted:  {contract.deleted_at}")
    if contract.note:
        click.echo("  Trail:")
        for line in contract.note.splitlines():
            click.echo(f"    {line}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def cli(verbose: bool):
    """Rentflow — rental contract lifecycle CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


@cli.command()
def sweep():
    """Expire or park contracts whose end date has passed."""
    count = asyncio.run(_engine().sweep_expired())
    click.echo(f"✓ Transitioned {count} contract(s)")


@cli.group()
def contract():
    """Inspect and operate on contracts."""


@contract.command("show")
@click.argument("contract_id", type=int)
@click.option("--deleted", is_flag=True, help="Include soft-deleted contracts")
def contract_show(contract_id: int, deleted: bool):
    """Print a contract and its audit trail."""
    try:
        obj = asyncio.run(_engine().get_contract(contract_id, include_deleted=deleted))
    except ContractError as e:
        _fail(e)
    _print_contract(obj)


@contract.command("resolve")
@click.argument("contract_id", type=int)
def contract_resolve(contract_id: int):
    """Complete a pending_transaction contract once its bills are paid."""
    try:
        obj = asyncio.run(_engine().resolve_pending_transaction(contract_id))
    except ContractError as e:
        _fail(e)

    if obj.status == "pending_transaction":
        click.echo(f"Contract #{obj.id} still has unpaid bills; left in pending_transaction")
    else:
        click.echo(f"✓ Contract #{obj.id} is now {obj.status}")


@contract.command("import")
@click.argument("payload_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def contract_import(payload_file: Path):
    """Create a contract from a JSON candidate produced by the document pipeline."""
    try:
        payload = json.loads(payload_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        click.echo(f"Error: {payload_file} is not valid JSON ({e})", err=True)
        raise SystemExit(1)

    candidate = payload.get("contract_data", payload) if isinstance(payload, dict) else None
    if not isinstance(candidate, dict):
        click.echo("Error: expected a JSON object", err=True)
        raise SystemExit(1)

    try:
        obj = asyncio.run(_engine().create_contract(candidate))
    except ContractError as e:
        _fail(e)

    click.echo(f"✓ Created contract #{obj.id} ({obj.start_date} -> {obj.end_date}), pending approval")


if __name__ == "__main__":
    cli()
