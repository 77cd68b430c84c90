# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/brewcore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migration-managed databases).
# - python -m flask system seed-demo [--code DEMO]
#   Create a demo tenant with packaging stock, two READY batches blended in a tank.
#
# Inventory inspection/repair:
# - python -m flask inventory balance CAPS --tenant-id 1
#   Show cached balance next to the ledger sum for one item (id or SKU).
# - python -m flask inventory reconcile --tenant-id 1 [--fix]
#   List items whose cached balance drifted from the ledger; --fix rewrites the cache.
#
# Lots:
# - python -m flask lots active --tenant-id 1 [--phase BRIGHT]
#   List blend-target lots with volume and remaining tank capacity.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import BrewCoreError
from .models import Tenant
from .models.inventory import decimal_str
from .services import inventory_service, ledger_service, lot_service, production_service
from .services.tenant_service import TenantContext, require_tenant_context


def _context(tenant_id: int) -> TenantContext:
    try:
        return require_tenant_context(tenant_id, "cli")
    except BrewCoreError as exc:
        raise click.ClickException(exc.message)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed-demo')
@click.option('--name', default='Demo Brewery', help='Tenant name')
@click.option('--code', default='DEMO', help='Tenant code')
@with_appcontext
def seed_demo(name, code):
    """
    Seed a demo tenant.

    Creates:
    - Tenant (reused if the code exists)
    - Packaging stock: CAPS (1000), 500 ml bottles (2400), labels (3000)
    - One 2000 l unitank
    - Batches B-001 (800 l) and B-002 (700 l), both READY, blended in lot L-001
    """
    tenant = db.session.query(Tenant).filter_by(code=code).first()
    if tenant is None:
        tenant = Tenant(name=name, code=code, is_active=True)
        db.session.add(tenant)
        db.session.commit()
        click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code})")
    else:
        click.echo(f"WARN  Tenant {code} already exists (ID: {tenant.id}), skipping seed")
        return

    ctx = TenantContext(tenant_id=tenant.id, user_id="seed")

    stock = [
        ("CAPS", "Crown caps 26mm", "PACKAGING", 1000),
        ("BTL-500", "500", "PACKAGING", 2400),
        ("LBL-STD", "Standard label", "PACKAGING", 3000),
        ("MALT-PILS", "Pilsner malt", "RAW_MATERIAL", 500),
    ]
    for sku, item_name, category, opening in stock:
        inventory_service.create_inventory_item(
            ctx, sku, item_name, category, opening_balance=opening,
        )
        click.echo(f"PASS Item {sku} with opening balance {opening}")

    tank = lot_service.create_equipment(ctx, "UT-01", kind="UNITANK", capacity=2000)

    batches = []
    for number, volume in (("B-001", 800), ("B-002", 700)):
        batch = production_service.create_batch(ctx, number, volume=volume)
        production_service.start_fermentation(ctx, batch.id)
        batches.append(batch)

    lot_service.create_lot(
        ctx,
        "L-001",
        phase="FERMENTATION",
        members=[(b.id, b.volume) for b in batches],
        equipment_id=tank.id,
    )
    production_service.mark_ready(ctx, batches[0].id)
    click.echo("PASS Lot L-001 (B-001 + B-002) READY in UT-01")

    click.echo("\n" + "=" * 60)
    click.echo(f"DONE Demo tenant ID: {tenant.id}")
    click.echo("=" * 60)


@click.group('inventory')
def inventory_group():
    """Inventory inspection and repair commands."""


@inventory_group.command('balance')
@click.argument('item_ref')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@with_appcontext
def show_balance(item_ref, tenant_id):
    """Show cached balance and ledger sum for ITEM_REF (id or SKU)."""
    ctx = _context(tenant_id)
    try:
        item = ledger_service.get_item(ctx, item_ref)
    except BrewCoreError as exc:
        raise click.ClickException(exc.message)

    cached = ledger_service.get_balance(ctx, item.id)
    ledger_total = ledger_service.compute_ledger_balance(ctx, item.id)
    status = "OK" if cached == ledger_total else "DRIFT"

    click.echo(f"{item.sku} ({item.name})")
    click.echo(f"  cached: {decimal_str(cached)} {item.unit}")
    click.echo(f"  ledger: {decimal_str(ledger_total)} {item.unit}")
    click.echo(f"  status: {status}")


@inventory_group.command('reconcile')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--fix', is_flag=True, help='Rewrite drifted caches from the ledger')
@with_appcontext
def reconcile(tenant_id, fix):
    """Report items whose cached balance differs from the ledger sum."""
    ctx = _context(tenant_id)
    drifted = ledger_service.reconcile_balances(ctx, fix=fix)

    if not drifted:
        click.echo("PASS All cached balances match the ledger")
        return

    for row in drifted:
        click.echo(
            f"DRIFT {row['sku']}: cached {row['cached_balance']} ledger {row['ledger_balance']}"
        )
    if fix:
        click.echo(f"PASS Rewrote {len(drifted)} cached balance(s)")
    else:
        click.echo(f"WARN  {len(drifted)} item(s) drifted; rerun with --fix to repair")


@click.group('lots')
def lots_group():
    """Lot inspection commands."""


@lots_group.command('active')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--phase', default=None, help='Lot phase filter (FERMENTATION, CONDITIONING, BRIGHT, PACKAGING)')
@with_appcontext
def active_lots(tenant_id, phase):
    """List blend-target lots."""
    ctx = _context(tenant_id)
    try:
        summaries = lot_service.list_active_lots(ctx, phase=phase)
    except BrewCoreError as exc:
        raise click.ClickException(exc.message)

    if not summaries:
        click.echo("No active lots")
        return

    for summary in summaries:
        tank = summary.tank_assignment.equipment
        remaining = decimal_str(summary.remaining_capacity) if summary.remaining_capacity is not None else "-"
        click.echo(
            f"{summary.lot.lot_code:<12} {summary.lot.phase:<13} "
            f"batches={len(summary.batches)} volume={decimal_str(summary.total_volume)} "
            f"tank={tank.name if tank else '-'} remaining={remaining}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(lots_group)
