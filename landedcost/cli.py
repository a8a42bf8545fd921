#!/usr/bin/env python3
"""
Landed Cost CLI - Command-line interface for seeding reference data and
quoting against a running API
"""

import logging
import os

import click
import requests

from landedcost.settings import LOG_FORMAT, LOG_LEVEL

API_BASE = os.getenv("LANDEDCOST_API_BASE", "http://localhost:8000")


def _print_error(response):
    """Echo an API error body ({ok, error, kind, errors}) or the raw status."""
    try:
        body = response.json()
    except ValueError:
        click.echo(f"❌ Error: HTTP {response.status_code}")
        return
    click.echo(f"❌ {body.get('error') or body.get('detail') or 'Error'} (HTTP {response.status_code})")
    for message in body.get('errors') or []:
        click.echo(f"   - {message}")


@click.group()
@click.option('--api-base', default=API_BASE, show_default=True, help='Landed Cost API base URL')
@click.pass_context
def cli(ctx, api_base):
    """Landed Cost CLI - duty, tax and landed cost quotes"""
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    ctx.ensure_object(dict)
    ctx.obj['api_base'] = api_base.rstrip('/')


@cli.command('init-db')
def init_db_command():
    """Create the reference tables"""
    from landedcost.database import DATABASE_URL, init_db

    init_db()
    click.echo(f"✅ Tables ready in {DATABASE_URL}")


@cli.command()
@click.option('--data-dir', '-d', default='sample_data', show_default=True,
              type=click.Path(exists=True, file_okay=False), help='Directory with the seed CSV files')
def seed(data_dir):
    """Load countries, HS codes, agreements, tariff rates and tax rules from CSV"""
    from landedcost.database import SessionLocal, init_db
    from landedcost.seed import SeedFileError, load_reference_data

    init_db()
    db = SessionLocal()
    try:
        result = load_reference_data(db, data_dir)
    except SeedFileError as e:
        raise click.ClickException(str(e))
    finally:
        db.close()

    for table, counts in result.counts.items():
        click.echo(f"✅ {table}: {counts.inserted} inserted, {counts.updated} updated, {counts.skipped} skipped")
    for problem in result.problems:
        click.echo(f"⚠️  skipped {problem}")


@cli.command()
@click.option('--exporter', '-x', required=True, help='Exporter code or country name')
@click.option('--importer', '-i', required=True, help='Importer code or country name')
@click.option('--hs-code', default=None, help='6-digit HS code')
@click.option('--description', default=None, help='Product description (used when no HS code)')
@click.option('--agreement', '-a', default='MFN', show_default=True, help='Trade agreement code')
@click.option('--goods-value', '-v', required=True, help='Declared value per unit')
@click.option('--quantity', '-q', default=None, help='Units shipped (default 1)')
@click.option('--freight', default=None, help='Freight cost')
@click.option('--insurance', default=None, help='Insurance cost')
@click.option('--date', 'effective_date', default=None, help='Effective date (YYYY-MM-DD or DD/MM/YYYY)')
@click.option('--start-date', '-s', default=None, help='Window start date')
@click.option('--end-date', '-e', default=None, help='Window end date')
@click.pass_context
def quote(ctx, exporter, importer, hs_code, description, agreement, goods_value, quantity,
          freight, insurance, effective_date, start_date, end_date):
    """Quote duty, tax and landed cost for one shipment"""
    payload = {
        'exporter': exporter,
        'importer': importer,
        'hsCode': hs_code,
        'productDescription': description,
        'agreement': agreement,
        'goods_value': goods_value,
        'quantity': quantity,
        'freight': freight,
        'insurance': insurance,
        'startDate': start_date,
        'endDate': end_date,
        'effectiveDate': effective_date,
    }
    payload = {k: v for k, v in payload.items() if v is not None}

    try:
        response = requests.post(f"{ctx.obj['api_base']}/api/v1/calculate/landed-cost", json=payload, timeout=30)
    except requests.RequestException as e:
        raise click.ClickException(f"API not reachable at {ctx.obj['api_base']}: {e}")

    if response.status_code != 200:
        _print_error(response)
        ctx.exit(1)

    result = response.json()
    click.echo(f"📦 {result['exporter_code']} → {result['importer_code']}  HS {result['hs_code']}  {result['agreement']}")
    click.echo(f"   Window:            {result['window_start']} .. {result['window_end']}")
    click.echo(f"   Customs basis:     {result['customs_basis']}")
    click.echo(f"   Customs value:     {result['customs_value']:,.2f}")
    click.echo(f"   Duty ({result['rate_percent']}%):  {result['duty']:,.2f}")
    click.echo(f"   {result['tax_type']} ({result['tax_rate_percent']}%):  {result['tax']:,.2f}")
    click.echo(f"   Total landed cost: {result['total_landed_cost']:,.2f}")


@cli.command()
@click.option('--importer', '-i', default=None, help='Filter by importer code')
@click.option('--exporter', '-x', default=None, help='Filter by exporter code')
@click.option('--agreement', '-a', default=None, help='Filter by agreement code')
@click.option('--output', '-o', default=None, help='Write the CSV export to this file instead')
@click.pass_context
def tariffs(ctx, importer, exporter, agreement, output):
    """List tariff rates currently in force"""
    params = {k: v for k, v in {'importer': importer, 'exporter': exporter, 'agreement': agreement}.items() if v}
    endpoint = 'export' if output else 'list'

    try:
        response = requests.get(f"{ctx.obj['api_base']}/api/v1/tariffs/{endpoint}", params=params, timeout=30)
    except requests.RequestException as e:
        raise click.ClickException(f"API not reachable at {ctx.obj['api_base']}: {e}")

    if response.status_code != 200:
        _print_error(response)
        ctx.exit(1)

    if output:
        with open(output, 'wb') as f:
            f.write(response.content)
        click.echo(f"✅ Tariff rates exported to {output}")
        return

    rows = response.json()
    if not rows:
        click.echo("No tariff rates in force.")
        return
    for row in rows:
        valid_to = row.get('valid_to') or 'open'
        click.echo(
            f"{row['hs_code']}  {row['exporter_code']}→{row['importer_code']}  {row['agreement_code']:<8}"
            f"{row['rate_percent']:>8.4f}%  {row['valid_from']} .. {valid_to}"
        )


if __name__ == '__main__':
    cli()
