#!/usr/bin/env python3
"""CLI for the Delhi High Court case-status scraper."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click

from dhcourt.config.settings import Config
from dhcourt.scraper.errors import CaptchaProviderError, DownloadError
from dhcourt.scraper.models import CASE_TYPES, SearchQuery
from dhcourt.scraper.orchestrator import CourtScraper
from dhcourt.utils.captcha_client import TwoCaptchaClient
from dhcourt.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CAPTCHA_REQUIRED = 2


@click.group()
@click.option('--config', 'config_path', default=None, type=click.Path(dir_okay=False),
              help='Path to a settings YAML file (defaults to the packaged settings)')
@click.pass_context
def cli(ctx, config_path: Optional[str]):
    """Delhi High Court case-status lookup and document download."""
    ctx.ensure_object(dict)
    config = Config(config_path)
    configure_logging(config)
    ctx.obj['config'] = config


@cli.command()
@click.option('--case-type', required=True, type=click.Choice(CASE_TYPES), help='Case type')
@click.option('--case-number', required=True, help='Case number, e.g. "CS(OS) 123/2023"')
@click.option('--year', 'filing_year', required=True, type=int, help='Filing year')
@click.option('--captcha', 'captcha_response', default=None,
              help='Answer to a CAPTCHA shown by a previous run')
@click.pass_context
def search(ctx, case_type: str, case_number: str, filing_year: int, captcha_response: Optional[str]):
    """Look up one case and print the result as JSON."""
    config = ctx.obj['config']
    query = SearchQuery(
        case_type=case_type,
        case_number=case_number,
        filing_year=filing_year,
        captcha_response=captcha_response,
    )

    result = asyncio.run(CourtScraper(config).search_case(query))
    click.echo(json.dumps(result.to_dict(), indent=2))

    if result.success:
        sys.exit(EXIT_OK)
    if result.requires_captcha:
        click.echo("CAPTCHA required: rerun with --captcha <text>", err=True)
        sys.exit(EXIT_CAPTCHA_REQUIRED)
    sys.exit(EXIT_FAILURE)


@cli.command()
@click.argument('url')
@click.option('--output', '-o', default=None, type=click.Path(dir_okay=False),
              help='Where to write the PDF (defaults to a name derived from the URL)')
@click.pass_context
def download(ctx, url: str, output: Optional[str]):
    """Download and validate a case document."""
    config = ctx.obj['config']
    scraper = CourtScraper(config)

    try:
        payload = asyncio.run(scraper.download_document(url))
    except DownloadError as e:
        click.echo(f"❌ Download failed ({e.code}): {e}", err=True)
        sys.exit(EXIT_FAILURE)

    path = Path(output) if output else Path(payload.filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload.content)
    click.echo(f"✅ Saved {len(payload.content)} bytes to {path}")


@cli.command('captcha-balance')
@click.pass_context
def captcha_balance(ctx):
    """Show the CAPTCHA-solving account balance."""
    config = ctx.obj['config']
    if not config.captcha_api_key:
        click.echo("No CAPTCHA solving service configured (set TWOCAPTCHA_API_KEY)")
        return

    client = TwoCaptchaClient(
        config.captcha_api_key,
        base_url=config.captcha_provider_url,
        timeout=config.captcha_request_timeout,
    )
    try:
        balance = asyncio.run(client.get_balance())
    except CaptchaProviderError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(EXIT_FAILURE)
    click.echo(f"💰 2Captcha balance: {balance:.2f}")


if __name__ == '__main__':
    cli()
