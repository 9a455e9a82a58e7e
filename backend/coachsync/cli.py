"""
CoachSync command line.

Usage:
    coachsync init-db
    coachsync auth-url ACCOUNT
    coachsync connect ACCOUNT CODE
    coachsync sync ACCOUNT --provider strava --since 2024-01-01
    coachsync fetch /athlete/activities --account ACCOUNT -p per_page=10 --ttl 3600
    coachsync read latest-run ACCOUNT
    coachsync read streams ACCOUNT 1234567890

Credentials come from the database unless --token-dir points at a
directory of JSON token files.
"""

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import click

from coachsync.config import settings
from coachsync.db.session import AsyncSessionLocal, init_db
from coachsync.features.credentials import (
    CredentialStore,
    DatabaseCredentialStore,
    FileCredentialStore,
    OAuthClient,
)
from coachsync.features.fetcher import HevyReads, StravaReads
from coachsync.features.providers import ADAPTERS
from coachsync.features.sync import DatabaseSyncSink, SyncConfig, SyncEngine, is_retryable
from coachsync.features.sync.factory import (
    build_fetcher,
    build_token_manager,
    build_token_source,
)
from coachsync.shared.errors import CoachSyncError

logger = logging.getLogger(__name__)

PROVIDERS = click.Choice(sorted(ADAPTERS))


def _credential_store(ctx: click.Context, db) -> CredentialStore:
    token_dir = ctx.obj.get("token_dir")
    if token_dir:
        return FileCredentialStore(token_dir)
    return DatabaseCredentialStore(db)


def _parse_params(values: tuple[str, ...]) -> dict[str, str]:
    params = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got '{value}'", param_hint="-p")
        params[key] = val
    return params


def _fail(e: Exception) -> None:
    kind = "retryable" if is_retryable(e) else "terminal"
    click.echo(f"Error ({kind}): {e}", err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--token-dir",
    envvar="COACHSYNC_TOKEN_DIR",
    type=click.Path(file_okay=False),
    default=None,
    help="Read/write credentials as JSON files in this directory"
)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, token_dir, verbose):
    """Token, cache and sync tools for CoachSync."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["token_dir"] = token_dir


@cli.command("init-db")
def init_db_command():
    """Create missing database tables."""
    asyncio.run(init_db())
    click.echo("Database initialized")


@cli.command("auth-url")
@click.argument("account")
@click.option("--redirect-uri", default="http://localhost/exchange_token", show_default=True)
def auth_url(account, redirect_uri):
    """Print the Strava authorization URL for ACCOUNT."""
    oauth = OAuthClient.strava()
    if not oauth.client_id:
        raise click.UsageError("STRAVA_CLIENT_ID is not set")
    click.echo(oauth.get_authorization_url(redirect_uri, state=account))


@cli.command()
@click.argument("account")
@click.argument("code")
@click.pass_context
def connect(ctx, account, code):
    """Exchange an authorization CODE and store the credential for ACCOUNT."""
    asyncio.run(_connect(ctx, account, code))


async def _connect(ctx: click.Context, account: str, code: str):
    async with AsyncSessionLocal() as db:
        manager = build_token_manager(_credential_store(ctx, db))
        try:
            token_data = await manager.oauth.exchange_code(code)
        except CoachSyncError as e:
            _fail(e)
        tokens = await manager.store_authorization(account, token_data)

    expires = datetime.fromtimestamp(tokens.expires_at, timezone.utc).isoformat()
    click.echo(f"Connected account {account} (athlete {tokens.external_athlete_id}), token expires {expires}")


@cli.command()
@click.argument("account")
@click.option("--provider", default="strava", type=PROVIDERS, show_default=True)
@click.option(
    "--since",
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
    default=None,
    help="UTC start of the window; defaults to the watermark minus overlap"
)
@click.pass_context
def sync(ctx, account, provider, since):
    """Sync ACCOUNT's activities now (bypasses the job queue)."""
    asyncio.run(_sync(ctx, account, provider, since))


async def _sync(ctx: click.Context, account: str, provider: str, since: Optional[datetime]):
    async with AsyncSessionLocal() as db:
        tokens = build_token_source(_credential_store(ctx, db), provider)
        engine = SyncEngine(
            build_fetcher(tokens, provider),
            DatabaseSyncSink(db),
            SyncConfig.from_settings(),
        )
        try:
            result = await engine.sync_account(account, since=since)
        except Exception as e:
            _fail(e)

    click.echo(
        f"{provider}: {result.upserted} activities ({result.created} new) "
        f"in {result.pages} pages since {result.since.isoformat()}"
    )


@cli.command()
@click.argument("path")
@click.option("--account", required=True, help="Account whose credential is used")
@click.option("--provider", default="strava", type=PROVIDERS, show_default=True)
@click.option("-p", "--param", "params", multiple=True, help="Query parameter key=value")
@click.option("--ttl", type=float, default=None, help="Freshness budget in seconds")
@click.option("--no-cache", is_flag=True, help="Skip cache reads")
@click.pass_context
def fetch(ctx, path, account, provider, params, ttl, no_cache):
    """GET an API PATH through the cache and print the JSON body."""
    query = _parse_params(params)
    data = asyncio.run(_fetch(ctx, path, account, provider, query, ttl, no_cache))
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


async def _fetch(ctx, path, account, provider, query, ttl, no_cache):
    async with AsyncSessionLocal() as db:
        tokens = build_token_source(_credential_store(ctx, db), provider)
        fetcher = build_fetcher(tokens, provider, no_cache=no_cache or None)
        try:
            return await fetcher.fetch(path, query, ttl, account_id=account)
        except Exception as e:
            _fail(e)


READS = {
    "latest-run": ("strava", False, lambda reads, account, item: reads.latest_run(account)),
    "activity": ("strava", True, lambda reads, account, item: reads.activity(account, item)),
    "laps": ("strava", True, lambda reads, account, item: reads.laps(account, item)),
    "streams": ("strava", True, lambda reads, account, item: reads.streams(account, item)),
    "latest-workout": ("hevy", False, lambda reads, account, item: reads.latest_workout(account)),
    "workout": ("hevy", True, lambda reads, account, item: reads.workout(account, item)),
}


@cli.command()
@click.argument("what", type=click.Choice(list(READS)))
@click.argument("account")
@click.argument("item_id", required=False)
@click.option("--no-cache", is_flag=True, help="Skip cache reads")
@click.pass_context
def read(ctx, what, account, item_id, no_cache):
    """Print one cached item for ACCOUNT: a latest entry, or ITEM_ID's details."""
    provider, needs_id, _ = READS[what]
    if needs_id and not item_id:
        raise click.UsageError(f"'{what}' needs an ITEM_ID")
    data = asyncio.run(_read(ctx, what, account, item_id, provider, no_cache))
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


async def _read(ctx, what, account, item_id, provider, no_cache):
    async with AsyncSessionLocal() as db:
        tokens = build_token_source(_credential_store(ctx, db), provider)
        fetcher = build_fetcher(tokens, provider, no_cache=no_cache or None)
        reads = StravaReads(fetcher) if provider == "strava" else HevyReads(fetcher)
        try:
            return await READS[what][2](reads, account, item_id)
        except Exception as e:
            _fail(e)


if __name__ == "__main__":
    cli()
