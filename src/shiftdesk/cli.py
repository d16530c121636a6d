"""CLI for the shift desk console cache: validate configs and inspect a live session."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from shiftdesk import __version__
from shiftdesk.cache import DataCache
from shiftdesk.config import ClientConfig, ConfigError, load_config
from shiftdesk.core.logging import configure_logging, resolve_log_root
from shiftdesk.core.telemetry import init_telemetry
from shiftdesk.models import NotificationCategory

logger = logging.getLogger(__name__)

# Default directory containing shiftdesk.toml
DEFAULT_CONFIG_DIR = Path(".")


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Shift desk: client-side cache for the roster console API."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(name)s: %(message)s")


@cli.command("check-config")
@click.option(
    "--dir",
    "config_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_DIR,
    help="Directory containing shiftdesk.toml",
)
def check_config(config_dir: Path) -> None:
    """Validate shiftdesk.toml and print the resolved settings."""
    try:
        config = load_config(config_dir)
    except ConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"{'Name':<26} {config.name}")
    click.echo(f"{'Base URL':<26} {config.base_url}")
    click.echo(f"{'Timeout (s)':<26} {config.timeout_s:g} (connect {config.connect_timeout_s:g})")
    click.echo(f"{'Notification page size':<26} {config.cache.notification_page_size}")
    user_page_size = config.cache.user_page_size
    click.echo(f"{'User page size':<26} {user_page_size if user_page_size else '(server default)'}")
    click.echo(f"{'Logging':<26} {config.logging.level} / {config.logging.format}")


@cli.command()
@click.option(
    "--dir",
    "config_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_DIR,
    help="Directory containing shiftdesk.toml",
)
@click.option(
    "--token",
    envvar="SHIFTDESK_TOKEN",
    required=True,
    help="Bearer token for the API (or SHIFTDESK_TOKEN)",
)
def snapshot(config_dir: Path, token: str) -> None:
    """Log in, load every domain once, and print counts and counters as JSON."""
    try:
        config = load_config(config_dir)
    except ConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(1)

    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=resolve_log_root(config.logging.log_root),
        client_name=config.name,
    )
    init_telemetry(f"shiftdesk.{config.name}")

    summary = asyncio.run(_snapshot(config, token))
    click.echo(json.dumps(summary, indent=2, sort_keys=True))
    if summary["state"] != "ready":
        sys.exit(1)


async def _snapshot(config: ClientConfig, token: str) -> dict:
    cache = DataCache.from_config(config)
    try:
        state = await cache.login(token)
        statistics = cache.activity_statistics
        return {
            "state": str(state),
            "users": len(cache.users),
            "rosters": len(cache.rosters),
            "activities": len(cache.activities),
            "notifications": {
                str(category): len(cache.notifications(category))
                for category in NotificationCategory
            },
            "notification_stats": cache.notification_stats,
            "unread": cache.unread_notification_count,
            "activity_statistics": (
                statistics.model_dump(mode="json") if statistics is not None else None
            ),
        }
    finally:
        await cache.aclose()


def main() -> None:
    cli()
