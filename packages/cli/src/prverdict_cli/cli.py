"""CLI entry point for prverdict.

Commands:
  review  generate (or reuse) a review for a pull request and post it
  show    print the cached review for a commit, without network access
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prverdict_cli.commands.review import review_cmd
from prverdict_cli.commands.show import show_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured review cache backend from .prverdict.yml settings.

    Store selection:
      cache: file   → FileStore   (default; cache_dir or .prverdict/reviews)
      cache: sqlite → SQLiteStore (cache_path or .prverdict/reviews.db)
      cache: none   → NoOpStore   (every run regenerates)

    This factory lives in cli.py so neither prverdict_core nor prverdict_store
    know about the CLI config format.
    """
    from prverdict_store.noop import NoOpStore

    store_type = config.get("cache", "file")

    if store_type == "file":
        from prverdict_store.file import FileStore

        return FileStore(root=config.get("cache_dir") or ".prverdict/reviews")

    if store_type == "sqlite":
        from prverdict_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("cache_path") or ".prverdict/reviews.db")

    if store_type not in ("none", "noop"):
        console.print(f"[yellow]Unknown cache backend {store_type!r}. Caching is disabled.[/yellow]")
    return NoOpStore()


def _version() -> str:
    try:
        return importlib.metadata.version("prverdict")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


@click.group()
@click.version_option(version=_version(), prog_name="prverdict")
@click.option(
    "--config",
    "config_path",
    default=".prverdict.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRVERDICT_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Turn a pull request diff and an AI critique into a structured review."""
    from prverdict_core.config import load_config
    from prverdict_cli.auth import resolve_github_token

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    ctx.ensure_object(dict)

    config = load_config(config_path)

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token(config)
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(review_cmd)
main.add_command(show_cmd)
