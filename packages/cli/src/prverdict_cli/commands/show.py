"""show command: print a cached review without contacting GitHub or a model."""

from __future__ import annotations

import click
from rich.console import Console

from prverdict_cli.cache import StoreReviewCache
from prverdict_core.reviewer import print_review

console = Console()


@click.command("show")
@click.option("--owner", required=True, help="Repository owner.")
@click.option("--repo", "repo_name", required=True, help="Repository name.")
@click.option("--sha", "head_sha", required=True, help="Head commit SHA the review was generated for.")
@click.pass_context
def show_cmd(ctx, owner: str, repo_name: str, head_sha: str):
    """Show the cached review for a commit."""
    from prverdict_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError("Caching is disabled. Set 'cache: file' or 'cache: sqlite' in .prverdict.yml.")

    review = StoreReviewCache(store).lookup(f"{owner}/{repo_name}", head_sha)
    if review is None:
        console.print(f"[yellow]No cached review for {owner}/{repo_name}@{head_sha[:7]}.[/yellow]")
        return

    print_review(review, from_cache=True)
