"""review command: generate or reuse a review for a pull request and post it."""

from __future__ import annotations

import click
from github import GithubException
from rich.console import Console

from prverdict_cli.cache import StoreReviewCache
from prverdict_core.providers import CritiqueSourceError
from prverdict_core.reviewer import run_review

console = Console()


@click.command("review")
@click.option("--owner", required=True, help="Repository owner (e.g. 'octocat').")
@click.option("--repo", "repo_name", required=True, help="Repository name (e.g. 'hello-world').")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option(
    "--preview",
    "preview_only",
    is_flag=True,
    help="Generate and cache the review without posting to GitHub.",
)
@click.option(
    "--force-refresh",
    is_flag=True,
    help="Regenerate the review even if one is cached for the head commit. Implies --preview.",
)
@click.option(
    "--provider",
    type=click.Choice(["openai", "anthropic"]),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.pass_context
def review_cmd(
    ctx,
    owner: str,
    repo_name: str,
    pr_number: int,
    preview_only: bool,
    force_refresh: bool,
    provider: str | None,
):
    """Review a GitHub pull request.

    Reuses the cached review for the PR's head commit when there is one,
    otherwise asks the model for a new one and caches it. Unless --preview
    is given, the review is posted: approved only when the model approves
    and CI checks pass, and as a plain comment on your own PRs.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      OPENAI_API_KEY       Required when using --provider openai
      ANTHROPIC_API_KEY    Required when using --provider anthropic
    """
    config = dict(ctx.obj["config"])
    if provider is not None:
        config["provider"] = provider

    if not config.get("github_token"):
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )

    # API keys are checked when a critic is built: a cached review needs none.
    cache = StoreReviewCache(ctx.obj["store"])

    try:
        outcome = run_review(
            repo=f"{owner}/{repo_name}",
            pr_number=pr_number,
            config=config,
            cache=cache,
            preview_only=preview_only,
            force_refresh=force_refresh,
        )
    except (CritiqueSourceError, GithubException, ValueError, FileNotFoundError) as e:
        raise click.ClickException(str(e)) from e

    if not outcome.decision.posts:
        console.print(f"[dim]Decision: {outcome.decision.reason}[/dim]")
    elif not outcome.posted:
        console.print("[yellow]No review was posted.[/yellow]")
