"""Core PR review orchestration.

diff source → normalizer + prompt renderer → critic → extractor
           → review cache → decision engine → review sink
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass

from github import GithubException
from rich.console import Console

from prverdict_core.cache import CacheMode, ReviewCache, resolve_review
from prverdict_core.config import load_guidelines
from prverdict_core.decision import DISMISS_MESSAGE, PostingDecision, decide
from prverdict_core.diff import normalize_files, render_diff_view, target_lines
from prverdict_core.extractor import extract_review
from prverdict_core.gh.pull_request import (
    GitHubReviewSink,
    checks_passed,
    get_authenticated_login,
    get_client,
    get_diff_files,
    get_pull,
    get_repo,
    is_pending_review_conflict,
)
from prverdict_core.models import FileDiff, Review, ReviewComment, ReviewVerdict
from prverdict_core.prompt import PullRequestInfo, render_prompt
from prverdict_core.providers import BaseCritic, build_critic

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class ReviewOutcome:
    """Result of run_review, for the CLI to report on."""

    repo: str
    pr_number: int
    head_sha: str
    review: Review
    decision: PostingDecision
    from_cache: bool
    posted: bool = False


def _is_excluded(filename: str, patterns: list[str]) -> bool:
    """Return True if filename matches any exclude pattern.

    Supports:
    - fnmatch globs on the full path: "src/generated/*.py"
    - fnmatch globs on the basename: "*.lock", "*.min.js"
    - Directory names/prefixes: "migrations/", "tests" (matches any file within that tree)
    """
    for pattern in patterns:
        if fnmatch.fnmatch(filename, pattern):
            return True
        if fnmatch.fnmatch(filename.rsplit("/", 1)[-1], pattern):
            return True
        prefix = pattern.rstrip("/") + "/"
        if filename.startswith(prefix) or ("/" + prefix) in filename:
            return True
    return False


def generate_review(pr, files: list[FileDiff], config: dict, critic: BaseCritic) -> Review:
    """Render the prompt, ask the critic, and extract a structured review."""
    info = PullRequestInfo(
        title=pr.title or "",
        author=pr.user.login if pr.user is not None else "",
        description=pr.body or "",
    )
    normalized = normalize_files(files)
    prompt = render_prompt(
        info,
        render_diff_view(normalized),
        {f.path: f.patch for f in files},
        guidelines=load_guidelines(config),
        max_chars=config.get("max_chars_per_file"),
    )

    console.print(f"Requesting review of {len(files)} file(s) from {critic.__class__.__name__}...")
    response = critic.critique(prompt)

    # Files without a patch cannot carry line comments.
    valid_files = [path for path, records in normalized.items() if records]
    line_index = None
    if config.get("strict_line_validation"):
        line_index = {path: target_lines(records) for path, records in normalized.items()}
    return extract_review(response, valid_files, line_index)


def print_review(review: Review, from_cache: bool = False) -> None:
    """Print a review to the terminal."""
    source = "Loaded" if from_cache else "Generated"
    color = "green" if review.verdict is ReviewVerdict.APPROVE else "yellow"
    console.rule(f"{source} review")
    console.print(review.body, markup=False)
    console.rule("File comments")
    if not review.comments:
        console.print("[dim]No line comments.[/dim]")
    for c in review.comments:
        console.print(f"[bold cyan]{c.file}[/bold cyan]  line [bold]{c.line}[/bold]")
        console.print(f"  {c.body}", markup=False)
    console.rule()
    console.print(f"Verdict: [{color}]{review.verdict.value}[/{color}]")


def post_decision(
    sink: GitHubReviewSink,
    decision: PostingDecision,
    comments: tuple[ReviewComment, ...],
    pending_reviews: list,
) -> bool:
    """Carry out a posting decision. Returns True if a review was created.

    A "pending review already exists" rejection is expected when another run
    races this one; it is logged and treated as a no-op.
    """
    if not decision.posts:
        return False

    if decision.dismiss_review_id is not None:
        for pending in pending_reviews:
            if pending.id == decision.dismiss_review_id:
                sink.dismiss_review(pending, DISMISS_MESSAGE)

    try:
        sink.create_review(decision.body, decision.event, list(comments))
    except GithubException as e:
        if is_pending_review_conflict(e):
            logger.warning("A pending review already exists; not posting: %s", e)
            console.print(
                "[yellow]A pending review already exists. Submit or dismiss it before posting a new one.[/yellow]"
            )
            return False
        raise
    return True


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    cache: ReviewCache,
    preview_only: bool = False,
    force_refresh: bool = False,
    critic: BaseCritic | None = None,
    client=None,
    repo_obj=None,
) -> ReviewOutcome:
    """Run the review pipeline for one pull request.

    GitHub and critic failures propagate; nothing is cached for a review that
    could not be generated.
    """
    if force_refresh and not preview_only:
        console.print("[yellow]--force-refresh implies --preview: the new review will not be posted.[/yellow]")
        preview_only = True

    if client is None:
        client = get_client(config["github_token"])
    this_repo = repo_obj if repo_obj is not None else get_repo(client, repo)

    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException as e:
        if e.status == 404:
            raise ValueError(f"PR #{pr_number} not found in {repo}.") from e
        raise

    head_sha = this_pr.head.sha
    exclude_patterns = config.get("exclude", [])
    files = []
    for f in get_diff_files(this_pr):
        if _is_excluded(f.path, exclude_patterns):
            console.print(f"  Skipping: {f.path}")
            continue
        files.append(f)

    def _generate() -> Review:
        return generate_review(this_pr, files, config, critic if critic is not None else build_critic(config))

    mode = CacheMode.FORCE_REFRESH if force_refresh else CacheMode.NORMAL
    review, from_cache = resolve_review(cache, repo, head_sha, mode, _generate)
    print_review(review, from_cache)

    if preview_only:
        decision = decide(review, checks_passed=False, is_self_review=False, preview_only=True)
        console.print("[bold]Preview: review not posted to GitHub.[/bold]")
        return ReviewOutcome(repo, pr_number, head_sha, review, decision, from_cache)

    login = get_authenticated_login(client)
    author = this_pr.user.login if this_pr.user is not None else None
    is_self_review = author is not None and author == login
    passed = checks_passed(this_repo, head_sha)

    sink = GitHubReviewSink(this_pr)
    pending = sink.list_pending_reviews(login)
    if pending:
        console.print("A pending review already exists; it will be replaced.")

    decision = decide(
        review,
        checks_passed=passed,
        is_self_review=is_self_review,
        preview_only=False,
        pending_review_id=pending[0].id if pending else None,
    )
    if review.verdict is ReviewVerdict.APPROVE and not passed and not is_self_review:
        console.print("[yellow]Review recommends approval, but checks are failing. Requesting changes instead.[/yellow]")

    posted = post_decision(sink, decision, review.comments, pending)
    if posted:
        label = "Self-review posted as a comment." if is_self_review else f"Review posted: {decision.event}"
        console.print(f"[green]{label}[/green]")

    return ReviewOutcome(repo, pr_number, head_sha, review, decision, from_cache, posted)
