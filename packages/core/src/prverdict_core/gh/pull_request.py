"""GitHub side of the pipeline: the diff source and the review sink."""

from __future__ import annotations

import logging

from github import Github, GithubException

from prverdict_core.models import FileDiff, ReviewComment

logger = logging.getLogger(__name__)

_FAILED_CONCLUSIONS = {"failure", "timed_out"}


def get_client(token: str) -> Github:
    return Github(token)


def get_repo(client, full_name: str):
    return client.get_repo(full_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_authenticated_login(client) -> str:
    return client.get_user().login


def get_diff_files(pr) -> list[FileDiff]:
    """Return the changed files of a PR; ``patch`` is None when GitHub omits it."""
    return [FileDiff(path=f.filename, patch=f.patch or None, status=f.status) for f in pr.get_files()]


def checks_passed(repo, head_sha: str) -> bool:
    """Return False if any check run on the commit failed or timed out."""
    for run in repo.get_commit(head_sha).get_check_runs():
        if run.conclusion in _FAILED_CONCLUSIONS:
            logger.info("Check %r concluded %s", run.name, run.conclusion)
            return False
    return True


def is_pending_review_conflict(exc: Exception) -> bool:
    """True when GitHub refused a review because one is already pending."""
    if not isinstance(exc, GithubException) or exc.status != 422:
        return False
    return "pending review" in str(exc.data).lower()


class GitHubReviewSink:
    """Posts reviews to one pull request."""

    def __init__(self, pr):
        self._pr = pr

    def list_pending_reviews(self, login: str | None = None) -> list:
        """Return the PR's pending reviews, limited to ``login``'s when given."""
        pending = []
        for review in self._pr.get_reviews():
            if review.state != "PENDING":
                continue
            if login is not None and review.user is not None and review.user.login != login:
                continue
            pending.append(review)
        return pending

    def dismiss_review(self, review, message: str) -> None:
        # A pending review was never submitted, so GitHub only allows
        # deleting it; dismissal applies to submitted reviews.
        if review.state == "PENDING":
            logger.info("Deleting pending review %s: %s", review.id, message)
            review.delete()
        else:
            review.dismiss(message)

    def create_review(self, body: str, event: str, comments: list[ReviewComment]) -> None:
        api_comments = [{"path": c.file, "line": c.line, "side": "RIGHT", "body": c.body} for c in comments]
        self._pr.create_review(body=body, event=event, comments=api_comments)
