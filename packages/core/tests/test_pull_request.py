"""Tests for GitHub pull request helper functions."""

from unittest.mock import MagicMock

from github import GithubException

from prverdict_core.gh.pull_request import (
    GitHubReviewSink,
    checks_passed,
    get_diff_files,
    is_pending_review_conflict,
)
from prverdict_core.models import FileDiff, ReviewComment

SHA = "a" * 40


def _file(filename, patch, status="modified"):
    f = MagicMock()
    f.filename = filename
    f.patch = patch
    f.status = status
    return f


def _run(conclusion, name="ci"):
    r = MagicMock()
    r.name = name
    r.conclusion = conclusion
    return r


def _review(review_id, state, login="bot"):
    r = MagicMock()
    r.id = review_id
    r.state = state
    r.user.login = login
    return r


class TestGetDiffFiles:
    def test_maps_files(self):
        pr = MagicMock()
        pr.get_files.return_value = [_file("a.py", "@@ -1 +1 @@\n-a\n+b"), _file("new.py", "@@ -0,0 +1 @@\n+x", "added")]
        assert get_diff_files(pr) == [
            FileDiff("a.py", "@@ -1 +1 @@\n-a\n+b", "modified"),
            FileDiff("new.py", "@@ -0,0 +1 @@\n+x", "added"),
        ]

    def test_missing_patch_becomes_none(self):
        pr = MagicMock()
        pr.get_files.return_value = [_file("logo.png", None), _file("empty.txt", "")]
        assert [f.patch for f in get_diff_files(pr)] == [None, None]


class TestChecksPassed:
    def test_all_successful(self):
        repo = MagicMock()
        repo.get_commit.return_value.get_check_runs.return_value = [_run("success"), _run("skipped"), _run(None)]
        assert checks_passed(repo, SHA) is True
        repo.get_commit.assert_called_once_with(SHA)

    def test_no_checks(self):
        repo = MagicMock()
        repo.get_commit.return_value.get_check_runs.return_value = []
        assert checks_passed(repo, SHA) is True

    def test_any_failure_fails(self):
        repo = MagicMock()
        repo.get_commit.return_value.get_check_runs.return_value = [_run("success"), _run("failure", "lint")]
        assert checks_passed(repo, SHA) is False

    def test_timed_out_fails(self):
        repo = MagicMock()
        repo.get_commit.return_value.get_check_runs.return_value = [_run("timed_out")]
        assert checks_passed(repo, SHA) is False


class TestIsPendingReviewConflict:
    def test_pending_review_422(self):
        exc = GithubException(422, {"message": "Unprocessable Entity", "errors": ["User can only have one pending review per pull request"]})
        assert is_pending_review_conflict(exc) is True

    def test_other_422(self):
        exc = GithubException(422, {"message": "Validation Failed", "errors": ["line must be part of the diff"]})
        assert is_pending_review_conflict(exc) is False

    def test_other_status(self):
        assert is_pending_review_conflict(GithubException(403, {"message": "pending review"})) is False

    def test_non_github_exception(self):
        assert is_pending_review_conflict(RuntimeError("pending review")) is False


class TestGitHubReviewSink:
    def test_list_pending_filters_state_and_login(self):
        pr = MagicMock()
        mine = _review(1, "PENDING", "bot")
        pr.get_reviews.return_value = [mine, _review(2, "APPROVED", "bot"), _review(3, "PENDING", "someone")]
        assert GitHubReviewSink(pr).list_pending_reviews("bot") == [mine]

    def test_list_pending_without_login(self):
        pr = MagicMock()
        pr.get_reviews.return_value = [_review(1, "PENDING", "bot"), _review(3, "PENDING", "someone")]
        assert len(GitHubReviewSink(pr).list_pending_reviews()) == 2

    def test_pending_review_is_deleted(self):
        review = _review(1, "PENDING")
        GitHubReviewSink(MagicMock()).dismiss_review(review, "stale")
        review.delete.assert_called_once()
        review.dismiss.assert_not_called()

    def test_submitted_review_is_dismissed(self):
        review = _review(1, "CHANGES_REQUESTED")
        GitHubReviewSink(MagicMock()).dismiss_review(review, "stale")
        review.dismiss.assert_called_once_with("stale")

    def test_create_review_sends_line_comments(self):
        pr = MagicMock()
        GitHubReviewSink(pr).create_review("body", "APPROVE", [ReviewComment("a.py", 3, "nit")])
        pr.create_review.assert_called_once_with(
            body="body",
            event="APPROVE",
            comments=[{"path": "a.py", "line": 3, "side": "RIGHT", "body": "nit"}],
        )
