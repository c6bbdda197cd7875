"""Tests for the core review pipeline: generate_review, post_decision and run_review."""

from unittest.mock import MagicMock

import pytest
from github import GithubException

from prverdict_core.cache import InMemoryReviewCache
from prverdict_core.decision import (
    DISMISS_MESSAGE,
    EVENT_APPROVE,
    EVENT_COMMENT,
    EVENT_REQUEST_CHANGES,
    POST,
    REPORT_ONLY,
    PostingDecision,
)
from prverdict_core.models import FileDiff, Review, ReviewComment, ReviewVerdict
from prverdict_core.reviewer import generate_review, post_decision, run_review

REPO = "owner/repo"
SHA = "a" * 40

# One added line at new-file line 2, context at lines 1 and 3.
SIMPLE_PATCH = "@@ -1,2 +1,3 @@\n line1\n+new line\n line2\n"

APPROVE_RESPONSE = 'Fine.\n\n### Specific Comments:\n- File: "src/foo.py", Line 2: "bad name"\n\n__approve__'
REQUEST_RESPONSE = 'Broken.\n\n### Specific Comments:\n- File: "src/foo.py", Line 2: "bad name"\n\n__request_changes__'


class StubCritic:
    def __init__(self, response=APPROVE_RESPONSE):
        self._response = response
        self.prompts = []

    def critique(self, prompt):
        self.prompts.append(prompt)
        return self._response


def _config(**overrides):
    config = {
        "github_token": "tok",
        "provider": "openai",
        "openai_api_key": "key",
        "model_name": None,
        "exclude": [],
        "max_chars_per_file": 20000,
        "guidelines": None,
        "strict_line_validation": False,
    }
    config.update(overrides)
    return config


def _file(filename="src/foo.py", patch=SIMPLE_PATCH):
    f = MagicMock()
    f.filename = filename
    f.patch = patch
    f.status = "modified"
    return f


def _github(author="alice", login="bot", conclusions=(), pending=(), files=None):
    """Return (client, repo, pr) mocks wired the way PyGithub returns them."""
    pr = MagicMock()
    pr.title = "Fix auth bug"
    pr.body = "Handles expired tokens."
    pr.user.login = author
    pr.head.sha = SHA
    pr.get_files.return_value = files if files is not None else [_file()]
    pr.get_reviews.return_value = list(pending)

    repo = MagicMock()
    repo.get_pull.return_value = pr
    runs = []
    for conclusion in conclusions:
        run = MagicMock()
        run.conclusion = conclusion
        runs.append(run)
    repo.get_commit.return_value.get_check_runs.return_value = runs

    client = MagicMock()
    client.get_user.return_value.login = login
    return client, repo, pr


def _pending(review_id=7, login="bot"):
    r = MagicMock()
    r.id = review_id
    r.state = "PENDING"
    r.user.login = login
    return r


# ---------------------------------------------------------------------------
# generate_review
# ---------------------------------------------------------------------------


class TestGenerateReview:
    def _pr(self):
        _, _, pr = _github()
        return pr

    def test_prompt_carries_metadata_and_numbered_diff(self):
        critic = StubCritic()
        generate_review(self._pr(), [FileDiff("src/foo.py", SIMPLE_PATCH)], _config(), critic)
        prompt = critic.prompts[0]
        assert "Fix auth bug" in prompt
        assert "alice" in prompt
        assert "+ Line 2: new line" in prompt

    def test_extracts_verdict_and_comments(self):
        review = generate_review(self._pr(), [FileDiff("src/foo.py", SIMPLE_PATCH)], _config(), StubCritic())
        assert review.verdict is ReviewVerdict.APPROVE
        assert review.comments == (ReviewComment("src/foo.py", 2, "bad name"),)
        assert "Specific Comments" not in review.body

    def test_comment_on_file_without_patch_is_dropped(self):
        response = '### Specific Comments:\n- File: "logo.png", Line 1: "big"\n__approve__'
        review = generate_review(self._pr(), [FileDiff("logo.png", None)], _config(), StubCritic(response))
        assert review.comments == ()

    def test_strict_validation_drops_lines_outside_diff(self):
        response = (
            "### Specific Comments:\n"
            '- File: "src/foo.py", Line 2: "in diff"\n'
            '- File: "src/foo.py", Line 99: "outside"\n'
            "__approve__"
        )
        files = [FileDiff("src/foo.py", SIMPLE_PATCH)]
        lenient = generate_review(self._pr(), files, _config(), StubCritic(response))
        strict = generate_review(self._pr(), files, _config(strict_line_validation=True), StubCritic(response))
        assert [c.line for c in lenient.comments] == [2, 99]
        assert [c.line for c in strict.comments] == [2]

    def test_guidelines_are_included(self, tmp_path):
        guidelines = tmp_path / "guidelines.md"
        guidelines.write_text("- No print statements")
        critic = StubCritic()
        generate_review(self._pr(), [FileDiff("src/foo.py", SIMPLE_PATCH)], _config(guidelines=str(guidelines)), critic)
        assert "- No print statements" in critic.prompts[0]


# ---------------------------------------------------------------------------
# post_decision
# ---------------------------------------------------------------------------


class TestPostDecision:
    def test_report_only_touches_nothing(self):
        sink = MagicMock()
        assert post_decision(sink, PostingDecision(action=REPORT_ONLY), (), []) is False
        sink.create_review.assert_not_called()
        sink.dismiss_review.assert_not_called()

    def test_dismisses_matching_pending_review_first(self):
        sink = MagicMock()
        pending = [_pending(3), _pending(7)]
        decision = PostingDecision(action=POST, event=EVENT_APPROVE, body="b", dismiss_review_id=7)
        assert post_decision(sink, decision, (ReviewComment("a.py", 1, "x"),), pending) is True
        sink.dismiss_review.assert_called_once_with(pending[1], DISMISS_MESSAGE)
        sink.create_review.assert_called_once_with("b", EVENT_APPROVE, [ReviewComment("a.py", 1, "x")])

    def test_pending_review_conflict_is_a_no_op(self):
        sink = MagicMock()
        sink.create_review.side_effect = GithubException(422, {"errors": ["User can only have one pending review"]})
        decision = PostingDecision(action=POST, event=EVENT_APPROVE, body="b")
        assert post_decision(sink, decision, (), []) is False

    def test_other_github_errors_propagate(self):
        sink = MagicMock()
        sink.create_review.side_effect = GithubException(500, {"message": "Server Error"})
        decision = PostingDecision(action=POST, event=EVENT_APPROVE, body="b")
        with pytest.raises(GithubException):
            post_decision(sink, decision, (), [])


# ---------------------------------------------------------------------------
# run_review
# ---------------------------------------------------------------------------


class TestRunReview:
    def test_preview_does_not_post_but_caches(self):
        client, repo, pr = _github()
        cache = InMemoryReviewCache()

        outcome = run_review(REPO, 1, _config(), cache, preview_only=True, critic=StubCritic(), client=client, repo_obj=repo)

        pr.create_review.assert_not_called()
        assert outcome.decision.action == REPORT_ONLY
        assert outcome.posted is False
        assert cache.lookup(REPO, SHA) == outcome.review

    def test_approve_with_passing_checks_posts_approval(self):
        client, repo, pr = _github(conclusions=("success",))

        outcome = run_review(REPO, 1, _config(), InMemoryReviewCache(), critic=StubCritic(), client=client, repo_obj=repo)

        assert outcome.posted is True
        kwargs = pr.create_review.call_args.kwargs
        assert kwargs["event"] == EVENT_APPROVE
        assert kwargs["comments"] == [{"path": "src/foo.py", "line": 2, "side": "RIGHT", "body": "bad name"}]

    def test_failing_checks_downgrade_approval(self):
        client, repo, pr = _github(conclusions=("success", "failure"))

        outcome = run_review(REPO, 1, _config(), InMemoryReviewCache(), critic=StubCritic(), client=client, repo_obj=repo)

        assert outcome.decision.event == EVENT_REQUEST_CHANGES
        assert pr.create_review.call_args.kwargs["event"] == EVENT_REQUEST_CHANGES

    def test_request_changes_verdict(self):
        client, repo, pr = _github()

        run_review(REPO, 1, _config(), InMemoryReviewCache(), critic=StubCritic(REQUEST_RESPONSE), client=client, repo_obj=repo)

        assert pr.create_review.call_args.kwargs["event"] == EVENT_REQUEST_CHANGES

    def test_self_review_posts_comment(self):
        client, repo, pr = _github(author="bot", login="bot")

        run_review(REPO, 1, _config(), InMemoryReviewCache(), critic=StubCritic(), client=client, repo_obj=repo)

        kwargs = pr.create_review.call_args.kwargs
        assert kwargs["event"] == EVENT_COMMENT
        assert kwargs["body"].endswith("This is a self-approved PR.")

    def test_cache_hit_skips_critic(self):
        client, repo, pr = _github()
        cache = InMemoryReviewCache()
        cached = Review(ReviewVerdict.REQUEST_CHANGES, "From cache.")
        cache.store(REPO, SHA, cached)
        critic = StubCritic()

        outcome = run_review(REPO, 1, _config(), cache, critic=critic, client=client, repo_obj=repo)

        assert critic.prompts == []
        assert outcome.from_cache is True
        assert outcome.review == cached
        assert pr.create_review.call_args.kwargs["body"] == "From cache."

    def test_cache_hit_needs_no_api_key(self):
        client, repo, _ = _github()
        cache = InMemoryReviewCache()
        cache.store(REPO, SHA, Review(ReviewVerdict.APPROVE, "ok"))

        outcome = run_review(REPO, 1, _config(openai_api_key=None), cache, preview_only=True, client=client, repo_obj=repo)

        assert outcome.from_cache is True

    def test_cache_miss_without_api_key_raises(self):
        client, repo, _ = _github()
        cache = InMemoryReviewCache()

        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            run_review(REPO, 1, _config(openai_api_key=None), cache, client=client, repo_obj=repo)
        assert len(cache) == 0

    def test_force_refresh_implies_preview_and_regenerates(self):
        client, repo, pr = _github()
        cache = InMemoryReviewCache()
        cache.store(REPO, SHA, Review(ReviewVerdict.REQUEST_CHANGES, "old"))
        critic = StubCritic()

        outcome = run_review(REPO, 1, _config(), cache, force_refresh=True, critic=critic, client=client, repo_obj=repo)

        assert len(critic.prompts) == 1
        assert outcome.from_cache is False
        assert outcome.decision.action == REPORT_ONLY
        pr.create_review.assert_not_called()
        assert cache.lookup(REPO, SHA).verdict is ReviewVerdict.APPROVE

    def test_pending_review_is_replaced(self):
        pending = _pending(9)
        client, repo, pr = _github(pending=[pending])

        outcome = run_review(REPO, 1, _config(), InMemoryReviewCache(), critic=StubCritic(), client=client, repo_obj=repo)

        pending.delete.assert_called_once()
        assert outcome.decision.dismiss_review_id == 9
        pr.create_review.assert_called_once()

    def test_pending_review_conflict_returns_not_posted(self):
        client, repo, pr = _github()
        pr.create_review.side_effect = GithubException(422, {"errors": ["User can only have one pending review per pull request"]})

        outcome = run_review(REPO, 1, _config(), InMemoryReviewCache(), critic=StubCritic(), client=client, repo_obj=repo)

        assert outcome.posted is False

    def test_excluded_files_are_not_sent(self):
        files = [_file("src/foo.py"), _file("yarn.lock", "@@ -1 +1 @@\n-a\n+b")]
        client, repo, _ = _github(files=files)
        critic = StubCritic()

        run_review(REPO, 1, _config(exclude=["*.lock"]), InMemoryReviewCache(), preview_only=True, critic=critic, client=client, repo_obj=repo)

        assert "yarn.lock" not in critic.prompts[0]
        assert "src/foo.py" in critic.prompts[0]

    def test_missing_pr_raises_value_error(self):
        client, repo, _ = _github()
        repo.get_pull.side_effect = GithubException(404, {"message": "Not Found"})

        with pytest.raises(ValueError, match="PR #5 not found"):
            run_review(REPO, 5, _config(), InMemoryReviewCache(), critic=StubCritic(), client=client, repo_obj=repo)

    def test_critic_failure_caches_nothing(self):
        client, repo, pr = _github()
        cache = InMemoryReviewCache()
        critic = MagicMock()
        critic.critique.side_effect = RuntimeError("model down")

        with pytest.raises(RuntimeError):
            run_review(REPO, 1, _config(), cache, critic=critic, client=client, repo_obj=repo)
        assert len(cache) == 0
        pr.create_review.assert_not_called()

    def test_repo_is_fetched_from_client_when_not_given(self):
        client, repo, _ = _github()
        client.get_repo.return_value = repo

        run_review(REPO, 1, _config(), InMemoryReviewCache(), preview_only=True, critic=StubCritic(), client=client)

        client.get_repo.assert_called_once_with(REPO)
