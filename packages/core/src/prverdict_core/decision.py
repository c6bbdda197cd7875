"""Decide what, if anything, to post for a review.

Inputs are the extracted verdict, whether CI checks passed, whether the
authenticated actor authored the pull request, whether this is a preview
run, and the pending review (if any) the actor already holds on the PR.
"""

from __future__ import annotations

from dataclasses import dataclass

from prverdict_core.models import Review, ReviewVerdict

REPORT_ONLY = "report_only"
POST = "post"

EVENT_APPROVE = "APPROVE"
EVENT_REQUEST_CHANGES = "REQUEST_CHANGES"
EVENT_COMMENT = "COMMENT"

SELF_APPROVE_NOTE = "**Note:** This is a self-approved PR."
SELF_REQUEST_CHANGES_NOTE = "**Note:** This is a self-requested change."
DISMISS_MESSAGE = "Dismissing pending review to submit a new one."


@dataclass(frozen=True)
class PostingDecision:
    action: str  # REPORT_ONLY | POST
    event: str | None = None  # "APPROVE" | "COMMENT" | "REQUEST_CHANGES"
    body: str = ""
    dismiss_review_id: int | None = None
    reason: str = ""

    @property
    def posts(self) -> bool:
        return self.action == POST


def decide(
    review: Review,
    checks_passed: bool,
    is_self_review: bool,
    preview_only: bool,
    pending_review_id: int | None = None,
) -> PostingDecision:
    if preview_only:
        return PostingDecision(action=REPORT_ONLY, body=review.body, reason="preview only")

    if is_self_review:
        # Self-approval carries no signal: always post a neutral comment.
        note = SELF_APPROVE_NOTE if review.verdict is ReviewVerdict.APPROVE else SELF_REQUEST_CHANGES_NOTE
        return PostingDecision(
            action=POST,
            event=EVENT_COMMENT,
            body=f"{review.body}\n\n{note}",
            dismiss_review_id=pending_review_id,
            reason="self review",
        )

    if review.verdict is ReviewVerdict.APPROVE and checks_passed:
        return PostingDecision(
            action=POST,
            event=EVENT_APPROVE,
            body=review.body,
            dismiss_review_id=pending_review_id,
            reason="approved with passing checks",
        )

    if review.verdict is ReviewVerdict.APPROVE:
        reason = "approval downgraded: checks are failing"
    else:
        reason = "changes requested"
    return PostingDecision(
        action=POST,
        event=EVENT_REQUEST_CHANGES,
        body=review.body,
        dismiss_review_id=pending_review_id,
        reason=reason,
    )
