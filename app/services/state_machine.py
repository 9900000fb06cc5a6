"""
Status graphs per content type, plus the side effects a transition implies.

Nothing here touches the database: ``plan_transition`` validates a move and
returns the effects the caller must perform in the same unit of work.
"""
from dataclasses import dataclass
import uuid

from app.errors import InvalidTransitionError, ValidationError
from app.utils.constants import (
    CLEAN_TRANSCRIPT,
    EXTRACT_INSIGHTS,
    GENERATE_POSTS,
    INSIGHT,
    POST,
    SCHEDULED_POST,
    STATES,
    TERMINAL_STATES,
    TRANSCRIPT,
)

ALLOWED_TRANSITIONS = {
    TRANSCRIPT: {
        "raw": ["cleaning"],
        "cleaning": ["cleaned", "raw"],
        "cleaned": ["processing_insights"],
        "processing_insights": ["insights_generated", "cleaned"],
        "insights_generated": [],
    },
    INSIGHT: {
        "needs_review": ["approved", "rejected"],
        "approved": [],
        "rejected": [],
    },
    POST: {
        "needs_review": ["approved", "rejected"],
        "approved": ["scheduling", "rejected"],
        "scheduling": ["scheduled", "approved"],
        "scheduled": ["publishing", "published", "failed", "approved", "needs_review"],
        "publishing": ["published", "failed"],
        "failed": ["scheduled"],
        "published": [],
        "rejected": [],
    },
    SCHEDULED_POST: {
        "scheduling": ["scheduled", "cancelled"],
        "scheduled": ["publishing", "cancelled"],
        "publishing": ["published", "failed"],
        "failed": ["scheduling", "cancelled"],
        "published": [],
        "cancelled": [],
    },
}

# archived is reachable from every terminal state
for _ctype, _terminals in TERMINAL_STATES.items():
    for _state in _terminals:
        ALLOWED_TRANSITIONS[_ctype][_state] = ALLOWED_TRANSITIONS[_ctype][_state] + ["archived"]
ALLOWED_TRANSITIONS = {ctype: {**graph, "archived": []} for ctype, graph in ALLOWED_TRANSITIONS.items()}

# Moves only the owning engine may make: they carry data (a slot, a publish
# outcome, job output) that a bare status change would skip.
MANAGED_TRANSITIONS = {
    TRANSCRIPT: {("cleaning", "cleaned"), ("cleaning", "raw"), ("processing_insights", "insights_generated"),
                 ("processing_insights", "cleaned")},
    INSIGHT: set(),
    POST: {("approved", "scheduling"), ("scheduling", "scheduled"), ("scheduling", "approved"),
           ("scheduled", "publishing"), ("scheduled", "published"), ("scheduled", "failed"),
           ("publishing", "published"), ("publishing", "failed"), ("failed", "scheduled")},
    SCHEDULED_POST: {("scheduling", "scheduled"), ("scheduled", "publishing"), ("publishing", "published"),
                     ("publishing", "failed"), ("failed", "scheduling")},
}


@dataclass(frozen=True)
class EnqueueJob:
    job_type: str
    content_id: uuid.UUID


@dataclass(frozen=True)
class ReleaseSlot:
    """Clear a post's scheduled time and cancel its active scheduled_post record."""

    post_id: uuid.UUID


@dataclass(frozen=True)
class ReleaseParentPost:
    """A cancelled scheduled_post hands its parent post back to ``approved``."""

    scheduled_post_id: uuid.UUID


Effect = EnqueueJob | ReleaseSlot | ReleaseParentPost


def ensure_known_status(content_type: str, status: str) -> None:
    if content_type not in STATES:
        raise ValidationError(f"Unknown content type: {content_type}")
    if status not in STATES[content_type]:
        raise ValidationError(f"Status {status!r} is not valid for {content_type}")


def is_allowed(content_type: str, current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(content_type, {}).get(current, [])


def ensure_transition(content_type: str, current: str, target: str) -> None:
    ensure_known_status(content_type, current)
    ensure_known_status(content_type, target)

    if not is_allowed(content_type, current, target):
        raise InvalidTransitionError(
            f"Invalid transition for {content_type}: {current} -> {target}",
            current=current,
            target=target,
        )


def is_managed(content_type: str, current: str, target: str) -> bool:
    return (current, target) in MANAGED_TRANSITIONS.get(content_type, set())


def plan_transition(content_type: str, current: str, target: str, entity_id: uuid.UUID) -> list[Effect]:
    """Validate a caller-requested transition and list its side effects."""
    ensure_transition(content_type, current, target)
    if is_managed(content_type, current, target):
        raise InvalidTransitionError(
            f"{content_type} {current} -> {target} is performed by the pipeline engine, not by a status change",
            current=current,
            target=target,
        )

    effects: list[Effect] = []
    if content_type == INSIGHT and (current, target) == ("needs_review", "approved"):
        effects.append(EnqueueJob(GENERATE_POSTS, entity_id))
    elif content_type == TRANSCRIPT and (current, target) == ("raw", "cleaning"):
        effects.append(EnqueueJob(CLEAN_TRANSCRIPT, entity_id))
    elif content_type == TRANSCRIPT and (current, target) == ("cleaned", "processing_insights"):
        effects.append(EnqueueJob(EXTRACT_INSIGHTS, entity_id))
    elif content_type == POST and current == "scheduled" and target in ("approved", "needs_review"):
        effects.append(ReleaseSlot(entity_id))
    elif content_type == SCHEDULED_POST and target == "cancelled":
        effects.append(ReleaseParentPost(entity_id))
    return effects
