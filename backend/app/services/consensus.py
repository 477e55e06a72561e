"""
Approver consensus evaluation.

Pure and role-set agnostic: the permit workflow passes three role votes,
the extension workflow passes two.
"""

import enum
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from app.models.permit import ApprovalStatus


class ConsensusOutcome(str, enum.Enum):
    """Aggregate outcome of one approval round."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


@dataclass(frozen=True)
class RoleVote:
    """Whether a role is assigned for this round, and its decision so far."""
    assigned: bool
    status: Optional[ApprovalStatus] = None


VoteLike = Union[RoleVote, Tuple[bool, Optional[ApprovalStatus]]]


def evaluate_consensus(votes: Iterable[VoteLike]) -> ConsensusOutcome:
    """
    Reduce per-role decisions to one outcome.

    Any assigned rejection wins. Otherwise the round is approved once every
    assigned role approved; unassigned roles are ignored, so a round with no
    assigned roles is approved immediately. Anything else is still pending.
    """
    all_approved = True
    for vote in votes:
        assigned, status = (vote.assigned, vote.status) if isinstance(vote, RoleVote) else vote
        if not assigned:
            continue
        if status == ApprovalStatus.REJECTED:
            return ConsensusOutcome.REJECTED
        if status != ApprovalStatus.APPROVED:
            all_approved = False
    return ConsensusOutcome.APPROVED if all_approved else ConsensusOutcome.PENDING
