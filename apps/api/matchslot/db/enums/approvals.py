"""Approval enums."""

from enum import Enum


class ApprovalStatus(str, Enum):
    """Approval request status. Resolved approvals never change again."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApprovalDecision(str, Enum):
    """Decision an approver submits for a token."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"

    @property
    def resulting_status(self) -> ApprovalStatus:
        if self is ApprovalDecision.APPROVE:
            return ApprovalStatus.APPROVED
        return ApprovalStatus.REJECTED
