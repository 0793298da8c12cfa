"""
Approval queue - human review of discovered items.
"""

from concierge.approvals.models import DismissalRecord, DispositionState, PendingApprovalItem
from concierge.approvals.repository import DismissalRepository, PendingApprovalRepository
from concierge.approvals.service import ApprovalQueue, QueueView

__all__ = [
    "ApprovalQueue",
    "DismissalRecord",
    "DismissalRepository",
    "DispositionState",
    "PendingApprovalItem",
    "PendingApprovalRepository",
    "QueueView",
]
