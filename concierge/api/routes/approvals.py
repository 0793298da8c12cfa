"""
Approval queue endpoints.

The item id is the capability token carried in approve/reject links, so
every disposition route is keyed by it. Domain errors are mapped to HTTP
status codes by the app-level exception handlers (400/404/409).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from concierge.api.dependencies import get_approval_queue
from concierge.approvals import ApprovalQueue, DismissalRecord, PendingApprovalItem
from concierge.config import API_LIST_LIMIT_DEFAULT, API_LIST_LIMIT_MAX
from concierge.observability.logging import get_logger

router = APIRouter(prefix="/api", tags=["approvals"])
logger = get_logger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================


class ApprovalItemResponse(BaseModel):
    """API response for one approval item."""

    id: str
    message_id: str
    pack_id: str
    fingerprint: str
    relevance_score: float
    from_email: str
    from_name: str
    subject: str
    snippet: str
    person: str
    primary_category: str
    item_type: str
    obligation_date: str | None
    state: str
    discovered_at: str
    disposed_at: str | None
    disposed_by: str | None
    needs_manual_completion: bool
    event: dict[str, Any] | None
    escalated: bool
    days_pending: int

    @classmethod
    def from_item(cls, item: PendingApprovalItem, queue: ApprovalQueue) -> ApprovalItemResponse:
        view = queue.view(item)
        return cls(
            id=item.id,
            message_id=item.message_id,
            pack_id=item.pack_id,
            fingerprint=item.fingerprint,
            relevance_score=item.relevance_score,
            from_email=item.from_email,
            from_name=item.from_name,
            subject=item.subject,
            snippet=item.snippet,
            person=item.person,
            primary_category=item.primary_category.value,
            item_type=item.item_type.value,
            obligation_date=item.obligation_date.isoformat() if item.obligation_date else None,
            state=item.state.value,
            discovered_at=item.discovered_at.isoformat(),
            disposed_at=item.disposed_at.isoformat() if item.disposed_at else None,
            disposed_by=item.disposed_by,
            needs_manual_completion=item.needs_manual_completion,
            event=item.event.to_json_dict() if item.event else None,
            escalated=view.escalated,
            days_pending=view.days_pending,
        )


class ApprovalListResponse(BaseModel):
    items: list[ApprovalItemResponse]
    total: int
    escalated_count: int


class DismissalResponse(BaseModel):
    id: str
    item_type: str
    item_id: str
    original_subject: str
    original_from: str
    original_date: str | None
    person: str
    pack_id: str
    reason: str
    dismissed_by: str | None
    dismissed_at: str

    @classmethod
    def from_record(cls, record: DismissalRecord) -> DismissalResponse:
        return cls(
            id=record.id,
            item_type=record.item_type.value,
            item_id=record.item_id,
            original_subject=record.original_subject,
            original_from=record.original_from,
            original_date=record.original_date.isoformat() if record.original_date else None,
            person=record.person,
            pack_id=record.pack_id,
            reason=record.reason,
            dismissed_by=record.dismissed_by,
            dismissed_at=record.dismissed_at.isoformat(),
        )


class DispositionRequest(BaseModel):
    actor: str = Field(default="user", max_length=100)


class DismissRequest(BaseModel):
    # Optional here so a missing reason reaches the queue and maps to 400
    reason: str | None = Field(default=None, max_length=500)
    actor: str = Field(default="user", max_length=100)


class ReclassifyRequest(BaseModel):
    category: str


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/approvals", response_model=ApprovalListResponse)
def list_approvals(
    pack_id: str | None = Query(None),
    person: str | None = Query(None),
    category: str | None = Query(None),
    limit: int = Query(API_LIST_LIMIT_DEFAULT, ge=1, le=API_LIST_LIMIT_MAX),
    offset: int = Query(0, ge=0),
    queue: ApprovalQueue = Depends(get_approval_queue),
) -> ApprovalListResponse:
    """List pending items, oldest first."""
    items = queue.list_pending(
        pack_id=pack_id, person=person, category=category, limit=limit, offset=offset
    )
    responses = [ApprovalItemResponse.from_item(item, queue) for item in items]
    return ApprovalListResponse(
        items=responses,
        total=len(responses),
        escalated_count=sum(1 for r in responses if r.escalated),
    )


@router.get("/approvals/{token}", response_model=ApprovalItemResponse)
def get_approval(token: str, queue: ApprovalQueue = Depends(get_approval_queue)) -> ApprovalItemResponse:
    return ApprovalItemResponse.from_item(queue.get(token), queue)


@router.post("/approvals/{token}/approve", response_model=ApprovalItemResponse)
def approve(
    token: str,
    request: DispositionRequest | None = None,
    queue: ApprovalQueue = Depends(get_approval_queue),
) -> ApprovalItemResponse:
    actor = request.actor if request else "user"
    return ApprovalItemResponse.from_item(queue.approve(token, actor=actor), queue)


@router.post("/approvals/{token}/reject", response_model=ApprovalItemResponse)
def reject(
    token: str,
    request: DispositionRequest | None = None,
    queue: ApprovalQueue = Depends(get_approval_queue),
) -> ApprovalItemResponse:
    actor = request.actor if request else "user"
    return ApprovalItemResponse.from_item(queue.reject(token, actor=actor), queue)


@router.post("/approvals/{token}/dismiss", response_model=DismissalResponse)
def dismiss(
    token: str,
    request: DismissRequest,
    queue: ApprovalQueue = Depends(get_approval_queue),
) -> DismissalResponse:
    record = queue.dismiss(token, request.reason, actor=request.actor)
    return DismissalResponse.from_record(record)


@router.post("/approvals/{token}/reclassify", response_model=ApprovalItemResponse)
def reclassify(
    token: str,
    request: ReclassifyRequest,
    queue: ApprovalQueue = Depends(get_approval_queue),
) -> ApprovalItemResponse:
    return ApprovalItemResponse.from_item(queue.reclassify(token, request.category), queue)


@router.get("/dismissed", response_model=list[DismissalResponse])
def list_dismissed(
    since: datetime | None = Query(None, description="ISO-8601; defaults to the recency window"),
    pack_id: str | None = Query(None),
    queue: ApprovalQueue = Depends(get_approval_queue),
) -> list[DismissalResponse]:
    if since is None:
        records = queue.list_recently_dismissed()
        if pack_id:
            records = [r for r in records if r.pack_id == pack_id]
    else:
        records = queue.list_dismissed_since(since, pack_id=pack_id)
    return [DismissalResponse.from_record(r) for r in records]
