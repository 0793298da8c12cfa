"""Domain suggestion review endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from concierge.api.dependencies import get_suggestion_engine
from concierge.config import API_LIST_LIMIT_DEFAULT, API_LIST_LIMIT_MAX
from concierge.domains import DomainSuggestionEngine, SuggestedDomain

router = APIRouter(prefix="/api/domains", tags=["domains"])


class SuggestedDomainResponse(BaseModel):
    id: str
    domain: str
    pack_id: str
    email_count: int
    matched_keywords: list[str]
    sample_subjects: list[str]
    confidence: float
    first_seen_at: str
    last_seen_at: str
    status: str
    rejection_reason: str | None
    permanent: bool
    decided_at: str | None

    @classmethod
    def from_suggestion(cls, s: SuggestedDomain) -> SuggestedDomainResponse:
        return cls(
            id=s.id,
            domain=s.domain,
            pack_id=s.pack_id,
            email_count=s.email_count,
            matched_keywords=s.matched_keywords,
            sample_subjects=s.sample_subjects,
            confidence=s.confidence,
            first_seen_at=s.first_seen_at.isoformat(),
            last_seen_at=s.last_seen_at.isoformat(),
            status=s.status.value,
            rejection_reason=s.rejection_reason,
            permanent=s.permanent,
            decided_at=s.decided_at.isoformat() if s.decided_at else None,
        )


class RejectDomainRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
    permanent: bool = False


@router.get("", response_model=list[SuggestedDomainResponse])
def list_domains(
    status: str = Query("pending", description="pending | approved | rejected"),
    pack_id: str | None = Query(None),
    limit: int = Query(API_LIST_LIMIT_DEFAULT, ge=1, le=API_LIST_LIMIT_MAX),
    engine: DomainSuggestionEngine = Depends(get_suggestion_engine),
) -> list[SuggestedDomainResponse]:
    suggestions = engine.list_by_status(status, pack_id=pack_id, limit=limit)
    return [SuggestedDomainResponse.from_suggestion(s) for s in suggestions]


@router.post("/{suggestion_id}/approve", response_model=SuggestedDomainResponse)
def approve_domain(
    suggestion_id: str,
    engine: DomainSuggestionEngine = Depends(get_suggestion_engine),
) -> SuggestedDomainResponse:
    return SuggestedDomainResponse.from_suggestion(engine.approve(suggestion_id))


@router.post("/{suggestion_id}/reject", response_model=SuggestedDomainResponse)
def reject_domain(
    suggestion_id: str,
    request: RejectDomainRequest | None = None,
    engine: DomainSuggestionEngine = Depends(get_suggestion_engine),
) -> SuggestedDomainResponse:
    request = request or RejectDomainRequest()
    suggestion = engine.reject(suggestion_id, reason=request.reason, permanent=request.permanent)
    return SuggestedDomainResponse.from_suggestion(suggestion)
