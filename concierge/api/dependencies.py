"""
Service providers for route handlers.

Routes take their services through FastAPI Depends() on these getters, so
tests can swap any of them with app.dependency_overrides. Collaborators that
need provider credentials (message source, calendar sink) are injected at
startup with the set_* functions; until then the routes that need them
answer 503.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from concierge.approvals.service import ApprovalQueue
from concierge.backfill.service import BackfillRunner
from concierge.discovery.packs import PackRegistry
from concierge.discovery.run_repository import DiscoveryRunRepository
from concierge.domains.suggestion_engine import DomainSuggestionEngine

_approval_queue: ApprovalQueue | None = None
_suggestion_engine: DomainSuggestionEngine | None = None
_pack_registry: PackRegistry | None = None
_backfill_runner: BackfillRunner | None = None


def get_approval_queue() -> ApprovalQueue:
    global _approval_queue
    if _approval_queue is None:
        _approval_queue = ApprovalQueue()
    return _approval_queue


def set_approval_queue(queue: ApprovalQueue | None) -> None:
    global _approval_queue
    _approval_queue = queue


def get_suggestion_engine() -> DomainSuggestionEngine:
    global _suggestion_engine
    if _suggestion_engine is None:
        _suggestion_engine = DomainSuggestionEngine()
    return _suggestion_engine


def get_run_repository() -> type[DiscoveryRunRepository]:
    return DiscoveryRunRepository


def get_pack_registry() -> PackRegistry:
    global _pack_registry
    if _pack_registry is None:
        _pack_registry = PackRegistry.from_yaml()
    return _pack_registry


def set_pack_registry(registry: PackRegistry | None) -> None:
    global _pack_registry
    _pack_registry = registry


def get_backfill_runner() -> BackfillRunner:
    if _backfill_runner is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Backfill is not configured: no message source connected",
        )
    return _backfill_runner


def set_backfill_runner(runner: BackfillRunner | None) -> None:
    global _backfill_runner
    _backfill_runner = runner
