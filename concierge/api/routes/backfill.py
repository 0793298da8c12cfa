"""Backfill endpoint. The safety gate runs before any fetch."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import Field

from concierge.api.dependencies import get_backfill_runner, get_pack_registry
from concierge.backfill import BackfillOptions, BackfillResult, BackfillRunner
from concierge.discovery.packs import PackRegistry

router = APIRouter(prefix="/api", tags=["backfill"])


class BackfillRequest(BackfillOptions):
    pack_id: str = Field(min_length=1)


@router.post("/backfill", response_model=BackfillResult)
def run_backfill(
    request: BackfillRequest,
    runner: BackfillRunner = Depends(get_backfill_runner),
    registry: PackRegistry = Depends(get_pack_registry),
) -> BackfillResult:
    pack = registry.get(request.pack_id)
    options = BackfillOptions.model_validate(request.model_dump(exclude={"pack_id"}))
    return runner.run(options, pack)
