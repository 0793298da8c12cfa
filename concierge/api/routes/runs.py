"""Discovery run audit endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from concierge.api.dependencies import get_run_repository
from concierge.discovery.run_models import DiscoveryRunStats, RejectedSample
from concierge.discovery.run_repository import DiscoveryRunRepository
from concierge.errors import NotFound

router = APIRouter(prefix="/api/runs", tags=["runs"])


class RunResponse(BaseModel):
    id: str
    pack_id: str
    run_at: str
    finished_at: str
    scanned: int
    flagged: int
    discovery_yield: float
    histogram: dict[str, int]
    rejections: dict[str, int]
    sampled_for_review: int

    @classmethod
    def from_stats(cls, stats: DiscoveryRunStats) -> RunResponse:
        return cls(
            id=stats.id,
            pack_id=stats.pack_id,
            run_at=stats.run_at.isoformat(),
            finished_at=stats.finished_at.isoformat(),
            scanned=stats.scanned,
            flagged=stats.flagged,
            discovery_yield=round(stats.discovery_yield, 4),
            histogram={b.value: n for b, n in stats.histogram.items()},
            rejections={r.value: n for r, n in stats.rejections.items()},
            sampled_for_review=stats.sampled_for_review,
        )


class RunDetailResponse(RunResponse):
    samples: list[RejectedSample]


@router.get("", response_model=list[RunResponse])
def list_runs(
    pack_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    repository: type[DiscoveryRunRepository] = Depends(get_run_repository),
) -> list[RunResponse]:
    """Most recent runs first."""
    return [RunResponse.from_stats(s) for s in repository.list_runs(pack_id=pack_id, limit=limit)]


@router.get("/{run_id}", response_model=RunDetailResponse)
def get_run(
    run_id: str,
    repository: type[DiscoveryRunRepository] = Depends(get_run_repository),
) -> RunDetailResponse:
    stats = repository.get(run_id)
    if stats is None:
        raise NotFound("discovery run", run_id)
    return RunDetailResponse(
        **RunResponse.from_stats(stats).model_dump(),
        samples=repository.list_samples(run_id),
    )
