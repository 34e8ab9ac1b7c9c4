"""Analytics endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from assessment.dependencies.backend import get_analytics_service
from assessment.errors import ApiError
from assessment.models import AnalyticsFilters
from assessment.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/api", tags=["analytics"])


def _http_error(exc: ApiError) -> HTTPException:
    """Map a backend failure onto the gateway response."""
    code = exc.status if exc.status >= 400 else status.HTTP_502_BAD_GATEWAY
    return HTTPException(status_code=code, detail=exc.message)


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/analytics/overview")
async def analytics_overview(
    service: Annotated[AnalyticsService, Depends(get_analytics_service)],
    candidate: str | None = Query(None),
    candidate_id: int | None = Query(None, alias="candidateId", ge=1),
    topic: str | None = Query(None),
    difficulty: str | None = Query(None),
) -> dict[str, object]:
    """Dashboard analytics aggregated from completions and attempt items.

    Args:
        candidate: Restrict results and items to one candidate name
        candidate_id: Backend candidate id (forwarded to backend queries)
        topic: Restrict items to a topic; also selects the question count
        difficulty: Restrict items to a difficulty label or level

    Returns:
        KPIs, timeline, difficulty/topic breakdowns and time histogram
    """
    filters = AnalyticsFilters(
        candidate=(candidate or "").strip() or None,
        candidate_id=candidate_id,
        topic=(topic or "").strip() or None,
        difficulty=(difficulty or "").strip() or None,
    )
    try:
        details = await service.get_details(filters)
    except ApiError as exc:
        raise _http_error(exc) from exc
    return details.model_dump(mode="json", by_alias=True)


@router.get("/analytics/candidates")
async def analytics_candidates(
    service: Annotated[AnalyticsService, Depends(get_analytics_service)],
) -> dict[str, object]:
    try:
        candidates = await service.list_candidates()
    except ApiError as exc:
        raise _http_error(exc) from exc
    return {"candidates": candidates}


@router.get("/attempts/{attempt_id}/report")
async def attempt_report(
    service: Annotated[AnalyticsService, Depends(get_analytics_service)],
    attempt_id: int = Path(..., ge=1),
) -> dict[str, object]:
    """Summary of one attempt with running accuracy and per-item breakdowns."""
    try:
        report = await service.get_attempt_report(attempt_id)
    except ApiError as exc:
        raise _http_error(exc) from exc
    return report.model_dump(mode="json", by_alias=True)
