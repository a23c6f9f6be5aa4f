"""
Email enrichment sweep endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_enrichment_service
from app.domain.errors import EnrichmentAlreadyRunningError
from app.schemas.batches import EnrichmentAcceptedResponse, EnrichmentStatusResponse
from app.services.enrichment_service import EnrichmentService

router = APIRouter(tags=["enrichment"])


@router.post(
    "/enrichment",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=EnrichmentAcceptedResponse,
)
async def start_enrichment(
    enrichment: EnrichmentService = Depends(get_enrichment_service),
) -> EnrichmentAcceptedResponse:
    try:
        queued = await enrichment.start_sweep()
    except EnrichmentAlreadyRunningError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return EnrichmentAcceptedResponse(queued=queued)


@router.get("/enrichment/status", response_model=EnrichmentStatusResponse)
async def get_enrichment_status(
    enrichment: EnrichmentService = Depends(get_enrichment_service),
) -> EnrichmentStatusResponse:
    return EnrichmentStatusResponse.from_status(enrichment.status())
