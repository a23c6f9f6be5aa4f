"""
Batch orchestration endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.api.dependencies import get_batch_orchestrator
from app.domain.errors import BatchAlreadyRunningError, ScrapeInputError
from app.schemas.batches import (
    BatchStartRequest,
    BatchStartResponse,
    BatchStatusResponse,
    BatchStopResponse,
)
from app.services.batch_orchestrator_service import BatchOrchestratorService

router = APIRouter(tags=["batches"])


@router.post(
    "/batches",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=BatchStartResponse,
)
async def start_batch(
    payload: BatchStartRequest | None = Body(default=None),
    orchestrator: BatchOrchestratorService = Depends(get_batch_orchestrator),
) -> BatchStartResponse:
    states = payload.states if payload is not None else None
    try:
        result = await orchestrator.start_batch(states)
    except BatchAlreadyRunningError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ScrapeInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return BatchStartResponse(
        batch_id=result.batch_id,
        total_states=result.total_states,
        total_cities=result.total_cities,
        states=result.states,
    )


@router.get("/batches/status", response_model=BatchStatusResponse)
async def get_batch_status(
    orchestrator: BatchOrchestratorService = Depends(get_batch_orchestrator),
) -> BatchStatusResponse:
    return BatchStatusResponse.from_snapshot(orchestrator.get_status())


@router.post("/batches/stop", response_model=BatchStopResponse)
async def stop_batch(
    orchestrator: BatchOrchestratorService = Depends(get_batch_orchestrator),
) -> BatchStopResponse:
    result = await orchestrator.stop()
    return BatchStopResponse(
        stopped=result.stopped,
        completed_tasks=result.completed_tasks,
        remaining_tasks=result.remaining_tasks,
    )
