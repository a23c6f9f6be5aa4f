"""
Single-search submission and job status endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_dispatcher
from app.domain.errors import ScrapeInputError
from app.schemas.scrape_jobs import (
    SearchJobAcceptedResponse,
    SearchJobListResponse,
    SearchJobRequest,
    SearchJobStatusResponse,
)
from app.services.search_dispatcher_service import SearchDispatcherService
from db.models.scrape_job import ScrapeJobStatus

router = APIRouter(tags=["scrape-jobs"])


@router.post(
    "/scrape",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SearchJobAcceptedResponse,
)
async def submit_search(
    payload: SearchJobRequest,
    dispatcher: SearchDispatcherService = Depends(get_dispatcher),
) -> SearchJobAcceptedResponse:
    try:
        job_id = await dispatcher.submit(payload.search_term, max_results=payload.max_results)
    except ScrapeInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return SearchJobAcceptedResponse(
        job_id=job_id,
        status=ScrapeJobStatus.PENDING,
        max_results=payload.max_results or dispatcher.default_max_results,
    )


@router.get("/scrape/jobs/{job_id}", response_model=SearchJobStatusResponse)
async def get_search_job(
    job_id: UUID,
    dispatcher: SearchDispatcherService = Depends(get_dispatcher),
) -> SearchJobStatusResponse:
    job = await dispatcher.get_status(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Scrape job not found: {job_id}",
        )
    return SearchJobStatusResponse.from_record(job)


@router.get("/scrape/jobs", response_model=SearchJobListResponse)
async def list_search_jobs(
    limit: int | None = Query(default=None, ge=1, le=1000, description="Max jobs returned, newest first"),
    dispatcher: SearchDispatcherService = Depends(get_dispatcher),
) -> SearchJobListResponse:
    jobs = await dispatcher.list_all(limit=limit)
    return SearchJobListResponse(jobs=[SearchJobStatusResponse.from_record(job) for job in jobs])
