"""Lead queue, ingestion and lifecycle API endpoints."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from ...models.evaluation import (
    EvaluationHistoryPage,
    EvaluationUpdate,
    EvaluationUpdateResult,
)
from ...models.ingest import IngestLeadRequest, IngestResult
from ...models.lead import EvaluationTier, Lead, LeadStatus, QueuePage, QueueType
from ...services.lead_service import LeadService

router = APIRouter()
logger = logging.getLogger(__name__)


def get_service(request: Request) -> LeadService:
    return request.app.state.lead_service


class VersionedRequest(BaseModel):
    """Carries the version the client read, for optimistic concurrency."""
    expected_version: Optional[int] = Field(default=None, ge=1)


class EvaluationUpdateRequest(EvaluationUpdate, VersionedRequest):
    """Request to override ARV, rehab or rent estimates."""
    pass


class FollowUpRequest(VersionedRequest):
    follow_up_date: datetime
    reason: Optional[str] = None


class StatusRequest(VersionedRequest):
    status: LeadStatus


class NotesRequest(VersionedRequest):
    notes: Optional[str] = None


class EvaluationRunResponse(BaseModel):
    lead_id: str
    tier: EvaluationTier
    state: str


@router.get("/queue", response_model=QueuePage)
async def get_queue(
    type: QueueType = Query(QueueType.ALL, description="Queue to list"),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    search: Optional[str] = Query(None, description="Filter by address, city or contact"),
    service: LeadService = Depends(get_service),
):
    """Get one page of a lead queue with counts for every queue."""
    return service.get_queue(type, page, page_size, search)


@router.get("/unread-counts", response_model=dict[str, int])
async def get_unread_counts(request: Request):
    """Latest unread-message counts per lead (advisory)."""
    poller = request.app.state.unread_poller
    if poller is None:
        raise HTTPException(status_code=503, detail="Unread polling is not configured")
    return poller.counts


@router.post("/ingest", response_model=IngestResult)
async def ingest_lead(
    request: IngestLeadRequest,
    service: LeadService = Depends(get_service),
):
    """Create a lead, or consolidate it into an existing one with the same address."""
    return await service.ingest_lead(request)


@router.get("/{lead_id}", response_model=Lead)
async def get_lead(lead_id: str, service: LeadService = Depends(get_service)):
    """Get a single lead."""
    return service.get_lead(lead_id)


@router.delete("/{lead_id}", status_code=204)
async def delete_lead(lead_id: str, service: LeadService = Depends(get_service)):
    """Permanently delete a lead. This cannot be undone."""
    service.delete_lead_permanently(lead_id)
    return Response(status_code=204)


@router.patch("/{lead_id}/evaluation", response_model=EvaluationUpdateResult)
async def update_evaluation(
    lead_id: str,
    request: EvaluationUpdateRequest,
    service: LeadService = Depends(get_service),
):
    """Override estimates; MAO and spread are recomputed server-side."""
    update = EvaluationUpdate(**request.model_dump(exclude={"expected_version"}))
    return service.update_evaluation(lead_id, update, request.expected_version)


@router.post("/{lead_id}/follow-up", response_model=Lead)
async def schedule_follow_up(
    lead_id: str,
    request: FollowUpRequest,
    service: LeadService = Depends(get_service),
):
    return service.schedule_follow_up(
        lead_id, request.follow_up_date, request.reason, request.expected_version
    )


@router.delete("/{lead_id}/follow-up", response_model=Lead)
async def cancel_follow_up(lead_id: str, service: LeadService = Depends(get_service)):
    return service.cancel_follow_up(lead_id)


@router.patch("/{lead_id}/status", response_model=Lead)
async def update_status(
    lead_id: str,
    request: StatusRequest,
    service: LeadService = Depends(get_service),
):
    return service.update_status(lead_id, request.status, request.expected_version)


@router.patch("/{lead_id}/notes", response_model=Lead)
async def update_notes(
    lead_id: str,
    request: NotesRequest,
    service: LeadService = Depends(get_service),
):
    return service.update_notes(lead_id, request.notes, request.expected_version)


@router.post("/{lead_id}/archive", response_model=Lead)
async def archive_lead(lead_id: str, service: LeadService = Depends(get_service)):
    return service.archive_lead(lead_id)


@router.post("/{lead_id}/unarchive", response_model=Lead)
async def unarchive_lead(lead_id: str, service: LeadService = Depends(get_service)):
    return service.unarchive_lead(lead_id)


@router.get("/{lead_id}/evaluations", response_model=EvaluationHistoryPage)
async def get_evaluation_history(
    lead_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: LeadService = Depends(get_service),
):
    """Past evaluation runs for a lead, newest first."""
    return service.get_evaluation_history(lead_id, limit, offset)


@router.post("/{lead_id}/evaluations", response_model=EvaluationRunResponse, status_code=202)
async def rerun_evaluation(
    lead_id: str,
    tier: EvaluationTier = Query(EvaluationTier.QUICK),
    service: LeadService = Depends(get_service),
):
    """Start a background re-evaluation; poll its status endpoint for progress."""
    service.rerun_evaluation(lead_id, tier)
    return EvaluationRunResponse(
        lead_id=lead_id,
        tier=tier,
        state=service.evaluation_status(lead_id, tier)["state"],
    )


@router.get("/{lead_id}/evaluations/{tier}/status")
async def evaluation_status(
    lead_id: str,
    tier: EvaluationTier,
    service: LeadService = Depends(get_service),
):
    return service.evaluation_status(lead_id, tier)


@router.delete("/{lead_id}/evaluations/{tier}")
async def cancel_evaluation(
    lead_id: str,
    tier: EvaluationTier,
    service: LeadService = Depends(get_service),
):
    """Cancel a running evaluation for one tier."""
    return {"cancelled": service.cancel_evaluation(lead_id, tier)}
