"""
Lead scoring routes.

Usage:
    1.  POST   /scoring/contacts/{contact_id}       - Recompute and store a contact's score
    2.  GET    /scoring/contacts/{contact_id}       - Last stored score
    3.  GET    /scoring/top                         - Highest combined scores for the tenant
    4.  GET    /scoring/config                      - Effective scoring configuration
    5.  PUT    /scoring/config                      - Replace the tenant's configuration
    6.  POST   /scoring/config/fit-rules            - Append a fit rule
    7.  DELETE /scoring/config/fit-rules/{index}    - Remove a fit rule by position
    8.  PUT    /scoring/config/intent-events/{type} - Add or re-weight an intent event
    9.  DELETE /scoring/config/intent-events/{type} - Remove an intent event
    10. POST   /scoring/rescore                     - Recompute every contact of the tenant

Service errors (NotFoundError, ConfigurationError, StorageError) are
translated to HTTP responses by the handlers registered in app.main.
"""

from fastapi import APIRouter, Depends, Query

from app.features.lead_scoring.pipeline.scoring.service import (
    LeadScoringService,
    lead_scoring_service,
)
from app.infrastructure.observability.logging import get_logger
from app.models.api.scoring_request import (
    FitRuleRequest,
    IntentEventRequest,
    ScoreContactRequest,
    ScoringConfigurationRequest,
)
from app.models.api.scoring_response import (
    RescoreResponse,
    ScoreRecordResponse,
    ScoringConfigurationResponse,
    TopLeadsResponse,
)
from app.routes.dependencies import tenant_dependency

router = APIRouter(prefix="/scoring", tags=["lead-scoring"])
logger = get_logger(__name__)


def get_lead_scoring_service() -> LeadScoringService:
    return lead_scoring_service


@router.post("/contacts/{contact_id}", response_model=ScoreRecordResponse)
async def score_contact(
    contact_id: str,
    request: ScoreContactRequest | None = None,
    tenant_id: str = Depends(tenant_dependency),
    service: LeadScoringService = Depends(get_lead_scoring_service),
):
    as_of = request.as_of if request else None
    record = await service.score_contact_by_id(tenant_id, contact_id, as_of=as_of)
    return ScoreRecordResponse.from_record(record)


@router.get("/contacts/{contact_id}", response_model=ScoreRecordResponse)
async def get_contact_score(
    contact_id: str,
    tenant_id: str = Depends(tenant_dependency),
    service: LeadScoringService = Depends(get_lead_scoring_service),
):
    record = await service.get_score(tenant_id, contact_id)
    return ScoreRecordResponse.from_record(record)


@router.get("/top", response_model=TopLeadsResponse)
async def get_top_leads(
    limit: int = Query(default=LeadScoringService.DEFAULT_TOP_LIMIT, ge=1, le=500),
    tenant_id: str = Depends(tenant_dependency),
    service: LeadScoringService = Depends(get_lead_scoring_service),
):
    records = await service.get_top_leads(tenant_id, limit)
    leads = [ScoreRecordResponse.from_record(record) for record in records]
    return TopLeadsResponse(leads=leads, count=len(leads))


@router.get("/config", response_model=ScoringConfigurationResponse)
async def get_scoring_config(
    tenant_id: str = Depends(tenant_dependency),
    service: LeadScoringService = Depends(get_lead_scoring_service),
):
    config = await service.get_configuration(tenant_id)
    return ScoringConfigurationResponse(config=config.to_storage_dict())


@router.put("/config", response_model=ScoringConfigurationResponse)
async def update_scoring_config(
    request: ScoringConfigurationRequest,
    tenant_id: str = Depends(tenant_dependency),
    service: LeadScoringService = Depends(get_lead_scoring_service),
):
    config = await service.save_configuration(tenant_id, request.config)
    logger.info("Scoring configuration updated", tenant_id=tenant_id)
    return ScoringConfigurationResponse(config=config.to_storage_dict())


@router.post("/config/fit-rules", response_model=ScoringConfigurationResponse)
async def add_fit_rule(
    request: FitRuleRequest,
    tenant_id: str = Depends(tenant_dependency),
    service: LeadScoringService = Depends(get_lead_scoring_service),
):
    config = await service.add_fit_rule(tenant_id, request.model_dump(exclude_none=True))
    return ScoringConfigurationResponse(config=config.to_storage_dict())


@router.delete("/config/fit-rules/{index}", response_model=ScoringConfigurationResponse)
async def remove_fit_rule(
    index: int,
    tenant_id: str = Depends(tenant_dependency),
    service: LeadScoringService = Depends(get_lead_scoring_service),
):
    config = await service.remove_fit_rule(tenant_id, index)
    return ScoringConfigurationResponse(config=config.to_storage_dict())


@router.put(
    "/config/intent-events/{event_type}", response_model=ScoringConfigurationResponse
)
async def set_intent_event(
    event_type: str,
    request: IntentEventRequest,
    tenant_id: str = Depends(tenant_dependency),
    service: LeadScoringService = Depends(get_lead_scoring_service),
):
    config = await service.set_intent_event(tenant_id, event_type, request.points)
    return ScoringConfigurationResponse(config=config.to_storage_dict())


@router.delete(
    "/config/intent-events/{event_type}", response_model=ScoringConfigurationResponse
)
async def remove_intent_event(
    event_type: str,
    tenant_id: str = Depends(tenant_dependency),
    service: LeadScoringService = Depends(get_lead_scoring_service),
):
    config = await service.remove_intent_event(tenant_id, event_type)
    return ScoringConfigurationResponse(config=config.to_storage_dict())


@router.post("/rescore", response_model=RescoreResponse)
async def rescore_tenant(
    tenant_id: str = Depends(tenant_dependency),
    service: LeadScoringService = Depends(get_lead_scoring_service),
):
    metrics = await service.rescore_tenant(tenant_id)
    return RescoreResponse(
        contacts_processed=metrics.contacts_processed,
        contacts_scored=metrics.contacts_scored,
        failures=metrics.failures,
        duration_seconds=round(metrics.total_duration_seconds, 2),
    )
