from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from rentflow.core.access import Actor, Role
from rentflow.core.engine import MAX_PAGE_SIZE, ContractLifecycleEngine
from rentflow.core.stores import ContractFilters
from rentflow.core.terms import ContractTerms

from .deps import get_actor, get_engine
from .schemas import (
    ApprovalRequest,
    ContractCreateRequest,
    ContractListResponse,
    ContractResponse,
    ContractUpdateRequest,
    ErrorResponse,
    ForceTerminationRequest,
    Pagination,
    SweepResponse,
    TerminationAnswerRequest,
    TerminationRequest,
)


logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/v1/contracts",
    tags=["contracts"],
    responses={
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
    },
)


@router.get("", response_model=ContractListResponse)
async def list_contracts_endpoint(
    room_id: int | None = None,
    tenant_user_id: int | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    start_from: date | None = None,
    start_to: date | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractListResponse:
    filters = ContractFilters(
        room_id=room_id,
        tenant_user_id=tenant_user_id,
        status=status_filter,
        start_from=start_from,
        start_to=start_to,
        page=page,
        limit=limit,
    )
    result = await engine.list_contracts(filters, actor=actor)
    return ContractListResponse(
        data=[ContractResponse.model_validate(c) for c in result.items],
        pagination=Pagination(total=result.total, page=result.page, limit=result.limit, pages=result.pages),
    )


@router.post("", response_model=ContractResponse, status_code=status.HTTP_201_CREATED)
async def create_contract_endpoint(
    payload: ContractCreateRequest,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    contract = await engine.create_contract(ContractTerms(**payload.model_dump()), actor=actor)
    return ContractResponse.model_validate(contract)


@router.post("/import", response_model=ContractResponse, status_code=status.HTTP_201_CREATED)
async def import_contract_endpoint(
    payload: dict,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    """
    Create a contract from a document-pipeline candidate.

    The candidate is loosely typed (strings for numbers and dates) and goes
    through exactly the same validation as a manually entered contract.
    """
    contract = await engine.create_contract(payload, actor=actor)
    return ContractResponse.model_validate(contract)


@router.post("/sweep", response_model=SweepResponse)
async def sweep_endpoint(
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> SweepResponse:
    if actor.role != Role.OWNER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner may run a sweep")
    transitioned = await engine.sweep_expired()
    return SweepResponse(transitioned=transitioned)


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract_endpoint(
    contract_id: int,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    contract = await engine.get_contract(contract_id, actor=actor)
    return ContractResponse.model_validate(contract)


@router.patch("/{contract_id}", response_model=ContractResponse)
async def update_contract_endpoint(
    contract_id: int,
    payload: ContractUpdateRequest,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    changes = payload.model_dump(exclude_none=True)
    contract = await engine.update_contract(contract_id, changes, actor=actor)
    return ContractResponse.model_validate(contract)


@router.post("/{contract_id}/approval", response_model=ContractResponse)
async def approve_contract_endpoint(
    contract_id: int,
    payload: ApprovalRequest,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    contract = await engine.approve_contract(contract_id, payload.action, reason=payload.reason, actor=actor)
    return ContractResponse.model_validate(contract)


@router.post("/{contract_id}/termination-request", response_model=ContractResponse)
async def request_termination_endpoint(
    contract_id: int,
    payload: TerminationRequest,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    contract = await engine.request_termination(contract_id, payload.reason, actor=actor)
    return ContractResponse.model_validate(contract)


@router.post("/{contract_id}/termination-response", response_model=ContractResponse)
async def handle_termination_request_endpoint(
    contract_id: int,
    payload: TerminationAnswerRequest,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    contract = await engine.handle_termination_request(contract_id, payload.action, actor=actor)
    return ContractResponse.model_validate(contract)


@router.post("/{contract_id}/force-termination", response_model=ContractResponse)
async def force_terminate_endpoint(
    contract_id: int,
    payload: ForceTerminationRequest,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    contract = await engine.force_terminate(contract_id, payload.reason, payload.evidence, actor=actor)
    return ContractResponse.model_validate(contract)


@router.post("/{contract_id}/resolve", response_model=ContractResponse)
async def resolve_pending_transaction_endpoint(
    contract_id: int,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    contract = await engine.resolve_pending_transaction(contract_id, actor=actor)
    return ContractResponse.model_validate(contract)


@router.delete("/{contract_id}", response_model=ContractResponse)
async def delete_contract_endpoint(
    contract_id: int,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    contract = await engine.delete_contract(contract_id, actor=actor)
    return ContractResponse.model_validate(contract)


@router.post("/{contract_id}/restore", response_model=ContractResponse)
async def restore_contract_endpoint(
    contract_id: int,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> ContractResponse:
    contract = await engine.restore_contract(contract_id, actor=actor)
    return ContractResponse.model_validate(contract)


@router.delete("/{contract_id}/permanent", status_code=status.HTTP_204_NO_CONTENT)
async def hard_delete_contract_endpoint(
    contract_id: int,
    actor: Actor = Depends(get_actor),
    engine: ContractLifecycleEngine = Depends(get_engine),
) -> Response:
    await engine.hard_delete_contract(contract_id, actor=actor)
    logger.info("Contract %s permanently deleted by user %s", contract_id, actor.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
