"""Inventory API endpoints."""

import hmac
from typing import Any, NoReturn, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from src.api.schemas import (
    ActorCreateRequest,
    ActorInfo,
    ContainerReportInfo,
    CurrencyRequest,
    DiagnosticsResponse,
    EncumbranceInfo,
    ErrorResponse,
    ItemCreateRequest,
    ItemInfo,
    ItemUpdateRequest,
    NoticeInfo,
    ReductionRequest,
    ReductionResponse,
    TraceInfo,
    WeightOut,
)
from src.config import settings
from src.core.container.models import Actor, Encumbrance, Item, MutationContext
from src.core.container.report import ContainerReport
from src.core.logging import diagnostic_buffer, get_logger
from src.services.inventory_service import (
    ActorNotFoundError,
    CapacityExceededError,
    InventoryService,
    ItemNotFoundError,
    PermissionDeniedError,
)
from src.services.relay.base import NoticeRelay

logger = get_logger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])


def get_inventory_service(request: Request) -> InventoryService:
    """InventoryService 인스턴스 반환 (의존성 주입)"""
    service: InventoryService = request.app.state.inventory_service
    return service


def get_notice_relay(request: Request) -> NoticeRelay:
    """NoticeRelay 인스턴스 반환 (의존성 주입)"""
    relay: NoticeRelay = request.app.state.notice_relay
    return relay


def get_mutation_context(
    x_gm_key: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
) -> MutationContext:
    """요청자 컨텍스트 (의존성 주입)

    GM 권한은 요청 본문이 아니라 X-GM-Key 헤더가 GM_API_KEY 와 일치할 때만 주어진다.
    GM_API_KEY 가 비어 있으면 아무도 GM 이 아니다.
    """
    is_gm = bool(
        settings.GM_API_KEY
        and x_gm_key
        and hmac.compare_digest(x_gm_key.encode(), settings.GM_API_KEY.encode())
    )
    return MutationContext(is_gm=is_gm, user_id=x_user_id)


NOT_FOUND = {404: {"model": ErrorResponse}}
WRITE_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# ── 변환 ─────────────────────────────────────────────────────


def _item_info(item: Item) -> ItemInfo:
    capacity = None
    if item.capacity is not None:
        capacity = WeightOut(value=item.capacity.value, units=item.capacity.unit)
    return ItemInfo(
        item_id=item.item_id,
        name=item.name,
        kind=item.kind.value,
        weight=WeightOut(value=item.weight.value, units=item.weight.unit),
        quantity=item.quantity,
        container_id=item.container_id,
        capacity=capacity,
        reduction_pct=item.reduction_pct,
        reduces_currency=item.reduces_currency,
    )


def _encumbrance_info(enc: Encumbrance, unit: str) -> EncumbranceInfo:
    return EncumbranceInfo(
        value=enc.value,
        max=enc.max,
        pct=enc.pct,
        unit=unit,
        encumbered=enc.encumbered,
        heavily_encumbered=enc.heavily_encumbered,
        exceeded=enc.exceeded,
    )


def _actor_info(actor: Actor, enc: Encumbrance, unit: str) -> ActorInfo:
    return ActorInfo(
        actor_id=actor.actor_id,
        name=actor.name,
        currency=actor.currency,
        items=[_item_info(i) for i in actor.items],
        encumbrance=_encumbrance_info(enc, unit),
    )


def _report_info(report: ContainerReport) -> ContainerReportInfo:
    return ContainerReportInfo(
        container_id=report.container_id,
        name=report.name,
        reduction_pct=report.reduction_pct,
        tier=report.tier,
        reduces_currency=report.reduces_currency,
        unit=report.unit,
        load=report.load,
        capacity=report.capacity,
        pct=report.pct,
        load_lbs=report.load_lbs,
        currency_lbs=report.currency_lbs,
        capacity_lbs=report.capacity_lbs,
        trace=[
            TraceInfo(
                kind=t.kind,
                item_id=t.item_id,
                name=t.name,
                weight=t.weight,
                reduction=t.reduction,
                added=t.added,
            )
            for t in report.trace
        ],
    )


def _raise_http(exc: Exception) -> NoReturn:
    """서비스 예외 → HTTPException"""
    if isinstance(exc, (ActorNotFoundError, ItemNotFoundError)):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PermissionDeniedError):
        raise HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, CapacityExceededError):
        raise HTTPException(
            status_code=409,
            detail={
                "message": exc.message,
                "container_id": exc.result.container_id,
                "kind": exc.result.kind.value,
                "current": exc.result.current,
                "delta": exc.result.delta,
                "capacity": exc.result.capacity,
            },
        )
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=400, detail=str(exc))
    raise exc


# ── actors ───────────────────────────────────────────────────


@router.post(
    "/actors",
    response_model=ActorInfo,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
)
def create_actor(
    request: ActorCreateRequest,
    service: InventoryService = Depends(get_inventory_service),
) -> ActorInfo:
    """액터 생성"""
    if request.actor_id and service.get_actor(request.actor_id) is not None:
        raise HTTPException(status_code=400, detail=f"Actor already exists: {request.actor_id}")
    actor = service.create_actor(
        actor_id=request.actor_id,
        name=request.name,
        currency=request.currency,
        encumbrance_max=request.encumbrance_max,
        encumbered_at=request.encumbered_at,
        heavily_encumbered_at=request.heavily_encumbered_at,
    )
    enc = service.get_encumbrance(actor.actor_id)
    return _actor_info(actor, enc, service.unit)


@router.get("/actors/{actor_id}", response_model=ActorInfo, responses=NOT_FOUND)
def get_actor(
    actor_id: str,
    service: InventoryService = Depends(get_inventory_service),
) -> ActorInfo:
    """액터 + 아이템 + 소지 무게"""
    actor = service.get_actor(actor_id)
    if actor is None:
        raise HTTPException(status_code=404, detail=f"Actor not found: {actor_id}")
    enc = service.get_encumbrance(actor_id)
    return _actor_info(actor, enc, service.unit)


@router.put("/actors/{actor_id}/currency", response_model=ActorInfo, responses=NOT_FOUND)
def set_currency(
    actor_id: str,
    request: CurrencyRequest,
    service: InventoryService = Depends(get_inventory_service),
) -> ActorInfo:
    """화폐 원장 교체"""
    try:
        actor = service.set_currency(actor_id, request.currency)
    except ValueError as e:
        _raise_http(e)
    enc = service.get_encumbrance(actor_id)
    return _actor_info(actor, enc, service.unit)


@router.get(
    "/actors/{actor_id}/encumbrance",
    response_model=EncumbranceInfo,
    responses=NOT_FOUND,
)
def get_encumbrance(
    actor_id: str,
    service: InventoryService = Depends(get_inventory_service),
) -> EncumbranceInfo:
    """조정 소지 무게 (저장 상태에서 새로 계산)"""
    try:
        enc = service.get_encumbrance(actor_id)
    except ValueError as e:
        _raise_http(e)
    return _encumbrance_info(enc, service.unit)


@router.get(
    "/actors/{actor_id}/diagnostics",
    response_model=DiagnosticsResponse,
    responses=NOT_FOUND,
)
def get_diagnostics(
    actor_id: str,
    service: InventoryService = Depends(get_inventory_service),
) -> DiagnosticsResponse:
    """컨테이너 상태 덤프 + 최근 로그"""
    try:
        reports = service.dump_actor(actor_id)
    except ValueError as e:
        _raise_http(e)
    return DiagnosticsResponse(
        actor_id=actor_id,
        containers=[_report_info(r) for r in reports],
        logs=diagnostic_buffer.entries(),
    )


# ── items ────────────────────────────────────────────────────


@router.post(
    "/actors/{actor_id}/items",
    response_model=ItemInfo,
    status_code=201,
    responses=WRITE_ERRORS,
)
def create_item(
    actor_id: str,
    request: ItemCreateRequest,
    service: InventoryService = Depends(get_inventory_service),
) -> ItemInfo:
    """
    아이템 생성

    대상 컨테이너의 용량을 먼저 검사합니다. BLOCK 모드에서 초과하면 409.
    """
    try:
        item = service.create_item(
            actor_id,
            name=request.name,
            kind=request.kind,
            weight=request.weight.model_dump(),
            quantity=request.quantity,
            container_id=request.container_id,
            capacity=request.capacity.model_dump() if request.capacity else None,
            reduces_currency=request.reduces_currency,
            item_id=request.item_id,
        )
    except (ValueError, CapacityExceededError) as e:
        _raise_http(e)
    return _item_info(item)


@router.patch(
    "/actors/{actor_id}/items/{item_id}",
    response_model=ItemInfo,
    responses=WRITE_ERRORS,
)
def update_item(
    actor_id: str,
    item_id: str,
    request: ItemUpdateRequest,
    service: InventoryService = Depends(get_inventory_service),
) -> ItemInfo:
    """아이템 갱신 (수량/이동/무게 변경은 용량 검사)"""
    changes: dict[str, Any] = request.model_dump(exclude_unset=True)
    if "container_id" in changes:
        changes["container_id"] = changes["container_id"] or None
    for key in ("quantity", "name", "reduces_currency", "weight"):
        if key in changes and changes[key] is None:
            del changes[key]

    try:
        item = service.update_item(actor_id, item_id, changes)
    except (ValueError, CapacityExceededError) as e:
        _raise_http(e)
    return _item_info(item)


@router.delete("/actors/{actor_id}/items/{item_id}", responses=NOT_FOUND)
def delete_item(
    actor_id: str,
    item_id: str,
    service: InventoryService = Depends(get_inventory_service),
) -> dict[str, Any]:
    """아이템 삭제. 내용물은 최상위로 남는다."""
    if not service.delete_item(actor_id, item_id):
        raise HTTPException(status_code=404, detail=f"Item not found: {actor_id}/{item_id}")
    return {"success": True, "item_id": item_id}


# ── containers ───────────────────────────────────────────────


@router.get(
    "/actors/{actor_id}/containers/{container_id}",
    response_model=ContainerReportInfo,
    responses=NOT_FOUND,
)
def get_container(
    actor_id: str,
    container_id: str,
    service: InventoryService = Depends(get_inventory_service),
) -> ContainerReportInfo:
    """컨테이너 load/용량/감소율"""
    try:
        report = service.get_container_report(actor_id, container_id)
    except ValueError as e:
        _raise_http(e)
    return _report_info(report)


@router.put(
    "/actors/{actor_id}/containers/{container_id}/reduction",
    response_model=ReductionResponse,
    responses={403: {"model": ErrorResponse}, **NOT_FOUND},
)
def set_reduction(
    actor_id: str,
    container_id: str,
    request: ReductionRequest,
    service: InventoryService = Depends(get_inventory_service),
    context: MutationContext = Depends(get_mutation_context),
) -> ReductionResponse:
    """컨테이너 감소율 설정 (GM_ONLY_CONFIG이면 X-GM-Key 헤더를 가진 GM만)"""
    try:
        pct = service.set_reduction_percent(
            actor_id, container_id, request.reduction_pct, context=context
        )
        report = service.get_container_report(actor_id, container_id)
    except (ValueError, PermissionDeniedError) as e:
        _raise_http(e)
    return ReductionResponse(success=True, reduction_pct=pct, container=_report_info(report))


# ── notices ──────────────────────────────────────────────────


@router.get("/notices", response_model=list[NoticeInfo])
def list_notices(relay: NoticeRelay = Depends(get_notice_relay)) -> list[NoticeInfo]:
    """최근 알림 (용량 초과, 감소율 설정)"""
    return [
        NoticeInfo(kind=n.kind, message=n.message, data=n.data) for n in relay.recent()
    ]
