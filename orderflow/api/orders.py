"""Order management API endpoints"""

from typing import List, Optional
from uuid import UUID
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.database import get_db
from orderflow.models.order import Order
from orderflow.models.tenant import Tenant
from orderflow.notifications.dispatcher import NotificationDispatcher
from orderflow.orders.status_handler import (
    CONFLICT,
    INVALID_TRANSITION,
    NOT_FOUND,
    StatusChangeHandler,
    StatusUpdateOptions,
)
from orderflow.orders.transitions import is_terminal_status, next_normal_status
from orderflow.schemas.order import (
    AllowedTransitionsResponse,
    BulkStatusItemResult,
    BulkStatusUpdateRequest,
    BulkStatusUpdateResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    StatusChangeResponse,
    StatusHistoryResponse,
    StatusUpdateRequest,
)

router = APIRouter()

ERROR_STATUS_CODES = {
    NOT_FOUND: 404,
    INVALID_TRANSITION: 409,
    CONFLICT: 409,
}


async def get_notification_dispatcher(db: AsyncSession = Depends(get_db)) -> NotificationDispatcher:
    return NotificationDispatcher(db)


async def get_status_handler(
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> StatusChangeHandler:
    return StatusChangeHandler(db, dispatcher=dispatcher)


async def get_tenant(tenant_id: UUID, db: AsyncSession = Depends(get_db)) -> Tenant:
    result = await db.execute(
        select(Tenant).where(Tenant.id == tenant_id, Tenant.is_active == True)
    )
    tenant = result.scalar_one_or_none()
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant


async def _get_tenant_order(db: AsyncSession, tenant_id: UUID, order_id: UUID) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id, Order.tenant_id == tenant_id)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        tenant_id=order.tenant_id,
        order_number=order.order_number,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        notification_method=order.notification_method,
        items=order.items_json or [],
        subtotal=order.subtotal,
        tax=order.tax,
        tip=order.tip,
        total=order.total,
        status=order.status,
        cancellation_reason=order.cancellation_reason,
        notification_sent=order.notification_sent,
        pickup_time=order.pickup_time,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        payment_reference=order.payment_reference,
        cash_register_id=order.cash_register_id,
        customer_notes=order.customer_notes,
        staff_notes=order.staff_notes,
        created_at=order.created_at,
        updated_at=order.updated_at,
        confirmed_at=order.confirmed_at,
        started_preparing_at=order.started_preparing_at,
        ready_at=order.ready_at,
        picked_up_at=order.picked_up_at,
        cancelled_at=order.cancelled_at,
        paid_at=order.paid_at,
    )


def _status_options(request: StatusUpdateRequest) -> StatusUpdateOptions:
    return StatusUpdateOptions(
        changed_by=request.changed_by,
        notes=request.notes,
        cancellation_reason=request.cancellation_reason,
        skip_notification=request.skip_notification,
    )


@router.get("", response_model=OrderListResponse)
async def list_orders(
    tenant_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    tenant: Tenant = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """List orders for a tenant with pagination"""
    query = select(Order).where(Order.tenant_id == tenant_id)
    count_query = select(func.count(Order.id)).where(Order.tenant_id == tenant_id)

    if status:
        query = query.where(Order.status == status)
        count_query = count_query.where(Order.status == status)

    if payment_status:
        query = query.where(Order.payment_status == payment_status)
        count_query = count_query.where(Order.payment_status == payment_status)

    if from_date:
        query = query.where(Order.created_at >= from_date)
        count_query = count_query.where(Order.created_at >= from_date)

    if to_date:
        query = query.where(Order.created_at <= to_date)
        count_query = count_query.where(Order.created_at <= to_date)

    # Get total
    total_result = await db.execute(count_query)
    total = total_result.scalar()

    # Get paginated results
    offset = (page - 1) * page_size
    query = query.order_by(Order.created_at.desc()).offset(offset).limit(page_size)

    result = await db.execute(query)
    orders = result.scalars().all()

    return OrderListResponse(
        items=[_order_response(order) for order in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    tenant_id: UUID,
    order_data: OrderCreate,
    tenant: Tenant = Depends(get_tenant),
    handler: StatusChangeHandler = Depends(get_status_handler),
):
    """Create a new order in the pending status"""
    order = await handler.create_order(tenant, order_data, changed_by=order_data.changed_by)
    return _order_response(order)


@router.get("/stats", response_model=OrderStatsResponse)
async def order_stats(
    tenant_id: UUID,
    tenant: Tenant = Depends(get_tenant),
    handler: StatusChangeHandler = Depends(get_status_handler),
):
    """Order counts per status"""
    counts = await handler.get_order_stats(tenant_id)
    return OrderStatsResponse(counts=counts, total=sum(counts.values()))


@router.get("/overdue", response_model=List[OrderResponse])
async def overdue_orders(
    tenant_id: UUID,
    tenant: Tenant = Depends(get_tenant),
    handler: StatusChangeHandler = Depends(get_status_handler),
):
    """Ready orders whose pickup time has passed"""
    orders = await handler.get_overdue_orders(tenant_id)
    return [_order_response(order) for order in orders]


@router.post("/bulk_status", response_model=BulkStatusUpdateResponse)
async def bulk_update_status(
    tenant_id: UUID,
    request: BulkStatusUpdateRequest,
    tenant: Tenant = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
    handler: StatusChangeHandler = Depends(get_status_handler),
):
    """Apply one status change to several orders; each order succeeds or fails on its own"""
    owned = await db.execute(
        select(Order.id).where(Order.tenant_id == tenant_id, Order.id.in_(request.order_ids))
    )
    owned_ids = set(owned.scalars().all())

    items = []
    for order_id in request.order_ids:
        if order_id not in owned_ids:
            items.append(BulkStatusItemResult(order_id=order_id, success=False, error="Order not found"))
            continue

        outcome = await handler.update_order_status(order_id, request.status, _status_options(request))
        items.append(
            BulkStatusItemResult(
                order_id=order_id,
                success=outcome.success,
                status=outcome.order.status if outcome.order else None,
                error=outcome.error,
            )
        )

    succeeded = sum(1 for item in items if item.success)
    return BulkStatusUpdateResponse(
        results=items,
        succeeded=succeeded,
        failed=len(items) - succeeded,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    tenant_id: UUID,
    order_id: UUID,
    tenant: Tenant = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get order details"""
    order = await _get_tenant_order(db, tenant_id, order_id)
    return _order_response(order)


@router.post("/{order_id}/status", response_model=StatusChangeResponse)
async def update_order_status(
    tenant_id: UUID,
    order_id: UUID,
    request: StatusUpdateRequest,
    tenant: Tenant = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
    handler: StatusChangeHandler = Depends(get_status_handler),
):
    """Move an order to a new status"""
    await _get_tenant_order(db, tenant_id, order_id)

    outcome = await handler.update_order_status(order_id, request.status, _status_options(request))
    if not outcome.success:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES.get(outcome.error_code, 500),
            detail=outcome.error,
        )

    return StatusChangeResponse(
        success=True,
        order=_order_response(outcome.order) if outcome.order else None,
        history_entry=(
            StatusHistoryResponse.model_validate(outcome.history_entry)
            if outcome.history_entry
            else None
        ),
        notification_sent=outcome.notification_sent,
        warnings=outcome.warnings,
    )


@router.get("/{order_id}/history", response_model=List[StatusHistoryResponse])
async def get_order_history(
    tenant_id: UUID,
    order_id: UUID,
    tenant: Tenant = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
    handler: StatusChangeHandler = Depends(get_status_handler),
):
    """Status history, oldest first"""
    await _get_tenant_order(db, tenant_id, order_id)
    entries = await handler.get_status_history(order_id)
    return [StatusHistoryResponse.model_validate(entry) for entry in entries]


@router.get("/{order_id}/transitions", response_model=AllowedTransitionsResponse)
async def get_order_transitions(
    tenant_id: UUID,
    order_id: UUID,
    tenant: Tenant = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
    handler: StatusChangeHandler = Depends(get_status_handler),
):
    """Statuses the order can move to from where it is now"""
    order = await _get_tenant_order(db, tenant_id, order_id)
    next_status = next_normal_status(order.status)
    return AllowedTransitionsResponse(
        current_status=order.status,
        allowed=handler.get_allowed_transitions(order.status),
        next_status=next_status.value if next_status else None,
        can_cancel=await handler.can_cancel_order(order_id),
        is_terminal=is_terminal_status(order.status),
    )
