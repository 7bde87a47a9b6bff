"""
Orders API router: order history, cancellation and admin status management.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.deps import CurrentAdmin, CurrentUser, DatabaseSession
from src.core.logging import get_logger
from src.schemas.orders import (
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
)
from src.services.orders.enums import OrderStatus
from src.services.orders.service import (
    OrderNotFoundError,
    OrderPermissionError,
    OrderProcessingError,
    OrderService,
)
from src.services.orders.state_machine import StateTransitionError

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def get_order_service(db: DatabaseSession) -> OrderService:
    return OrderService(db)


OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]


def _not_found(order_id: UUID) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "code": "ORDER_NOT_FOUND",
            "message": "Order not found",
            "order_id": str(order_id),
        },
    )


def _processing_failed(e: OrderProcessingError) -> HTTPException:
    logger.error("Order operation failed", error=str(e), context=e.context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "code": "ORDER_PROCESSING_ERROR",
            "message": "Failed to process order request",
        },
    )


def _invalid_transition(e: StateTransitionError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "code": e.code,
            "message": e.message,
            "current_status": e.current_state.value,
            "target_status": e.target_state.value,
            **e.context,
        },
    )


@router.get(
    "/admin/by-status/{order_status}",
    response_model=OrderListResponse,
    summary="List orders by status (admin)",
)
async def list_orders_by_status(
    order_status: OrderStatus,
    current_admin: CurrentAdmin,
    service: OrderServiceDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
) -> OrderListResponse:
    try:
        orders, total = await service.list_orders_by_status(
            order_status, skip=skip, limit=limit
        )
    except OrderProcessingError as e:
        raise _processing_failed(e)

    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List my orders",
    description="The caller's orders, newest first",
)
async def list_orders(
    current_user: CurrentUser,
    service: OrderServiceDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
) -> OrderListResponse:
    try:
        orders, total = await service.list_orders(current_user, skip=skip, limit=limit)
    except OrderProcessingError as e:
        raise _processing_failed(e)

    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
)
async def get_order(
    order_id: UUID,
    current_user: CurrentUser,
    service: OrderServiceDep,
) -> OrderResponse:
    try:
        order = await service.get_order(current_user, order_id)
    except OrderNotFoundError:
        raise _not_found(order_id)
    except OrderProcessingError as e:
        raise _processing_failed(e)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel order",
    description="Cancel one of the caller's orders while it is still pending",
)
async def cancel_order(
    order_id: UUID,
    current_user: CurrentUser,
    service: OrderServiceDep,
) -> OrderResponse:
    try:
        order = await service.cancel_order(current_user, order_id)
    except OrderNotFoundError:
        raise _not_found(order_id)
    except StateTransitionError as e:
        raise _invalid_transition(e)
    except OrderProcessingError as e:
        raise _processing_failed(e)
    return OrderResponse.model_validate(order)


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status (admin)",
)
async def update_order_status(
    order_id: UUID,
    body: OrderStatusUpdateRequest,
    current_admin: CurrentAdmin,
    service: OrderServiceDep,
) -> OrderResponse:
    """
    Move an order along its lifecycle.

    Raises:
        HTTPException: 403 for non-admins, 404 if the order does not exist,
            409 if the transition is not allowed
    """
    try:
        order = await service.update_order_status(order_id, body.status, current_admin)
    except OrderPermissionError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "FORBIDDEN", "message": e.message},
        )
    except OrderNotFoundError:
        raise _not_found(order_id)
    except StateTransitionError as e:
        raise _invalid_transition(e)
    except OrderProcessingError as e:
        raise _processing_failed(e)
    return OrderResponse.model_validate(order)
