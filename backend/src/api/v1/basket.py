"""
Basket and checkout API router.

Every endpoint acts on the authenticated user's own basket. Service errors
are translated to HTTP responses with a machine-readable ``code`` in the
detail; conflicts are marked ``retryable`` so clients know to reload the
basket and try again.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.api.deps import CurrentUser, DatabaseSession
from src.core.logging import get_logger
from src.core.rate_limit import checkout_limit, limiter
from src.schemas.basket import (
    AddBasketLineRequest,
    BasketResponse,
    CheckoutLinesRequest,
    CheckoutRequest,
    CheckoutResponse,
    ClearBasketResponse,
    UpdateBasketLineRequest,
)
from src.schemas.orders import OrderResponse
from src.services.basket.service import BasketService, BasketServiceError
from src.services.checkout.service import CheckoutResult, CheckoutService
from src.services.notifications.service import get_notification_service

logger = get_logger(__name__)

router = APIRouter(prefix="/basket", tags=["basket"])

_STATUS_BY_CODE = {
    "ITEM_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "LINE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_QUANTITY": status.HTTP_400_BAD_REQUEST,
    "CONCURRENT_MODIFICATION": status.HTTP_409_CONFLICT,
    "ITEM_UNAVAILABLE": status.HTTP_409_CONFLICT,
    "PERSISTENCE_FAILURE": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_basket_service(db: DatabaseSession) -> BasketService:
    return BasketService(db)


def get_checkout_service(db: DatabaseSession) -> CheckoutService:
    return CheckoutService(db, notifier=get_notification_service())


BasketServiceDep = Annotated[BasketService, Depends(get_basket_service)]
CheckoutServiceDep = Annotated[CheckoutService, Depends(get_checkout_service)]


def _http_error(e: BasketServiceError, operation: str) -> HTTPException:
    """Map a basket service error onto an HTTP error response."""
    status_code = _STATUS_BY_CODE.get(e.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(
            "Basket operation failed",
            operation=operation,
            error_code=e.code,
            error=str(e),
        )
        return HTTPException(
            status_code=status_code,
            detail={
                "code": e.code,
                "message": f"Failed to complete {operation}",
            },
        )

    logger.info(
        "Basket operation rejected",
        operation=operation,
        error_code=e.code,
    )
    return HTTPException(
        status_code=status_code,
        detail={"code": e.code, "message": e.message, **e.context},
    )


def _checkout_response(result: CheckoutResult) -> CheckoutResponse:
    return CheckoutResponse(
        status=result.status.value,
        success=result.success,
        message=result.message,
        total_amount=result.total_amount,
        orders=[OrderResponse.model_validate(order) for order in result.orders],
    )


@router.get(
    "",
    response_model=BasketResponse,
    summary="Get basket",
    description="Return the caller's basket, creating an empty one on first access",
)
async def get_basket(
    current_user: CurrentUser,
    service: BasketServiceDep,
) -> BasketResponse:
    try:
        basket = await service.get_or_create_basket(current_user)
    except BasketServiceError as e:
        raise _http_error(e, "get_basket")
    return BasketResponse.model_validate(basket)


@router.post(
    "/lines",
    response_model=BasketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add item to basket",
    description="Add a catalog item; repeated adds of the same item increase its quantity",
)
async def add_line(
    body: AddBasketLineRequest,
    current_user: CurrentUser,
    service: BasketServiceDep,
) -> BasketResponse:
    """
    Add a catalog item to the basket.

    Raises:
        HTTPException: 400 for a quantity below 1, 404 if the item does not
            exist, 409 on a concurrent change, 500 on a storage failure
    """
    try:
        basket = await service.add_item(
            current_user,
            body.item_kind,
            body.item_id,
            body.quantity,
        )
    except BasketServiceError as e:
        raise _http_error(e, "add_line")
    return BasketResponse.model_validate(basket)


@router.patch(
    "/lines/{line_id}",
    response_model=BasketResponse,
    summary="Change line quantity",
    description="Set a line's quantity; zero removes the line",
)
async def update_line(
    line_id: UUID,
    body: UpdateBasketLineRequest,
    current_user: CurrentUser,
    service: BasketServiceDep,
) -> BasketResponse:
    try:
        basket = await service.update_line_quantity(
            current_user,
            line_id,
            body.quantity,
            expected_version=body.version,
        )
    except BasketServiceError as e:
        raise _http_error(e, "update_line")
    return BasketResponse.model_validate(basket)


@router.delete(
    "/lines/{line_id}",
    response_model=BasketResponse,
    summary="Remove line",
)
async def remove_line(
    line_id: UUID,
    current_user: CurrentUser,
    service: BasketServiceDep,
    version: Optional[int] = Query(None, description="Line version the client last saw"),
) -> BasketResponse:
    try:
        basket = await service.remove_line(current_user, line_id, expected_version=version)
    except BasketServiceError as e:
        raise _http_error(e, "remove_line")
    return BasketResponse.model_validate(basket)


@router.delete(
    "",
    response_model=ClearBasketResponse,
    summary="Clear basket",
)
async def clear_basket(
    current_user: CurrentUser,
    service: BasketServiceDep,
) -> ClearBasketResponse:
    try:
        removed = await service.clear_basket(current_user)
    except BasketServiceError as e:
        raise _http_error(e, "clear_basket")
    return ClearBasketResponse(removed_lines=removed)


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Check out basket",
    description="Place one order per basket line and empty the basket, all or nothing",
)
@limiter.limit(checkout_limit)
async def checkout(
    request: Request,
    body: CheckoutRequest,
    current_user: CurrentUser,
    service: CheckoutServiceDep,
) -> CheckoutResponse:
    """
    Check out the whole basket.

    An empty basket is not an error: the response has ``success`` false and
    status ``empty_basket``.

    Raises:
        HTTPException: 409 if items are unavailable or the basket changed
            concurrently, 500 if the orders could not be stored
    """
    try:
        result = await service.checkout(current_user, body)
    except BasketServiceError as e:
        raise _http_error(e, "checkout")
    return _checkout_response(result)


@router.post(
    "/checkout/lines",
    response_model=CheckoutResponse,
    summary="Check out selected lines",
    description="Place orders for the selected lines only; other lines stay in the basket",
)
@limiter.limit(checkout_limit)
async def checkout_lines(
    request: Request,
    body: CheckoutLinesRequest,
    current_user: CurrentUser,
    service: CheckoutServiceDep,
) -> CheckoutResponse:
    try:
        result = await service.checkout_lines(current_user, body.line_ids, body)
    except BasketServiceError as e:
        raise _http_error(e, "checkout_lines")
    return _checkout_response(result)
