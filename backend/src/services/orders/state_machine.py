"""Order state machine with transition validation.

The machine only mutates the order object in memory. Persisting the change
is up to the caller, which keeps transitions inside the caller's unit of
work.
"""

from typing import Any, Callable, Dict, Optional
from uuid import UUID

from src.core.logging import get_logger
from src.database.base import utcnow
from src.database.models.order import Order
from src.services.orders.enums import (
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)

logger = get_logger(__name__)


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_state: OrderStatus,
        target_state: OrderStatus,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        self.code = "INVALID_STATUS_TRANSITION"
        self.current_state = current_state
        self.target_state = target_state
        self.context = context


class OrderStateMachine:
    """State machine for order lifecycle transitions.

    Transitions are checked against the status table first and then against
    an optional guard for that specific transition.
    """

    def __init__(self):
        self._transition_guards: Dict[
            tuple[OrderStatus, OrderStatus], Callable[[Order], bool]
        ] = {
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED): self._guard_has_address,
        }

    def validate_transition(
        self,
        order: Order,
        target_status: OrderStatus,
        user_id: Optional[UUID] = None,
    ) -> None:
        """Validate that ``order`` may move to ``target_status``.

        Raises:
            StateTransitionError: If the transition is not allowed
        """
        current_status = order.status

        if not validate_order_status_transition(current_status, target_status):
            allowed = get_allowed_order_transitions(current_status)
            raise StateTransitionError(
                f"Invalid transition from {current_status.value} to "
                f"{target_status.value}",
                current_state=current_status,
                target_state=target_status,
                allowed_transitions=sorted(s.value for s in allowed),
            )

        guard = self._transition_guards.get((current_status, target_status))
        if guard is not None and not guard(order):
            raise StateTransitionError(
                f"Transition guard failed for {current_status.value} -> "
                f"{target_status.value}",
                current_state=current_status,
                target_state=target_status,
                guard_failed=True,
            )

        logger.debug(
            "State transition validated",
            order_id=str(order.id),
            transition=f"{current_status.value}->{target_status.value}",
            user_id=str(user_id) if user_id else None,
        )

    def apply_transition(
        self,
        order: Order,
        target_status: OrderStatus,
        user_id: Optional[UUID] = None,
    ) -> OrderStatus:
        """Validate and apply a transition in memory.

        Returns:
            The status the order had before the transition

        Raises:
            StateTransitionError: If the transition is not allowed
        """
        self.validate_transition(order, target_status, user_id)

        old_status = order.status
        order.status = target_status
        order.status_changed_at = utcnow()

        logger.info(
            "Order status changed",
            order_id=str(order.id),
            transition=f"{old_status.value}->{target_status.value}",
            user_id=str(user_id) if user_id else None,
        )
        return old_status

    def _guard_has_address(self, order: Order) -> bool:
        return bool(order.delivery_address and order.delivery_address.strip())
