"""Order lifecycle rules: who may modify an order and which status moves are allowed."""

from datetime import datetime, timezone
from typing import Any

from src.api.middleware.error_handler import AuthorizationError, InvalidStateError
from src.models.order import OrderStatus, OrderUpdate
from src.models.user import UserRole

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PROCESSING: frozenset(
        {OrderStatus.PENDING, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    OrderStatus.COMPLETED: frozenset({OrderStatus.PROCESSING, OrderStatus.PENDING}),
    OrderStatus.CANCELLED: frozenset({OrderStatus.PENDING}),
}


def is_terminal(status: OrderStatus | str) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def can_modify(role: UserRole | str, status: OrderStatus | str) -> bool:
    """Check whether a role may mutate an order in the given status.

    Admins may act on any order. Staff may act while the order is still
    open. Customers never mutate orders.
    """
    role = UserRole(role)
    if role == UserRole.ADMIN:
        return True
    if role == UserRole.STAFF:
        return not is_terminal(status)
    return False


def ensure_can_modify(role: UserRole | str, order: dict[str, Any]) -> None:
    """Raise AuthorizationError if the role may not mutate this order."""
    if not can_modify(role, order["status"]):
        if UserRole(role) == UserRole.CUSTOMER:
            raise AuthorizationError("Customers cannot modify orders.")
        raise AuthorizationError(
            f"Only admins can modify {OrderStatus(order['status']).value} orders."
        )


def ensure_transition_allowed(current: OrderStatus | str, target: OrderStatus | str) -> None:
    """Raise InvalidStateError if current -> target is not a permitted move.

    Setting the current status again is always allowed.
    """
    current = OrderStatus(current)
    target = OrderStatus(target)
    if current == target:
        return
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateError(
            f"Cannot change order status from {current.value} to {target.value}."
        )


def build_status_changes(
    order: dict[str, Any],
    target: OrderStatus | str,
    now: datetime | None = None,
) -> OrderUpdate:
    """Build the column changes for moving an order to target.

    Entering processing stamps started_at once; going back to pending
    clears it. Entering completed stamps completed_at; leaving completed
    clears it.

    Returns:
        dict: Column changes, empty when target equals the current status.
    """
    current = OrderStatus(order["status"])
    target = OrderStatus(target)
    if current == target:
        return {}

    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    changes: OrderUpdate = {"status": target.value, "updated_at": timestamp}

    if target == OrderStatus.PROCESSING and not order.get("started_at"):
        changes["started_at"] = timestamp
    elif target == OrderStatus.PENDING:
        changes["started_at"] = None

    if target == OrderStatus.COMPLETED:
        changes["completed_at"] = timestamp
    elif current == OrderStatus.COMPLETED:
        changes["completed_at"] = None

    return changes
